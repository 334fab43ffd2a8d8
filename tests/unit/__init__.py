"""
Unit tests for individual components.

This package contains unit tests for:
- Provenance parsing, field resolution and confidence tiers
- Coordinate mapping and overlay composition
- Viewport state machine and highlight synchronization
- Document sources and configuration loading
"""
