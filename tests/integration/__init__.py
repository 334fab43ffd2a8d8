"""
Integration tests for system components.

This package contains integration tests for:
- Review session end-to-end flows (load, select, highlight, render)
- Document switching while loads are in flight
- Web API endpoints backed by a review session
"""
