#!/usr/bin/env python3
"""
Field Provenance Viewer - Main Entry Point

Usage:
    python main.py serve       # Run the review web interface
    python main.py render      # Render a page with its provenance overlay
    python main.py config      # Create sample config
    python main.py info        # Show environment information
"""

from field_provenance.cli import main

if __name__ == "__main__":
    main()
