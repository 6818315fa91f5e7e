"""CLI commands for bootkit.

This package contains the implementation of CLI commands:
    - plugins: List, add and remove plugins
    - manifest: Show the composed manifest
    - cache: Manage derived state
    - version: Show version information
"""
