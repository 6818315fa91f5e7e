"""bootkit CLI module.

This module provides the command-line interface for bootkit, enabling users to:
    - List, add and remove plugins with `bk plugins`
    - Inspect the composed manifest with `bk manifest`
    - Clear derived state with `bk cache clear`
"""
