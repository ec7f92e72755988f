"""
Snowball Citation Server
========================

Snowball literature discovery over the Semantic Scholar citation graph.

This package provides:
- core: Pure Python snowball engine (no MCP dependencies, usable by web apps)
- resources: Analytics event and session link storage
- tools: MCP tools for snowball search and session linking
"""

from .server import main

__version__ = "0.1.0"
__all__ = ["main"]
