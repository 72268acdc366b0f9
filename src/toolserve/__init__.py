"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

MCP tool servers over streamable HTTP.
"""

__version__ = "1.0.0"
