"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.
"""

from toolserve.cli import main

raise SystemExit(main())
