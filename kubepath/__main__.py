"""Entry point for `python -m kubepath`.

Usage:
    python -m kubepath
"""

from __future__ import annotations

from kubepath.app import run

run()
