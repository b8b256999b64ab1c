"""Entry point for `python -m chartinspector`.

Usage:
    python -m chartinspector
    uv run python -m chartinspector
"""

from __future__ import annotations

import asyncio

from chartinspector.app import main

asyncio.run(main())
