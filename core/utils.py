"""Shared utility functions for the LayerEdge bot core modules.

Provides the delay primitive used by every timed wait, plus small
line-oriented file helpers for the proxy list and the append-only
registration log.
"""

import asyncio
import logging
import os
from typing import List

logger = logging.getLogger(__name__)


async def delay(seconds: float) -> None:
    """Suspend the current task for *seconds*."""
    await asyncio.sleep(seconds)


def read_lines(filepath: str) -> List[str]:
    """Read non-empty, stripped lines from a text file.

    Lines starting with ``#`` are treated as comments and skipped.

    Args:
        filepath: Path to the text file.

    Returns:
        List of lines, or an empty list if the file is missing or
        unreadable.
    """
    if not os.path.exists(filepath):
        logger.warning("File not found: %s", filepath)
        return []
    try:
        with open(filepath, "r", encoding="utf-8") as fh:
            lines = [line.strip() for line in fh]
    except OSError as e:
        logger.error("Error reading %s: %s", filepath, e)
        return []
    return [line for line in lines if line and not line.startswith("#")]


def append_line(filepath: str, data: str) -> bool:
    """Append a single line to *filepath*, creating parent dirs.

    Returns:
        ``True`` when the line was written.
    """
    try:
        dirpath = os.path.dirname(filepath)
        if dirpath:
            os.makedirs(dirpath, exist_ok=True)
        with open(filepath, "a", encoding="utf-8") as fh:
            fh.write(f"{data}\n")
    except OSError as e:
        logger.error("Failed to save data to %s: %s", filepath, e)
        return False
    logger.info("Data saved to %s", filepath)
    return True
