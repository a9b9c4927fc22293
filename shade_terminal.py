#!/usr/bin/env python3
"""
🔤 glyphshade - Terminal Output Module
======================================
Copyright (c) 2025 PNGN-Tec LLC

ANSI Terminal Primitives
========================
The small set of terminal operations the renderer needs, queued in
memory and written in one go on flush, plus the raw-mode and input
helpers used by the interactive viewer.

Module Interface
================
- ANSI: escape sequence constants and builders
- TerminalSink: clear/move/color/print queue over a text stream
- raw_mode(): context manager for unbuffered, non-echoing input
- read_key(): poll one key press with a timeout
- terminal_size(): current (columns, rows)
"""

import os
import sys
import select
import shutil
import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional, TextIO, Tuple

# Configure logging
logger = logging.getLogger('glyphshade.terminal')

RGBColor = Tuple[int, int, int]

KEY_ESCAPE = '\x1b'
KEY_CTRL_C = '\x03'


class ANSI:
    RESET = "\033[0m"
    CLEAR_ALL = "\033[2J"

    @staticmethod
    def move_to_row(row: int) -> str:
        """Vertical position absolute (0-based row)"""
        return f"\033[{row + 1}d"

    @staticmethod
    def move_to_column(column: int) -> str:
        """Cursor horizontal absolute (0-based column)"""
        return f"\033[{column + 1}G"

    @staticmethod
    def rgb_to_ansi(rgb: RGBColor) -> str:
        """Convert RGB tuple to ANSI foreground color code"""
        r, g, b = rgb
        return f"\033[38;2;{r};{g};{b}m"


class TerminalSink:
    """
    Queued ANSI output.

    Operations are buffered and only reach the stream on ``flush``, so a
    frame is written whole.
    """

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdout
        self._queue: List[str] = []

    def clear_all(self):
        self._queue.append(ANSI.CLEAR_ALL)

    def move_to_row(self, row: int):
        self._queue.append(ANSI.move_to_row(row))

    def move_to_column(self, column: int):
        self._queue.append(ANSI.move_to_column(column))

    def set_foreground(self, rgb: RGBColor):
        self._queue.append(ANSI.rgb_to_ansi(rgb))

    def reset_color(self):
        self._queue.append(ANSI.RESET)

    def print(self, text: str):
        self._queue.append(text)

    def flush(self):
        """Write everything queued and flush the stream"""
        if self._queue:
            self.stream.write(''.join(self._queue))
            self._queue.clear()
        self.stream.flush()


# ============================================================================
# INTERACTIVE TERMINAL HELPERS
# ============================================================================

def terminal_size(fallback: Tuple[int, int] = (80, 24)) -> Tuple[int, int]:
    """Current terminal size as (columns, rows)"""
    size = shutil.get_terminal_size(fallback)
    return size.columns, size.lines


@contextmanager
def raw_mode(stream: Optional[TextIO] = None) -> Iterator[None]:
    """
    Put the terminal behind ``stream`` into raw mode for the duration.

    Non-tty streams are left untouched.
    """
    stream = stream or sys.stdin
    if not stream.isatty():
        logger.debug("stdin is not a tty - raw mode skipped")
        yield
        return

    import termios
    import tty

    fd = stream.fileno()
    saved = termios.tcgetattr(fd)
    tty.setraw(fd)
    logger.debug("Raw mode enabled")
    try:
        yield
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, saved)
        logger.debug("Raw mode disabled")


def read_key(timeout: float, stream: Optional[TextIO] = None) -> Optional[str]:
    """
    Wait up to ``timeout`` seconds for one key press.

    Returns:
        The key as a string (escape sequences such as arrow keys come
        back whole), or None on timeout

    Raises:
        EOFError: The input stream is closed
    """
    stream = stream or sys.stdin
    ready, _, _ = select.select([stream], [], [], timeout)
    if not ready:
        return None
    fd = stream.fileno()
    data = os.read(fd, 1)
    if not data:
        raise EOFError("input stream closed")
    if data == KEY_ESCAPE.encode() and select.select([stream], [], [], 0)[0]:
        data += os.read(fd, 16)
    return data.decode('latin-1')


def is_quit_key(key: Optional[str]) -> bool:
    """q, Esc and Ctrl-C end the viewer"""
    return key in ('q', KEY_ESCAPE, KEY_CTRL_C)
