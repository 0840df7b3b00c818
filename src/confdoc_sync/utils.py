"""Core utility functions: console output, logging, file reading."""

import os

from rich.console import Console

console = Console(markup=False)
# Diagnostics go to stderr so the rendered document can be piped from stdout.
err_console = Console(stderr=True, markup=False)

_log_file: str | None = None


def set_log_file(path: str | None) -> None:
    """Mirror every log() message into *path* (None disables the mirror)."""
    global _log_file
    if path:
        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)
    _log_file = path or None


def log(component: str, message: str, style: str = "") -> None:
    """Write a message to the diagnostics console and, if configured, the log file."""
    if style:
        err_console.print(message, style=style)
    else:
        err_console.print(message)

    if not _log_file:
        return
    try:
        with open(_log_file, "a", encoding="utf-8") as f:
            f.write(f"[{component}] {message}\n")
    except Exception:
        pass  # Never break a run over logging


def read_text(path: str) -> str:
    """Read a UTF-8 text file without translating line endings."""
    with open(path, "r", encoding="utf-8", newline="") as f:
        return f.read()


def write_text(path: str, text: str) -> None:
    """Write *text* verbatim, preserving its line endings."""
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(text)
