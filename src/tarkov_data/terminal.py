"""
Terminal output helpers for the scraping scripts.

ANSI colors are only emitted when stdout is a TTY, so piped output stays
plain. Job log entries are rendered with the same palette as the direct
messages: diff lines keep their "+"/"-" coloring.
"""

import sys
from enum import Enum

from tarkov_data.models import LogEntry, LogLevel


class Color(Enum):
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"

    BRIGHT_BLACK = "\033[90m"
    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_BLUE = "\033[94m"
    BRIGHT_CYAN = "\033[96m"
    BRIGHT_WHITE = "\033[97m"


_LEVEL_COLORS: dict[LogLevel, tuple[Color, ...]] = {
    "info": (),
    "success": (Color.BRIGHT_GREEN,),
    "warning": (Color.BRIGHT_YELLOW,),
    "error": (Color.BRIGHT_RED,),
}

_LEVEL_SYMBOLS: dict[LogLevel, str] = {
    "info": "·",
    "success": "✓",
    "warning": "⚠",
    "error": "✗",
}


def _supports_color() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def colorize(text: str, *colors: Color) -> str:
    if not _supports_color() or not colors:
        return text
    prefix = "".join(c.value for c in colors)
    return f"{prefix}{text}{Color.RESET.value}"


def _status_line(level: LogLevel, message: str) -> str:
    return colorize(f"{_LEVEL_SYMBOLS[level]} {message}", *_LEVEL_COLORS[level])


def success(message: str) -> None:
    print(_status_line("success", message))


def warning(message: str) -> None:
    print(_status_line("warning", message))


def error(message: str) -> None:
    print(_status_line("error", message), file=sys.stderr)


def section_header(title: str) -> None:
    separator = "=" * 60
    print(f"\n{colorize(separator, Color.BRIGHT_BLUE)}")
    print(colorize(title, Color.BOLD, Color.BRIGHT_CYAN))
    print(colorize(separator, Color.BRIGHT_BLUE))


def subsection(title: str) -> None:
    print(f"\n{colorize(title, Color.BOLD)}")


def progress(current: int, total: int, message: str = "") -> None:
    prefix = colorize(f"[{current}/{total}]", Color.BRIGHT_CYAN)
    print(f"{prefix} {message}")


def key_value(key: str, value: str, indent: int = 0) -> None:
    spaces = " " * indent
    colored_key = colorize(f"{key}:", Color.BRIGHT_WHITE)
    print(f"{spaces}{colored_key} {value}")


def bullet(message: str, indent: int = 2, symbol: str = "•") -> None:
    spaces = " " * indent
    print(f"{spaces}{colorize(symbol, Color.BRIGHT_BLUE)} {message}")


def diff_line(line: str) -> str:
    if line.startswith("+"):
        return colorize(line, Color.GREEN)
    if line.startswith("-"):
        return colorize(line, Color.RED)
    if line.endswith(":") and not line.startswith(" "):
        return colorize(line, Color.BOLD)
    return colorize(line, Color.DIM)


def format_log_entry(entry: LogEntry) -> str:
    timestamp = entry.timestamp.strftime("%H:%M:%S")
    head, *rest = entry.message.split("\n")
    first = _status_line(entry.level, head)
    lines = [f"{colorize(timestamp, Color.BRIGHT_BLACK)} {first}"]
    lines.extend(f"         {diff_line(line)}" for line in rest)
    return "\n".join(lines)


def log_entry(entry: LogEntry) -> None:
    print(format_log_entry(entry))


def error_with_context(
    error_msg: str,
    context: dict[str, str] | None = None,
    suggestions: list[str] | None = None,
) -> None:
    error(error_msg)

    if context:
        print()
        for key, value in context.items():
            key_value(key, value, indent=2)

    if suggestions:
        print()
        print(colorize("Suggestions:", Color.BRIGHT_YELLOW))
        for suggestion in suggestions:
            bullet(suggestion, indent=2, symbol="→")
