"""File naming conventions shared by the upload gateway, processor and streamer.

All job state lives on disk. A job for input ``T_name.pdf`` is tracked by
``T_name.pdf.debug.txt`` (progress log) and ``T_name.pdf.success``
(completion marker) in the output directory.
"""

import os

DEBUG_SUFFIX = ".debug.txt"
SUCCESS_SUFFIX = ".success"
OUTPUT_SUFFIX = ".md"


def input_file_name(timestamp: int, original_name: str) -> str:
    return f"{int(timestamp)}_{base_name(original_name)}"


def debug_marker_name(input_name: str) -> str:
    return input_name + DEBUG_SUFFIX


def success_marker_name(debug_name: str) -> str:
    # A name that is exactly ".debug.txt" or lacks the suffix keeps its full
    # text; ".success" is appended either way.
    base = debug_name
    if len(base) > len(DEBUG_SUFFIX) and base.endswith(DEBUG_SUFFIX):
        base = base[: -len(DEBUG_SUFFIX)]
    return base + SUCCESS_SUFFIX


def output_file_name(input_name: str) -> str:
    return input_name + OUTPUT_SUFFIX


def base_name(name: str) -> str:
    """Strip any directory components, accepting both separators."""
    return os.path.basename(name.replace("\\", "/"))


def safe_name(name: str | None) -> str | None:
    """Return the base name, or None when nothing usable remains."""
    if not name:
        return None
    cleaned = base_name(name)
    if cleaned in {"", ".", ".."}:
        return None
    return cleaned
