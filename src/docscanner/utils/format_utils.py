"""
DocScanner - Format Utilities Module

Shared helpers for human-readable sizes and durations.
"""


def format_file_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB")
    """
    if size_bytes <= 0:
        return "0 B"

    units = ["B", "KB", "MB", "GB"]

    size = float(size_bytes)
    unit_index = 0

    while size >= 1024 and unit_index < len(units) - 1:
        size /= 1024
        unit_index += 1

    if unit_index == 0:
        return f"{int(size)} {units[unit_index]}"
    return f"{size:.1f} {units[unit_index]}"


def format_duration_ms(milliseconds: float) -> str:
    """Format a processing duration.

    Args:
        milliseconds: Duration in milliseconds

    Returns:
        "850 ms" below one second, "2.4 s" otherwise
    """
    if milliseconds < 0:
        milliseconds = 0
    if milliseconds < 1000:
        return f"{milliseconds:.0f} ms"
    return f"{milliseconds / 1000:.1f} s"
