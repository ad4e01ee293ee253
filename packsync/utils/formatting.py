"""
Human-readable sizes and durations for the run summary.
"""

_SIZE_UNITS = ("B", "KB", "MB", "GB")


def format_size(bytes_size: int) -> str:
    """Downloaded byte count, e.g. '12.4 MB'. Plain bytes are shown without decimals."""
    size = float(max(bytes_size, 0))
    for unit in _SIZE_UNITS[:-1]:
        if size < 1024:
            break
        size /= 1024
    else:
        unit = _SIZE_UNITS[-1]
    return f"{int(size)} B" if unit == "B" else f"{size:.1f} {unit}"


def format_duration(seconds: float) -> str:
    """Sync runs are short: sub-minute runs keep one decimal, longer ones 'Xm Ys'."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m {secs}s"
