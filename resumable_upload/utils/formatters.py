"""Human-readable formatting for sizes, durations and speed tiers."""

from resumable_upload.schemas.upload import SpeedTier

_SIZE_UNITS = ["Bytes", "KB", "MB", "GB"]


def format_bytes(num_bytes: int) -> str:
    """Format bytes as e.g. "1.5 MB" (two decimals at most, largest unit GB)."""
    if num_bytes == 0:
        return "0 Bytes"
    k = 1024
    i = 0
    while num_bytes >= k ** (i + 1) and i < len(_SIZE_UNITS) - 1:
        i += 1
    value = round(num_bytes / k ** i, 2)
    if value == int(value):
        value = int(value)
    return f"{value} {_SIZE_UNITS[i]}"


def format_time(ms: float) -> str:
    """Format milliseconds as "1h 2m 3s", "2m 5s" or "45s"."""
    seconds = int(ms // 1000)
    minutes = seconds // 60
    hours = minutes // 60

    if hours > 0:
        return f"{hours}h {minutes % 60}m {seconds % 60}s"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


def speed_label(tier) -> str:
    return SpeedTier(tier).label
