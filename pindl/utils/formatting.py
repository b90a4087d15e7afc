from __future__ import annotations

import math

SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def human_size(num_bytes: int) -> str:
    """Render a byte count such as ``1536`` as ``"1.50 KB"``."""

    if num_bytes < 0:
        raise ValueError("Byte count cannot be negative.")
    if num_bytes == 0:
        return "0 B"

    last = len(SIZE_UNITS) - 1
    index = min(int(math.floor(math.log(num_bytes) / math.log(1024))), last)
    # float log can land just below an exact power of 1024
    if index < last and num_bytes >= 1024 ** (index + 1):
        index += 1
    size = num_bytes / math.pow(1024, index)
    return f"{size:.2f} {SIZE_UNITS[index]}"
