"""Random ``x-b3-*`` tracing headers.

Pinterest's resource API expects the headers a browser session sends. The
values are cosmetic, so collisions do not matter.
"""

from __future__ import annotations

import random

TRACE_FLAGS = "0"


def generate_trace_id() -> str:
    value = random.randrange(0x7FFFFFFF) * 0x100000000 + random.randrange(0xFFFFFFFF)
    return format(value, "x").zfill(16)[:16]


def trace_headers() -> dict[str, str]:
    return {
        "x-b3-traceid": generate_trace_id(),
        "x-b3-spanid": generate_trace_id(),
        "x-b3-parentspanid": generate_trace_id(),
        "x-b3-flags": TRACE_FLAGS,
    }
