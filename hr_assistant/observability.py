"""
Latency tracing for the assistant's critical paths.

A chat turn fans out into record-store queries and, occasionally, a language
model call. When a turn is slow or fails halfway, the request log alone does
not say which hop was responsible. Every such hop is wrapped in a span that
emits one structured line on the ``hr_assistant.trace`` logger:

    [TRACE] record_store.check_leave_overlap duration_ms=3.14 outcome=ok
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager

logger = logging.getLogger("hr_assistant.trace")


@contextmanager
def trace_span(name: str, **metadata):
    """
    Measure execution duration of an operation.

    Wrap:
    - record-store calls
    - language-model runs
    - whole chat turns

    The span is logged even when the body raises, and the exception is
    re-raised untouched.
    """
    start = time.perf_counter()
    outcome = "ok"
    try:
        yield
    except BaseException as e:
        outcome = f"error:{type(e).__name__}"
        raise
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        fields = " ".join(f"{key}={value}" for key, value in metadata.items())
        level = logging.INFO if outcome == "ok" else logging.WARNING
        logger.log(level, "[TRACE] %s duration_ms=%.2f outcome=%s %s", name, elapsed_ms, outcome, fields)
