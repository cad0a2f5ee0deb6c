"""
sla_engines.tracer -- SLA_ENGINE_TRACE records for pure calculations.

Every classifier and the work-order generator run behind ``@traced_engine``.
The decorator leaves the wrapped call untouched and emits one DEBUG record
afterwards:

    engine_name, engine_version   which calculation ran
    input_fingerprint             16 hex chars of SHA-256 over the selected
                                  keyword arguments, so two runs on the same
                                  contract snapshot can be matched up
    outcome                       "unavailable" when the engine returned the
                                  typed absence, else "ok"
    duration_ms

Engines take keyword-only arguments; positional arguments never enter the
fingerprint.
"""

from __future__ import annotations

import functools
import hashlib
import json
import time
from collections.abc import Callable
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sla_kernel.domain.values import Unavailable
from sla_kernel.logging_config import get_logger

logger = get_logger("engines.tracer")


def _fingerprint_default(value: Any) -> Any:
    match value:
        case Enum():
            return value.value
        case Decimal() | UUID():
            return str(value)
        case date():
            return value.isoformat()
    return repr(value)


def compute_input_fingerprint(fields: tuple[str, ...], kwargs: dict[str, Any]) -> str:
    """SHA-256 prefix over ``fields`` picked from ``kwargs``; absent fields hash as null."""
    selected = {name: kwargs.get(name) for name in fields}
    canonical = json.dumps(selected, sort_keys=True, default=_fingerprint_default)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            result = func(*args, **kwargs)
            elapsed = time.perf_counter() - started

            logger.debug(
                "SLA_ENGINE_TRACE",
                extra={
                    "trace_type": "SLA_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "function": func.__qualname__,
                    "input_fingerprint": compute_input_fingerprint(fingerprint_fields, kwargs),
                    "outcome": "unavailable" if isinstance(result, Unavailable) else "ok",
                    "duration_ms": round(elapsed * 1000, 3),
                },
            )
            return result

        return wrapper

    return decorator
