"""
sla_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    directly.  Returns a frozen ``SlaConfig``.

Failure modes:
    - ``FileNotFoundError`` -- the named configuration set does not exist.
    - ``ValueError`` -- parsing or structural validation failed.

Audit relevance:
    Every successful ``get_active_config()`` call emits an
    ``SLA_CONFIG_TRACE`` log entry with the set name, version and checksum.
"""

from __future__ import annotations

import logging
from pathlib import Path

from sla_config.loader import load_yaml_file, parse_config
from sla_config.schema import (
    ChecklistImportConfig,
    ConcurrencyConfig,
    ConcurrencyMode,
    ReconciliationConfig,
    SlaConfig,
    StorageConfig,
    WorkOrderConfig,
)
from sla_config.validator import validate_configuration

_logger = logging.getLogger("sla_kernel.config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"


def get_active_config(
    config_dir: Path | None = None,
    name: str = "default",
) -> SlaConfig:
    """Load, validate and return the named configuration set.

    Args:
        config_dir: Directory holding ``<name>.yaml``.  Defaults to
            ``sla_config/sets/``.
        name: Configuration set name.

    Raises:
        FileNotFoundError: If ``<config_dir>/<name>.yaml`` is missing.
        ValueError: If parsing or validation fails.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    path = sets_dir / f"{name}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"Configuration set not found: {path}")

    config = parse_config(load_yaml_file(path))

    validation = validate_configuration(config)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )

    _logger.info(
        "SLA_CONFIG_TRACE",
        extra={
            "trace_type": "SLA_CONFIG_TRACE",
            "config_name": config.name,
            "config_version": config.version,
            "checksum": config.checksum,
            "concurrency_mode": config.concurrency.mode.value,
        },
    )
    return config


__all__ = [
    "ChecklistImportConfig",
    "ConcurrencyConfig",
    "ConcurrencyMode",
    "ReconciliationConfig",
    "SlaConfig",
    "StorageConfig",
    "WorkOrderConfig",
    "get_active_config",
]
