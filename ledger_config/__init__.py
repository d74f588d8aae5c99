"""
ledger_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    directly.  Returns a frozen ``EngineConfig``.

Architecture position:
    Configuration -- sits above ``ledger_kernel`` and below
    ``ledger_services``.  The kernel and the engines MUST NEVER import
    from ``ledger_config``; the service layer passes config values to the
    engines as plain arguments.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Deterministic checksum: the same YAML content always produces the
      same ``EngineConfig.checksum``.

Failure modes:
    - ``FileNotFoundError`` -- configuration file missing.
    - ``yaml.YAMLError`` -- malformed YAML.
    - ``KeyError`` -- required key missing.
    - ``ValueError`` -- validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``LEDGER_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying every computed result to the exact configuration that
    governed it.
"""

from __future__ import annotations

from pathlib import Path

from ledger_config.loader import (
    compute_checksum,
    load_yaml_file,
    parse_engine_config,
    validate_engine_config,
)
from ledger_config.schema import EngineConfig, StatementLineRuleDef
from ledger_kernel.logging_config import get_logger

_logger = get_logger("config")

# Default configuration file
DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(path: Path | str | None = None) -> EngineConfig:
    """The ONLY public configuration entrypoint.

    Guarantees:
        - The returned ``EngineConfig`` has passed validation.
        - A ``LEDGER_CONFIG_TRACE`` log entry is emitted on every
          successful call.

    Non-goals:
        - No caching across calls; callers hold the returned config.

    Args:
        path: Override path to a YAML configuration file.  Defaults to
            ledger_config/sets/default.yaml.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If configuration validation fails.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    data = load_yaml_file(config_path)
    config = parse_engine_config(data, checksum=compute_checksum(data))

    errors = validate_engine_config(config)
    if errors:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )

    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": str(config_path),
            "statement_rule_count": len(config.statement_line_rules),
        },
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "EngineConfig",
    "StatementLineRuleDef",
    "get_active_config",
]
