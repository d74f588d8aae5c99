"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads a YAML configuration file, parses it into the frozen
``EngineConfig`` and validates the values.  Runtime callers go through
``ledger_config.get_active_config()`` instead of calling this directly.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Out-of-range values  -> ``ValueError`` listing every problem found.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import EngineConfig, StatementLineRuleDef
from ledger_kernel.domain.models import CashFlowClass


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_statement_line_rule(data: dict[str, Any]) -> StatementLineRuleDef:
    """Parse a StatementLineRuleDef from a dict."""
    keywords = data["keywords"]
    if isinstance(keywords, str):
        keywords = [keywords]
    return StatementLineRuleDef(
        line=str(data["line"]),
        keywords=tuple(str(k) for k in keywords),
    )


def parse_engine_config(data: dict[str, Any], checksum: str = "") -> EngineConfig:
    """Parse an EngineConfig from the top-level YAML mapping."""
    engine = data["engine"]
    try:
        default_class = CashFlowClass(engine.get("default_cash_flow_class", "operational"))
    except ValueError as exc:
        raise ValueError(f"Unknown default_cash_flow_class: {exc}") from exc
    return EngineConfig(
        config_id=str(data["config_id"]),
        version=int(data.get("version", 1)),
        recurrence_safety_cap=int(engine["recurrence_safety_cap"]),
        monetary_decimal_places=int(engine["monetary_decimal_places"]),
        liquidity_window_days=int(engine["liquidity_window_days"]),
        default_cash_flow_class=default_class,
        statement_line_rules=tuple(
            parse_statement_line_rule(r) for r in data.get("statement_line_rules", ())
        ),
        checksum=checksum,
    )


def validate_engine_config(config: EngineConfig) -> list[str]:
    """Return a list of problems; an empty list means the config is usable."""
    errors: list[str] = []
    if config.recurrence_safety_cap < 1:
        errors.append(f"recurrence_safety_cap must be >= 1, got {config.recurrence_safety_cap}")
    if not 0 <= config.monetary_decimal_places <= 8:
        errors.append(
            f"monetary_decimal_places must be in 0..8, got {config.monetary_decimal_places}"
        )
    if config.liquidity_window_days < 0:
        errors.append(f"liquidity_window_days must be >= 0, got {config.liquidity_window_days}")
    for rule in config.statement_line_rules:
        if not rule.keywords or any(not k.strip() for k in rule.keywords):
            errors.append(f"statement line rule '{rule.line}' has an empty keyword")
    return errors


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
