# SPDX-License-Identifier: MIT
"""
Configuration loader for FerretWatch.

A config file has two optional top-level sections::

    scan:
      enabledCategories: [aws, github]
      riskThreshold: medium
      scanTimeoutMs: 500
      trustedDomains: ["*.example.com"]
    scoring:
      baseline: 0.5
      bucket_edges: [0.4, 0.7]
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from ferretwatch.core.exceptions import FerretWatchConfigError
from ferretwatch.risk.score import ScoringConfig
from ferretwatch.scanner.options import ScanOptions

logger = logging.getLogger(__name__)

CONFIG_NAMES = (".ferretwatch.yml", ".ferretwatch.yaml")
SECTIONS = ("scan", "scoring")


def load_config(
    config_path: Optional[str] = None, root: str = "."
) -> Tuple[ScanOptions, ScoringConfig]:
    """
    Load configuration following the search order.

    1. ``config_path`` if given (it must exist)
    2. ``.ferretwatch.yml`` or ``.ferretwatch.yaml`` in ``root``
    3. Built-in defaults

    Returns:
        (ScanOptions, ScoringConfig)

    Raises:
        FerretWatchConfigError: If the config file is malformed or an explicit
            config path is missing
    """
    if config_path:
        path = Path(config_path).resolve()
        if not path.exists():
            raise FerretWatchConfigError(
                f"Specified config file not found: {path}", config_path=str(path)
            )
        return _load_from(path)

    root_path = Path(root).resolve()
    for name in CONFIG_NAMES:
        candidate = root_path / name
        if candidate.exists():
            return _load_from(candidate)

    logger.debug("No config file found, using defaults")
    return ScanOptions(), ScoringConfig()


def _load_from(path: Path) -> Tuple[ScanOptions, ScoringConfig]:
    data = _load_yaml_mapping(path)
    unknown = set(data) - set(SECTIONS)
    if unknown:
        raise FerretWatchConfigError(
            f"Unknown config section(s): {', '.join(sorted(unknown))}",
            config_path=str(path),
        )

    try:
        options = ScanOptions.from_mapping(_section(data, "scan"))
        scoring = ScoringConfig.from_mapping(_section(data, "scoring"))
    except FerretWatchConfigError as e:
        e.config_path = str(path)
        raise

    logger.info("Loaded config: %s", path)
    return options, scoring


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise FerretWatchConfigError("Section must be a mapping", section=name)
    return section


def _load_yaml_mapping(path: Path) -> Dict[str, Any]:
    """Load a YAML file that must hold a mapping (an empty file is ``{}``)."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise FerretWatchConfigError(f"Failed to parse config file: {e}", config_path=str(path))

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise FerretWatchConfigError("Config must be a dictionary", config_path=str(path))
    return data


def load_rules_file(path: str) -> List[Dict[str, Any]]:
    """
    Read a YAML rule pack.

    The file holds a ``rules:`` list of rule records in the same format as
    the built-in pack. Records are returned unvalidated; the registry
    validates them on load.

    Raises:
        FerretWatchConfigError: missing file or no ``rules`` list
    """
    rules_path = Path(path).resolve()
    if not rules_path.exists():
        raise FerretWatchConfigError(
            f"Rules file not found: {rules_path}", config_path=str(rules_path)
        )

    data = _load_yaml_mapping(rules_path)
    rules = data.get("rules")
    if not isinstance(rules, list):
        raise FerretWatchConfigError(
            "Rules file must contain a 'rules' list", config_path=str(rules_path), section="rules"
        )
    return rules
