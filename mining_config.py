from __future__ import annotations

import json
import logging
import re
from dataclasses import fields
from pathlib import Path
from typing import Any, Mapping, TypeVar

logger = logging.getLogger(__name__)

P = TypeVar("P")

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def snake_case(key: str) -> str:
    """``NRandomFeature`` -> ``n_random_feature``, ``OOBStatsFile`` -> ``oob_stats_file``."""
    return _CAMEL_BOUNDARY.sub("_", key).replace("-", "_").lower()


def load_config(path: str | Path) -> dict[str, Any]:
    config_file = Path(path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")
    with open(config_file, "r") as f:
        config = json.load(f)
    if not isinstance(config, dict):
        raise ValueError(f"Configuration file {path} must hold a JSON object")
    return config


def params_from_config(
    params_cls: type[P],
    config: Mapping[str, Any] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> P:
    """Build a params dataclass from a config mapping plus CLI overrides.

    Keys may be snake_case or CamelCase. Overrides whose value is None are
    ignored so unset CLI flags keep the config value.
    """
    names = {f.name for f in fields(params_cls)}
    values: dict[str, Any] = {}

    for key, value in (config or {}).items():
        name = snake_case(key)
        if name in names:
            values[name] = value
        else:
            logger.debug("ignoring config key %r for %s", key, params_cls.__name__)

    for key, value in (overrides or {}).items():
        if value is None:
            continue
        name = snake_case(key)
        if name not in names:
            raise ValueError(f"{params_cls.__name__} has no parameter {key!r}")
        values[name] = value

    return params_cls(**values)


def load_params(
    params_cls: type[P],
    path: str | Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> P:
    config = load_config(path) if path else {}
    return params_from_config(params_cls, config, overrides)
