"""Readers for ``LIVEBROKER_*`` environment variables.

Names are given without the prefix: ``get_str("PATH", ...)`` reads
``LIVEBROKER_PATH``. An explicit mapping may replace ``os.environ``.
"""

from __future__ import annotations

import os
from typing import Mapping, Optional

ENV_PREFIX = "LIVEBROKER_"

EnvMapping = Mapping[str, str]

_BOOLEANS = {
    "1": True,
    "true": True,
    "yes": True,
    "on": True,
    "0": False,
    "false": False,
    "no": False,
    "off": False,
}


def env_key(name: str) -> str:
    return f"{ENV_PREFIX}{name}"


def _lookup(name: str, env: EnvMapping | None) -> Optional[str]:
    mapping = env if env is not None else os.environ
    return mapping.get(env_key(name))


def get_str(name: str, default: str, *, env: EnvMapping | None = None) -> str:
    value = _lookup(name, env)
    return default if value is None else value


def get_optional_str(name: str, *, env: EnvMapping | None = None) -> Optional[str]:
    """Like :func:`get_str` but blank values count as unset."""
    value = _lookup(name, env)
    if value is None or not value.strip():
        return None
    return value.strip()


def get_bool(name: str, default: bool, *, env: EnvMapping | None = None) -> bool:
    """Parse a flag such as ``LIVEBROKER_REAL_TIME=yes``.

    Raises:
        ValueError: If the variable is set to something that is not a boolean word
    """
    value = _lookup(name, env)
    if value is None or not value.strip():
        return default
    try:
        return _BOOLEANS[value.strip().lower()]
    except KeyError:
        raise ValueError(f"{env_key(name)} must be a boolean, got {value!r}") from None


__all__ = ["ENV_PREFIX", "EnvMapping", "env_key", "get_bool", "get_optional_str", "get_str"]
