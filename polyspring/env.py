from __future__ import annotations

import logging
import os


def env_str(name: str) -> str | None:
    v = os.getenv(name, None)
    if v is None:
        return None
    v = v.strip()
    return v if v else None


def env_log_level(name: str, default: int = logging.INFO) -> int:
    v = env_str(name)
    if v is None:
        return default
    if v.isdigit():
        return int(v)
    level = logging.getLevelName(v.upper())
    if not isinstance(level, int):
        raise ValueError(f'Invalid log level env var {name}={v!r}. Use DEBUG/INFO/WARNING/ERROR.')
    return level
