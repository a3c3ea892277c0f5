"""Scene configuration loading and validation.

Policy:
- Required keys have no fallback in code; a missing key terminates with a clear error.
- Optional force-field inputs fall back to the engine's documented defaults.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any


REPO_ROOT = Path(__file__).parent.parent

VALID_FORCEFIELD_TYPES = ('rest_shape', 'springs')


def resolve_path(p: str | Path) -> Path:
    path = Path(p)
    return path if path.is_absolute() else (REPO_ROOT / path)


def load_json(path: Path) -> dict:
    if not path.exists():
        raise FileNotFoundError(f'Missing scene file: {path}')
    return json.loads(path.read_text(encoding='utf-8'))


def _require_path(cfg: dict, keys: list[str]) -> Any:
    cur: Any = cfg
    prefix: list[str] = []
    for k in keys:
        prefix.append(k)
        if not isinstance(cur, dict) or k not in cur:
            raise KeyError(f'Missing required config key: {".".join(prefix)}')
        cur = cur[k]
    return cur


def req_str(cfg: dict, keys: list[str]) -> str:
    v = _require_path(cfg, keys)
    if not isinstance(v, str) or not v.strip():
        raise ValueError(f'Config key {".".join(keys)} must be a non-empty string.')
    return v


def req_float(cfg: dict, keys: list[str]) -> float:
    v = _require_path(cfg, keys)
    try:
        return float(v)
    except Exception as e:
        raise ValueError(f'Config key {".".join(keys)} must be a float-like value.') from e


def req_int(cfg: dict, keys: list[str]) -> int:
    v = _require_path(cfg, keys)
    try:
        return int(v)
    except Exception as e:
        raise ValueError(f'Config key {".".join(keys)} must be an int-like value.') from e


def req_list(cfg: dict, keys: list[str]) -> list:
    v = _require_path(cfg, keys)
    if not isinstance(v, list):
        raise ValueError(f'Config key {".".join(keys)} must be a list.')
    return v


def opt_float_list(cfg: dict, key: str) -> list[float] | None:
    v = cfg.get(key, None)
    if v is None:
        return None
    if isinstance(v, (int, float)):
        return [float(v)]
    if not isinstance(v, list):
        raise ValueError(f'Config key {key} must be a number or a list of numbers.')
    try:
        return [float(x) for x in v]
    except Exception as e:
        raise ValueError(f'Config key {key} must contain only numbers.') from e


def opt_int_list(cfg: dict, key: str) -> list[int] | None:
    v = cfg.get(key, None)
    if v is None:
        return None
    if not isinstance(v, list):
        raise ValueError(f'Config key {key} must be a list of integers.')
    try:
        return [int(x) for x in v]
    except Exception as e:
        raise ValueError(f'Config key {key} must contain only integers.') from e


def read_config(path: Path) -> dict:
    cfg = load_json(path)
    validate_config(cfg)
    return cfg


def validate_config(cfg: dict) -> None:
    # Existence/type checks (no defaults).
    states = _require_path(cfg, ['states'])
    if not isinstance(states, dict) or not states:
        raise ValueError('Config key states must be a non-empty mapping.')
    for name in states:
        req_list(cfg, ['states', name, 'positions'])

    forcefields = req_list(cfg, ['forcefields'])
    seen: set[str] = set()
    for i, ff in enumerate(forcefields):
        if not isinstance(ff, dict):
            raise ValueError(f'forcefields[{i}] must be a mapping.')
        kind = req_str(ff, ['type'])
        if kind not in VALID_FORCEFIELD_TYPES:
            raise ValueError(f"forcefields[{i}].type must be one of {VALID_FORCEFIELD_TYPES}, got '{kind}'.")
        name = req_str(ff, ['name'])
        if name in seen:
            raise ValueError(f"Duplicate force field name '{name}'.")
        seen.add(name)

        state_keys = ['state'] if kind == 'rest_shape' else ['state1']
        for key in state_keys:
            state_name = req_str(ff, [key])
            if state_name not in states:
                raise KeyError(f"forcefields[{i}].{key} refers to unknown state '{state_name}'.")
        for key in ('state2', 'external_rest_shape'):
            other = ff.get(key, None)
            if other is not None and other not in states:
                raise KeyError(f"forcefields[{i}].{key} refers to unknown state '{other}'.")

    req_float(cfg, ['mechanical_params', 'k_factor'])
    req_float(cfg, ['check', 'epsilon'])
    req_float(cfg, ['check', 'tolerance'])
    req_float(cfg, ['plotting', 'strain_max'])
    req_int(cfg, ['plotting', 'samples'])
    req_str(cfg, ['output_dir'])
