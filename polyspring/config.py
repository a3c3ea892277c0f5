"""Default paths and environment variable names for the command-line front end."""

from __future__ import annotations

from polyspring.settings import REPO_ROOT

DEFAULT_SCENE_JSON = REPO_ROOT / "config.json"
DEFAULT_OUTPUT_DIR = REPO_ROOT / "output"

ENV_LOG_LEVEL = "POLYSPRING_LOG_LEVEL"
ENV_OUTPUT_DIR = "POLYSPRING_OUTPUT_DIR"

# Output file names
FORCES_CSV = "forces.csv"
TANGENT_NPZ = "tangent.npz"
LAWS_PNG = "laws.png"
SPRING_FORCES_PNG = "spring_forces.png"


def springs_csv_name(field_name: str) -> str:
    return f"springs_{field_name}.csv"
