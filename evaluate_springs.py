#!/usr/bin/env -S uv run

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from polyspring.commands import run_check, run_evaluate, run_plot_laws
from polyspring.config import DEFAULT_SCENE_JSON, ENV_LOG_LEVEL, ENV_OUTPUT_DIR
from polyspring.env import env_log_level, env_str


def main() -> None:
    parser = argparse.ArgumentParser(description="Polynomial spring force/tangent evaluation")
    parser.add_argument("--config", type=Path, default=DEFAULT_SCENE_JSON, help="Scene JSON")
    parser.add_argument("--out", type=Path, default=None, help="Output directory (overrides output_dir).")
    parser.add_argument("--check", action="store_true", help="Verify every field's tangent against finite differences, then exit.")
    parser.add_argument("--plot-laws", action="store_true", help="Plot F(strain) and dF/dstrain of every polynomial group, then exit.")
    args = parser.parse_args()

    logging.basicConfig(
        level=env_log_level(ENV_LOG_LEVEL, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.check and args.plot_laws:
        raise SystemExit("Choose only one: --check OR --plot-laws.")

    out_dir = args.out
    if out_dir is None and env_str(ENV_OUTPUT_DIR) is not None:
        out_dir = Path(env_str(ENV_OUTPUT_DIR))

    if args.check:
        _, all_ok = run_check(args.config)
        if not all_ok:
            raise SystemExit(1)
        return

    if args.plot_laws:
        run_plot_laws(args.config, out_dir=out_dir)
        return

    run_evaluate(args.config, out_dir=out_dir)


if __name__ == "__main__":
    main()
