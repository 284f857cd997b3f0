#!/usr/bin/env python3
from __future__ import annotations

import argparse
from pathlib import Path

import sys

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from whynotyet.pipeline import load_config, run_experiment


def main() -> None:
    parser = argparse.ArgumentParser(description="Run why-not-yet queries described by a yaml config.")
    parser.add_argument("--config", required=True)
    parser.add_argument("--output", required=True)
    parser.add_argument("--max-workers", type=int, default=None)
    args = parser.parse_args()

    config = load_config(Path(args.config))
    if args.max_workers is not None:
        config["max_workers"] = args.max_workers
    run_experiment(config, Path(args.output))


if __name__ == "__main__":
    main()
