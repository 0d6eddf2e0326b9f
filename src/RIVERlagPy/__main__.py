# src/RIVERlagPy/__main__.py
# SPDX-License-Identifier: MIT
"""
Batch entry point.

Example::

    python -m RIVERlagPy --input data/raw --output data/processed \
        --config config/pipeline.yaml
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from .config import PipelineConfig
from .errors import RiverLagError
from .log import set_warning_policy, setup_logging
from .pipeline import run_pipeline


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="RIVERlagPy",
        description="Clean, align and lag river-gauge series and evaluate water-level forecasts.",
    )
    ap.add_argument("--input", required=True, help="Directory with the raw gauge files")
    ap.add_argument("--output", default="data/processed", help="Directory for the output tables")
    ap.add_argument("--config", default=None, help="YAML or JSON configuration file")
    ap.add_argument("--target", default=None, help="Target station (overrides the config)")
    ap.add_argument("--models", default=None, help="Optional directory for fitted models")
    ap.add_argument("--no-progress", action="store_true", help="Disable progress bars")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logger = setup_logging(logging.DEBUG if args.verbose else logging.INFO)
    set_warning_policy(True)

    config = PipelineConfig.load(args.config) if args.config else PipelineConfig()
    if args.target:
        config = config.replace(target_station=args.target)

    try:
        result = run_pipeline(
            args.input,
            args.output,
            config,
            model_dir=args.models,
            show_progress=not args.no_progress,
        )
    except (RiverLagError, KeyError, ValueError) as exc:
        logger.error("Run aborted: %s", exc)
        return 1

    summary = result.scores[result.scores["partition"] == "validation"]
    print(summary[["backend", "RMSE", "status"]].to_string(index=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
