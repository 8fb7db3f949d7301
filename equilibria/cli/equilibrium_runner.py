#!/usr/bin/env python3
"""Equilibrium Runner CLI - Implied returns and Black-Litterman views.

Usage:
    python -m equilibria.cli.equilibrium_runner -C cov.csv -w weights.csv
    python -m equilibria.cli.equilibrium_runner -C cov.csv -w weights.csv --views views.yaml

Examples:
    # Implied equilibrium returns of the market portfolio
    python -m equilibria.cli.equilibrium_runner -C cov.csv -w weights.csv --risk-aversion 3.07

    # Calibrate the risk aversion from observed returns
    python -m equilibria.cli.equilibrium_runner -C cov.csv -w weights.csv -r returns.csv

    # Black-Litterman posterior with investor views
    python -m equilibria.cli.equilibrium_runner -C cov.csv -w weights.csv \\
        --views views.yaml --confidence 0.025

Input files:
    weights  CSV with columns: asset, weight
    returns  CSV with columns: asset, return
    views    YAML: views: [{weights: {A: 1.0, B: -1.0}, mean_return: 0.02, scale: 0.5}]
             (optional per view: variance, standard_deviation or scale)
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from equilibria.cli.optimizer_runner import load_covariances, load_vector


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        description="Run market equilibrium / Black-Litterman analysis",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        "--covariances", "-C",
        type=str,
        required=True,
        help="Path to covariance matrix CSV (asset keys as index and columns)",
    )

    parser.add_argument(
        "--weights", "-w",
        type=str,
        required=True,
        help="Path to market weights CSV (columns: asset, weight)",
    )

    parser.add_argument(
        "--returns", "-r",
        type=str,
        help="Path to observed returns CSV used to calibrate the risk aversion",
    )

    parser.add_argument(
        "--views",
        type=str,
        help="Path to Black-Litterman views YAML file",
    )

    parser.add_argument(
        "--risk-aversion",
        type=float,
        default=1.0,
        help="Risk aversion factor (default: 1.0)",
    )

    parser.add_argument(
        "--confidence",
        type=float,
        default=1.0,
        help="General confidence in the views (default: 1.0)",
    )

    parser.add_argument(
        "--clean",
        action="store_true",
        help="Repair the covariance matrix first",
    )

    parser.add_argument(
        "--output-dir",
        type=str,
        default="artifacts/equilibrium",
        help="Output directory (default: artifacts/equilibrium)",
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging",
    )

    return parser


def load_views(filepath: str, keys: list[str]) -> list:
    """Load Black-Litterman views from YAML file.

    View weights are either a list (one per asset) or a mapping of asset key
    to weight (unlisted assets get 0).
    """
    from equilibria.core.domain.view import View

    with open(filepath, "r") as f:
        data = yaml.safe_load(f) or {}

    views = []
    for item in data.get("views", []):
        weights = item["weights"]
        if isinstance(weights, dict):
            unknown = [str(key) for key in weights if str(key) not in keys]
            if unknown:
                raise ValueError(f"Unknown assets in view: {', '.join(unknown)}")
            mapping = {str(key): float(value) for key, value in weights.items()}
            weights = [mapping.get(key, 0.0) for key in keys]
        views.append(View.from_dict({**item, "weights": weights}))

    return views


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    from equilibria.utils.logger import setup_logger

    setup_logger(level="DEBUG" if parsed.verbose else "INFO")

    for label, value in (
        ("Covariance", parsed.covariances),
        ("Weights", parsed.weights),
        ("Returns", parsed.returns),
        ("Views", parsed.views),
    ):
        if value and not Path(value).exists():
            print(f"Error: {label} file not found: {value}", file=sys.stderr)
            return 1

    from equilibria.core.services.black_litterman_model import BlackLittermanModel
    from equilibria.core.services.equilibrium_model import FixedWeightsPortfolio
    from equilibria.core.services.market_equilibrium import MarketEquilibrium

    try:
        covariances = load_covariances(parsed.covariances)
        keys = list(covariances.index)
        weights = load_vector(parsed.weights, "weight", keys)

        market = MarketEquilibrium(covariances, parsed.risk_aversion)
        if parsed.clean:
            market = market.clean()

        if parsed.returns:
            returns = load_vector(parsed.returns, "return", keys)
            market.calibrate(weights, returns)
            print(f"Implied risk aversion: {market.risk_aversion:.6f}")

        if parsed.views:
            views = load_views(parsed.views, keys)
            model = BlackLittermanModel(market, weights)
            model.confidence = parsed.confidence
            for view in views:
                model.add_view(view)
            print(f"Black-Litterman with {len(views)} views")
        else:
            model = FixedWeightsPortfolio(market, weights)

        frame = model.to_frame()
    except (ValueError, KeyError, ArithmeticError) as e:
        logger.exception("Equilibrium analysis failed")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print("\n" + "=" * 50)
    print("EQUILIBRIUM WEIGHTS AND RETURNS")
    print("=" * 50)
    print(frame.to_string(float_format=lambda value: f"{value:.6f}"))
    print("-" * 50)
    print(f"Risk aversion:   {model.risk_aversion:.6f}")
    print(f"Mean return:     {model.mean_return:.6f}")
    print(f"Return variance: {model.return_variance:.6f}")

    results: dict[str, Any] = {
        "model": type(model).__name__,
        "risk_aversion": model.risk_aversion,
        "weights": dict(zip(keys, frame["weight"].tolist())),
        "returns": dict(zip(keys, frame["return"].tolist())),
        "mean_return": model.mean_return,
        "return_variance": model.return_variance,
    }

    output_dir = Path(parsed.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    results["timestamp"] = timestamp
    results_file = output_dir / f"equilibrium_{timestamp}.json"

    with open(results_file, "w") as f:
        json.dump(results, f, indent=2)

    print(f"\nResults saved to: {results_file}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
