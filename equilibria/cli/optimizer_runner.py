#!/usr/bin/env python3
"""Optimizer Runner CLI - Run Markowitz / efficient frontier optimisation.

Usage:
    python -m equilibria.cli.optimizer_runner --covariances cov.csv --returns returns.csv
    python -m equilibria.cli.optimizer_runner -C cov.csv -r returns.csv --target-return 0.08

Examples:
    # Optimise with a risk aversion factor
    python -m equilibria.cli.optimizer_runner -C cov.csv -r returns.csv --risk-aversion 3

    # Search for the minimum risk portfolio with a target return
    python -m equilibria.cli.optimizer_runner -C cov.csv -r returns.csv --target-return 0.08

    # Run with group constraints and solver options
    python -m equilibria.cli.optimizer_runner -C cov.csv -r returns.csv \\
        --constraints constraints.yaml --options options.yaml

Input files:
    covariances  CSV with asset keys as index and columns
    returns      CSV with columns: asset, return
    constraints  YAML: constraints: [{assets: [A, B], lower: 0.1, upper: 0.5}]
    options      YAML: optimisation: {solver: CLARABEL, time_limit: 5}
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd
import yaml
from loguru import logger


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        description="Run mean-variance portfolio optimisation",
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
        "--returns", "-r",
        type=str,
        required=True,
        help="Path to expected excess returns CSV (columns: asset, return)",
    )

    parser.add_argument(
        "--constraints", "-c",
        type=str,
        help="Path to group constraints YAML file",
    )

    parser.add_argument(
        "--options",
        type=str,
        help="Path to optimisation options YAML file",
    )

    parser.add_argument(
        "--model", "-m",
        type=str,
        choices=["markowitz", "frontier"],
        default="markowitz",
        help="Optimisation model (default: markowitz)",
    )

    parser.add_argument(
        "--risk-aversion",
        type=float,
        default=1.0,
        help="Risk aversion factor (default: 1.0)",
    )

    target = parser.add_mutually_exclusive_group()
    target.add_argument(
        "--target-return",
        type=float,
        help="Target portfolio return (markowitz only)",
    )
    target.add_argument(
        "--target-variance",
        type=float,
        help="Target portfolio variance (markowitz only)",
    )

    parser.add_argument(
        "--allow-shorting",
        action="store_true",
        help="Allow negative weights",
    )

    parser.add_argument(
        "--clean",
        action="store_true",
        help="Repair the covariance matrix before optimising",
    )

    parser.add_argument(
        "--output-dir",
        type=str,
        default="artifacts/optimization",
        help="Output directory (default: artifacts/optimization)",
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging",
    )

    return parser


def load_covariances(filepath: str) -> pd.DataFrame:
    """Load a square covariance matrix from CSV."""
    df = pd.read_csv(filepath, index_col=0)
    df.index = df.index.map(str)
    df.columns = df.columns.map(str)
    if list(df.index) != list(df.columns):
        raise ValueError("Covariance CSV must be square with matching index/columns")
    return df.astype(float)


def load_vector(filepath: str, column: str, keys: list[str]) -> np.ndarray:
    """Load one value per asset from CSV, ordered by keys."""
    df = pd.read_csv(filepath)
    if "asset" not in df.columns:
        raise ValueError(f"CSV must have 'asset' column: {filepath}")
    if column not in df.columns:
        raise ValueError(f"CSV must have '{column}' column: {filepath}")
    series = pd.Series(df[column].values, index=df["asset"].map(str).values)
    missing = [key for key in keys if key not in series.index]
    if missing:
        raise ValueError(f"Missing {column} for assets: {', '.join(missing)}")
    return series[keys].to_numpy(dtype=float)


def load_constraints(filepath: str, keys: list[str]) -> list:
    """Load group constraints from YAML file.

    Assets may be given by key or by index.
    """
    from equilibria.core.domain.constraint import AssetConstraint, LowerUpper

    with open(filepath, "r") as f:
        data = yaml.safe_load(f) or {}

    constraints = []
    for item in data.get("constraints", []):
        indices = []
        for asset in item["assets"]:
            if isinstance(asset, int):
                indices.append(asset)
            elif str(asset) in keys:
                indices.append(keys.index(str(asset)))
            else:
                raise ValueError(f"Unknown asset in constraint: {asset}")
        constraints.append(
            AssetConstraint(
                indices=tuple(indices),
                bounds=LowerUpper.from_dict(item),
            )
        )

    return constraints


def print_weights(keys: list[str], returns: np.ndarray, weights: np.ndarray) -> None:
    """Print a weight table."""
    print("\n" + "=" * 50)
    print("OPTIMAL PORTFOLIO WEIGHTS")
    print("=" * 50)
    print(f"{'Asset':<20} {'Return':>12} {'Weight':>12}")
    print("-" * 46)
    for key, ret, weight in zip(keys, returns, weights):
        print(f"{key:<20} {ret:>12.6f} {weight:>11.2%}")
    print("-" * 46)
    print(f"{'Total':<20} {'':>12} {float(np.sum(weights)):>11.2%}")


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    from equilibria.utils.logger import setup_logger

    setup_logger(level="DEBUG" if parsed.verbose else "INFO")

    for label, value in (("Covariance", parsed.covariances), ("Returns", parsed.returns)):
        if not Path(value).exists():
            print(f"Error: {label} file not found: {value}", file=sys.stderr)
            return 1

    from equilibria.core.domain.options import OptimisationOptions, load_options
    from equilibria.core.services.efficient_frontier import EfficientFrontier
    from equilibria.core.services.market_equilibrium import MarketEquilibrium
    from equilibria.core.services.markowitz_model import MarkowitzModel

    try:
        covariances = load_covariances(parsed.covariances)
        keys = list(covariances.index)
        returns = load_vector(parsed.returns, "return", keys)

        options = OptimisationOptions()
        if parsed.options:
            if not Path(parsed.options).exists():
                print(f"Error: Options file not found: {parsed.options}", file=sys.stderr)
                return 1
            options = load_options(parsed.options)

        constraints = []
        if parsed.constraints:
            if not Path(parsed.constraints).exists():
                print(f"Error: Constraints file not found: {parsed.constraints}", file=sys.stderr)
                return 1
            constraints = load_constraints(parsed.constraints, keys)
            print(f"Loaded {len(constraints)} constraints")
    except (ValueError, KeyError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    market = MarketEquilibrium(covariances, parsed.risk_aversion)
    if parsed.clean:
        market = market.clean()

    print(f"Optimizing {len(keys)} assets with {parsed.model} model")

    try:
        if parsed.model == "frontier":
            if constraints or parsed.target_return is not None or parsed.target_variance is not None:
                print("Error: frontier model takes no constraints or targets", file=sys.stderr)
                return 1
            model = EfficientFrontier(market, returns, options)
        else:
            model = MarkowitzModel(market, returns, options)
            for constraint in constraints:
                model.add_constraint(
                    constraint.bounds.lower, constraint.bounds.upper, *constraint.indices
                )
            if parsed.target_return is not None:
                model.set_target_return(parsed.target_return)
            elif parsed.target_variance is not None:
                model.set_target_variance(parsed.target_variance)
        model.shorting_allowed = parsed.allow_shorting

        weights = model.get_asset_weights()
    except ImportError:
        print("Error: cvxpy not installed. Install with: pip install cvxpy", file=sys.stderr)
        return 1
    except (ValueError, ArithmeticError) as e:
        logger.exception("Optimisation failed")
        print(f"Optimization failed: {e}", file=sys.stderr)
        return 1

    state = model.optimisation_state
    if not state.is_feasible():
        print(f"Optimization {state.value}: no feasible portfolio", file=sys.stderr)
        return 1

    print_weights(keys, model.get_asset_returns(), weights)
    print(f"\nState:           {state.value}")
    print(f"Mean return:     {model.mean_return:.6f}")
    print(f"Return variance: {model.return_variance:.6f}")

    results: dict[str, Any] = {
        "model": parsed.model,
        "state": state.value,
        "risk_aversion": model.risk_aversion,
        "weights": dict(zip(keys, weights.tolist())),
        "mean_return": model.mean_return,
        "return_variance": model.return_variance,
        "constraints": [c.to_dict() for c in constraints],
    }

    search = getattr(model, "target_search", None)
    if search is not None:
        print(
            f"Target search:   {search.iterations} iterations, "
            f"risk aversion {search.risk_aversion:.6g}, converged={search.converged}"
        )
        results["target_search"] = {
            "iterations": search.iterations,
            "risk_aversion": search.risk_aversion,
            "converged": search.converged,
        }

    output_dir = Path(parsed.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    results["timestamp"] = timestamp
    results_file = output_dir / f"optimization_{timestamp}.json"

    with open(results_file, "w") as f:
        json.dump(results, f, indent=2)

    print(f"\nResults saved to: {results_file}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
