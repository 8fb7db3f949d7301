"""OptimisationOptions - Configuration for optimised portfolios and the QP adapter.

Options can be built in code, from a dictionary, or from a YAML file:

    solver: CLARABEL
    time_limit: 5.0
    validate: true
    iterations_abort: 50
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from equilibria.core.domain.number_context import NumberContext


@dataclass
class OptimisationOptions:
    """Solver and search settings.

    Attributes:
        solver: cvxpy solver name for continuous problems
        mip_solver: cvxpy solver name for problems with integer variables
        time_limit: Maximum solve time in seconds (None means no limit)
        validate: Check positive semi-definiteness and constraint feasibility
        debug: Verbose solver output and debug logging
        feasibility_scale: Decimal scale of the constraint-violation tolerance
        solution_precision: Significant digits kept in handled solutions
        solution_scale: Decimal places kept in handled solutions
        target_precision: Significant digits for target search termination
        target_scale: Decimal places for target search termination
        iterations_abort: Maximum target search iterations
        psd_tolerance: Negative eigenvalue tolerance (relative to the largest)
    """

    solver: str = "CLARABEL"
    mip_solver: str = "SCIP"
    time_limit: float | None = None
    validate: bool = True
    debug: bool = False
    feasibility_scale: int = 6
    solution_precision: int = 7
    solution_scale: int = 6
    target_precision: int = 5
    target_scale: int = 4
    iterations_abort: int = 100
    psd_tolerance: float = 1e-8

    def __post_init__(self) -> None:
        """Validate invariants."""
        self._validate_invariants()

    def _validate_invariants(self) -> None:
        """Validate all invariants.

        Raises:
            ValueError: If any invariant is violated
        """
        if self.time_limit is not None and self.time_limit <= 0:
            raise ValueError(f"time_limit must be positive, got {self.time_limit}")
        if self.iterations_abort < 1:
            raise ValueError(
                f"iterations_abort must be >= 1, got {self.iterations_abort}"
            )
        if self.feasibility_scale < 0:
            raise ValueError(
                f"feasibility_scale must be >= 0, got {self.feasibility_scale}"
            )
        if self.psd_tolerance < 0:
            raise ValueError(f"psd_tolerance must be >= 0, got {self.psd_tolerance}")
        # NumberContext validates precision and scale
        NumberContext(self.solution_precision, self.solution_scale)
        NumberContext(self.target_precision, self.target_scale)

    @property
    def solution_context(self) -> NumberContext:
        """Rounding applied to handled solutions."""
        return NumberContext(self.solution_precision, self.solution_scale)

    @property
    def target_context(self) -> NumberContext:
        """Termination context for target return/variance search."""
        return NumberContext(self.target_precision, self.target_scale)

    @property
    def feasibility_tolerance(self) -> float:
        """Allowed constraint violation when validating solutions."""
        return 10.0 ** -self.feasibility_scale

    def copy(self, **changes: Any) -> "OptimisationOptions":
        """Copy with some fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OptimisationOptions":
        """Create OptimisationOptions from dictionary.

        Args:
            data: Mapping of option names to values

        Returns:
            OptimisationOptions instance

        Raises:
            ValueError: If data contains unknown option names
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown optimisation options: {', '.join(unknown)}")
        return cls(**data)


def load_options(filepath: str | Path) -> OptimisationOptions:
    """Load optimisation options from a YAML file.

    The file may contain the options at top level or under an
    ``optimisation`` key.

    Args:
        filepath: Path to YAML file

    Returns:
        OptimisationOptions instance
    """
    with open(filepath, "r") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Options file must contain a mapping: {filepath}")

    return OptimisationOptions.from_dict(data.get("optimisation", data))
