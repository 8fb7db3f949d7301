"""Optimisation Result Domain Object - Solver outcome with feasibility state.

Infeasibility is a legitimate modelling outcome, so it is reported in-band
through OptimisationState rather than raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np


class OptimisationState(Enum):
    """Outcome of an optimisation, ordered from worst to best."""

    UNEXPLORED = "unexplored"
    INVALID = "invalid"
    FAILED = "failed"
    INFEASIBLE = "infeasible"
    UNBOUNDED = "unbounded"
    APPROXIMATE = "approximate"
    FEASIBLE = "feasible"
    OPTIMAL = "optimal"

    def is_feasible(self) -> bool:
        """Return True if the solution satisfies the constraints."""
        return self in (
            OptimisationState.APPROXIMATE,
            OptimisationState.FEASIBLE,
            OptimisationState.OPTIMAL,
        )

    def is_optimal(self) -> bool:
        """Return True if the solution is proven optimal."""
        return self is OptimisationState.OPTIMAL

    def is_failure(self) -> bool:
        """Return True if no usable solution was produced."""
        return self in (
            OptimisationState.INVALID,
            OptimisationState.FAILED,
            OptimisationState.INFEASIBLE,
            OptimisationState.UNBOUNDED,
        )


@dataclass(frozen=True)
class OptimisationResult:
    """Solver outcome.

    Attributes:
        state: Feasibility state reported by the solver
        values: Variable values in model order (zeros when nothing was solved)
        value: Objective value (nan when not available)
        message: Solver status text
    """

    state: OptimisationState
    values: np.ndarray = field(default_factory=lambda: np.zeros(0))
    value: float = float("nan")
    message: str = ""

    def __post_init__(self) -> None:
        """Freeze the values array."""
        values = np.array(self.values, dtype=float).ravel()
        values.setflags(write=False)
        object.__setattr__(self, "values", values)

    def __len__(self) -> int:
        return self.values.size

    def get(self, index: int) -> float:
        """Get the value of one variable."""
        return float(self.values[index])

    def require_feasible(self) -> "OptimisationResult":
        """Return self, or raise if the state is not feasible.

        Raises:
            InfeasibleError: If the state is not feasible
        """
        if not self.state.is_feasible():
            from equilibria.core.ports.optimisation_port import InfeasibleError

            raise InfeasibleError(
                state=self.state,
                message=f"Optimisation not feasible: {self.state.value} {self.message}".strip(),
            )
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "state": self.state.value,
            "values": self.values.tolist(),
            "value": self.value,
            "message": self.message,
        }

    @classmethod
    def unexplored(cls, size: int = 0) -> "OptimisationResult":
        """Result representing 'not solved yet'."""
        return cls(state=OptimisationState.UNEXPLORED, values=np.zeros(size))
