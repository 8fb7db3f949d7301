"""Port interfaces for the equilibria portfolio toolkit.

Ports define abstract interfaces that adapters must implement.
Following hexagonal architecture, core depends only on ports.
"""

from equilibria.core.ports.context_port import PortfolioContext
from equilibria.core.ports.linalg_port import (
    DecompositionFactoryPort,
    DecompositionTaskPort,
    DeterminantTaskPort,
    InverterTaskPort,
    RecoverableConditionError,
    SolverTaskPort,
)
from equilibria.core.ports.optimisation_port import InfeasibleError, OptimisationSolverPort

__all__ = [
    # Linear algebra
    "DeterminantTaskPort",
    "InverterTaskPort",
    "SolverTaskPort",
    "DecompositionTaskPort",
    "DecompositionFactoryPort",
    "RecoverableConditionError",
    # Optimisation
    "OptimisationSolverPort",
    "InfeasibleError",
    # Context
    "PortfolioContext",
]
