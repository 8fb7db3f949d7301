"""Domain objects for the equilibria portfolio toolkit.

This module exports the value objects used by the equilibrium models.
These are pure domain objects with invariant validation - no solver dependencies.
"""

from equilibria.core.domain.constraint import AssetConstraint, LowerUpper, group_limit
from equilibria.core.domain.expressions_model import (
    Expression,
    ExpressionsBasedModel,
    Variable,
)
from equilibria.core.domain.matrix_structure import MatrixStructure, is_symmetric
from equilibria.core.domain.number_context import (
    MACHINE_CONTEXT,
    SOLUTION_CONTEXT,
    TARGET_CONTEXT,
    NumberContext,
)
from equilibria.core.domain.optimisation import OptimisationResult, OptimisationState
from equilibria.core.domain.options import OptimisationOptions, load_options
from equilibria.core.domain.portfolio import (
    WEIGHT_SUM_TOLERANCE,
    FinancePortfolio,
    SimpleAsset,
    SimplePortfolio,
)
from equilibria.core.domain.view import (
    BalancedConfidence,
    ExplicitVariance,
    ScaledConfidence,
    View,
    ViewConfidence,
)

__all__ = [
    # NumberContext
    "NumberContext",
    "TARGET_CONTEXT",
    "SOLUTION_CONTEXT",
    "MACHINE_CONTEXT",
    # MatrixStructure
    "MatrixStructure",
    "is_symmetric",
    # Constraint
    "LowerUpper",
    "AssetConstraint",
    "group_limit",
    # Optimisation
    "OptimisationState",
    "OptimisationResult",
    "OptimisationOptions",
    "load_options",
    "Variable",
    "Expression",
    "ExpressionsBasedModel",
    # Portfolio
    "FinancePortfolio",
    "SimpleAsset",
    "SimplePortfolio",
    "WEIGHT_SUM_TOLERANCE",
    # View
    "View",
    "ViewConfidence",
    "BalancedConfidence",
    "ScaledConfidence",
    "ExplicitVariance",
]
