"""ExpressionsBasedModel - Solver-independent quadratic program template.

A model is a list of named variables plus named expressions. Each expression
has linear and quadratic factors keyed by variable index; an expression with
a weight contributes to the objective, an expression with lower/upper limits
is a constraint. Solving is delegated to an OptimisationSolverPort.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

import numpy as np

from equilibria.core.domain.constraint import LowerUpper
from equilibria.core.domain.optimisation import OptimisationResult

if TYPE_CHECKING:
    from equilibria.core.domain.options import OptimisationOptions
    from equilibria.core.ports.optimisation_port import OptimisationSolverPort


@dataclass
class Variable:
    """Decision variable.

    Attributes:
        name: Variable name (unique within a model)
        lower: Lower limit (None means unbounded)
        upper: Upper limit (None means unbounded)
        weight: Linear objective coefficient (None means zero)
        value: Current/initial value
        integer: Restrict to integer values
    """

    name: str
    lower: float | None = None
    upper: float | None = None
    weight: float | None = None
    value: float | None = None
    integer: bool = False

    @classmethod
    def binary(cls, name: str) -> "Variable":
        """Create a 0/1 variable."""
        return cls(name=name, lower=0.0, upper=1.0, integer=True)

    @property
    def bounds(self) -> LowerUpper:
        return LowerUpper(self.lower, self.upper)

    def level(self, value: float) -> "Variable":
        """Fix the variable to a value."""
        self.lower = value
        self.upper = value
        return self

    def copy(self) -> "Variable":
        return replace(self)


@dataclass
class Expression:
    """Named linear + quadratic expression over the model variables.

    Attributes:
        name: Expression name (unique within a model)
        linear: Variable index to coefficient
        quadratic: (row, col) variable index pair to coefficient
        lower: Lower limit when used as a constraint
        upper: Upper limit when used as a constraint
        weight: Objective weight (None means not part of the objective)
    """

    name: str
    linear: dict[int, float] = field(default_factory=dict)
    quadratic: dict[tuple[int, int], float] = field(default_factory=dict)
    lower: float | None = None
    upper: float | None = None
    weight: float | None = None

    def set_linear(self, index: int, factor: float) -> "Expression":
        self.linear[index] = float(factor)
        return self

    def set_quadratic(self, row: int, col: int, factor: float) -> "Expression":
        self.quadratic[(row, col)] = float(factor)
        return self

    def set_quadratic_factors(self, matrix: np.ndarray, offset: int = 0) -> "Expression":
        """Set a dense block of quadratic factors starting at (offset, offset)."""
        array = np.asarray(matrix, dtype=float)
        rows, columns = array.shape
        for col in range(columns):
            for row in range(rows):
                self.quadratic[(offset + row, offset + col)] = float(array[row, col])
        return self

    def level(self, value: float) -> "Expression":
        """Make this an equality constraint."""
        self.lower = value
        self.upper = value
        return self

    @property
    def bounds(self) -> LowerUpper:
        return LowerUpper(self.lower, self.upper)

    @property
    def is_constraint(self) -> bool:
        return self.lower is not None or self.upper is not None

    @property
    def is_objective(self) -> bool:
        return self.weight is not None and self.weight != 0.0

    @property
    def is_quadratic(self) -> bool:
        return bool(self.quadratic)

    def linear_factors(self, size: int) -> np.ndarray:
        """Dense linear coefficient vector."""
        factors = np.zeros(size)
        for index, factor in self.linear.items():
            factors[index] = factor
        return factors

    def quadratic_factors(self, size: int) -> np.ndarray:
        """Dense quadratic coefficient matrix."""
        factors = np.zeros((size, size))
        for (row, col), factor in self.quadratic.items():
            factors[row, col] = factor
        return factors

    def evaluate(self, values: np.ndarray) -> float:
        """Value of the (unweighted) expression at a point."""
        x = np.asarray(values, dtype=float)
        total = sum(factor * x[index] for index, factor in self.linear.items())
        total += sum(factor * x[row] * x[col] for (row, col), factor in self.quadratic.items())
        return float(total)


class ExpressionsBasedModel:
    """Quadratic program built from variables and expressions.

    Minimises  sum(variable.weight * x) + sum(expression.weight * expression(x))
    subject to variable and expression limits.
    """

    def __init__(
        self,
        options: "OptimisationOptions | None" = None,
        solver: "OptimisationSolverPort | None" = None,
        variables: Iterable[Variable] = (),
    ) -> None:
        """Initialize ExpressionsBasedModel.

        Args:
            options: Solver options (defaults apply when None)
            solver: Solver port (defaults to the cvxpy adapter)
            variables: Initial variables
        """
        if options is None:
            from equilibria.core.domain.options import OptimisationOptions

            options = OptimisationOptions()
        self.options = options
        self._solver = solver
        self._variables: list[Variable] = []
        self._expressions: dict[str, Expression] = {}
        self.add_variables(variables)

    @property
    def variables(self) -> list[Variable]:
        return list(self._variables)

    @property
    def expressions(self) -> list[Expression]:
        return list(self._expressions.values())

    @property
    def has_integer_variables(self) -> bool:
        return any(variable.integer for variable in self._variables)

    def count_variables(self) -> int:
        return len(self._variables)

    def add_variable(self, variable: Variable) -> Variable:
        if any(existing.name == variable.name for existing in self._variables):
            raise ValueError(f"Duplicate variable name: {variable.name}")
        self._variables.append(variable)
        return variable

    def add_variables(self, variables: Iterable[Variable]) -> None:
        for variable in variables:
            self.add_variable(variable)

    def get_variable(self, index: int) -> Variable:
        return self._variables[index]

    def new_expression(self, name: str) -> Expression:
        """Create and register a new expression.

        Raises:
            ValueError: If an expression with that name exists
        """
        if name in self._expressions:
            raise ValueError(f"Duplicate expression name: {name}")
        expression = Expression(name=name)
        self._expressions[name] = expression
        return expression

    def get_expression(self, name: str) -> Expression:
        """Get a registered expression.

        Raises:
            KeyError: If no expression has that name
        """
        return self._expressions[name]

    def variable_values(self) -> np.ndarray:
        """Current variable values (None counts as 0)."""
        return np.array(
            [0.0 if variable.value is None else variable.value for variable in self._variables]
        )

    def objective_value(self, values: np.ndarray) -> float:
        """Objective function value at a point."""
        x = np.asarray(values, dtype=float)
        total = sum(
            (variable.weight or 0.0) * x[index]
            for index, variable in enumerate(self._variables)
        )
        for expression in self._expressions.values():
            if expression.is_objective:
                total += expression.weight * expression.evaluate(x)
        return float(total)

    def minimise(self) -> OptimisationResult:
        """Solve the model and store the solution in the variables."""
        result = self._get_solver().minimise(self, objective=True)
        if result.state.is_feasible() and len(result) == len(self._variables):
            for variable, value in zip(self._variables, result.values):
                variable.value = float(value)
        return result

    def check_feasibility(self) -> OptimisationResult:
        """Solve with a zero objective - only the constraints matter."""
        return self._get_solver().minimise(self, objective=False)

    def _get_solver(self) -> "OptimisationSolverPort":
        """Get solver port (lazy default)."""
        if self._solver is None:
            from equilibria.adapters.optimizer_adapter import create_optimizer_adapter

            self._solver = create_optimizer_adapter(self.options)
        return self._solver

    def __repr__(self) -> str:
        return (
            f"ExpressionsBasedModel(variables={len(self._variables)}, "
            f"expressions={len(self._expressions)})"
        )
