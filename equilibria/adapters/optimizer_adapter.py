"""OptimizerAdapter - Quadratic program solving using cvxpy.

This adapter provides:
- Translation of an ExpressionsBasedModel into a cvxpy Problem
- Positive semi-definite validation of quadratic terms
- Mixed-integer support (binary/integer variables)
- Solver status mapping to OptimisationState
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

import numpy as np
from loguru import logger

from equilibria.core.domain.optimisation import OptimisationResult, OptimisationState
from equilibria.core.domain.options import OptimisationOptions

if TYPE_CHECKING:
    from equilibria.core.domain.expressions_model import Expression, ExpressionsBasedModel


_STATES = {
    "optimal": OptimisationState.OPTIMAL,
    "optimal_inaccurate": OptimisationState.APPROXIMATE,
    "infeasible": OptimisationState.INFEASIBLE,
    "infeasible_inaccurate": OptimisationState.INFEASIBLE,
    "unbounded": OptimisationState.UNBOUNDED,
    "unbounded_inaccurate": OptimisationState.UNBOUNDED,
}


class OptimizerAdapter:
    """Quadratic program solver using cvxpy.

    Minimises an ExpressionsBasedModel: variable weights form the linear
    objective, weighted expressions add linear and quadratic terms, and
    variable/expression limits become constraints.
    """

    def __init__(self, options: OptimisationOptions | None = None) -> None:
        """Initialize OptimizerAdapter.

        Args:
            options: Solver options (defaults apply when None)
        """
        self._options = options or OptimisationOptions()
        self._cvxpy: Any = None

    @property
    def options(self) -> OptimisationOptions:
        return self._options

    def _get_cvxpy(self) -> Any:
        """Get cvxpy module (lazy import)."""
        if self._cvxpy is None:
            import cvxpy as cp

            self._cvxpy = cp
        return self._cvxpy

    def minimise(
        self,
        model: "ExpressionsBasedModel",
        objective: bool = True,
    ) -> OptimisationResult:
        """Minimise the model.

        Args:
            model: Variables, expressions and limits to solve
            objective: When False only the constraints are considered

        Returns:
            OptimisationResult with variable values in model order

        Raises:
            ValueError: If a quadratic term is not positive semi-definite
                (with validation on) or a quadratic constraint is not convex
        """
        cp = self._get_cvxpy()
        options = model.options

        n = model.count_variables()
        if n == 0:
            return OptimisationResult(state=OptimisationState.OPTIMAL, value=0.0)

        variables = model.variables
        integers = [i for i, variable in enumerate(variables) if variable.integer]
        # One index sequence per dimension
        x = cp.Variable(n, integer=[integers]) if integers else cp.Variable(n)

        if objective:
            cvx_objective = cp.Minimize(self._build_objective(cp, x, model))
        else:
            cvx_objective = cp.Minimize(0)

        cvx_constraints = self._build_constraints(cp, x, model)
        problem = cp.Problem(cvx_objective, cvx_constraints)

        solver = options.mip_solver if integers else options.solver
        start_time = time.time()
        try:
            problem.solve(solver=solver, verbose=options.debug, **self._solver_kwargs(solver, options))
        except cp.error.SolverError as e:
            logger.error(f"Solver {solver} failed: {e}")
            return OptimisationResult(
                state=OptimisationState.FAILED,
                values=np.zeros(n),
                message=str(e),
            )
        elapsed = time.time() - start_time

        status = problem.status
        logger.debug(
            f"Solved {n} variables / {len(cvx_constraints)} constraints "
            f"with {solver} in {elapsed:.3f}s: {status}"
        )

        if x.value is None:
            state = _STATES.get(status, OptimisationState.FAILED)
            if state.is_feasible():
                state = OptimisationState.FAILED
            logger.warning(f"No solution available: {status}")
            return OptimisationResult(state=state, values=np.zeros(n), message=status)

        values = np.asarray(x.value, dtype=float).ravel()
        state = _STATES.get(status, OptimisationState.FEASIBLE)

        if options.validate and state.is_feasible():
            violated = self._validate_solution(values, model, options.feasibility_tolerance)
            if violated:
                logger.warning(
                    f"Solution violates constraints beyond tolerance: {', '.join(violated)}"
                )
                state = OptimisationState.APPROXIMATE

        value = float(problem.value) if objective and problem.value is not None else float("nan")
        return OptimisationResult(state=state, values=values, value=value, message=status)

    def _build_objective(
        self,
        cp: Any,
        x: Any,
        model: "ExpressionsBasedModel",
    ) -> Any:
        """Build the cvxpy objective expression."""
        n = model.count_variables()
        linear = np.array([variable.weight or 0.0 for variable in model.variables])
        quadratic = np.zeros((n, n))

        for expression in model.expressions:
            if not expression.is_objective:
                continue
            linear += expression.weight * expression.linear_factors(n)
            if expression.is_quadratic:
                quadratic += expression.weight * expression.quadratic_factors(n)

        result = linear @ x
        if np.any(quadratic):
            quadratic = self._symmetrise(quadratic, model.options, "objective")
            result = result + cp.quad_form(x, cp.psd_wrap(quadratic))
        return result

    def _build_constraints(
        self,
        cp: Any,
        x: Any,
        model: "ExpressionsBasedModel",
    ) -> list[Any]:
        """Build cvxpy constraints from variable and expression limits."""
        n = model.count_variables()
        cvx_constraints: list[Any] = []

        for index, variable in enumerate(model.variables):
            if variable.lower is not None and variable.lower == variable.upper:
                cvx_constraints.append(x[index] == variable.lower)
                continue
            if variable.lower is not None:
                cvx_constraints.append(x[index] >= variable.lower)
            if variable.upper is not None:
                cvx_constraints.append(x[index] <= variable.upper)

        for expression in model.expressions:
            if not expression.is_constraint:
                continue
            value = self._expression_value(cp, x, expression, n, model.options)
            if expression.lower is not None and expression.lower == expression.upper:
                cvx_constraints.append(value == expression.lower)
                continue
            if expression.lower is not None:
                cvx_constraints.append(value >= expression.lower)
            if expression.upper is not None:
                cvx_constraints.append(value <= expression.upper)

        return cvx_constraints

    def _expression_value(
        self,
        cp: Any,
        x: Any,
        expression: "Expression",
        n: int,
        options: OptimisationOptions,
    ) -> Any:
        """cvxpy value of a constraint expression."""
        value = expression.linear_factors(n) @ x
        if expression.is_quadratic:
            if expression.lower is not None:
                raise ValueError(
                    f"Quadratic constraint {expression.name} can only have an upper limit"
                )
            quadratic = self._symmetrise(
                expression.quadratic_factors(n), options, expression.name
            )
            value = value + cp.quad_form(x, cp.psd_wrap(quadratic))
        return value

    def _symmetrise(
        self,
        matrix: np.ndarray,
        options: OptimisationOptions,
        name: str,
    ) -> np.ndarray:
        """Symmetric part of a quadratic factor matrix, validated if requested."""
        symmetric = (matrix + matrix.T) / 2.0
        if options.validate:
            self._validate_psd(symmetric, options.psd_tolerance, name)
        return symmetric

    def _validate_psd(self, matrix: np.ndarray, tolerance: float, name: str) -> None:
        """Validate matrix is positive semi-definite."""
        try:
            eigenvalues = np.linalg.eigvalsh(matrix)
        except np.linalg.LinAlgError as e:
            raise ValueError(f"Failed to check PSD: {e}") from e

        min_eigenvalue = eigenvalues.min()
        largest = max(1.0, float(np.abs(eigenvalues).max()))
        if min_eigenvalue < -tolerance * largest:
            raise ValueError(
                f"Quadratic factors of {name} are not PSD. "
                f"Min eigenvalue: {min_eigenvalue}"
            )

    def _solver_kwargs(self, solver: str, options: OptimisationOptions) -> dict[str, Any]:
        """Solver specific keyword arguments."""
        kwargs: dict[str, Any] = {}
        name = solver.upper()

        if name == "OSQP":
            kwargs.update(eps_abs=1e-9, eps_rel=1e-9, polish=True, max_iter=100000)

        if options.time_limit is not None:
            if name == "SCIP":
                kwargs["scip_params"] = {"limits/time": options.time_limit}
            elif name == "SCS":
                kwargs["time_limit_secs"] = options.time_limit
            elif name in ("CLARABEL", "OSQP", "HIGHS"):
                kwargs["time_limit"] = options.time_limit
            else:
                logger.debug(f"Time limit not supported for {solver}, ignored")

        return kwargs

    def _validate_solution(
        self,
        values: np.ndarray,
        model: "ExpressionsBasedModel",
        tolerance: float,
    ) -> list[str]:
        """Names of variables/expressions whose limits are violated."""
        violated: list[str] = []

        for variable, value in zip(model.variables, values):
            if not variable.bounds.contains(value, tolerance * max(1.0, abs(value))):
                violated.append(variable.name)

        for expression in model.expressions:
            if not expression.is_constraint:
                continue
            value = expression.evaluate(values)
            if not expression.bounds.contains(value, tolerance * max(1.0, abs(value))):
                violated.append(expression.name)

        return violated


def create_optimizer_adapter(
    options: OptimisationOptions | None = None,
) -> OptimizerAdapter:
    """Factory function to create OptimizerAdapter."""
    return OptimizerAdapter(options=options)
