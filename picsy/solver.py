"""
Contribution solver.

Power iteration for the left eigenvector (eigenvalue 1) of the effective
matrix E'. The result is rescaled so the contributions sum to N, i.e. the
population average contribution is 1.
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional

from .central_bank import left_multiply_effective
from .errors import DimensionMismatchError
from .matrix_ops import check_square, l1_diff, normalize_to_sum


@dataclass(frozen=True)
class SolverResult:
    """Outcome of one solve"""

    contribution: np.ndarray
    iterations: int
    converged: bool
    residual: float  # L1 distance between the last two iterates
    warm_started: bool


class ContributionSolver:
    """
    Derives the contribution vector c from E.

    Hitting max_iter is not an error: the best iterate is returned with
    converged=False so callers can decide what to do with low precision.
    """

    def __init__(self, max_iter: int = 1000, tol: float = 1e-10,
                 strict_warm_start: bool = False):
        """
        Args:
            max_iter: Iteration cap
            tol: L1 stopping tolerance between successive iterates
            strict_warm_start: Raise DimensionMismatchError on a warm start of
                the wrong length instead of restarting from uniform
        """
        self.max_iter = max_iter
        self.tol = tol
        self.strict_warm_start = strict_warm_start

    def _initial_vector(self, n: int, warm_start) -> tuple:
        if warm_start is not None:
            ws = np.asarray(warm_start, dtype=float)
            if ws.ndim == 1 and ws.shape[0] == n:
                return normalize_to_sum(ws, 1.0), True
            if self.strict_warm_start:
                raise DimensionMismatchError(
                    f"warm start has shape {ws.shape}, expected length {n}",
                    expected=n, actual=ws.shape)
        return np.full(n, 1.0 / n), False

    def solve(self, E, warm_start=None) -> SolverResult:
        """
        Run power iteration on E'.

        Args:
            E: Row-stochastic N×N evaluation matrix
            warm_start: Optional previous contribution vector (any scale)

        Returns:
            SolverResult with contribution summing to N
        """
        E = check_square(E)
        n = E.shape[0]
        if n == 0:
            raise DimensionMismatchError("cannot solve an empty population",
                                         expected=">= 1", actual=0)

        v, warm_started = self._initial_vector(n, warm_start)
        iterations = 0
        residual = float('inf')
        converged = False

        for k in range(self.max_iter):
            v_next = normalize_to_sum(left_multiply_effective(v, E), 1.0)
            residual = l1_diff(v_next, v)
            v = v_next
            iterations = k + 1
            if residual < self.tol:
                converged = True
                break

        return SolverResult(
            contribution=v * n,
            iterations=iterations,
            converged=converged,
            residual=residual,
            warm_started=warm_started,
        )


def solve_contributions(E, warm_start=None, solver: Optional[ContributionSolver] = None) -> np.ndarray:
    """Convenience wrapper returning only the contribution vector."""
    solver = solver or ContributionSolver()
    return solver.solve(E, warm_start).contribution
