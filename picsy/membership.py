"""
Membership expansion: grow the population from N to N+1.

With x = 1/N:
- existing off-diagonal weight is diluted by (1 - x)
- existing self-budgets are copied unchanged
- the carved-out share x(1 - E[i][i]) goes to the newcomer's column
- the newcomer evaluates others in proportion to their contribution, c[j]/N,
  and starts with zero self-budget
"""

import numpy as np
from typing import Optional, Tuple

from .errors import DimensionMismatchError
from .matrix_ops import check_square, check_vector, normalize_rows, normalize_to_sum
from .solver import ContributionSolver, SolverResult


def expand_matrix(E, c) -> np.ndarray:
    """Build the (N+1)×(N+1) matrix. Contributions are not re-solved here."""
    E = check_square(E)
    n = E.shape[0]
    if n == 0:
        raise DimensionMismatchError("cannot expand an empty population",
                                     expected=">= 1", actual=0)
    c = check_vector(c, n)

    x = 1.0 / n
    diag = np.diag(E).copy()

    grown = np.zeros((n + 1, n + 1))
    grown[:n, :n] = (1.0 - x) * E
    grown[np.arange(n), np.arange(n)] = diag
    grown[:n, n] = x * (1.0 - diag)
    grown[n, :n] = c / n
    grown[n, n] = 0.0

    # Existing rows already sum to 1, so only the newcomer row can be rescaled.
    return normalize_rows(grown)


def expansion_warm_start(c) -> np.ndarray:
    """normalize([c/N, 1/N], 1): existing standing plus an average newcomer"""
    c = np.asarray(c, dtype=float)
    n = c.shape[0]
    return normalize_to_sum(np.append(c / n, 1.0 / n), 1.0)


def expand_membership(E, c, solver: Optional[ContributionSolver] = None
                      ) -> Tuple[np.ndarray, np.ndarray, int, SolverResult]:
    """
    Add one participant.

    Args:
        E: Current N×N evaluation matrix
        c: Current contributions (sum N)
        solver: Solver used to re-derive contributions

    Returns:
        (new matrix, new contributions, index of the newcomer, solver result)
    """
    solver = solver or ContributionSolver()
    grown = expand_matrix(E, c)
    result = solver.solve(grown, warm_start=expansion_warm_start(c))
    return grown, result.contribution, grown.shape[0] - 1, result
