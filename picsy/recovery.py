"""
Natural recovery of self-budget.

Each application pulls E toward the identity:
- off-diagonal entries shrink by (1 - γ)
- the diagonal gains γ × (1 - E[i][i]), exactly the mass removed from the row
"""

import numpy as np

from .errors import InvalidRateError
from .matrix_ops import check_square, copy_matrix, normalize_rows

MAX_UI_RATE = 0.99


def clamp_rate(gamma: float, lo: float = 0.0, hi: float = MAX_UI_RATE) -> float:
    """Clamp a user-supplied rate into [lo, hi]"""
    return max(lo, min(hi, gamma))


def apply_recovery(E, gamma: float) -> np.ndarray:
    """
    Apply one recovery step to a copy of E.

    Args:
        E: Current evaluation matrix
        gamma: Decay rate in [0, 1)

    Returns:
        New row-stochastic matrix
    """
    if not (0.0 <= gamma < 1.0):
        raise InvalidRateError(gamma)

    E = check_square(E)
    out = copy_matrix(E)
    diag = np.diag(out).copy()
    out *= (1.0 - gamma)
    np.fill_diagonal(out, diag + gamma * (1.0 - diag))
    return normalize_rows(out)


class RecoveryEngine:
    """
    Applies natural recovery on a schedule.

    The runner calls maybe_apply() every tick; recovery fires every
    `interval` ticks.
    """

    def __init__(self, gamma: float = 0.1, interval: int = 10):
        """
        Args:
            gamma: Decay rate per application
            interval: Ticks between applications
        """
        if not (0.0 <= gamma < 1.0):
            raise InvalidRateError(gamma)
        self.gamma = gamma
        self.interval = interval
        self.applications = 0

    def is_due(self, tick: int) -> bool:
        return tick > 0 and self.interval > 0 and tick % self.interval == 0

    def maybe_apply(self, controller, tick: int) -> bool:
        """Run recovery through the controller if it is due this tick."""
        if not self.is_due(tick):
            return False
        controller.recover(self.gamma)
        self.applications += 1
        return True
