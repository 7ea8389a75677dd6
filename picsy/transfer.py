"""
Value transfer ("like") between two participants.

A like of economic value δ from buyer b to seller s moves a fraction
α = δ / c[b] of the buyer's self-budget onto the buyer's evaluation of s:

    E[b][b] -= α
    E[b][s] += α

Row b keeps its sum by construction.
"""

import math
import time
import numpy as np
from dataclasses import dataclass
from typing import Optional, Tuple

from .errors import (
    InsufficientBudgetError,
    InvalidDeltaError,
    NegativeAllocationError,
    SelfTransferError,
    UnknownParticipantError,
)
from .matrix_ops import check_square, check_vector, copy_matrix, normalize_rows

BUDGET_TOLERANCE = 1e-12


@dataclass(frozen=True)
class TransferRecord:
    """One successful transfer, handed to the ledger"""

    buyer: int
    seller: int
    delta: float
    alpha: float
    timestamp: float
    record_id: Optional[int] = None
    post_id: Optional[int] = None


def _check_participants(buyer: int, seller: int, n: int):
    if buyer == seller:
        raise SelfTransferError(buyer)
    if not (0 <= buyer < n and 0 <= seller < n):
        raise UnknownParticipantError(buyer, seller, n)


def apply_transfer(E, c, buyer: int, seller: int, delta: float,
                   post_id: Optional[int] = None) -> Tuple[np.ndarray, TransferRecord]:
    """
    Apply one like to a copy of E.

    Args:
        E: Current evaluation matrix
        c: Current contribution vector
        buyer: Index of the participant spending budget
        seller: Index of the participant being evaluated
        delta: Economic value to transfer
        post_id: Optional post the like was attached to

    Returns:
        (new matrix, transfer record). Contributions must be re-derived by
        the caller before the new matrix is exposed.
    """
    E = check_square(E)
    n = E.shape[0]
    c = check_vector(c, n)
    _check_participants(buyer, seller, n)

    if not math.isfinite(delta):
        raise InvalidDeltaError(buyer, seller, delta)
    price = c[buyer]
    if not (math.isfinite(price) and price > 0):
        # α = δ / c[b] is undefined or flips sign
        raise NegativeAllocationError(buyer, seller, delta, float('nan'))

    alpha = delta / price
    if alpha < 0:
        raise NegativeAllocationError(buyer, seller, delta, alpha)
    budget = E[buyer, buyer]
    if alpha > budget + BUDGET_TOLERANCE:
        raise InsufficientBudgetError(buyer, seller, delta, alpha, budget)

    out = copy_matrix(E)
    out[buyer, buyer] -= alpha
    out[buyer, seller] += alpha
    out = normalize_rows(out)

    record = TransferRecord(
        buyer=buyer,
        seller=seller,
        delta=float(delta),
        alpha=float(alpha),
        timestamp=time.time(),
        post_id=post_id,
    )
    return out, record


def max_affordable_delta(E, c, buyer: int) -> float:
    """Largest δ the buyer can spend right now: E[b][b] * c[b]"""
    E = np.asarray(E, dtype=float)
    return float(E[buyer, buyer] * c[buyer])


def likes_available(E, c, buyer: int, delta: float) -> int:
    """How many likes of size δ the buyer could afford at current prices."""
    if delta <= 0:
        return 0
    cost = delta / c[buyer]
    E = np.asarray(E, dtype=float)
    return max(0, math.floor(E[buyer, buyer] / cost))
