"""
Matrix primitives for the evaluation matrix E.

E is kept as a float64 numpy array. Every mutating operation works on a
copy produced here and returns it; the caller's array is never touched.
"""

import numpy as np

from .errors import DimensionMismatchError, InvalidMatrixError

ROW_SUM_TOLERANCE = 1e-10


def copy_matrix(M) -> np.ndarray:
    """Independent float64 deep copy of M"""
    return np.array(M, dtype=float, copy=True)


def check_square(M) -> np.ndarray:
    """Return M as a 2-D float array, rejecting anything that is not N×N."""
    arr = np.asarray(M, dtype=float)
    if arr.ndim != 2 or arr.shape[0] != arr.shape[1]:
        raise DimensionMismatchError(
            f"evaluation matrix must be square, got shape {arr.shape}",
            expected="N x N", actual=arr.shape)
    return arr


def check_vector(v, n: int) -> np.ndarray:
    """Return v as a 1-D float array of length n."""
    arr = np.asarray(v, dtype=float)
    if arr.ndim != 1 or arr.shape[0] != n:
        raise DimensionMismatchError(
            f"vector must have length {n}, got shape {arr.shape}",
            expected=n, actual=arr.shape)
    return arr


def normalize_rows(M) -> np.ndarray:
    """
    Make every row of M sum to 1.

    A zero row becomes uniform 1/N. A row whose sum is off by more than
    ROW_SUM_TOLERANCE is divided by its sum. Rows already within tolerance
    are left bit-identical.

    Returns:
        A new row-stochastic array
    """
    out = copy_matrix(M)
    n = out.shape[0]
    for i in range(n):
        row_sum = out[i].sum()
        if row_sum == 0:
            out[i, :] = 1.0 / n
            continue
        if abs(row_sum - 1.0) > ROW_SUM_TOLERANCE:
            out[i, :] /= row_sum
    return out


def check_evaluation_matrix(M) -> np.ndarray:
    """
    Validate an externally supplied E and return a row-stochastic copy.

    Entries must be finite and non-negative. Rows that do not sum to 1 are
    rescaled by normalize_rows.
    """
    E = check_square(M)
    if not np.all(np.isfinite(E)):
        raise InvalidMatrixError("evaluation matrix has non-finite entries", values=E)
    if np.any(E < 0):
        raise InvalidMatrixError("evaluation matrix has negative entries", values=E)
    return normalize_rows(E)


def normalize_to_sum(v, target_sum: float = 1.0) -> np.ndarray:
    """Rescale v so it sums to target_sum (all-zero v becomes uniform)."""
    arr = np.asarray(v, dtype=float)
    total = arr.sum()
    if total == 0:
        return np.full(arr.shape, target_sum / len(arr))
    return arr * (target_sum / total)


def l1_diff(a, b) -> float:
    """Sum of absolute element-wise differences"""
    return float(np.abs(np.asarray(a) - np.asarray(b)).sum())


def uniform_matrix(n: int, diag_weight: float, off_weight: float) -> np.ndarray:
    """
    Build the initial n×n evaluation matrix.

    Args:
        n: Population size
        diag_weight: Self-budget for every participant before normalization
        off_weight: Weight on each other participant before normalization

    Returns:
        Row-stochastic n×n array
    """
    if n < 1:
        raise DimensionMismatchError(f"population must have at least 1 member, got {n}",
                                     expected=">= 1", actual=n)
    E = np.full((n, n), float(off_weight))
    np.fill_diagonal(E, float(diag_weight))
    return normalize_rows(E)


def row_sum_error(E) -> float:
    """Largest |Σ_j E[i][j] − 1| over all rows"""
    E = np.asarray(E, dtype=float)
    if E.size == 0:
        return 0.0
    return float(np.max(np.abs(E.sum(axis=1) - 1.0)))
