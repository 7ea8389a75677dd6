"""
Virtual central bank transform.

Every participant's self-budget is stripped from E and redistributed in
equal shares to the N-1 other participants, giving the effective matrix

    E'[i][j] = E[i][j] + E[i][i] / (N - 1)    (i != j)
    E'[i][i] = 0

Contributions are the left eigenvector of E'. The solver only needs v E',
which is computed here in O(N^2) without materializing E'.
"""

import numpy as np


def left_multiply_effective(v, E) -> np.ndarray:
    """
    Compute v E' without building E'.

    selfRetained[j] = v[j] E[j][j], S = Σ selfRetained
    received[j]     = Σ_i v[i] E[i][j]
    image[j]        = received[j] - selfRetained[j] + (S - selfRetained[j]) / (N - 1)

    Args:
        v: Row vector of length N
        E: Row-stochastic N×N evaluation matrix

    Returns:
        The image of v under E' (identity when N <= 1)
    """
    v = np.asarray(v, dtype=float)
    E = np.asarray(E, dtype=float)
    n = E.shape[0]
    if n <= 1:
        return v.copy()

    self_retained = v * np.diag(E)
    S = self_retained.sum()
    received = v @ E
    return received - self_retained + (S - self_retained) / (n - 1)


def effective_matrix(E) -> np.ndarray:
    """Explicit E' (for display and cross-checking the vector form)."""
    E = np.asarray(E, dtype=float)
    n = E.shape[0]
    if n <= 1:
        return np.eye(max(n, 1))

    diag = np.diag(E)
    out = E + (diag / (n - 1))[:, np.newaxis]
    np.fill_diagonal(out, 0.0)
    return out
