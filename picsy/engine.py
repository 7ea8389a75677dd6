"""
Engine controller for the PICSY economy.

Two layers:
- pure functions (initialize / transfer / recover / add_member / stats) that
  take (E, c) and return a new consistent pair
- EngineController, the single owner of (E, c), which serializes commands
  and publishes immutable snapshots to subscribers
"""

import threading
from collections import deque
import numpy as np
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from .central_bank import effective_matrix
from .errors import InvalidMatrixError
from .matrix_ops import (
    check_evaluation_matrix,
    check_square,
    check_vector,
    normalize_to_sum,
    uniform_matrix,
)
from .membership import expand_membership
from .recovery import apply_recovery
from .solver import ContributionSolver, SolverResult
from .transfer import TransferRecord, apply_transfer, likes_available


# ---------------------------------------------------------------------- #
# Functional API                                                           #
# ---------------------------------------------------------------------- #

def _warm_start(c) -> np.ndarray:
    return normalize_to_sum(c, 1.0)


def initialize(n: int, diag_weight: float = 0.2, off_weight: float = 0.4,
               solver: Optional[ContributionSolver] = None) -> Tuple[np.ndarray, np.ndarray]:
    """Uniform n×n matrix and its contributions."""
    solver = solver or ContributionSolver()
    E = uniform_matrix(n, diag_weight, off_weight)
    return E, solver.solve(E).contribution


def transfer(E, c, buyer: int, seller: int, delta: float,
             solver: Optional[ContributionSolver] = None,
             post_id: Optional[int] = None) -> Tuple[np.ndarray, np.ndarray, TransferRecord]:
    """Like from buyer to seller; raises a TransferError subclass on rejection."""
    solver = solver or ContributionSolver()
    E_new, record = apply_transfer(E, c, buyer, seller, delta, post_id=post_id)
    c_new = solver.solve(E_new, warm_start=_warm_start(c)).contribution
    return E_new, c_new, record


def recover(E, c, gamma: float,
            solver: Optional[ContributionSolver] = None) -> Tuple[np.ndarray, np.ndarray]:
    """One natural-recovery step followed by re-derivation of c."""
    solver = solver or ContributionSolver()
    E_new = apply_recovery(E, gamma)
    c_new = solver.solve(E_new, warm_start=_warm_start(c)).contribution
    return E_new, c_new


def add_member(E, c, solver: Optional[ContributionSolver] = None) -> Tuple[np.ndarray, np.ndarray, int]:
    """Grow the population by one; returns the newcomer's index."""
    E_new, c_new, new_index, _ = expand_membership(E, c, solver)
    return E_new, c_new, new_index


def stats(E, c) -> Dict[str, List[float]]:
    """Self-budgets and purchasing power PP[i] = E[i][i] * c[i]."""
    E = check_square(E)
    c = check_vector(c, E.shape[0])
    budgets = np.diag(E)
    return {
        'budgets': [float(b) for b in budgets],
        'pp': [float(p) for p in budgets * c],
    }


# ---------------------------------------------------------------------- #
# Controller                                                               #
# ---------------------------------------------------------------------- #

def _frozen(arr: np.ndarray) -> np.ndarray:
    out = np.array(arr, dtype=float, copy=True)
    out.setflags(write=False)
    return out


@dataclass(frozen=True)
class EngineSnapshot:
    """A consistent (E, c) pair. Arrays are read-only."""

    E: np.ndarray
    c: np.ndarray
    version: int
    solver_result: Optional[SolverResult] = None

    @property
    def size(self) -> int:
        return self.E.shape[0]

    @property
    def budgets(self) -> np.ndarray:
        return np.diag(self.E).copy()

    @property
    def pp(self) -> np.ndarray:
        return np.diag(self.E) * self.c

    def stats(self) -> Dict[str, List[float]]:
        return stats(self.E, self.c)


LISTENER_ERROR_HISTORY = 100

SnapshotListener = Callable[[EngineSnapshot], None]
TransferListener = Callable[[TransferRecord, EngineSnapshot], None]


class EngineController:
    """
    Single point of mutation for (E, c).

    Each command mutates E and re-solves c under one lock, then publishes a
    new snapshot. Readers call snapshot() and never block on the lock.
    Listeners run after the lock is released, in registration order. A
    listener that raises does not undo the command or stop delivery to the
    others; its exception is kept in listener_errors.
    """

    def __init__(self, n: int = 3, diag_weight: float = 0.2, off_weight: float = 0.4,
                 solver: Optional[ContributionSolver] = None):
        """
        Args:
            n: Initial population size
            diag_weight: Initial self-budget weight
            off_weight: Initial weight on each other participant
            solver: Contribution solver shared by all commands
        """
        self.solver = solver or ContributionSolver()
        self._lock = threading.Lock()
        self._snapshot_listeners: List[SnapshotListener] = []
        self._transfer_listeners: List[TransferListener] = []
        # (listener, exception) for the most recent listener failures
        self.listener_errors: Deque[Tuple[Callable, Exception]] = deque(maxlen=LISTENER_ERROR_HISTORY)
        self._adopt(uniform_matrix(n, diag_weight, off_weight))

    def _adopt(self, E, warm_start=None):
        result = self.solver.solve(E, warm_start=warm_start)
        self._snapshot = EngineSnapshot(_frozen(E), _frozen(result.contribution), 0, result)

    @classmethod
    def from_state(cls, E, c=None, solver: Optional[ContributionSolver] = None) -> 'EngineController':
        """
        Adopt an existing matrix, re-deriving c warm-started from the given vector.

        E is row-normalized before adoption. Negative or non-finite entries in
        E or c raise InvalidMatrixError.
        """
        E = check_evaluation_matrix(E)
        if c is not None:
            c = np.asarray(c, dtype=float)
            if not np.all(np.isfinite(c)) or np.any(c < 0):
                raise InvalidMatrixError("contribution warm start must be finite and non-negative",
                                         values=c)
        controller = cls(n=1, solver=solver)
        controller._adopt(E, warm_start=c)
        return controller

    # -- reads --------------------------------------------------------------

    def snapshot(self) -> EngineSnapshot:
        """Last published consistent state"""
        return self._snapshot

    @property
    def size(self) -> int:
        return self._snapshot.size

    def stats(self) -> Dict[str, List[float]]:
        return self._snapshot.stats()

    def effective_matrix(self) -> np.ndarray:
        """Explicit E' for the current snapshot"""
        return effective_matrix(self._snapshot.E)

    def likes_available(self, buyer: int, delta: float) -> int:
        snap = self._snapshot
        return likes_available(snap.E, snap.c, buyer, delta)

    # -- subscriptions ------------------------------------------------------

    def subscribe(self, listener: SnapshotListener):
        self._snapshot_listeners.append(listener)

    def subscribe_transfers(self, listener: TransferListener):
        self._transfer_listeners.append(listener)

    # -- commands -----------------------------------------------------------

    def _commit(self, E: np.ndarray, result: SolverResult) -> EngineSnapshot:
        snap = EngineSnapshot(
            E=_frozen(E),
            c=_frozen(result.contribution),
            version=self._snapshot.version + 1,
            solver_result=result,
        )
        self._snapshot = snap
        return snap

    def _notify(self, listener: Callable, *args: Any):
        try:
            listener(*args)
        except Exception as exc:
            # the command is already committed; keep delivering to the rest
            self.listener_errors.append((listener, exc))

    def _publish(self, snap: EngineSnapshot, record: Optional[TransferRecord] = None):
        if record is not None:
            for listener in list(self._transfer_listeners):
                self._notify(listener, record, snap)
        for listener in list(self._snapshot_listeners):
            self._notify(listener, snap)

    def transfer(self, buyer: int, seller: int, delta: float,
                 post_id: Optional[int] = None) -> TransferRecord:
        """
        Like from buyer to seller.

        Raises:
            TransferError: the transfer was rejected; state is unchanged
        """
        with self._lock:
            current = self._snapshot
            E_new, record = apply_transfer(current.E, current.c, buyer, seller, delta,
                                           post_id=post_id)
            result = self.solver.solve(E_new, warm_start=_warm_start(current.c))
            snap = self._commit(E_new, result)
        self._publish(snap, record)
        return record

    def recover(self, gamma: float) -> EngineSnapshot:
        """Apply natural recovery with rate γ."""
        with self._lock:
            current = self._snapshot
            E_new = apply_recovery(current.E, gamma)
            result = self.solver.solve(E_new, warm_start=_warm_start(current.c))
            snap = self._commit(E_new, result)
        self._publish(snap)
        return snap

    def add_member(self) -> int:
        """
        Add one participant and return its index.

        Population caps are the caller's business; the engine has no upper bound.
        """
        with self._lock:
            current = self._snapshot
            E_new, _, new_index, result = expand_membership(current.E, current.c, self.solver)
            snap = self._commit(E_new, result)
        self._publish(snap)
        return new_index
