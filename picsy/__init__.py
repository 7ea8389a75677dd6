"""
PICSY Evaluation Economy Engine

Mutual-evaluation economy with a virtual central bank:
1. Row-stochastic evaluation matrix E (self-budget on the diagonal)
2. Virtual central bank transform E' (self-loops redistributed evenly)
3. Contributions c as the left eigenvector of E' (Σc = N)
4. Value transfer ("like"): α = δ / c[buyer] moved off the buyer's budget
5. Natural recovery toward self-budget (rate γ)
6. Membership expansion that never dilutes existing budgets
7. Serialized engine controller publishing consistent snapshots
"""

from .engine import (
    EngineController,
    EngineSnapshot,
    add_member,
    initialize,
    recover,
    stats,
    transfer,
)
from .errors import (
    DimensionMismatchError,
    EngineError,
    InsufficientBudgetError,
    InvalidDeltaError,
    InvalidMatrixError,
    InvalidRateError,
    NegativeAllocationError,
    SelfTransferError,
    TransferError,
    UnknownParticipantError,
)
from .solver import ContributionSolver, SolverResult
from .transfer import TransferRecord

__version__ = "0.1.0"
