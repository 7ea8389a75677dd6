"""
Error types raised by the PICSY engine.

Transfer errors are recoverable: callers skip the tick, retry with a
smaller δ, or report to the user. None of them leave the engine in an
inconsistent state because every operation works on a copy.
"""


class EngineError(Exception):
    """Base class for all engine errors"""


class DimensionMismatchError(EngineError, ValueError):
    """A matrix or vector does not have the shape the engine expects"""

    def __init__(self, message: str, expected=None, actual=None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class InvalidRateError(EngineError, ValueError):
    """Recovery rate γ outside [0, 1)"""

    def __init__(self, gamma: float):
        super().__init__(f"recovery rate must be in [0, 1), got {gamma}")
        self.gamma = gamma


class InvalidMatrixError(EngineError, ValueError):
    """Matrix or vector entries that cannot describe an economy (negative or non-finite)"""

    def __init__(self, message: str, values=None):
        super().__init__(message)
        self.values = values


# ---------------------------------------------------------------------- #
# Transfer errors                                                          #
# ---------------------------------------------------------------------- #

class TransferError(EngineError):
    """Base class for a rejected value transfer"""

    def __init__(self, message: str, buyer: int, seller: int):
        super().__init__(message)
        self.buyer = buyer
        self.seller = seller


class SelfTransferError(TransferError):
    """Buyer and seller are the same participant"""

    def __init__(self, participant: int):
        super().__init__(f"participant {participant} cannot transfer to itself",
                         participant, participant)


class UnknownParticipantError(TransferError, IndexError):
    """Buyer or seller index outside the population"""

    def __init__(self, buyer: int, seller: int, size: int):
        super().__init__(f"participants ({buyer}, {seller}) out of range for N={size}",
                         buyer, seller)
        self.size = size


class NegativeAllocationError(TransferError):
    """α is negative or undefined (δ < 0 or a non-positive buyer contribution)"""

    def __init__(self, buyer: int, seller: int, delta: float, alpha: float):
        super().__init__(f"negative allocation α={alpha:.6g} for δ={delta:.6g}",
                         buyer, seller)
        self.delta = delta
        self.alpha = alpha


class InsufficientBudgetError(TransferError):
    """α exceeds the buyer's self-budget"""

    def __init__(self, buyer: int, seller: int, delta: float, alpha: float,
                 budget: float):
        super().__init__(
            f"buyer {buyer} needs α={alpha:.6g} but holds budget {budget:.6g}",
            buyer, seller)
        self.delta = delta
        self.alpha = alpha
        self.budget = budget


class InvalidDeltaError(TransferError):
    """δ is NaN or infinite"""

    def __init__(self, buyer: int, seller: int, delta: float):
        super().__init__(f"transfer value must be finite, got δ={delta}", buyer, seller)
        self.delta = delta
