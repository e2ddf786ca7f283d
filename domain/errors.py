"""
Error taxonomy of the game core.

Every failure the core reports is a `GameError`. The intermediate classes
group them by how the caller should react:

- ValidationError: bad input, report to the acting player.
- StateConflictError: the request raced with another one or is out of
  order, report and carry on.
- ResourceError: not enough balance.
- NotFoundError: the referenced record does not exist.
- IntegrityError: stored data violates an invariant. Logged as a defect,
  the single request is aborted.
- TransientError: the store could not complete the request, retry later.
"""

from __future__ import annotations


class GameError(Exception):
    """Base class for all errors raised by the game core."""

    category = "error"


class ValidationError(GameError):
    category = "validation"


class StateConflictError(GameError):
    category = "conflict"


class ResourceError(GameError):
    category = "resource"


class NotFoundError(GameError):
    category = "not_found"


class IntegrityError(GameError):
    category = "integrity"


class TransientError(GameError):
    category = "transient"


# ============ Board ============

class InvalidBoardError(ValidationError):
    def __init__(self, detail: str):
        super().__init__(f"Invalid board: {detail}")


class IllegalMoveError(ValidationError):
    def __init__(self, cell, reason: str = "cell must be between 0 and 8"):
        self.cell = cell
        super().__init__(f"Illegal move at {cell!r}: {reason}")


class CellOccupiedError(IllegalMoveError):
    def __init__(self, cell: int):
        super().__init__(cell, "cell is already occupied")


# ============ Amounts / profile input ============

class InvalidAmountError(ValidationError):
    pass


class BelowMinimumError(ValidationError):
    def __init__(self, amount, minimum):
        self.amount = amount
        self.minimum = minimum
        super().__init__(f"Amount {amount} is below the minimum of {minimum}")


class UnsupportedLanguageError(ValidationError):
    pass


class UnknownBalanceFieldError(ValidationError):
    pass


class InvalidMatchKindError(ValidationError):
    pass


# ============ State conflicts ============

class AlreadyQueuedError(StateConflictError):
    def __init__(self, player_id: str, kind):
        self.player_id = player_id
        self.kind = kind
        super().__init__(f"Player {player_id} is already queued for {kind}")


class AlreadyInMatchError(StateConflictError):
    def __init__(self, player_id: str, match_id: str):
        self.player_id = player_id
        self.match_id = match_id
        super().__init__(f"Player {player_id} is already in match {match_id}")


class NotQueuedError(StateConflictError):
    def __init__(self, player_id: str, kind):
        super().__init__(f"Player {player_id} is not queued for {kind}")


class NotYourTurnError(StateConflictError):
    def __init__(self, player_id: str):
        super().__init__(f"It is not player {player_id}'s turn")


class NotInMatchError(StateConflictError):
    def __init__(self, player_id: str, match_id: str):
        super().__init__(f"Player {player_id} does not play in match {match_id}")


class MatchInactiveError(StateConflictError):
    def __init__(self, match_id: str):
        self.match_id = match_id
        super().__init__(f"Match {match_id} is already over")


class AlreadyCompletedError(StateConflictError):
    def __init__(self, request_id: str):
        super().__init__(f"Withdrawal {request_id} is already completed")


class BonusAlreadyClaimedError(StateConflictError):
    pass


# ============ Resources ============

class InsufficientBalanceError(ResourceError):
    def __init__(self, player_id: str, required, available):
        self.required = required
        self.available = available
        super().__init__(
            f"Player {player_id} needs {required} but only has {available}"
        )


# ============ Not found ============

class ProfileNotFoundError(NotFoundError):
    def __init__(self, player_id: str):
        self.player_id = player_id
        super().__init__(f"Profile {player_id} not found")


class MatchNotFoundError(NotFoundError):
    def __init__(self, reference: str):
        super().__init__(f"Match {reference} not found")


class RequestNotFoundError(NotFoundError):
    def __init__(self, request_id: str):
        super().__init__(f"Withdrawal {request_id} not found")


# ============ Integrity ============

class SelfPairingError(IntegrityError):
    def __init__(self, player_id: str):
        super().__init__(f"Queue tried to pair player {player_id} with itself")


class SettlementIntegrityError(IntegrityError):
    pass


class CorruptRecordError(IntegrityError):
    def __init__(self, key: str, detail: str):
        super().__init__(f"Record {key} is corrupt: {detail}")


# ============ Transient ============

class StoreUnavailableError(TransientError):
    pass


class TransactionConflictError(TransientError):
    def __init__(self, attempts: int):
        super().__init__(f"Gave up after {attempts} conflicting commits")
