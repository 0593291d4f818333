"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Invalid input (rejected before any lock is taken)
  2xxx: Not found (user / streamer / opening)
  3xxx: Balance (allocation plan cannot be covered)
  4xxx: Conflict (state transitions, duplicate claims)
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Invalid input ---

class InvalidInputError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(1001, f"Invalid input: {detail}", 422)


class InvalidAmountError(AppError):
    def __init__(self, amount: object) -> None:
        super().__init__(1002, f"Amount must be a positive integer, got {amount!r}", 422)


class InvalidWeightError(AppError):
    def __init__(self, weight_bp: object) -> None:
        super().__init__(1003, f"Weight must be an integer in [0, 10000] bp, got {weight_bp!r}", 422)


# --- 2xxx: Not found ---

class UserNotFoundError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(2001, f"User not found: {user_id}", 404)


class StreamerNotFoundError(AppError):
    def __init__(self, streamer_id: str) -> None:
        super().__init__(2002, f"Streamer not found: {streamer_id}", 404)


class OpeningNotFoundError(AppError):
    def __init__(self, opening_id: int) -> None:
        super().__init__(2003, f"Chest opening not found: {opening_id}", 404)


# --- 3xxx: Balance ---

class InsufficientBalanceError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            3001,
            f"Insufficient balance: required {required} rubis, available {available} rubis",
            422,
        )


class InsufficientValueError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            3002,
            f"Insufficient value: required {required}, available {available}",
            422,
        )


# --- 4xxx: Conflict ---

class ConflictError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4000, detail, 409)


class ChestAlreadyOpenError(AppError):
    def __init__(self, streamer_id: str) -> None:
        super().__init__(4001, f"A chest opening is already open for streamer {streamer_id}", 409)


class OpeningNotJoinableError(AppError):
    def __init__(self, opening_id: int, reason: str) -> None:
        super().__init__(4002, f"Chest opening {opening_id} cannot be joined: {reason}", 409)


class OpeningNotOpenError(AppError):
    def __init__(self, opening_id: int, status: str) -> None:
        super().__init__(4003, f"Chest opening {opening_id} is {status}", 409)


class MilestoneNotReachedError(AppError):
    def __init__(self, milestone: int, claimed_days: int) -> None:
        super().__init__(
            4004,
            f"Milestone {milestone} not reached: {claimed_days} days claimed this month",
            409,
        )


class AlreadyClaimedError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4005, f"Already claimed: {detail}", 409)


class NoOpenChestError(AppError):
    def __init__(self, streamer_id: str) -> None:
        super().__init__(4006, f"No open chest for streamer {streamer_id}", 409)


class OwnerCannotJoinError(AppError):
    def __init__(self) -> None:
        super().__init__(4007, "Streamer cannot join their own chest", 403)


class ForbiddenError(AppError):
    def __init__(self, detail: str = "Not allowed") -> None:
        super().__init__(4030, detail, 403)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
