"""
Typed failures raised by ledger transitions.

Every failure aborts the whole instruction; nothing is retried.
"""


class ValidationError(Exception):
    """Raised when an instruction cannot be applied."""
    message = "Instruction rejected."

    def __init__(self, detail: str = None):
        self.detail = detail
        super().__init__(f"{self.message} {detail}" if detail else self.message)


class InvalidFeeRate(ValidationError):
    message = "Invalid fee rate provided."


class InsufficientVotes(ValidationError):
    message = "Insufficient votes for governance action."


class InvalidDelay(ValidationError):
    message = "Invalid delay for batching orders."


class InsufficientLiquidityForRewards(ValidationError):
    message = "Insufficient liquidity contribution to claim rewards."


class WashTradingAttempt(ValidationError):
    message = "Wash trading detected. Trade between same wallet accounts is not allowed."


class MinimumHoldingPeriodNotMet(ValidationError):
    message = "Minimum holding period has not been met."


class InsufficientCollateral(ValidationError):
    message = "Insufficient collateral for borrowing."


class ArithmeticOverflow(ValidationError):
    message = "Arithmetic overflow."


class ArithmeticUnderflow(ValidationError):
    message = "Arithmetic underflow."


# Envelope and record-store failures

class InvalidInstruction(ValidationError):
    message = "Malformed instruction."


class InvalidSignature(ValidationError):
    message = "Invalid instruction signature."


class AccountNotFound(ValidationError):
    message = "Account does not exist."


class AccountExists(ValidationError):
    message = "Account already exists."


class NotInitialized(ValidationError):
    message = "Protocol state has not been initialized."


class AlreadyInitialized(ValidationError):
    message = "Protocol state is already initialized."
