"""
Custom Exception Classes for the Bonding Curve System

This module defines the exception taxonomy raised by the curve math, the
reserve/supply ledger, the issuance policy and the outer surfaces (MCP tools
and the HTTP API).

Exception Categories:
- Setup Errors: issuance configuration rejected at instantiation time
- Curve Errors: ill-formed parameters or magnitudes outside the fixed-point domain
- User Input Errors: deposits, burns and payments that can be retried with corrected input
- Capability Errors: failures reported by the delegated token ledger or reserve bank
- Internal Errors: invariant violations that indicate a bug

Every error carries a stable ``kind`` (rendered to callers as the structured
failure type) and a ``retryable`` flag. Any of them aborts the whole operation;
the ledger never commits partial state when one is raised.

Usage:
    Surfaces catch ``BondingCurveError`` and render ``{"kind": ..., "message": ...}``.
    Anything else is treated as an unexpected server error.
"""


class BondingCurveError(Exception):
    """Base class for every failure the bonding curve core reports to callers."""

    kind = "BondingCurveError"
    retryable = False

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": str(self), "retryable": self.retryable}


# --- Setup ---

class InvalidIssuanceConfig(BondingCurveError):
    """Raised when an instantiate message is rejected by the issuance policy."""

    kind = "InvalidIssuanceConfig"


# --- Curve evaluation ---

class InvalidCurveParameters(BondingCurveError):
    """Raised when a curve parameter is non-positive, non-finite or too precise."""

    kind = "InvalidCurveParameters"


class ArithmeticOverflow(BondingCurveError):
    """Raised when a value leaves the representable fixed-point domain."""

    kind = "ArithmeticOverflow"


# --- User input ---

class DepositTooSmall(BondingCurveError):
    """Raised when a deposit is zero or does not fund a single supply unit."""

    kind = "DepositTooSmall"
    retryable = True


class InsufficientSupply(BondingCurveError):
    """Raised when a sell asks to burn more than the total supply."""

    kind = "InsufficientSupply"
    retryable = True


class InsufficientBalance(BondingCurveError):
    """Raised when the seller holds fewer supply tokens than requested."""

    kind = "InsufficientBalance"
    retryable = True


class InvalidAmount(BondingCurveError):
    """Raised when an amount is not a positive integer within range."""

    kind = "InvalidAmount"
    retryable = True


class PaymentError(BondingCurveError):
    """Raised when attached funds are in the wrong denomination or not accepted."""

    kind = "PaymentError"
    retryable = True


# --- Capabilities ---

class TokenLedgerError(BondingCurveError):
    """Raised by the supply-token ledger when a mint or burn is refused."""

    kind = "TokenLedgerError"


class SettlementError(BondingCurveError):
    """Raised when the reserve bank cannot deliver a payout."""

    kind = "SettlementError"


# --- Internal ---

class InternalInvariantViolation(BondingCurveError):
    """Raised when a post-state breaks the reserve/supply invariant. Always a bug."""

    kind = "InternalInvariantViolation"


# --- Registry / surfaces ---

class InstanceNotFoundError(BondingCurveError):
    """Raised when no bonding curve instance exists under the requested id."""

    kind = "InstanceNotFound"


class RateLimitExceededError(BondingCurveError):
    """Raised when the rate limit is exceeded for a sender."""

    kind = "RateLimitExceeded"
    retryable = True


class ConfigurationError(Exception):
    """Raised when there are configuration-related errors."""
