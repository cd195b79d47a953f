"""Service error hierarchy for publishing and minting.

This module defines the exception hierarchy for service-level errors:
- PublishError: Caller-facing failures of the publish operation, each with a kind
- TransientExternalError: Mint transaction not final yet (not counted as an attempt)
- TerminalExternalError: Chain revert or permanent adapter failure (counted)
- BlockchainError: Adapter faults talking to the chain (counted)
- StoreUnavailableError: Infrastructure fault on the outbox store itself
"""


class ServiceError(Exception):
    """Base exception for all service errors."""

    pass


# Publish errors
class PublishError(ServiceError):
    """Base exception for publish failures.

    The kind attribute is the stable, caller-facing classification.
    """

    kind = "error"


class ValidationError(PublishError):
    """Malformed or incomplete input."""

    kind = "validation"


class AuthorizationError(PublishError):
    """Base exception for authorization failures."""

    kind = "authorization"


class UnauthorizedError(AuthorizationError):
    """Caller is not authenticated."""

    kind = "unauthorized"


class ForbiddenError(AuthorizationError):
    """Caller is authenticated but does not own the work."""

    kind = "forbidden"


class ConflictError(PublishError):
    """Work is not in the expected state (or a concurrent publisher won)."""

    kind = "conflict"


class NotFoundError(PublishError):
    """Work does not exist."""

    kind = "not_found"


# External (blockchain) outcome errors
class TransientExternalError(ServiceError):
    """External operation has not reached a final state yet.

    Excluded from outbox retry accounting.
    """

    pass


class TransactionPendingError(TransientExternalError):
    """Mint transaction has no receipt yet."""

    pass


class TerminalExternalError(ServiceError):
    """External operation failed for good.

    Included in outbox retry accounting.
    """

    pass


class TransactionRevertError(TerminalExternalError):
    """Transaction reverted on-chain."""

    pass


class MissingTokenIdError(TerminalExternalError):
    """Successful receipt without a decodable Transfer log."""

    pass


class AdapterConfigurationError(TerminalExternalError):
    """Blockchain adapter is misconfigured (endpoint, key or contract address)."""

    pass


# Blockchain adapter faults
class BlockchainError(ServiceError):
    """Base exception for blockchain adapter faults."""

    pass


class MintSubmissionError(BlockchainError):
    """Mint transaction could not be built, signed or sent."""

    pass


class TransactionLookupError(BlockchainError):
    """Transaction receipt lookup failed."""

    pass


# Saga / outbox errors
class MintSagaError(ServiceError):
    """Mint intent record is inconsistent (e.g. submitted without a tx hash)."""

    pass


class UnknownEventTypeError(ServiceError):
    """No payload schema or handler registered for an outbox event type."""

    pass


class StoreUnavailableError(ServiceError):
    """Outbox store could not be reached."""

    pass
