"""Error taxonomy for the valuation pipeline."""


class ValuationError(Exception):
    """Base class for every error raised by this package."""


class TransportError(ValuationError, RuntimeError):
    """Fetching from the chain node failed (network, RPC error, rate limit)."""


class NotFoundError(TransportError):
    """The node answered, but the requested transaction or account does not exist."""


class DecodeError(ValuationError, ValueError):
    """Bytes do not match the expected state-account layout, or a payload is malformed."""


class TransactionDecodeError(DecodeError):
    """The transaction itself could not be decoded (malformed or unsupported version)."""


class ComputationError(ValuationError, ArithmeticError):
    """An arithmetic precondition was violated (underflow, overflow, zero supply)."""
