"""
Common exception classes.
"""


class RevealEngineError(Exception):
    """Base class of all errors raised by the engine."""


class Unauthorized(RevealEngineError):
    """A party lacks the grant needed for an operation."""


class HostNotAuthorized(Unauthorized):
    """The host engine holds no grant on a handle it tried to use."""


class RequesterNotAuthorized(Unauthorized):
    """An external requester holds no grant on a handle."""


class NotRevealEligible(Unauthorized):
    """Public decryption was asked for a handle never marked for reveal."""


class InvalidOrExpired(RevealEngineError):
    """Unknown, cancelled or already consumed reveal key."""


class AlreadyFinalized(InvalidOrExpired):
    """Replay of a completed reveal."""


class ProofVerificationFailed(RevealEngineError):
    """Decryption proof does not attest the given plaintexts."""


class OrderMismatch(ProofVerificationFailed):
    """Handles were given in another order than at request time."""


class RevealConflictError(RevealEngineError):
    """A reveal key is already in use by another request."""


class UnknownHandleError(RevealEngineError):
    """Handle is not held by the store."""


class TypeMismatchError(RevealEngineError):
    """Operand types do not fit the operation."""


class InvalidOperandError(RevealEngineError):
    """Public operand is out of range or not allowed."""


class InvalidInputProof(RevealEngineError):
    """External encrypted input is not bound to this host and sender."""


class RequirementError(RevealEngineError):
    """A public precondition failed, the execution is aborted."""


class InvalidStateError(RevealEngineError):
    """Contract is not in a phase that allows the call."""


class ConfidentialConditionError(RevealEngineError, TypeError):
    """An encrypted value was used where a public boolean is needed."""
