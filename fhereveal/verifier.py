"""
Second phase of a reveal: checking the external decryption proof and consuming the pending record
exactly once.
"""

import logging

import attr

from fhereveal.exceptions import (
    AlreadyFinalized,
    InvalidOrExpired,
    OrderMismatch,
    ProofVerificationFailed,
)
from fhereveal.registry import RevealKey, RevealStatus

logger = logging.getLogger(__name__)


def _typed(handle, value):
    """Clear value as a bool for ``ebool`` handles and as an int otherwise."""
    if handle.type.is_bool:
        return bool(value)
    return int(value)


@attr.s(frozen=True)
class RevealResult:
    """
    Outcome of a successful finalization.

    Args:
        key (:py:class:`registry.RevealKey`): The consumed key.
        receiver: Receiver recorded at request time.
        context: Context recorded at request time.
        plaintexts (tuple): Verified clear values, in key order.
        status (:py:class:`registry.RevealStatus`): Always ``FINALIZED``.
    """

    key = attr.ib()
    receiver = attr.ib()
    context = attr.ib()
    plaintexts = attr.ib(converter=tuple)
    status = attr.ib(default=RevealStatus.FINALIZED)


class RevealVerifier:
    """
    Finalizes pending reveals against decryption proofs.

    Args:
        registry (:py:class:`registry.PendingRevealRegistry`): Records to consume.
        kms_verifier: Object with a ``verify(handles, plaintexts, proof) -> bool`` method.
    """

    def __init__(self, registry, kms_verifier):
        self.registry = registry
        self.kms_verifier = kms_verifier

    def _check_record(self, key):
        record = self.registry.lookup(key)
        if record is None:
            reordered = self.registry.find_reordering(key)
            if reordered is not None and reordered.is_pending:
                raise OrderMismatch(
                    "Handles given in another order than at request time"
                )
            raise InvalidOrExpired("No reveal was requested for these handles")
        if record.status is RevealStatus.FINALIZED:
            raise AlreadyFinalized("Reveal was already finalized")
        if record.status is not RevealStatus.PENDING:
            raise InvalidOrExpired("Reveal is {}".format(record.status.value))
        return record

    def finalize(self, key, plaintexts, proof, now=None):
        """
        Verify a decryption proof and consume the matching pending record.

        The checks run before any mutation: a rejected proof leaves the record pending, and it may
        be retried with a corrected proof.

        Args:
            key: :py:class:`registry.RevealKey` or handles in request order.
            plaintexts: Claimed clear values, in key order.
            proof: Decryption proof from the threshold-decryption service.
            now (float): Current time.

        Returns:
            :py:class:`RevealResult`

        Raises:
            InvalidOrExpired: Unknown or cancelled key.
            AlreadyFinalized: The key was already consumed.
            OrderMismatch: Same handles, other order than requested.
            ProofVerificationFailed: The proof does not attest these plaintexts.
        """
        key = RevealKey.of(key)
        plaintexts = list(plaintexts)
        record = self._check_record(key)

        if len(plaintexts) != len(key):
            raise ProofVerificationFailed(
                "Expected {} plaintexts, got {}".format(len(key), len(plaintexts))
            )
        if not self.kms_verifier.verify(key.handles, plaintexts, proof):
            logger.warning("Decryption proof rejected for receiver %s", record.receiver)
            raise ProofVerificationFailed("Decryption proof is not valid")

        record = self.registry.mark_finalized(key, now)
        return RevealResult(
            key=key,
            receiver=record.receiver,
            context=record.context,
            plaintexts=[_typed(h, v) for h, v in zip(key.handles, plaintexts)],
        )
