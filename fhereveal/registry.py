"""
Registry of confidential results awaiting external decryption.

A record is keyed by the ordered list of handles whose plaintexts are jointly requested. The order
is part of the key: the decryption proof binds the handles in that order.
"""

import enum
import logging

import attr

from fhereveal.exceptions import InvalidOrExpired, RevealConflictError
from fhereveal.handles import Handle

logger = logging.getLogger(__name__)


class RevealStatus(enum.Enum):
    PENDING = "pending"
    FINALIZED = "finalized"
    INVALID = "invalid"


def _to_handle_tuple(handles):
    handles = tuple(handles)
    for h in handles:
        if not isinstance(h, Handle):
            raise TypeError("Expected handles, got {!r}".format(h))
    return handles


@attr.s(frozen=True)
class RevealKey:
    """
    Ordered handle list identifying a reveal request.

    >>> from fhereveal.types import EncryptedType
    >>> h1 = Handle(b"\\x01" * 32, EncryptedType.EUINT8)
    >>> h2 = Handle(b"\\x02" * 32, EncryptedType.EUINT8)
    >>> RevealKey.of([h1, h2]) == RevealKey.of([h2, h1])
    False
    """

    handles = attr.ib(converter=_to_handle_tuple)

    @handles.validator
    def _check_handles(self, attribute, value):
        if not value:
            raise ValueError("A reveal key needs at least one handle")
        if len({h.id for h in value}) != len(value):
            raise ValueError("A reveal key cannot repeat a handle")

    @classmethod
    def of(cls, handles):
        """Build a key from a key or an iterable of handles."""
        if isinstance(handles, cls):
            return handles
        return cls(handles)

    @property
    def ids(self):
        return tuple(h.id for h in self.handles)

    @property
    def handle_set(self):
        return frozenset(self.ids)

    def __len__(self):
        return len(self.handles)


@attr.s
class PendingReveal:
    """
    A reveal request and its progress.

    Args:
        key (:py:class:`RevealKey`): Handles whose plaintexts are requested, in order.
        receiver: Identity the result is meant for.
        context: Opaque data handed back at finalization.
        status (:py:class:`RevealStatus`): Progress of the request.
        requested_at (float): Time of the request.
        finalized_at (float): Time of finalization, if any.
    """

    key = attr.ib()
    receiver = attr.ib()
    context = attr.ib(default=None)
    status = attr.ib(default=RevealStatus.PENDING)
    requested_at = attr.ib(default=None)
    finalized_at = attr.ib(default=None)

    @property
    def is_pending(self):
        return self.status is RevealStatus.PENDING


class PendingRevealRegistry:
    """
    Pending-reveal records of one host.

    Args:
        journal: Optional :py:class:`journal.Journal` recording undo steps.
    """

    def __init__(self, journal=None):
        self._journal = journal
        self._records = {}
        self._by_handle_set = {}

    def _record(self, undo):
        if self._journal is not None:
            self._journal.record(undo)

    def request(self, key, receiver, context=None, now=None):
        """
        Register a pending reveal.

        Asking again for a still-pending key on behalf of the same receiver returns the key
        unchanged.

        Raises:
            RevealConflictError: The key is finalized, cancelled, or pending for another receiver.
        """
        key = RevealKey.of(key)
        existing = self._records.get(key.ids)
        if existing is not None:
            if existing.is_pending and existing.receiver == receiver:
                logger.debug("Reveal for %r already pending", key)
                return key
            raise RevealConflictError(
                "Key already used ({}, receiver {})".format(
                    existing.status.value, existing.receiver
                )
            )

        record = PendingReveal(
            key=key, receiver=receiver, context=context, requested_at=now
        )
        self._records[key.ids] = record
        self._by_handle_set.setdefault(key.handle_set, set()).add(key.ids)

        def undo():
            del self._records[key.ids]
            self._by_handle_set[key.handle_set].discard(key.ids)

        self._record(undo)
        logger.info("Reveal requested for %d handle(s), receiver %s", len(key), receiver)
        return key

    def lookup(self, key):
        """
        Return a detached copy of the record for ``key``, or None.
        """
        record = self._records.get(RevealKey.of(key).ids)
        if record is None:
            return None
        return attr.evolve(record)

    def find_reordering(self, key):
        """
        Find a record over the same handles as ``key`` but in another order.
        """
        key = RevealKey.of(key)
        for ids in self._by_handle_set.get(key.handle_set, ()):
            if ids != key.ids:
                return attr.evolve(self._records[ids])
        return None

    def _set_status(self, key, status, now=None):
        record = self._records.get(key.ids)
        if record is None:
            raise InvalidOrExpired("Unknown reveal key")
        if not record.is_pending:
            raise InvalidOrExpired("Reveal is {}".format(record.status.value))

        previous = (record.status, record.finalized_at)
        record.status = status
        if status is RevealStatus.FINALIZED:
            record.finalized_at = now

        def undo():
            record.status, record.finalized_at = previous

        self._record(undo)
        return record

    def mark_finalized(self, key, now=None):
        """Move a record from PENDING to FINALIZED. Happens at most once per key."""
        record = self._set_status(RevealKey.of(key), RevealStatus.FINALIZED, now)
        logger.info("Reveal finalized for receiver %s", record.receiver)
        return attr.evolve(record)

    def cancel(self, key):
        """Invalidate a pending record. Later finalization fails."""
        record = self._set_status(RevealKey.of(key), RevealStatus.INVALID)
        logger.info("Reveal cancelled for receiver %s", record.receiver)
        return attr.evolve(record)

    def expire(self, older_than):
        """
        Cancel every pending record requested before ``older_than``.

        Returns:
            list: Keys of the expired records.
        """
        expired = []
        for record in list(self._records.values()):
            if (
                record.is_pending
                and record.requested_at is not None
                and record.requested_at < older_than
            ):
                self._set_status(record.key, RevealStatus.INVALID)
                expired.append(record.key)
        if expired:
            logger.warning("Expired %d stale reveal request(s)", len(expired))
        return expired

    def pending(self):
        return [attr.evolve(r) for r in self._records.values() if r.is_pending]

    def __len__(self):
        return len(self._records)
