"""
Per-handle access control lists.

Grants come in two scopes. Permanent grants stay until explicitly revoked or until the handle is
garbage collected. Transient grants live for one execution and are dropped at its boundary,
whatever its outcome.

>>> from fhereveal.handles import Handle
>>> from fhereveal.types import EncryptedType
>>> acl = ACL()
>>> h = Handle(bytes(32), EncryptedType.EUINT8)
>>> acl.grant_permanent(h, "alice")
>>> acl.is_authorized(h, "alice")
True
>>> acl.is_authorized(h, "bob")
False
"""

import enum
import logging
from collections import defaultdict

logger = logging.getLogger(__name__)


class Scope(enum.Enum):
    PERMANENT = "permanent"
    TRANSIENT = "transient"


class ACL:
    """
    Grant table of one host.

    Only mutates through its methods; every permanent mutation is journaled so an aborted
    execution leaves no trace.

    Args:
        journal: Optional :py:class:`journal.Journal` recording undo steps.
    """

    def __init__(self, journal=None):
        self._journal = journal
        self._permanent = defaultdict(set)
        self._transient = defaultdict(set)
        self._reveal_eligible = set()

    def _record(self, undo):
        if self._journal is not None:
            self._journal.record(undo)

    def grant_permanent(self, handle, grantee):
        """Grant ``grantee`` durable use of ``handle``. Idempotent."""
        grantees = self._permanent[handle.id]
        if grantee in grantees:
            return
        grantees.add(grantee)
        self._record(lambda: self._permanent[handle.id].discard(grantee))
        logger.debug("Permanent grant on %r to %s", handle, grantee)

    def grant_transient(self, handle, grantee):
        """Grant ``grantee`` use of ``handle`` until the end of the current execution."""
        self._transient[handle.id].add(grantee)

    def revoke(self, handle, grantee):
        """
        Remove a permanent grant.

        Returns:
            bool: Whether a grant was removed.
        """
        grantees = self._permanent.get(handle.id)
        if not grantees or grantee not in grantees:
            return False
        grantees.remove(grantee)
        self._record(lambda: self._permanent[handle.id].add(grantee))
        logger.debug("Revoked grant on %r from %s", handle, grantee)
        return True

    def is_permanently_authorized(self, handle, party):
        return party in self._permanent.get(handle.id, ())

    def is_transiently_authorized(self, handle, party):
        return party in self._transient.get(handle.id, ())

    def is_authorized(self, handle, party):
        return self.is_permanently_authorized(
            handle, party
        ) or self.is_transiently_authorized(handle, party)

    def scope_of(self, handle, party):
        """The widest scope ``party`` holds on ``handle``, or None."""
        if self.is_permanently_authorized(handle, party):
            return Scope.PERMANENT
        if self.is_transiently_authorized(handle, party):
            return Scope.TRANSIENT
        return None

    def grantees(self, handle):
        """All parties currently authorized on ``handle``."""
        return set(self._permanent.get(handle.id, ())) | set(
            self._transient.get(handle.id, ())
        )

    def mark_reveal_eligible(self, handle):
        if handle.id in self._reveal_eligible:
            return
        self._reveal_eligible.add(handle.id)
        self._record(lambda: self._reveal_eligible.discard(handle.id))

    def is_reveal_eligible(self, handle):
        return handle.id in self._reveal_eligible

    def clear_transient(self):
        """Drop every transient grant. Called at each execution boundary."""
        self._transient.clear()

    def forget(self, handle):
        """Remove every grant and flag attached to a garbage-collected handle."""
        permanent = self._permanent.pop(handle.id, set())
        eligible = handle.id in self._reveal_eligible
        self._reveal_eligible.discard(handle.id)
        self._transient.pop(handle.id, None)

        def undo():
            self._permanent[handle.id] |= permanent
            if eligible:
                self._reveal_eligible.add(handle.id)

        self._record(undo)
