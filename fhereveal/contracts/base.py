"""
Common machinery of contracts built on the reveal engine.

A contract is a thin state machine over the shared engine::

    OPEN -> COMPUTING -> AWAITING_REVEAL -> FINALIZED
                                         -> REJECTED

``FINALIZED`` and ``REJECTED`` are terminal. A rejected decryption proof keeps the contract in
``AWAITING_REVEAL`` so that it can be retried; ``REJECTED`` is a domain decision taken after a
successful reveal.
"""

import enum
import logging
from collections import Counter

from fhereveal.exceptions import InvalidStateError
from fhereveal.kms import decode_clear_values

logger = logging.getLogger(__name__)


class Phase(enum.IntEnum):
    OPEN = 0
    COMPUTING = 1
    AWAITING_REVEAL = 2
    FINALIZED = 3
    REJECTED = 4

    @property
    def is_terminal(self):
        return self in (Phase.FINALIZED, Phase.REJECTED)


_TRANSITIONS = {
    Phase.OPEN: {Phase.COMPUTING},
    Phase.COMPUTING: {Phase.AWAITING_REVEAL},
    Phase.AWAITING_REVEAL: {Phase.FINALIZED, Phase.REJECTED},
    Phase.FINALIZED: set(),
    Phase.REJECTED: set(),
}


class Ledger:
    """
    Public payout book.

    Payouts are journaled, so an aborted execution pays nobody.

    Args:
        journal: Optional :py:class:`journal.Journal`.
    """

    def __init__(self, journal=None):
        self._journal = journal
        self.balances = Counter()
        self.payouts = []

    def pay(self, party, amount):
        if amount < 0:
            raise ValueError("Negative payout")
        self.balances[party] += amount
        self.payouts.append((party, amount))

        def undo():
            self.balances[party] -= amount
            self.payouts.pop()

        if self._journal is not None:
            self._journal.record(undo)

    def balance_of(self, party):
        return self.balances[party]

    @property
    def payout_count(self):
        return len(self.payouts)


class JournaledState:
    """
    Mixin for objects whose public attributes must follow engine rollbacks.
    """

    def _assign(self, name, value):
        previous = getattr(self, name)
        setattr(self, name, value)
        self.engine.journal.record(lambda: setattr(self, name, previous))

    def _append(self, name, value):
        items = getattr(self, name)
        items.append(value)
        self.engine.journal.record(items.pop)


class RevealingContract(JournaledState):
    """
    Base class of contracts with a single confidential computation and reveal.

    Subclasses call :py:meth:`_begin_reveal` once their confidential result is computed, and
    implement :py:meth:`_apply_reveal` to apply the domain effects of the verified plaintexts.

    Args:
        engine (:py:class:`engine.Engine`): Engine of the host.
        owner: Owner address.
    """

    def __init__(self, engine, owner):
        self.engine = engine
        self.owner = owner
        self.phase = Phase.OPEN
        self.reveal_key = None
        self.reveal_result = None

    @property
    def address(self):
        return self.engine.address

    def _require_owner(self, sender, message="Only owner can call"):
        self.engine.require(sender == self.owner, message)

    def _require_phase(self, *phases, message=None):
        if self.phase not in phases:
            raise InvalidStateError(
                message
                or "Invalid state: {} (expected {})".format(
                    self.phase.name, ", ".join(p.name for p in phases)
                )
            )

    def _transition(self, phase):
        if phase not in _TRANSITIONS[self.phase]:
            raise InvalidStateError(
                "Cannot move from {} to {}".format(self.phase.name, phase.name)
            )
        logger.info("%s: %s -> %s", type(self).__name__, self.phase.name, phase.name)
        self._assign("phase", phase)

    def _begin_reveal(self, handles, context=None):
        """Register the pending reveal of the confidential result."""
        key = self.engine.request_reveal(handles, receiver=self.address, context=context)
        self._assign("reveal_key", key)
        self._transition(Phase.AWAITING_REVEAL)
        return key

    def _complete_reveal(self, clear_values, proof, message="Reveal not requested"):
        """
        Finalize the pending reveal and apply its domain effects.

        Args:
            clear_values: Clear values in request order, or their word encoding (bytes).
            proof: Decryption proof.
        """
        self.engine.require(self.reveal_key is not None, message)
        if isinstance(clear_values, bytes):
            clear_values = decode_clear_values(
                clear_values, [h.type for h in self.reveal_key.handles]
            )

        result = self.engine.finalize(self.reveal_key, clear_values, proof)
        accepted = self._apply_reveal(result)
        self._assign("reveal_result", result)
        self._transition(Phase.FINALIZED if accepted else Phase.REJECTED)
        return result

    def _apply_reveal(self, result):
        """
        Apply the effects of a verified reveal.

        Returns:
            bool: False to reject the outcome.
        """
        raise NotImplementedError
