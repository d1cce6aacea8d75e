"""
Yes/no vote with encrypted ballots.

Each ballot adds an encrypted one to exactly one of two encrypted tallies, chosen with
:py:meth:`compute.Computation.select`, so nobody learns how an address voted. Only the final
tallies are revealed.
"""

import logging

from fhereveal.contracts.base import Phase, RevealingContract
from fhereveal.types import EncryptedType

logger = logging.getLogger(__name__)

TALLY_TYPE = EncryptedType.EUINT64


class HiddenVoting(RevealingContract):
    """
    Args:
        engine (:py:class:`engine.Engine`): Engine of the host.
        owner: Address allowed to close the vote.
        proposal (str): Text of the proposal.
        duration (float): Voting period, starting now.
    """

    def __init__(self, engine, owner, proposal, duration):
        engine.require(bool(proposal), "Empty proposal")
        engine.require(duration > 0, "Duration must be positive")
        super().__init__(engine, owner)
        self.proposal = proposal
        self.end_time = engine.now() + duration
        self.voters = set()
        self.yes_votes = None
        self.no_votes = None
        self.has_passed = None

        with engine.execution(owner):
            self._yes = engine.fhe.as_encrypted(TALLY_TYPE, 0)
            self._no = engine.fhe.as_encrypted(TALLY_TYPE, 0)
            engine.grant_self(self._yes)
            engine.grant_self(self._no)

    @property
    def voter_count(self):
        return len(self.voters)

    def has_voted(self, party):
        return party in self.voters

    def vote(self, sender, encrypted_input, index=0):
        """
        Cast an encrypted ballot: any non-zero ``euint8`` counts as yes.

        Args:
            sender: Voter address.
            encrypted_input (:py:class:`inputs.EncryptedInput`): Encrypted choice.
            index (int): Position of the choice in the input batch.
        """
        with self.engine.execution(sender):
            self.engine.require(
                self.phase is Phase.OPEN and self.engine.now() < self.end_time,
                "Voting not active",
            )
            self.engine.require(not self.has_voted(sender), "Already voted")

            choice = self.engine.from_external(encrypted_input, index)
            self.engine.require(
                choice.type is EncryptedType.EUINT8, "Ballot must be an euint8"
            )

            fhe = self.engine.fhe
            is_yes = fhe.ne(choice, 0)
            yes_increment = fhe.cast(is_yes, TALLY_TYPE)
            no_increment = fhe.cast(fhe.not_(is_yes), TALLY_TYPE)
            yes = fhe.add(self._yes, yes_increment)
            no = fhe.add(self._no, no_increment)
            self.engine.grant_self(yes)
            self.engine.grant_self(no)

            self._assign("_yes", yes)
            self._assign("_no", no)
            self.voters.add(sender)
            self.engine.journal.record(lambda: self.voters.discard(sender))
        logger.info("Ballot %d cast", len(self.voters))

    def close_voting(self, sender):
        """
        End the vote and request the reveal of ``[yes, no]``. Closing with no ballot is allowed.
        """
        with self.engine.execution(sender):
            self._require_owner(sender)
            self.engine.require(
                self.engine.now() >= self.end_time, "Voting not yet ended"
            )
            self._require_phase(Phase.OPEN, message="Voting already closed")
            self._transition(Phase.COMPUTING)
            return self._begin_reveal(
                [self._yes, self._no], context={"voters": len(self.voters)}
            )

    def reveal_results(self, clear_values, proof):
        with self.engine.execution():
            return self._complete_reveal(clear_values, proof, "Voting not closed")

    def _apply_reveal(self, result):
        yes, no = result.plaintexts
        self._assign("yes_votes", yes)
        self._assign("no_votes", no)
        self._assign("has_passed", yes > no)
        logger.info("Proposal %r: %d yes, %d no", self.proposal, yes, no)
        return True
