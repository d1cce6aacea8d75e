"""
Sealed-bid auction.

Bids stay encrypted until the auction ends. The highest bid and the index of its bidder are then
computed with a branchless fold and publicly revealed. A winning bid below the minimum is rejected
after the reveal, and the auction ends without a winner.
"""

import logging

from fhereveal.contracts.base import Ledger, Phase, RevealingContract
from fhereveal.types import EncryptedType

logger = logging.getLogger(__name__)


class BlindAuction(RevealingContract):
    """
    Args:
        engine (:py:class:`engine.Engine`): Engine of the auction host.
        owner: Address allowed to end the auction.
        end_time (float): Time after which bidding closes.
        minimum_bid (int): Smallest acceptable winning bid.
    """

    def __init__(self, engine, owner, end_time, minimum_bid):
        engine.require(end_time > engine.now(), "End time must be in future")
        super().__init__(engine, owner)
        self.end_time = end_time
        self.minimum_bid = minimum_bid
        self.bidders = []
        self._bids = []
        self.winner = None
        self.winning_amount = None
        self.ledger = Ledger(engine.journal)
        self._winning_bid = None
        self._winner_index = None

    def has_bid(self, party):
        return party in self.bidders

    @property
    def bidder_count(self):
        return len(self.bidders)

    def bid(self, sender, encrypted_input, index=0):
        """
        Place a sealed bid.

        Args:
            sender: Bidder address.
            encrypted_input (:py:class:`inputs.EncryptedInput`): Encrypted ``euint64`` amount.
            index (int): Position of the amount in the input batch.

        Returns:
            :py:class:`handles.Handle`: Handle to the bid, readable by the bidder.
        """
        with self.engine.execution(sender):
            self._require_phase(Phase.OPEN, message="Auction not open")
            self.engine.require(self.engine.now() < self.end_time, "Auction has ended")
            self.engine.require(not self.has_bid(sender), "Already placed a bid")

            amount = self.engine.from_external(encrypted_input, index)
            self.engine.require(
                amount.type is EncryptedType.EUINT64, "Bid must be an euint64"
            )
            self.engine.grant_self(amount)
            self.engine.grant_permanent(amount, sender)

            self._append("bidders", sender)
            self._append("_bids", amount)
        logger.info("Bid %d placed by %s", len(self.bidders), sender)
        return amount

    def end_auction(self, sender):
        """
        Close bidding, compute the highest bid and request its reveal.

        Returns:
            :py:class:`registry.RevealKey`: Key over ``[winning bid, winner index]``.
        """
        with self.engine.execution(sender):
            self._require_owner(sender)
            self.engine.require(
                self.engine.now() >= self.end_time, "Auction not yet ended"
            )
            self._require_phase(Phase.OPEN, message="Auction not open")
            self.engine.require(self._bids, "No bids")
            self._transition(Phase.COMPUTING)

            fhe = self.engine.fhe
            winning_bid, winner_index = fhe.argmax(self._bids, EncryptedType.EUINT32)
            for handle in (winning_bid, winner_index):
                self.engine.grant_self(handle)
                self.engine.grant_permanent(handle, self.owner)
            self._assign("_winning_bid", winning_bid)
            self._assign("_winner_index", winner_index)

            return self._begin_reveal(
                [winning_bid, winner_index], context={"bidders": len(self.bidders)}
            )

    @property
    def encrypted_winning_bid(self):
        return self._winning_bid

    @property
    def encrypted_winner_index(self):
        return self._winner_index

    def reveal_winner(self, clear_values, proof):
        """
        Finalize the reveal with the decryption service's output.

        Args:
            clear_values: ``[winning bid, winner index]`` or their word encoding.
            proof: Decryption proof.
        """
        with self.engine.execution():
            return self._complete_reveal(clear_values, proof, "Auction not ended")

    def _apply_reveal(self, result):
        amount, index = result.plaintexts
        if amount < self.minimum_bid:
            logger.info("Winning bid %d below minimum %d", amount, self.minimum_bid)
            return False
        self._assign("winner", self.bidders[index])
        self._assign("winning_amount", amount)
        self.ledger.pay(self.owner, amount)
        logger.info("Auction won by %s with %d", self.winner, amount)
        return True
