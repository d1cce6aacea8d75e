"""
Lottery with encrypted ticket numbers.

Players pick a secret number per ticket. At the draw, the host samples an encrypted random winning
number and computes, without branching, the index of the first ticket holding it. Both are
revealed together. When no ticket matches, the pool is carried to the next round.
"""

import logging

from fhereveal.contracts.base import Ledger, Phase, RevealingContract
from fhereveal.types import EncryptedType

logger = logging.getLogger(__name__)

TICKET_TYPE = EncryptedType.EUINT8


class EncryptedLottery(RevealingContract):
    """
    Args:
        engine (:py:class:`engine.Engine`): Engine of the host.
        owner: Address allowed to start the drawing.
        ticket_price (int): Minimum payment per ticket.
        duration (float): Ticket sale period, starting now.
        number_range (int): Winning numbers are drawn in ``[0, number_range)``, a power of two.
        round_number (int): Round counter.
        carried_pool (int): Pool carried over from a round without winner.
        ledger (:py:class:`base.Ledger`): Payout book shared across rounds.
    """

    def __init__(
        self,
        engine,
        owner,
        ticket_price,
        duration,
        number_range=16,
        round_number=1,
        carried_pool=0,
        ledger=None,
    ):
        engine.require(ticket_price > 0, "Ticket price must be > 0")
        engine.require(duration > 0, "Duration must be > 0")
        engine.require(
            0 < number_range <= TICKET_TYPE.max_value + 1
            and not number_range & (number_range - 1),
            "Invalid number range",
        )
        super().__init__(engine, owner)
        self.ticket_price = ticket_price
        self.end_time = engine.now() + duration
        self.number_range = number_range
        self.round_number = round_number
        self.prize_pool = carried_pool
        self.ledger = ledger if ledger is not None else Ledger(engine.journal)

        self.tickets = []
        self.winner = None
        self.winning_number = None
        self.unclaimed_pool = 0
        self._winning_number = None
        self._winner_index = None

    @property
    def ticket_count(self):
        return len(self.tickets)

    def player_tickets(self, player):
        """Handles of the tickets bought by ``player``."""
        return [handle for owner, handle in self.tickets if owner == player]

    def time_remaining(self):
        return max(0, self.end_time - self.engine.now())

    def buy_ticket(self, sender, encrypted_input, payment, index=0):
        """
        Buy a ticket. A player may buy several.

        Args:
            sender: Player address.
            encrypted_input (:py:class:`inputs.EncryptedInput`): Encrypted ``euint8`` number.
            payment (int): Amount paid, added to the pool.
            index (int): Position of the number in the input batch.
        """
        with self.engine.execution(sender):
            self._require_phase(Phase.OPEN, message="Lottery not open")
            self.engine.require(self.engine.now() < self.end_time, "Lottery ended")
            self.engine.require(payment >= self.ticket_price, "Insufficient payment")

            number = self.engine.from_external(encrypted_input, index)
            self.engine.require(
                number.type is TICKET_TYPE, "Ticket number must be an euint8"
            )
            self.engine.grant_self(number)
            self.engine.grant_permanent(number, sender)

            self._append("tickets", (sender, number))
            self._assign("prize_pool", self.prize_pool + payment)
        logger.info("Round %d: ticket %d bought", self.round_number, len(self.tickets))
        return number

    def start_drawing(self, sender):
        """
        Draw the encrypted winning number and request the reveal of ``[number, ticket index]``.

        The index equals the number of tickets when nobody picked the winning number.
        """
        with self.engine.execution(sender):
            self._require_owner(sender, "Only owner")
            self.engine.require(self.engine.now() >= self.end_time, "Lottery not ended")
            self._require_phase(Phase.OPEN, message="Lottery not open")
            self.engine.require(self.tickets, "No tickets sold")
            self._transition(Phase.COMPUTING)

            fhe = self.engine.fhe
            number = fhe.random(TICKET_TYPE, upper_bound=self.number_range)
            index = fhe.first_match_index(
                [handle for _, handle in self.tickets], number
            )
            for handle in (number, index):
                self.engine.grant_self(handle)
            self._assign("_winning_number", number)
            self._assign("_winner_index", index)

            return self._begin_reveal(
                [number, index], context={"round": self.round_number}
            )

    def reveal_draw(self, clear_values, proof):
        with self.engine.execution():
            return self._complete_reveal(clear_values, proof, "Drawing not started")

    def _apply_reveal(self, result):
        number, index = result.plaintexts
        self._assign("winning_number", number)
        if index >= len(self.tickets):
            logger.info(
                "Round %d: no ticket holds %d, carrying %d",
                self.round_number,
                number,
                self.prize_pool,
            )
            self._assign("unclaimed_pool", self.prize_pool)
            self._assign("prize_pool", 0)
            return False

        winner = self.tickets[index][0]
        self._assign("winner", winner)
        self.ledger.pay(winner, self.prize_pool)
        self._assign("prize_pool", 0)
        logger.info("Round %d won by %s", self.round_number, winner)
        return True

    def next_round(self, sender, duration):
        """
        Open the next round once this one is over, carrying any unclaimed pool.

        Returns:
            :py:class:`EncryptedLottery`
        """
        with self.engine.execution(sender):
            self._require_owner(sender, "Only owner")
            self.engine.require(self.phase.is_terminal, "Round not over")
            carried = self.unclaimed_pool
            successor = EncryptedLottery(
                self.engine,
                self.owner,
                self.ticket_price,
                duration,
                number_range=self.number_range,
                round_number=self.round_number + 1,
                carried_pool=carried,
                ledger=self.ledger,
            )
            self._assign("unclaimed_pool", 0)
        return successor
