"""
Escrow of an encrypted amount between a buyer and a seller, with an arbiter for disputes.

The agreed amount stays encrypted. Funding compares it with the public deposit without branching:
an insufficient deposit locks nothing and is entirely returned as change. Every way out of the
escrow (release, refund, dispute resolution) reveals the amounts to pay and records who receives
each of them; :py:meth:`EncryptedEscrow.settle` then pays them exactly once.
"""

import enum
import logging

from fhereveal.contracts.base import Ledger, Phase, RevealingContract
from fhereveal.exceptions import RequirementError
from fhereveal.types import EncryptedType

logger = logging.getLogger(__name__)

AMOUNT_TYPE = EncryptedType.EUINT64
WIDE_TYPE = EncryptedType.EUINT128
MAX_FEE_PERCENT = 10


class EscrowState(enum.Enum):
    CREATED = "created"
    FUNDED = "funded"
    DISPUTED = "disputed"
    SETTLING = "settling"
    SETTLED = "settled"


class EscrowDeal(RevealingContract):
    """
    One escrow between a buyer and a seller.

    Args:
        escrow (:py:class:`EncryptedEscrow`): The escrow service holding the deal.
        escrow_id (int): Identifier in the service.
        buyer: Buyer address, owner of the deal.
        seller: Seller address.
        amount: Handle to the agreed ``euint64`` amount.
        deadline (float): Time after which the buyer may ask for a refund.
    """

    def __init__(self, escrow, escrow_id, buyer, seller, amount, deadline):
        super().__init__(escrow.engine, buyer)
        self.escrow = escrow
        self.escrow_id = escrow_id
        self.seller = seller
        self.deadline = deadline
        self.state = EscrowState.CREATED
        self.deposited_amount = 0
        self.payees = ()
        self.payouts = ()
        self.encrypted_amount = amount
        self.encrypted_locked = None
        self.encrypted_change = None
        self.encrypted_deposit = None

    @property
    def buyer(self):
        return self.owner

    def fund(self, deposit):
        fhe = self.engine.fhe
        self._assign("deposited_amount", deposit)
        self._assign("encrypted_deposit", fhe.as_encrypted(AMOUNT_TYPE, deposit))
        covered = fhe.ge(self.encrypted_deposit, self.encrypted_amount)
        zero = fhe.as_encrypted(AMOUNT_TYPE, 0)
        locked = fhe.select(covered, self.encrypted_amount, zero)
        self._assign("encrypted_locked", locked)
        self._assign("encrypted_change", fhe.sub(self.encrypted_deposit, locked))
        for handle in (self.encrypted_deposit, locked, self.encrypted_change):
            self.engine.grant_self(handle)
            self.engine.grant_permanent(handle, self.buyer)
        self._assign("state", EscrowState.FUNDED)

    def dispute(self):
        self._assign("state", EscrowState.DISPUTED)

    def reveal_payouts(self, handles, payees):
        """Request the reveal of the amounts to pay, ``payees[i]`` receiving ``handles[i]``."""
        self._transition(Phase.COMPUTING)
        for handle in handles:
            self.engine.grant_self(handle)
        self._assign("payees", tuple(payees))
        self._assign("state", EscrowState.SETTLING)
        return self._begin_reveal(handles, context={"escrow_id": self.escrow_id})

    def settle(self, clear_values, proof):
        return self._complete_reveal(clear_values, proof, "Nothing to settle")

    def _apply_reveal(self, result):
        payouts = tuple(zip(self.payees, result.plaintexts))
        for payee, amount in payouts:
            if amount:
                self.escrow.ledger.pay(payee, amount)
        self._assign("payouts", payouts)
        self._assign("state", EscrowState.SETTLED)
        logger.info("Escrow %d settled: %s", self.escrow_id, payouts)
        return True


class EncryptedEscrow:
    """
    Escrow service.

    Args:
        engine (:py:class:`engine.Engine`): Engine of the host.
        arbiter: Address resolving disputes.
        fee_percent (int): Arbiter fee on disputed amounts, at most 10.
    """

    def __init__(self, engine, arbiter, fee_percent):
        engine.require(0 <= fee_percent <= MAX_FEE_PERCENT, "Fee too high")
        self.engine = engine
        self.arbiter = arbiter
        self.fee_percent = fee_percent
        self.ledger = Ledger(engine.journal)
        self.deals = []

    @property
    def escrow_count(self):
        return len(self.deals)

    def deal(self, escrow_id):
        if not isinstance(escrow_id, int) or not 0 <= escrow_id < len(self.deals):
            raise RequirementError("Invalid escrow")
        return self.deals[escrow_id]

    def is_deadline_passed(self, escrow_id):
        return self.engine.now() >= self.deal(escrow_id).deadline

    def create_escrow(self, sender, seller, encrypted_input, deadline, index=0):
        """
        Open an escrow for an encrypted amount.

        Args:
            sender: Buyer address.
            seller: Seller address.
            encrypted_input (:py:class:`inputs.EncryptedInput`): Encrypted ``euint64`` amount.
            deadline (float): Refund deadline.
            index (int): Position of the amount in the input batch.

        Returns:
            int: The escrow identifier.
        """
        with self.engine.execution(sender):
            self.engine.require(bool(seller), "Invalid seller")
            self.engine.require(seller != sender, "Buyer cannot be seller")
            self.engine.require(deadline > self.engine.now(), "Deadline must be in future")

            amount = self.engine.from_external(encrypted_input, index)
            self.engine.require(
                amount.type is AMOUNT_TYPE, "Amount must be an euint64"
            )
            self.engine.grant_self(amount)
            self.engine.grant_permanent(amount, sender)
            self.engine.grant_permanent(amount, seller)

            escrow_id = len(self.deals)
            self.deals.append(
                EscrowDeal(self, escrow_id, sender, seller, amount, deadline)
            )
            self.engine.journal.record(self.deals.pop)
        logger.info("Escrow %d created between %s and %s", escrow_id, sender, seller)
        return escrow_id

    def fund(self, sender, escrow_id, deposit):
        """
        Deposit funds. Whether they cover the encrypted amount stays confidential.
        """
        with self.engine.execution(sender):
            deal = self.deal(escrow_id)
            self.engine.require(sender == deal.buyer, "Only buyer can fund")
            self.engine.require(deal.state is EscrowState.CREATED, "Invalid state")
            self.engine.require(deposit > 0, "Deposit must be > 0")
            self.engine.require(
                deposit <= AMOUNT_TYPE.max_value, "Deposit too large"
            )
            deal.fund(deposit)

    def release(self, sender, escrow_id):
        """Buyer approves: the locked amount goes to the seller, the change back to the buyer."""
        with self.engine.execution(sender):
            deal = self.deal(escrow_id)
            self.engine.require(sender == deal.buyer, "Only buyer can release")
            self.engine.require(deal.state is EscrowState.FUNDED, "Invalid state")
            return deal.reveal_payouts(
                [deal.encrypted_locked, deal.encrypted_change],
                [deal.seller, deal.buyer],
            )

    def request_refund(self, sender, escrow_id):
        """After the deadline, the buyer takes the whole deposit back."""
        with self.engine.execution(sender):
            deal = self.deal(escrow_id)
            self.engine.require(sender == deal.buyer, "Only buyer can refund")
            self.engine.require(deal.state is EscrowState.FUNDED, "Invalid state")
            self.engine.require(
                self.engine.now() >= deal.deadline, "Deadline not passed"
            )
            return deal.reveal_payouts([deal.encrypted_deposit], [deal.buyer])

    def raise_dispute(self, sender, escrow_id):
        with self.engine.execution(sender):
            deal = self.deal(escrow_id)
            self.engine.require(
                sender in (deal.buyer, deal.seller), "Only parties can dispute"
            )
            self.engine.require(deal.state is EscrowState.FUNDED, "Invalid state")
            deal.dispute()
        logger.info("Escrow %d disputed by %s", escrow_id, sender)

    def resolve_dispute(self, sender, escrow_id, favor_buyer):
        """
        Arbiter decision. The winning party gets the locked amount minus the arbiter fee.
        """
        with self.engine.execution(sender):
            deal = self.deal(escrow_id)
            self.engine.require(sender == self.arbiter, "Only arbiter")
            self.engine.require(deal.state is EscrowState.DISPUTED, "Not disputed")

            fhe = self.engine.fhe
            # The product needs more than 64 bits for amounts above 2**64 / fee.
            wide = fhe.mul(
                fhe.cast(deal.encrypted_locked, WIDE_TYPE), self.fee_percent
            )
            fee = fhe.cast(fhe.div(wide, 100), AMOUNT_TYPE)
            net = fhe.sub(deal.encrypted_locked, fee)
            winner = deal.buyer if favor_buyer else deal.seller
            return deal.reveal_payouts(
                [net, fee, deal.encrypted_change], [winner, self.arbiter, deal.buyer]
            )

    def settle(self, escrow_id, clear_values, proof):
        """
        Finalize the reveal of an escrow and apply its payouts, once.
        """
        with self.engine.execution():
            deal = self.deal(escrow_id)
            return deal.settle(clear_values, proof)
