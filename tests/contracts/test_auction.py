import pytest

from fhereveal.contracts import BlindAuction, Phase
from fhereveal.exceptions import (
    AlreadyFinalized,
    ProofVerificationFailed,
    RequirementError,
)

DURATION = 3600


@pytest.fixture
def auction(engine, clock):
    return BlindAuction(engine, "owner", clock() + DURATION, minimum_bid=20)


@pytest.fixture
def place_bid(env, auction):
    def place(bidder, amount):
        enc = env.encrypted_input(bidder).add64(amount).encrypt()
        return auction.bid(bidder, enc)

    return place


def test_rejects_end_time_in_past(engine, clock):
    with pytest.raises(RequirementError, match="End time must be in future"):
        BlindAuction(engine, "owner", clock() - 1, minimum_bid=0)


def test_bids_are_tracked(auction, place_bid, env):
    handle = place_bid("alice", 30)
    assert auction.has_bid("alice")
    assert not auction.has_bid("bob")
    assert auction.bidder_count == 1
    assert env.user_decrypt(handle, "alice") == 30


def test_double_bid(auction, place_bid):
    place_bid("alice", 30)
    with pytest.raises(RequirementError, match="Already placed a bid"):
        place_bid("alice", 50)
    assert auction.bidder_count == 1


def test_bid_after_end(auction, place_bid, clock):
    clock.advance(DURATION)
    with pytest.raises(RequirementError, match="Auction has ended"):
        place_bid("alice", 30)


def test_bid_must_be_euint64(auction, env, engine):
    enc = env.encrypted_input("alice").add8(30).encrypt()
    minted = len(engine.store)
    with pytest.raises(RequirementError):
        auction.bid("alice", enc)
    assert auction.bidder_count == 0
    assert len(engine.store) == minted


def test_end_auction_checks(auction, place_bid, clock):
    place_bid("alice", 30)
    with pytest.raises(RequirementError, match="Auction not yet ended"):
        auction.end_auction("owner")
    clock.advance(DURATION)
    with pytest.raises(RequirementError, match="Only owner can call"):
        auction.end_auction("alice")
    assert auction.phase is Phase.OPEN


def test_end_auction_without_bids(auction, clock):
    clock.advance(DURATION)
    with pytest.raises(RequirementError, match="No bids"):
        auction.end_auction("owner")
    assert auction.phase is Phase.OPEN


def test_reveal_before_end(auction):
    with pytest.raises(RequirementError, match="Auction not ended"):
        auction.reveal_winner([0, 0], b"")


def test_winner(auction, place_bid, clock, decrypt):
    for bidder, amount in [("alice", 30), ("bob", 45), ("carol", 12), ("dave", 45)]:
        place_bid(bidder, amount)
    clock.advance(DURATION)

    key = auction.end_auction("owner")
    assert auction.phase is Phase.AWAITING_REVEAL
    assert auction.reveal_key == key

    values, proof = decrypt(key)
    assert values == [45, 1]
    auction.reveal_winner(values, proof)

    assert auction.phase is Phase.FINALIZED
    assert auction.winner == "bob"
    assert auction.winning_amount == 45
    assert auction.ledger.balance_of("owner") == 45


def test_reveal_is_applied_once(auction, place_bid, clock, decrypt):
    place_bid("alice", 30)
    clock.advance(DURATION)
    values, proof = decrypt(auction.end_auction("owner"))
    auction.reveal_winner(values, proof)
    with pytest.raises(AlreadyFinalized):
        auction.reveal_winner(values, proof)
    assert auction.ledger.payout_count == 1


def test_reveal_from_word_encoding(auction, place_bid, clock, env):
    place_bid("alice", 30)
    clock.advance(DURATION)
    key = auction.end_auction("owner")
    decrypted = env.public_decrypt(key.handles)
    auction.reveal_winner(decrypted.abi_encoded_clear_values, decrypted.decryption_proof)
    assert auction.winner == "alice"


def test_below_minimum_is_rejected(auction, place_bid, clock, decrypt):
    place_bid("alice", 10)
    place_bid("bob", 15)
    clock.advance(DURATION)
    values, proof = decrypt(auction.end_auction("owner"))
    auction.reveal_winner(values, proof)

    assert auction.phase is Phase.REJECTED
    assert auction.winner is None
    assert auction.ledger.payout_count == 0
    assert auction.reveal_result.plaintexts == (15, 1)


def test_bad_proof_can_be_retried(auction, place_bid, clock, decrypt):
    place_bid("alice", 30)
    place_bid("bob", 45)
    clock.advance(DURATION)
    values, proof = decrypt(auction.end_auction("owner"))

    with pytest.raises(ProofVerificationFailed):
        auction.reveal_winner([30, 0], proof)
    assert auction.phase is Phase.AWAITING_REVEAL
    assert auction.winner is None

    auction.reveal_winner(values, proof)
    assert auction.winner == "bob"


def test_owner_can_read_encrypted_result(auction, place_bid, clock, env):
    place_bid("alice", 30)
    clock.advance(DURATION)
    auction.end_auction("owner")
    assert env.user_decrypt(auction.encrypted_winning_bid, "owner") == 30
    assert env.user_decrypt(auction.encrypted_winner_index, "owner") == 0
