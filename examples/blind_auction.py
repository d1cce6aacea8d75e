"""
Sealed-bid auction: bids stay encrypted, only the highest one and its bidder are revealed.
"""

from fhereveal import make_mock_environment
from fhereveal.contracts import BlindAuction, Phase


class Clock:
    time = 0

    def __call__(self):
        return self.time


clock = Clock()
env = make_mock_environment(clock=clock)

auction = BlindAuction(env.engine, "auctioneer", end_time=100, minimum_bid=10)

# Each bidder encrypts their amount off-line, bound to the auction host and to themselves.
bids = {}
for bidder, amount in [("alice", 30), ("bob", 45), ("carol", 45)]:
    encrypted_bid = env.encrypted_input(bidder).add64(amount).encrypt()
    bids[bidder] = auction.bid(bidder, encrypted_bid)

# A bidder can decrypt their own bid.
assert env.user_decrypt(bids["alice"], "alice") == 30

clock.time = 100
key = auction.end_auction("auctioneer")
assert auction.phase is Phase.AWAITING_REVEAL

# The decryption service answers asynchronously with the clear values and a proof.
decrypted = env.public_decrypt(key.handles)
auction.reveal_winner(decrypted.abi_encoded_clear_values, decrypted.decryption_proof)

# Bob and Carol tie: the first highest bid wins.
assert auction.phase is Phase.FINALIZED
assert auction.winner == "bob"
assert auction.winning_amount == 45
print("{} wins with {}".format(auction.winner, auction.winning_amount))
