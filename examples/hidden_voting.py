"""
Yes/no vote where ballots stay encrypted and only the two tallies are revealed.
"""

from fhereveal import EncryptedType, make_mock_environment
from fhereveal.contracts import HiddenVoting
from fhereveal.utils.debug import RevealProtocol


class Clock:
    time = 0

    def __call__(self):
        return self.time


clock = Clock()
env = make_mock_environment(clock=clock)

voting = HiddenVoting(env.engine, "chair", "Extend the opening hours?", duration=60)

for voter, choice in [("alice", 1), ("bob", 0), ("carol", 1)]:
    ballot = env.encrypted_input(voter).add8(choice).encrypt()
    voting.vote(voter, ballot)

clock.time = 60
key = voting.close_voting("chair")

decrypted = env.public_decrypt(key.handles)
voting.reveal_results(decrypted.clear_values, decrypted.decryption_proof)
assert (voting.yes_votes, voting.no_votes) == (2, 1)
assert voting.has_passed

# The same request, decrypt, finalize round trip on plain engine handles.
engine = env.engine
with engine.execution("chair"):
    turnout = engine.fhe.as_encrypted(EncryptedType.EUINT64, voting.voter_count)
    engine.grant_self(turnout)
result = RevealProtocol(engine, env.kms).run([turnout], receiver="chair")
assert result.plaintexts == (3,)
