"""
Joint public decryption of several values:
two players roll an encrypted 8-sided die, and both rolls are revealed together with one proof.

The decryption proof binds the handles in the order they were requested, so the host must finalize
with that same order.
"""

from fhereveal import EncryptedType, make_mock_environment
from fhereveal.exceptions import OrderMismatch

env = make_mock_environment()
engine = env.engine
fhe = engine.fhe

# Roll the dice: random values in [0, 8), shifted to [1, 8].
with engine.execution("owner"):
    roll_a = fhe.add(fhe.random(EncryptedType.EUINT8, upper_bound=8), 1)
    roll_b = fhe.add(fhe.random(EncryptedType.EUINT8, upper_bound=8), 1)

    # Keep the rolls beyond this execution and mark them for public decryption.
    engine.grant_self(roll_a)
    engine.grant_self(roll_b)
    key = engine.request_reveal([roll_a, roll_b], context={"game": 1})

# Off-line, the threshold-decryption service decrypts both rolls and signs them jointly.
decrypted = env.public_decrypt(key.handles)
value_a, value_b = decrypted.clear_values
assert 1 <= value_a <= 8 and 1 <= value_b <= 8

# Finalizing with the handles swapped does not verify.
try:
    engine.finalize([roll_b, roll_a], [value_a, value_b], decrypted.decryption_proof)
except OrderMismatch:
    pass
else:
    raise AssertionError("Swapped handles must be rejected")

result = engine.finalize(key, decrypted.clear_values, decrypted.decryption_proof)
assert result.plaintexts == (value_a, value_b)
assert result.context == {"game": 1}

if value_a > value_b:
    winner = "player A"
elif value_b > value_a:
    winner = "player B"
else:
    winner = "nobody"
print("Rolls: {} and {}, {} wins".format(value_a, value_b, winner))
