r"""
Schnorr signatures, the non-interactive proof of knowledge of a discrete logarithm bound to a
message.

A signature on :math:`m` under the public key :math:`Y = x G` is a transcript of

.. math::
    PK\{ (x): Y = x G \}

made non-interactive with the Fiat-Shamir heuristic, the message being hashed into the challenge.
Only the challenge and the response are kept, since the commitment can be recomputed.

>>> sk = SigningKey.generate()
>>> sig = sk.sign(b"message")
>>> sk.verifying_key.verify(b"message", sig)
True
>>> sk.verifying_key.verify(b"other message", sig)
False
"""

from hashlib import sha256

import attr
from petlib.bn import Bn
from petlib.ec import EcPt
from petlib.pack import encode

from fhereveal.consts import DEFAULT_GROUP, SIGNATURE_TAG


@attr.s
class SchnorrSignature:
    """
    Non-interactive transcript: challenge and response.
    """

    challenge = attr.ib()
    response = attr.ib()

    def to_list(self):
        return [self.challenge.binary(), self.response.binary()]

    @classmethod
    def from_list(cls, data):
        challenge, response = data
        return cls(Bn.from_binary(challenge), Bn.from_binary(response))


def build_fiat_shamir_challenge(*args, message=b""):
    """
    Generate a Fiat-Shamir challenge.

    Args:
        args: Items to hash (public key, commitment).
        message (bytes): Message the transcript signs.
    """
    prehash = sha256(SIGNATURE_TAG)
    for elem in args:
        if isinstance(elem, bytes):
            encoded = elem
        elif isinstance(elem, str):
            encoded = elem.encode()
        else:
            encoded = encode(elem)
        prehash.update(encoded)
    prehash.update(message)
    return Bn.from_hex(prehash.hexdigest())


class VerifyingKey:
    """
    Public key :math:`Y = x G`.

    Args:
        point: The curve point :math:`Y`.
        group: Group of the point.
    """

    def __init__(self, point, group=None):
        if group is None:
            group = DEFAULT_GROUP
        self.group = group
        self.point = point

    def verify(self, message, signature):
        """
        Verify a signature on ``message``.

        Recomputes the commitment :math:`R' = s G - c Y` and compares the challenge derived from
        it with the one in the transcript.

        Returns:
            bool: True if the signature is valid.
        """
        if not isinstance(signature, SchnorrSignature):
            return False
        g = self.group.generator()
        commitment = signature.response * g - signature.challenge * self.point
        challenge_prime = build_fiat_shamir_challenge(
            self.point, commitment, message=message
        )
        return signature.challenge == challenge_prime

    def export(self):
        return self.point.export()

    @classmethod
    def from_bytes(cls, data, group=None):
        if group is None:
            group = DEFAULT_GROUP
        return cls(EcPt.from_binary(data, group), group)

    def __eq__(self, other):
        return isinstance(other, VerifyingKey) and self.point == other.point

    def __hash__(self):
        return hash(self.export())

    def __repr__(self):
        return "VerifyingKey({}..)".format(self.export().hex()[:16])


class SigningKey:
    """
    Secret key :math:`x`.

    Args:
        secret: The secret scalar.
        group: Group in which the key lives.
    """

    def __init__(self, secret, group=None):
        if group is None:
            group = DEFAULT_GROUP
        self.group = group
        self.secret = secret
        self.verifying_key = VerifyingKey(secret * group.generator(), group)

    @classmethod
    def generate(cls, group=None):
        if group is None:
            group = DEFAULT_GROUP
        return cls(group.order().random(), group)

    def sign(self, message):
        """
        Sign a message.

        Args:
            message (bytes): The message.

        Returns:
            :py:class:`SchnorrSignature`
        """
        order = self.group.order()
        randomizer = order.random()
        commitment = randomizer * self.group.generator()
        challenge = build_fiat_shamir_challenge(
            self.verifying_key.point, commitment, message=message
        )
        response = randomizer.mod_add(challenge.mod_mul(self.secret, order), order)
        return SchnorrSignature(challenge=challenge, response=response)
