"""
Encrypted inputs submitted by external parties.

A user encrypts values off-line and sends the ciphertexts together with an input proof. The proof
binds the batch to one host and one user, so a ciphertext cannot be replayed by somebody else or
against another host. :py:class:`InputVerifier` mocks the external service issuing these proofs.

>>> from fhereveal.backend import MockBackend
>>> verifier = InputVerifier(MockBackend())
>>> enc = verifier.encrypted_input("host", "alice").add64(500).add_bool(True).encrypt()
>>> len(enc)
2
>>> verifier.verifying_key.verify(input_digest(enc.host, enc.user, enc.digests), enc.input_proof)
True
"""

import logging
from hashlib import sha256

import attr

from fhereveal.consts import INPUT_TAG
from fhereveal.proofs import SigningKey
from fhereveal.types import EncryptedType

logger = logging.getLogger(__name__)


def input_digest(host, user, ciphertext_digests):
    """Digest an input proof signs."""
    prehash = sha256(INPUT_TAG)
    for part in (host, user):
        encoded = part.encode()
        prehash.update(len(encoded).to_bytes(4, "big"))
        prehash.update(encoded)
    for digest in ciphertext_digests:
        prehash.update(digest)
    return prehash.digest()


@attr.s(frozen=True)
class EncryptedInput:
    """
    A batch of ciphertexts with its input proof.

    Args:
        ciphertexts (tuple): Backend ciphertexts.
        digests (tuple): Backend digests of the ciphertexts.
        input_proof: Signature binding the batch to ``host`` and ``user``.
        host (str): Address of the host the input is meant for.
        user (str): Address of the submitting user.
    """

    ciphertexts = attr.ib(converter=tuple)
    digests = attr.ib(converter=tuple)
    input_proof = attr.ib()
    host = attr.ib()
    user = attr.ib()

    def __len__(self):
        return len(self.ciphertexts)


class InputBuilder:
    """
    Collects clear values to encrypt for one host and user.

    Args:
        verifier (:py:class:`InputVerifier`): Service encrypting and signing the batch.
        host (str): Target host address.
        user (str): User address.
    """

    def __init__(self, verifier, host, user):
        self.verifier = verifier
        self.host = host
        self.user = user
        self._values = []

    def add(self, enc_type, value):
        self._values.append((enc_type, enc_type.check_value(value)))
        return self

    def add_bool(self, value):
        return self.add(EncryptedType.EBOOL, value)

    def add8(self, value):
        return self.add(EncryptedType.EUINT8, value)

    def add16(self, value):
        return self.add(EncryptedType.EUINT16, value)

    def add32(self, value):
        return self.add(EncryptedType.EUINT32, value)

    def add64(self, value):
        return self.add(EncryptedType.EUINT64, value)

    def add128(self, value):
        return self.add(EncryptedType.EUINT128, value)

    def add256(self, value):
        return self.add(EncryptedType.EUINT256, value)

    def add_address(self, value):
        """Add an address given as an int or a ``0x``-prefixed hex string."""
        if isinstance(value, str):
            value = int(value, 16)
        return self.add(EncryptedType.EADDRESS, value)

    def encrypt(self):
        return self.verifier.seal(self.host, self.user, self._values)


class InputVerifier:
    """
    Mock of the service that encrypts user inputs and certifies them.

    Args:
        backend: Backend used to encrypt.
        signing_key (:py:class:`proofs.SigningKey`): Certification key, generated if omitted.
    """

    def __init__(self, backend, signing_key=None):
        self.backend = backend
        if signing_key is None:
            signing_key = SigningKey.generate()
        self.signing_key = signing_key

    @property
    def verifying_key(self):
        return self.signing_key.verifying_key

    def encrypted_input(self, host, user):
        return InputBuilder(self, host, user)

    def seal(self, host, user, typed_values):
        ciphertexts = [self.backend.encrypt(t, v) for t, v in typed_values]
        digests = [self.backend.digest(c) for c in ciphertexts]
        proof = self.signing_key.sign(input_digest(host, user, digests))
        logger.debug("Sealed %d input(s) for %s on %s", len(ciphertexts), user, host)
        return EncryptedInput(ciphertexts, digests, proof, host, user)
