"""
Threshold-decryption service interface: clear value encoding, decryption proofs, and the proof
verifier the engine relies on.

The service itself is external. :py:class:`ThresholdDecryptionService` is a mock of it made of
``num_nodes`` signing nodes: each node decrypts independently and signs a digest binding the handles,
in order, to the clear values. A proof is valid when at least ``threshold`` distinct nodes signed.
"""

import logging
from hashlib import sha256

import attr
import msgpack

from fhereveal.consts import (
    CLEAR_VALUE_WORD_SIZE,
    DECRYPTION_TAG,
    DEFAULT_KMS_NODES,
    DEFAULT_KMS_THRESHOLD,
    PROOF_FORMAT_VERSION,
)
from fhereveal.exceptions import (
    HostNotAuthorized,
    NotRevealEligible,
    RequesterNotAuthorized,
)
from fhereveal.handles import Handle
from fhereveal.proofs import SchnorrSignature, SigningKey

logger = logging.getLogger(__name__)


def encode_clear_values(values):
    """
    Encode clear values as consecutive 32-byte big-endian words.

    >>> encode_clear_values([45, True]).hex()[-2:]
    '01'
    >>> len(encode_clear_values([45, 1]))
    64

    Raises:
        ValueError: If a value is not a non-negative integer fitting in a word.
    """
    words = []
    for value in values:
        if isinstance(value, bool):
            value = int(value)
        if (
            not isinstance(value, int)
            or value < 0
            or value.bit_length() > 8 * CLEAR_VALUE_WORD_SIZE
        ):
            raise ValueError("Cannot encode clear value {!r}".format(value))
        words.append(value.to_bytes(CLEAR_VALUE_WORD_SIZE, "big"))
    return b"".join(words)


def decode_clear_values(data, types=None):
    """
    Decode the output of :py:func:`encode_clear_values`.

    Args:
        data (bytes): Encoded words.
        types: Optional :py:class:`types.EncryptedType` per word; ``ebool`` words decode to bools.
    """
    if len(data) % CLEAR_VALUE_WORD_SIZE:
        raise ValueError("Encoded clear values are not word aligned")
    values = [
        int.from_bytes(data[i : i + CLEAR_VALUE_WORD_SIZE], "big")
        for i in range(0, len(data), CLEAR_VALUE_WORD_SIZE)
    ]
    if types is not None:
        values = [bool(v) if t.is_bool else v for v, t in zip(values, types)]
    return values


def decryption_digest(handles, values):
    """
    Digest binding the ordered handles to their clear values.
    """
    prehash = sha256(DECRYPTION_TAG)
    prehash.update(len(handles).to_bytes(4, "big"))
    for handle in handles:
        prehash.update(handle.id)
    prehash.update(encode_clear_values(values))
    return prehash.digest()


@attr.s
class DecryptionProof:
    """
    Signatures of decryption nodes over a decryption digest.

    Args:
        signatures: List of ``(node index, SchnorrSignature)`` pairs.
    """

    signatures = attr.ib(factory=list)

    def to_bytes(self):
        return msgpack.packb(
            [PROOF_FORMAT_VERSION, [[i, *s.to_list()] for i, s in self.signatures]],
            use_bin_type=True,
        )

    @classmethod
    def from_bytes(cls, data):
        """
        Raises:
            ValueError: If the data is not a well-formed proof.
        """
        try:
            version, entries = msgpack.unpackb(data, raw=False)
            if version != PROOF_FORMAT_VERSION:
                raise ValueError("Unsupported proof version {}".format(version))
            signatures = [
                (int(index), SchnorrSignature.from_list([c, r]))
                for index, c, r in entries
            ]
        except (TypeError, ValueError) as e:
            raise ValueError("Malformed decryption proof: {}".format(e))
        return cls(signatures)


class KMSVerifier:
    """
    The ``verify(handles, plaintexts, proof)`` primitive.

    Args:
        verifying_keys: Public keys of the decryption nodes, indexed by node.
        threshold (int): Number of distinct node signatures needed.
    """

    def __init__(self, verifying_keys, threshold):
        if threshold < 1 or threshold > len(verifying_keys):
            raise ValueError("Threshold must be between 1 and the number of nodes")
        self.verifying_keys = list(verifying_keys)
        self.threshold = threshold

    def verify(self, handles, plaintexts, proof):
        """
        Check that ``proof`` attests the decryption of ``handles``, in this order, to
        ``plaintexts``.

        Args:
            handles: Handles in request order.
            plaintexts: Claimed clear values, same order.
            proof: Serialized :py:class:`DecryptionProof` (bytes) or the object itself.

        Returns:
            bool: True if enough distinct nodes signed.
        """
        if len(handles) != len(plaintexts):
            return False
        try:
            if not isinstance(proof, DecryptionProof):
                proof = DecryptionProof.from_bytes(proof)
            message = decryption_digest(handles, plaintexts)
        except ValueError as e:
            logger.warning("Rejecting decryption proof: %s", e)
            return False

        valid_nodes = set()
        for index, signature in proof.signatures:
            if index in valid_nodes or not 0 <= index < len(self.verifying_keys):
                continue
            if self.verifying_keys[index].verify(message, signature):
                valid_nodes.add(index)
        return len(valid_nodes) >= self.threshold


@attr.s
class PublicDecryptResult:
    """
    Output of a public decryption.

    Args:
        clear_values: Decrypted values, in request order.
        abi_encoded_clear_values (bytes): Word encoding of the values.
        decryption_proof (bytes): Serialized :py:class:`DecryptionProof`.
    """

    clear_values = attr.ib()
    abi_encoded_clear_values = attr.ib()
    decryption_proof = attr.ib()


class ThresholdDecryptionService:
    """
    Mock of the external threshold-decryption service.

    Args:
        backend: Backend able to decrypt its ciphertexts (:py:class:`backend.MockBackend`).
        num_nodes (int): Number of decryption nodes.
        threshold (int): Signatures needed for a valid proof.
        group: Group of the node keys.
    """

    def __init__(
        self,
        backend,
        num_nodes=DEFAULT_KMS_NODES,
        threshold=DEFAULT_KMS_THRESHOLD,
        group=None,
    ):
        self.backend = backend
        self.nodes = [SigningKey.generate(group) for _ in range(num_nodes)]
        self.verifier = KMSVerifier([n.verifying_key for n in self.nodes], threshold)

    @property
    def threshold(self):
        return self.verifier.threshold

    def _clear_value(self, engine, handle):
        return self.backend.decrypt(engine.store.ciphertext(handle))

    def sign(self, handles, values, signers=None):
        """
        Have the decryption nodes sign a decryption.

        Args:
            handles: Handles in order.
            values: Clear values in order.
            signers: Indices of the responding nodes; all of them by default.
        """
        if signers is None:
            signers = range(len(self.nodes))
        message = decryption_digest(handles, values)
        return DecryptionProof([(i, self.nodes[i].sign(message)) for i in signers])

    def public_decrypt(self, engine, handles, signers=None):
        """
        Decrypt handles marked for reveal by ``engine``.

        Args:
            engine (:py:class:`engine.Engine`): Host holding the handles.
            handles: Handles in request order.
            signers: Indices of the responding nodes.

        Returns:
            :py:class:`PublicDecryptResult`

        Raises:
            NotRevealEligible: A handle was never marked for reveal.
        """
        handles = list(handles)
        for handle in handles:
            if not isinstance(handle, Handle):
                raise TypeError("Expected a Handle, got {!r}".format(handle))
            if not engine.acl.is_reveal_eligible(handle):
                raise NotRevealEligible("{!r} is not marked for reveal".format(handle))

        values = [self._clear_value(engine, h) for h in handles]
        proof = self.sign(handles, values, signers)
        logger.info("Publicly decrypted %d handle(s)", len(handles))
        return PublicDecryptResult(
            clear_values=values,
            abi_encoded_clear_values=encode_clear_values(values),
            decryption_proof=proof.to_bytes(),
        )

    def user_decrypt(self, engine, handle, user):
        """
        Decrypt a handle for a user holding a grant on it.

        Both the host and the user must be authorized.

        Raises:
            HostNotAuthorized: The host holds no grant on the handle.
            RequesterNotAuthorized: The user holds no grant on the handle.
        """
        if not engine.acl.is_authorized(handle, engine.address):
            raise HostNotAuthorized(
                "Host {} holds no grant on {!r}".format(engine.address, handle)
            )
        if not engine.acl.is_authorized(handle, user):
            raise RequesterNotAuthorized(
                "{} holds no grant on {!r}".format(user, handle)
            )
        return self._clear_value(engine, handle)
