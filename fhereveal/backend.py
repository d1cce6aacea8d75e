"""
Interface to the external encrypted-arithmetic engine, and a mock implementation.

The engine never implements homomorphic arithmetic itself. It talks to an
:py:class:`ArithmeticBackend`, which turns ciphertexts into new ciphertexts. :py:class:`MockBackend`
keeps the clear value inside an opaque ciphertext object, the same way development runtimes for
encrypted smart contracts do, and is what the tests and examples run against.
"""

import abc
import hashlib
import logging
import random
import secrets

import attr

from fhereveal.types import EncryptedType

logger = logging.getLogger(__name__)


class ArithmeticBackend(metaclass=abc.ABCMeta):
    """
    Abstract encrypted-arithmetic engine.

    Treated as a pure, always-available function of its inputs.
    """

    @abc.abstractmethod
    def encrypt(self, enc_type, value):
        """Encrypt a public constant into a fresh ciphertext."""
        pass

    @abc.abstractmethod
    def evaluate(self, op, result_type, operands, params):
        """
        Evaluate an operation.

        Args:
            op (str): Operation tag, see :py:data:`ops.OPERATIONS`.
            result_type: Type of the result, already inferred by the caller.
            operands: Ciphertexts and public ints, in call order.
            params (dict): Extra public parameters.

        Returns:
            A new ciphertext.
        """
        pass

    @abc.abstractmethod
    def type_of(self, ciphertext):
        """Declared type of a ciphertext."""
        pass

    @abc.abstractmethod
    def digest(self, ciphertext):
        """Binding digest of a ciphertext, used in input proofs."""
        pass


@attr.s(frozen=True, repr=False, eq=False)
class MockCiphertext:
    """
    Ciphertext of the mock backend.

    The payload is only read back by :py:meth:`MockBackend.decrypt`.
    """

    type = attr.ib()
    nonce = attr.ib()
    _payload = attr.ib()

    def __repr__(self):
        return "MockCiphertext({}, nonce={}..)".format(
            self.type.label, self.nonce.hex()[:8]
        )


def _rotate_left(value, amount, bits):
    amount %= bits
    mask = (1 << bits) - 1
    return ((value << amount) | (value >> (bits - amount))) & mask


class MockBackend(ArithmeticBackend):
    """
    Mock encrypted-arithmetic engine with modular (wrapping) semantics.

    >>> backend = MockBackend()
    >>> a = backend.encrypt(EncryptedType.EUINT8, 250)
    >>> backend.decrypt(backend.evaluate("add", EncryptedType.EUINT8, [a, 10], {}))
    4

    Args:
        seed: Optional seed for the randomness of ``rand``.
    """

    def __init__(self, seed=None):
        if seed is None:
            self._random = random.SystemRandom()
        else:
            self._random = random.Random(seed)

    def _seal(self, enc_type, value):
        return MockCiphertext(enc_type, secrets.token_bytes(16), enc_type.wrap(value))

    def _plain(self, operand):
        if isinstance(operand, MockCiphertext):
            return operand._payload
        return operand

    def encrypt(self, enc_type, value):
        return self._seal(enc_type, enc_type.check_value(value))

    def decrypt(self, ciphertext):
        """Clear value of a ciphertext. Only the mock decryption service calls this."""
        if not isinstance(ciphertext, MockCiphertext):
            raise TypeError("Not a mock ciphertext: {!r}".format(ciphertext))
        return ciphertext._payload

    def type_of(self, ciphertext):
        if not isinstance(ciphertext, MockCiphertext):
            raise TypeError("Not a mock ciphertext: {!r}".format(ciphertext))
        return ciphertext.type

    def digest(self, ciphertext):
        return hashlib.sha256(
            bytes([ciphertext.type.code]) + ciphertext.nonce
        ).digest()

    def evaluate(self, op, result_type, operands, params):
        values = [self._plain(o) for o in operands]
        bits = result_type.bits
        if operands and isinstance(operands[0], MockCiphertext):
            bits = operands[0].type.bits

        if op == "add":
            result = values[0] + values[1]
        elif op == "sub":
            result = values[0] - values[1]
        elif op == "mul":
            result = values[0] * values[1]
        elif op == "div":
            result = values[0] // values[1]
        elif op == "rem":
            result = values[0] % values[1]
        elif op == "min":
            result = min(values[0], values[1])
        elif op == "max":
            result = max(values[0], values[1])
        elif op == "neg":
            result = -values[0]
        elif op == "not":
            result = ~values[0] if not result_type.is_bool else not values[0]
        elif op == "and":
            result = int(values[0]) & int(values[1])
        elif op == "or":
            result = int(values[0]) | int(values[1])
        elif op == "xor":
            result = int(values[0]) ^ int(values[1])
        elif op == "eq":
            result = values[0] == values[1]
        elif op == "ne":
            result = values[0] != values[1]
        elif op == "gt":
            result = values[0] > values[1]
        elif op == "ge":
            result = values[0] >= values[1]
        elif op == "lt":
            result = values[0] < values[1]
        elif op == "le":
            result = values[0] <= values[1]
        elif op == "shl":
            result = values[0] << (values[1] % bits)
        elif op == "shr":
            result = values[0] >> (values[1] % bits)
        elif op == "rotl":
            result = _rotate_left(values[0], values[1], bits)
        elif op == "rotr":
            result = _rotate_left(values[0], bits - values[1] % bits, bits)
        elif op == "select":
            result = values[1] if values[0] else values[2]
        elif op == "cast":
            if result_type.is_bool:
                result = values[0] != 0
            else:
                result = int(values[0])
        elif op == "rand":
            result = self._random.getrandbits(result_type.bits)
            if params.get("upper_bound") is not None:
                result %= params["upper_bound"]
        else:
            raise ValueError("Unsupported operation: {}".format(op))

        return self._seal(result_type, result)
