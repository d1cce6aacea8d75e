"""
Opaque handles to encrypted values and the store holding them.

A handle never exposes the value it denotes. The store maps handle identifiers to backend
ciphertexts and remembers how each handle was derived, but it does not look inside the
ciphertexts either: all arithmetic is delegated to the :py:class:`backend.ArithmeticBackend`.

>>> from fhereveal.backend import MockBackend
>>> from fhereveal.types import EncryptedType
>>> store = HandleStore(MockBackend())
>>> h = store.create(EncryptedType.EUINT8, 42)
>>> store.exists(h)
True
>>> len(h.id)
32
"""

import hashlib
import logging
import struct

import attr

from fhereveal.consts import HANDLE_TAG, HANDLE_HASH_LENGTH, HANDLE_VERSION
from fhereveal.exceptions import (
    ConfidentialConditionError,
    TypeMismatchError,
    UnknownHandleError,
)
from fhereveal.types import EncryptedType

logger = logging.getLogger(__name__)


@attr.s(frozen=True, repr=False, order=False)
class Handle:
    """
    Opaque reference to one encrypted value.

    Handles compare equal only to themselves; there is no ordering, and truth-testing raises so
    that plain Python control flow cannot depend on a confidential value.

    Args:
        id (bytes): 32-byte identifier.
        type (:py:class:`types.EncryptedType`): Declared type of the denoted value.
    """

    id = attr.ib(validator=attr.validators.instance_of(bytes))
    type = attr.ib(validator=attr.validators.instance_of(EncryptedType))

    def __bool__(self):
        raise ConfidentialConditionError(
            "Cannot branch on an encrypted value, use select() instead"
        )

    @property
    def hex(self):
        return self.id.hex()

    def __repr__(self):
        return "Handle({}.., {})".format(self.id.hex()[:12], self.type.label)


@attr.s(frozen=True)
class Derivation:
    """
    How a handle came to be.

    Args:
        op: Operation tag, ``"trivial"`` and ``"external"`` for created handles.
        inputs: Input handle identifiers and public scalars, in call order.
        params: Extra public parameters of the operation.
    """

    op = attr.ib()
    inputs = attr.ib(converter=tuple, default=())
    params = attr.ib(factory=dict, hash=False)


@attr.s
class _Entry:
    ciphertext = attr.ib()
    derivation = attr.ib()


class HandleStore:
    """
    Arena of handles owned by one host.

    Every handle returned by :py:meth:`create` or :py:meth:`derive` is freshly minted: the
    identifier hashes the host address together with a mint counter, so no call ever returns a
    handle that already exists.

    Args:
        backend: The encrypted-arithmetic backend.
        owner (str): Address of the owning host, mixed into identifiers.
        journal: Optional :py:class:`journal.Journal` recording undo steps.
    """

    def __init__(self, backend, owner="host", journal=None):
        self.backend = backend
        self.owner = owner
        self._journal = journal
        self._entries = {}
        self._counter = 0

    def _record(self, undo):
        if self._journal is not None:
            self._journal.record(undo)

    def _mint(self, enc_type, ciphertext, derivation):
        self._counter += 1
        digest = hashlib.sha256(
            HANDLE_TAG
            + self.owner.encode()
            + struct.pack(">Q", self._counter)
            + derivation.op.encode()
        ).digest()
        handle_id = digest[:HANDLE_HASH_LENGTH] + bytes([enc_type.code, HANDLE_VERSION])

        self._entries[handle_id] = _Entry(ciphertext, derivation)
        self._record(lambda: self._entries.pop(handle_id, None))

        handle = Handle(handle_id, enc_type)
        logger.debug("Minted %r via %s", handle, derivation.op)
        return handle

    def create(self, enc_type, seed_or_ciphertext):
        """
        Mint a handle for a public constant or an existing backend ciphertext.

        Args:
            enc_type (:py:class:`types.EncryptedType`): Declared type.
            seed_or_ciphertext: A public ``int``/``bool`` to encrypt trivially, or a ciphertext
                produced by the backend.

        Raises:
            ValueError: If a public constant does not fit the type.
            TypeMismatchError: If a ciphertext has another type.
        """
        if isinstance(seed_or_ciphertext, (bool, int)):
            value = enc_type.check_value(seed_or_ciphertext)
            ciphertext = self.backend.encrypt(enc_type, value)
            derivation = Derivation("trivial", (value,))
        else:
            ciphertext = seed_or_ciphertext
            actual_type = self.backend.type_of(ciphertext)
            if actual_type is not enc_type:
                raise TypeMismatchError(
                    "Ciphertext is {}, declared {}".format(
                        actual_type.label, enc_type.label
                    )
                )
            derivation = Derivation("external", (self.backend.digest(ciphertext),))
        return self._mint(enc_type, ciphertext, derivation)

    def derive(self, op, operands, result_type, params=None):
        """
        Evaluate an operation through the backend and mint a handle for its result.

        Operand typing is the caller's job, see :py:func:`ops.infer_result_type`.

        Args:
            op (str): Operation tag.
            operands: Handles and public ints, in call order.
            result_type: Type of the result.
            params (dict): Extra public parameters.
        """
        if params is None:
            params = {}
        backend_operands = [
            self.ciphertext(o) if isinstance(o, Handle) else o for o in operands
        ]
        ciphertext = self.backend.evaluate(op, result_type, backend_operands, params)
        derivation = Derivation(
            op,
            tuple(o.id if isinstance(o, Handle) else o for o in operands),
            dict(params),
        )
        return self._mint(result_type, ciphertext, derivation)

    def _entry(self, handle):
        if not isinstance(handle, Handle):
            raise TypeError("Expected a Handle, got {!r}".format(handle))
        entry = self._entries.get(handle.id)
        if entry is None:
            raise UnknownHandleError("Unknown handle {!r}".format(handle))
        return entry

    def exists(self, handle):
        return isinstance(handle, Handle) and handle.id in self._entries

    def ciphertext(self, handle):
        """Return the backend ciphertext behind a handle."""
        return self._entry(handle).ciphertext

    def derivation(self, handle):
        return self._entry(handle).derivation

    def discard(self, handle):
        """Drop a handle the host no longer references."""
        entry = self._entry(handle)
        del self._entries[handle.id]
        self._record(lambda: self._entries.__setitem__(handle.id, entry))

    def __contains__(self, handle):
        return self.exists(handle)

    def __len__(self):
        return len(self._entries)
