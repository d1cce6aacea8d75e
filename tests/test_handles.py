import pytest

from fhereveal.backend import MockBackend
from fhereveal.consts import HANDLE_ID_LENGTH, HANDLE_VERSION
from fhereveal.exceptions import (
    ConfidentialConditionError,
    TypeMismatchError,
    UnknownHandleError,
)
from fhereveal.handles import Handle, HandleStore
from fhereveal.journal import Journal
from fhereveal.types import EncryptedType


@pytest.fixture
def backend():
    return MockBackend(seed=1)


@pytest.fixture
def store(backend):
    return HandleStore(backend, owner="host")


def test_identifier_layout(store):
    h = store.create(EncryptedType.EUINT16, 7)
    assert len(h.id) == HANDLE_ID_LENGTH
    assert h.id[-2] == EncryptedType.EUINT16.code
    assert h.id[-1] == HANDLE_VERSION
    assert h.type is EncryptedType.EUINT16


def test_every_mint_is_fresh(store):
    a = store.create(EncryptedType.EUINT8, 5)
    b = store.create(EncryptedType.EUINT8, 5)
    assert a != b
    c = store.derive("add", [a, 0], EncryptedType.EUINT8)
    assert c not in (a, b)


def test_derive_records_derivation(store, backend):
    a = store.create(EncryptedType.EUINT8, 200)
    b = store.create(EncryptedType.EUINT8, 100)
    c = store.derive("add", [a, b], EncryptedType.EUINT8)
    derivation = store.derivation(c)
    assert derivation.op == "add"
    assert derivation.inputs == (a.id, b.id)
    assert backend.decrypt(store.ciphertext(c)) == 44


def test_derive_leaves_inputs_untouched(store, backend):
    a = store.create(EncryptedType.EUINT32, 30)
    before = store.ciphertext(a)
    store.derive("add", [a, 15], EncryptedType.EUINT32)
    assert store.ciphertext(a) is before
    assert backend.decrypt(store.ciphertext(a)) == 30


def test_create_from_ciphertext(store, backend):
    ciphertext = backend.encrypt(EncryptedType.EUINT64, 12)
    h = store.create(EncryptedType.EUINT64, ciphertext)
    assert store.derivation(h).op == "external"
    assert store.ciphertext(h) is ciphertext


def test_create_type_mismatch(store, backend):
    ciphertext = backend.encrypt(EncryptedType.EUINT64, 12)
    with pytest.raises(TypeMismatchError):
        store.create(EncryptedType.EUINT8, ciphertext)


def test_create_constant_out_of_range(store):
    with pytest.raises(ValueError):
        store.create(EncryptedType.EUINT8, 300)


def test_handle_cannot_be_branched_on(store):
    h = store.create(EncryptedType.EBOOL, True)
    with pytest.raises(ConfidentialConditionError):
        if h:
            pass
    with pytest.raises(TypeError):
        not h


def test_handles_are_not_ordered(store):
    a = store.create(EncryptedType.EUINT8, 1)
    b = store.create(EncryptedType.EUINT8, 2)
    with pytest.raises(TypeError):
        a < b


def test_handles_are_immutable(store):
    h = store.create(EncryptedType.EUINT8, 1)
    with pytest.raises(AttributeError):
        h.type = EncryptedType.EUINT16


def test_repr_hides_value(store):
    h = store.create(EncryptedType.EUINT8, 123)
    assert repr(h) == "Handle({}.., euint8)".format(h.id.hex()[:12])


def test_discard(store):
    h = store.create(EncryptedType.EUINT8, 1)
    store.discard(h)
    assert not store.exists(h)
    with pytest.raises(UnknownHandleError):
        store.ciphertext(h)


def test_unknown_handle(store):
    with pytest.raises(UnknownHandleError):
        store.derivation(Handle(bytes(32), EncryptedType.EUINT8))


def test_rollback_drops_minted_handles(backend):
    journal = Journal()
    store = HandleStore(backend, journal=journal)
    kept = store.create(EncryptedType.EUINT8, 1)
    journal.begin()
    dropped = store.create(EncryptedType.EUINT8, 2)
    journal.rollback()
    assert store.exists(kept)
    assert not store.exists(dropped)
    assert len(store) == 1
