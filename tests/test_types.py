import pytest

from fhereveal.types import EncryptedType


@pytest.mark.parametrize(
    "enc_type, bits",
    [
        (EncryptedType.EBOOL, 1),
        (EncryptedType.EUINT8, 8),
        (EncryptedType.EUINT16, 16),
        (EncryptedType.EUINT32, 32),
        (EncryptedType.EUINT64, 64),
        (EncryptedType.EUINT128, 128),
        (EncryptedType.EADDRESS, 160),
        (EncryptedType.EUINT256, 256),
    ],
)
def test_widths(enc_type, bits):
    assert enc_type.bits == bits
    assert enc_type.max_value == 2 ** bits - 1


def test_codes_are_unique_and_roundtrip():
    codes = [t.code for t in EncryptedType]
    assert len(set(codes)) == len(codes)
    for enc_type in EncryptedType:
        assert EncryptedType.from_code(enc_type.code) is enc_type


def test_unknown_code():
    with pytest.raises(ValueError):
        EncryptedType.from_code(1)


def test_numeric():
    assert EncryptedType.EUINT64.is_numeric
    assert not EncryptedType.EBOOL.is_numeric
    assert not EncryptedType.EADDRESS.is_numeric


@pytest.mark.parametrize("value, expected", [(True, True), (False, False), (1, True), (0, False)])
def test_bool_values(value, expected):
    assert EncryptedType.EBOOL.check_value(value) is expected


@pytest.mark.parametrize(
    "enc_type, value",
    [
        (EncryptedType.EBOOL, 2),
        (EncryptedType.EUINT8, 256),
        (EncryptedType.EUINT8, -1),
        (EncryptedType.EUINT8, True),
        (EncryptedType.EUINT16, "12"),
        (EncryptedType.EUINT32, 1.5),
    ],
)
def test_rejected_values(enc_type, value):
    with pytest.raises(ValueError):
        enc_type.check_value(value)


def test_wrap():
    assert EncryptedType.EUINT8.wrap(260) == 4
    assert EncryptedType.EUINT8.wrap(-1) == 255
    assert EncryptedType.EBOOL.wrap(3) is True
