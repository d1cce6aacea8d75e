import pytest

from fhereveal.types import EncryptedType

U8 = EncryptedType.EUINT8
U32 = EncryptedType.EUINT32


@pytest.fixture
def execution(engine):
    with engine.execution("alice"):
        yield


@pytest.fixture
def encrypt(fhe, execution):
    return lambda values, enc_type=U32: [fhe.as_encrypted(enc_type, v) for v in values]


@pytest.mark.parametrize(
    "op, a, b, expected",
    [
        ("add", 250, 10, 4),
        ("sub", 3, 5, 254),
        ("mul", 16, 17, 16),
        ("min", 3, 5, 3),
        ("max", 3, 5, 5),
        ("xor", 0b1100, 0b1010, 0b0110),
        ("shl", 1, 9, 2),
        ("rotl", 0b10000001, 1, 0b00000011),
        ("rotr", 0b00000011, 1, 0b10000001),
    ],
)
def test_wrapping_arithmetic(fhe, encrypt, peek, op, a, b, expected):
    (x,) = encrypt([a], U8)
    result = getattr(fhe, op)(x, b)
    assert result.type is U8
    assert peek(result) == expected


def test_division(fhe, encrypt, peek):
    (x,) = encrypt([47], U8)
    assert peek(fhe.div(x, 10)) == 4
    assert peek(fhe.rem(x, 10)) == 7


def test_comparisons(fhe, encrypt, peek):
    x, y = encrypt([30, 45])
    assert peek(fhe.lt(x, y)) is True
    assert peek(fhe.ge(x, y)) is False
    assert peek(fhe.eq(x, 30)) is True
    assert peek(fhe.ne(x, 30)) is False


def test_select_and_not(fhe, encrypt, peek):
    x, y = encrypt([1, 2])
    cond = fhe.as_encrypted(EncryptedType.EBOOL, True)
    assert peek(fhe.select(cond, x, y)) == 1
    assert peek(fhe.select(fhe.not_(cond), x, y)) == 2


def test_cast(fhe, encrypt, peek):
    (x,) = encrypt([300], EncryptedType.EUINT16)
    assert peek(fhe.cast(x, U8)) == 44
    assert peek(fhe.cast(x, EncryptedType.EBOOL)) is True
    assert fhe.cast(x, EncryptedType.EUINT64).type is EncryptedType.EUINT64


def test_every_call_mints_a_new_handle(fhe, encrypt):
    (x,) = encrypt([7])
    assert fhe.add(x, 0) != x
    assert fhe.max(x, x) != x


def test_random(fhe, peek, execution):
    values = [peek(fhe.random(U8, upper_bound=4)) for _ in range(20)]
    assert all(0 <= v < 4 for v in values)


def test_argmax(fhe, encrypt, peek):
    best, index = fhe.argmax(encrypt([5, 9, 3, 9]))
    assert peek(best) == 9
    assert peek(index) == 1
    assert index.type is U32


def test_argmax_single_value(fhe, encrypt, peek):
    best, index = fhe.argmax(encrypt([12]))
    assert (peek(best), peek(index)) == (12, 0)


def test_argmax_empty(fhe, execution):
    with pytest.raises(ValueError):
        fhe.argmax([])


def test_argmin(fhe, encrypt, peek):
    best, index = fhe.argmin(encrypt([5, 2, 3, 2]))
    assert (peek(best), peek(index)) == (2, 1)


def test_argmax_index_type_too_small(fhe, encrypt):
    values = encrypt([1, 2, 3])
    with pytest.raises(ValueError):
        fhe.argmax(values, index_type=EncryptedType.EBOOL)


def test_saturating_sub(fhe, encrypt, peek):
    x, y = encrypt([3, 5])
    assert peek(fhe.saturating_sub(x, y)) == 0
    assert peek(fhe.saturating_sub(y, x)) == 2


def test_any_equal(fhe, encrypt, peek):
    (x,) = encrypt([44], U8)
    assert peek(fhe.any_equal(x, [1, 44, 90])) is True
    assert peek(fhe.any_equal(x, [1, 90])) is False
    assert peek(fhe.any_equal(x, [])) is False


def test_first_match_index(fhe, encrypt, peek):
    values = encrypt([4, 7, 2, 7], U8)
    (target,) = encrypt([7], U8)
    assert peek(fhe.first_match_index(values, target)) == 1
    assert peek(fhe.first_match_index(values, 9)) == 4


def test_count_if(fhe, encrypt, peek):
    values = encrypt([4, 7, 2, 7], U8)
    assert peek(fhe.count_if([fhe.gt(v, 3) for v in values])) == 3
