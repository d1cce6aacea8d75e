"""
Type tags of encrypted values.

>>> EncryptedType.EUINT8.bits
8
>>> EncryptedType.EUINT8.max_value
255
>>> EncryptedType.EBOOL.check_value(True)
True
"""

import enum


class EncryptedType(enum.Enum):
    """
    Declared width of an encrypted value.

    Each member carries a label, its bit width and the one-byte code embedded in handle
    identifiers.
    """

    EBOOL = ("ebool", 1, 0)
    EUINT8 = ("euint8", 8, 2)
    EUINT16 = ("euint16", 16, 3)
    EUINT32 = ("euint32", 32, 4)
    EUINT64 = ("euint64", 64, 5)
    EUINT128 = ("euint128", 128, 6)
    EADDRESS = ("eaddress", 160, 7)
    EUINT256 = ("euint256", 256, 8)

    def __init__(self, label, bits, code):
        self.label = label
        self.bits = bits
        self.code = code

    @property
    def max_value(self):
        return (1 << self.bits) - 1

    @property
    def is_bool(self):
        return self is EncryptedType.EBOOL

    @property
    def is_numeric(self):
        """Whether arithmetic and ordering are defined for the type."""
        return self not in (EncryptedType.EBOOL, EncryptedType.EADDRESS)

    @classmethod
    def from_code(cls, code):
        for member in cls:
            if member.code == code:
                return member
        raise ValueError("Unknown type code: {}".format(code))

    def check_value(self, value):
        """
        Validate a public constant of this type and return it normalized.

        Booleans are only accepted by :py:attr:`EBOOL`, which also accepts the integers 0 and 1.

        Raises:
            ValueError: If the value does not fit.
        """
        if self.is_bool:
            if isinstance(value, bool):
                return value
            if isinstance(value, int) and value in (0, 1):
                return bool(value)
            raise ValueError("Expected a boolean for ebool, got {!r}".format(value))

        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(
                "Expected an integer for {}, got {!r}".format(self.label, value)
            )
        if value < 0 or value > self.max_value:
            raise ValueError("{} does not fit in {}".format(value, self.label))
        return value

    def wrap(self, value):
        """Reduce an integer modulo the width of the type."""
        if self.is_bool:
            return bool(value & 1)
        return value & self.max_value

    def __repr__(self):
        return "EncryptedType.{}".format(self.name)
