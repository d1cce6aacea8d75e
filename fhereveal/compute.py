"""
Computation facade over the external encrypted-arithmetic engine.

Every call mints a fresh handle, even for operations that are the identity on values. No method
branches on a confidential value: conditional logic is a fixed sequence of :py:meth:`select`
calls whose length only depends on public data, such as the number of inputs.
"""

from fhereveal.types import EncryptedType


class Computation:
    """
    Homomorphic operations available to a host.

    Reach it through :py:attr:`engine.Engine.fhe`. Binary operations take a handle as first
    operand and a handle or a public integer as second operand.

    Args:
        engine (:py:class:`engine.Engine`): The host engine.
    """

    def __init__(self, engine):
        self.engine = engine

    def _derive(self, op, *operands, **params):
        return self.engine.derive(op, *operands, **params)

    # Arithmetic, modulo the width of the type.

    def add(self, a, b):
        return self._derive("add", a, b)

    def sub(self, a, b):
        return self._derive("sub", a, b)

    def mul(self, a, b):
        return self._derive("mul", a, b)

    def div(self, a, divisor):
        """Integer division by a public, non-zero divisor."""
        return self._derive("div", a, divisor)

    def rem(self, a, divisor):
        """Remainder of the division by a public, non-zero divisor."""
        return self._derive("rem", a, divisor)

    def neg(self, a):
        return self._derive("neg", a)

    def min(self, a, b):
        return self._derive("min", a, b)

    def max(self, a, b):
        return self._derive("max", a, b)

    # Comparisons, returning ebool handles.

    def eq(self, a, b):
        return self._derive("eq", a, b)

    def ne(self, a, b):
        return self._derive("ne", a, b)

    def gt(self, a, b):
        return self._derive("gt", a, b)

    def ge(self, a, b):
        return self._derive("ge", a, b)

    def lt(self, a, b):
        return self._derive("lt", a, b)

    def le(self, a, b):
        return self._derive("le", a, b)

    # Bitwise and boolean logic.

    def and_(self, a, b):
        return self._derive("and", a, b)

    def or_(self, a, b):
        return self._derive("or", a, b)

    def xor(self, a, b):
        return self._derive("xor", a, b)

    def not_(self, a):
        return self._derive("not", a)

    def shl(self, a, amount):
        return self._derive("shl", a, amount)

    def shr(self, a, amount):
        return self._derive("shr", a, amount)

    def rotl(self, a, amount):
        return self._derive("rotl", a, amount)

    def rotr(self, a, amount):
        return self._derive("rotr", a, amount)

    # Selection, conversion, constants.

    def select(self, cond, a, b):
        """
        Handle to ``a``'s value if ``cond`` is true, to ``b``'s otherwise.

        The result never reveals which branch was taken.
        """
        return self._derive("select", cond, a, b)

    def cast(self, a, target):
        """Convert to another type, truncating or testing against zero for ``ebool``."""
        return self._derive("cast", a, target=target)

    def as_encrypted(self, enc_type, value):
        """Trivially encrypt a public constant."""
        return self.engine.create(enc_type, value)

    def random(self, enc_type, upper_bound=None):
        """
        Encrypted random value.

        Args:
            enc_type: Type of the value.
            upper_bound (int): Optional exclusive bound, a power of two.
        """
        return self._derive("rand", target=enc_type, upper_bound=upper_bound)

    # Branchless folds.

    def _check_index_type(self, count, index_type):
        if count > index_type.max_value:
            raise ValueError(
                "{} cannot index {} values".format(index_type.label, count)
            )

    def argmax(self, values, index_type=EncryptedType.EUINT32):
        """
        Maximum of encrypted values and the index where it occurs.

        A fold of ``select(gt(candidate, best), candidate, best)``; the index follows the same
        condition. The comparison is strict, so among equal maxima the first one wins.

        Args:
            values: Non-empty list of handles of one numeric type.
            index_type: Type of the index handle.

        Returns:
            tuple: ``(value handle, index handle)``.
        """
        values = list(values)
        if not values:
            raise ValueError("argmax of an empty list")
        self._check_index_type(len(values), index_type)

        best = self.as_encrypted(values[0].type, 0)
        best_index = self.as_encrypted(index_type, 0)
        for i, candidate in enumerate(values):
            is_greater = self.gt(candidate, best)
            best = self.select(is_greater, candidate, best)
            best_index = self.select(
                is_greater, self.as_encrypted(index_type, i), best_index
            )
        return best, best_index

    def argmin(self, values, index_type=EncryptedType.EUINT32):
        """
        Minimum of encrypted values and the index where it occurs, first one on ties.
        """
        values = list(values)
        if not values:
            raise ValueError("argmin of an empty list")
        self._check_index_type(len(values), index_type)

        enc_type = values[0].type
        best = self.as_encrypted(enc_type, enc_type.max_value)
        best_index = self.as_encrypted(index_type, 0)
        for i, candidate in enumerate(values):
            is_less = self.lt(candidate, best)
            best = self.select(is_less, candidate, best)
            best_index = self.select(
                is_less, self.as_encrypted(index_type, i), best_index
            )
        return best, best_index

    def saturating_sub(self, a, b):
        """``a - b``, capped at zero instead of wrapping around."""
        zero = self.as_encrypted(a.type, 0)
        return self.select(self.ge(a, b), self.sub(a, b), zero)

    def any_equal(self, value, candidates):
        """Encrypted boolean telling whether ``value`` equals one of ``candidates``."""
        found = self.as_encrypted(EncryptedType.EBOOL, False)
        for candidate in candidates:
            found = self.or_(found, self.eq(value, candidate))
        return found

    def first_match_index(self, values, target, index_type=EncryptedType.EUINT32):
        """
        Index of the first value equal to ``target``, or ``len(values)`` if none matches.

        Folds from the last value to the first, so that earlier matches overwrite later ones.
        """
        values = list(values)
        self._check_index_type(len(values), index_type)

        index = self.as_encrypted(index_type, len(values))
        for i in reversed(range(len(values))):
            is_match = self.eq(values[i], target)
            index = self.select(is_match, self.as_encrypted(index_type, i), index)
        return index

    def count_if(self, conditions, count_type=EncryptedType.EUINT32):
        """Number of true encrypted booleans."""
        count = self.as_encrypted(count_type, 0)
        for cond in conditions:
            count = self.add(count, self.cast(cond, count_type))
        return count
