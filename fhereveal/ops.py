"""
Operation table and operand typing of the computation facade.

Typing is done on public information only (handle types and public scalars), before anything is
evaluated, so that a rejected call has no side effect.
"""

import attr

from fhereveal.exceptions import InvalidOperandError, TypeMismatchError
from fhereveal.handles import Handle
from fhereveal.types import EncryptedType


@attr.s(frozen=True)
class Operation:
    """
    Static description of an operation.

    Args:
        name (str): Operation tag passed to the backend.
        arity (int): Number of operands.
        kind (str): Typing rule, one of the keys of ``_RULES``.
    """

    name = attr.ib()
    arity = attr.ib()
    kind = attr.ib()


OPERATIONS = {
    op.name: op
    for op in [
        Operation("add", 2, "arith"),
        Operation("sub", 2, "arith"),
        Operation("mul", 2, "arith"),
        Operation("min", 2, "arith"),
        Operation("max", 2, "arith"),
        Operation("div", 2, "public_divisor"),
        Operation("rem", 2, "public_divisor"),
        Operation("neg", 1, "numeric_unary"),
        Operation("not", 1, "logic_unary"),
        Operation("and", 2, "logic"),
        Operation("or", 2, "logic"),
        Operation("xor", 2, "logic"),
        Operation("eq", 2, "equality"),
        Operation("ne", 2, "equality"),
        Operation("gt", 2, "ordering"),
        Operation("ge", 2, "ordering"),
        Operation("lt", 2, "ordering"),
        Operation("le", 2, "ordering"),
        Operation("shl", 2, "shift"),
        Operation("shr", 2, "shift"),
        Operation("rotl", 2, "shift"),
        Operation("rotr", 2, "shift"),
        Operation("select", 3, "select"),
        Operation("cast", 1, "cast"),
        Operation("rand", 0, "rand"),
    ]
}


def _first_handle(op, operands):
    first = operands[0]
    if not isinstance(first, Handle):
        raise TypeMismatchError(
            "First operand of {} must be a handle, got {!r}".format(op.name, first)
        )
    return first


def _check_second(op, enc_type, second):
    """Check the second operand of a binary operation against the first one's type."""
    if isinstance(second, Handle):
        if second.type is not enc_type:
            raise TypeMismatchError(
                "{} on {} and {}".format(op.name, enc_type.label, second.type.label)
            )
        return
    try:
        enc_type.check_value(second)
    except ValueError as e:
        raise InvalidOperandError(str(e))


def _require_numeric(op, enc_type):
    if not enc_type.is_numeric:
        raise TypeMismatchError("{} is not defined on {}".format(op.name, enc_type.label))


def _arith(op, operands, params):
    first = _first_handle(op, operands)
    _require_numeric(op, first.type)
    _check_second(op, first.type, operands[1])
    return first.type


def _public_divisor(op, operands, params):
    first = _first_handle(op, operands)
    _require_numeric(op, first.type)
    divisor = operands[1]
    if isinstance(divisor, Handle):
        raise InvalidOperandError("{} only accepts a public divisor".format(op.name))
    _check_second(op, first.type, divisor)
    if divisor == 0:
        raise InvalidOperandError("Division by zero")
    return first.type


def _numeric_unary(op, operands, params):
    first = _first_handle(op, operands)
    _require_numeric(op, first.type)
    return first.type


def _logic_unary(op, operands, params):
    first = _first_handle(op, operands)
    if first.type is EncryptedType.EADDRESS:
        raise TypeMismatchError("{} is not defined on eaddress".format(op.name))
    return first.type


def _logic(op, operands, params):
    first = _first_handle(op, operands)
    if first.type is EncryptedType.EADDRESS:
        raise TypeMismatchError("{} is not defined on eaddress".format(op.name))
    _check_second(op, first.type, operands[1])
    return first.type


def _equality(op, operands, params):
    first = _first_handle(op, operands)
    _check_second(op, first.type, operands[1])
    return EncryptedType.EBOOL


def _ordering(op, operands, params):
    first = _first_handle(op, operands)
    _require_numeric(op, first.type)
    _check_second(op, first.type, operands[1])
    return EncryptedType.EBOOL


def _shift(op, operands, params):
    first = _first_handle(op, operands)
    _require_numeric(op, first.type)
    amount = operands[1]
    if isinstance(amount, Handle):
        _require_numeric(op, amount.type)
    elif isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise InvalidOperandError("Invalid shift amount {!r}".format(amount))
    return first.type


def _select(op, operands, params):
    cond, a, b = operands
    if not isinstance(cond, Handle) or cond.type is not EncryptedType.EBOOL:
        raise TypeMismatchError("select needs an ebool handle as condition")
    if not isinstance(a, Handle) or not isinstance(b, Handle):
        raise TypeMismatchError("select needs two handles as branches")
    if a.type is not b.type:
        raise TypeMismatchError(
            "select branches differ: {} and {}".format(a.type.label, b.type.label)
        )
    return a.type


def _cast(op, operands, params):
    first = _first_handle(op, operands)
    target = params.get("target")
    if not isinstance(target, EncryptedType):
        raise TypeMismatchError("cast needs a target type")
    if EncryptedType.EADDRESS in (first.type, target) and first.type is not target:
        raise TypeMismatchError("Cannot cast between eaddress and other types")
    return target


def _rand(op, operands, params):
    target = params.get("target")
    if not isinstance(target, EncryptedType) or target is EncryptedType.EADDRESS:
        raise TypeMismatchError("rand needs a numeric or boolean target type")
    upper_bound = params.get("upper_bound")
    if upper_bound is not None:
        if (
            isinstance(upper_bound, bool)
            or not isinstance(upper_bound, int)
            or upper_bound <= 0
            or upper_bound & (upper_bound - 1)
            or upper_bound > target.max_value + 1
        ):
            raise InvalidOperandError(
                "Upper bound must be a power of two within {}".format(target.label)
            )
    return target


_RULES = {
    "arith": _arith,
    "public_divisor": _public_divisor,
    "numeric_unary": _numeric_unary,
    "logic_unary": _logic_unary,
    "logic": _logic,
    "equality": _equality,
    "ordering": _ordering,
    "shift": _shift,
    "select": _select,
    "cast": _cast,
    "rand": _rand,
}


def infer_result_type(op_name, operands, params=None):
    """
    Type an operation call.

    >>> from fhereveal.handles import Handle
    >>> a = Handle(bytes(32), EncryptedType.EUINT8)
    >>> infer_result_type("gt", [a, 3])
    EncryptedType.EBOOL

    Args:
        op_name (str): Operation tag.
        operands: Handles and public scalars.
        params (dict): Extra public parameters (``target``, ``upper_bound``).

    Returns:
        :py:class:`types.EncryptedType`: The result type.

    Raises:
        TypeMismatchError: Unknown operation or ill-typed operands.
        InvalidOperandError: Bad public operand.
    """
    op = OPERATIONS.get(op_name)
    if op is None:
        raise TypeMismatchError("Unknown operation: {}".format(op_name))
    if len(operands) != op.arity:
        raise TypeMismatchError(
            "{} takes {} operands, got {}".format(op.name, op.arity, len(operands))
        )
    if params is None:
        params = {}
    return _RULES[op.kind](op, list(operands), params)
