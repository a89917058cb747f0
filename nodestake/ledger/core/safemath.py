# MIT License
# Copyright (c) 2025 Hashborn

"""
Checked arithmetic on ledger quantities.

Stake and reward quantities are unsigned 256-bit integers. Any result outside
[0, MAX_UINT] or any division by zero raises ArithmeticFault instead of
wrapping; the surrounding operation is then rolled back by its pool.
"""

from ...protocol.types.common import ArithmeticFault

MAX_UINT = 2**256 - 1


def _check(value: int, op: str) -> int:
    if value < 0:
        raise ArithmeticFault(f"{op} underflow")
    if value > MAX_UINT:
        raise ArithmeticFault(f"{op} overflow")
    return value


def _operands(op: str, *values: int):
    for v in values:
        if not isinstance(v, int) or isinstance(v, bool):
            raise ArithmeticFault(f"{op} on non-integer operand {v!r}")
        if v < 0 or v > MAX_UINT:
            raise ArithmeticFault(f"{op} operand {v} out of range")


def checked_add(a: int, b: int) -> int:
    _operands("add", a, b)
    return _check(a + b, "add")


def checked_sub(a: int, b: int) -> int:
    _operands("sub", a, b)
    return _check(a - b, "sub")


def checked_mul(a: int, b: int) -> int:
    _operands("mul", a, b)
    return _check(a * b, "mul")


def checked_div(a: int, b: int) -> int:
    _operands("div", a, b)
    if b == 0:
        raise ArithmeticFault("division by zero")
    return a // b


def checked_mod(a: int, b: int) -> int:
    _operands("mod", a, b)
    if b == 0:
        raise ArithmeticFault("modulo by zero")
    return a % b
