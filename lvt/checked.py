"""
Checked integer arithmetic for on-ledger values.

Amounts and counters are unsigned 64-bit, timestamps and durations are
signed 64-bit. Results outside the range raise instead of wrapping.
"""
from lvt.errors import ArithmeticOverflow, ArithmeticUnderflow, InvalidInstruction

U64_MAX = 2**64 - 1
I64_MIN = -(2**63)
I64_MAX = 2**63 - 1


def _check_u64(value: int, op: str) -> int:
    if value < 0:
        raise ArithmeticUnderflow(f"{op} result {value} is negative")
    if value > U64_MAX:
        raise ArithmeticOverflow(f"{op} result exceeds u64")
    return value


def _check_i64(value: int, op: str) -> int:
    if value < I64_MIN:
        raise ArithmeticUnderflow(f"{op} result below i64 range")
    if value > I64_MAX:
        raise ArithmeticOverflow(f"{op} result exceeds i64")
    return value


def checked_add(a: int, b: int) -> int:
    return _check_u64(a + b, "add")


def checked_sub(a: int, b: int) -> int:
    return _check_u64(a - b, "sub")


def checked_mul(a: int, b: int) -> int:
    return _check_u64(a * b, "mul")


def checked_add_i64(a: int, b: int) -> int:
    return _check_i64(a + b, "add")


def checked_sub_i64(a: int, b: int) -> int:
    return _check_i64(a - b, "sub")


def require_u64(name: str, value) -> int:
    """Validate an instruction parameter as an unsigned 64-bit integer."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInstruction(f"{name} must be an integer")
    if not 0 <= value <= U64_MAX:
        raise InvalidInstruction(f"{name}={value} is outside u64 range")
    return value


def require_i64(name: str, value) -> int:
    """Validate an instruction parameter as a signed 64-bit integer."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInstruction(f"{name} must be an integer")
    if not I64_MIN <= value <= I64_MAX:
        raise InvalidInstruction(f"{name}={value} is outside i64 range")
    return value


def require_u8(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInstruction(f"{name} must be an integer")
    if not 0 <= value <= 255:
        raise InvalidInstruction(f"{name}={value} is outside u8 range")
    return value
