"""Fixed-point amount arithmetic, formatting and conversion utilities.

Ledger amounts are integers in base units of their asset. Every decision is made on those
integers; `Decimal` values produced here are for display only.
"""

from decimal import Decimal

from vaults_monitor.errors import ArithmeticInvariantViolation


def as_int(value, *, default: int = 0) -> int:
    """Convert value to int, handling various types."""
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        v = value.strip()
        if v.startswith("0x"):
            return int(v, 16)
        return int(v)
    return int(value)


def normalize_address(value) -> str:
    """Normalize an address (str, bytes or HexBytes) to a 0x-prefixed string."""
    if isinstance(value, (bytes, bytearray)):
        return f"0x{value.hex()}"
    if hasattr(value, "hex") and not isinstance(value, str):
        hex_str = value.hex()
        return hex_str if hex_str.startswith("0x") else f"0x{hex_str}"
    s = str(value).strip()
    if s.lower().startswith("0x"):
        return f"0x{s[2:]}"
    return f"0x{s}"


def is_zero_address(value) -> bool:
    """True for None, empty and all-zero addresses."""
    if value is None:
        return True
    s = normalize_address(value)[2:]
    return not s or int(s, 16) == 0


def decode_name(raw) -> str:
    """Decode a fixed-width on-chain name (bytes32, NUL or space padded)."""
    if isinstance(raw, str):
        if not raw.startswith("0x"):
            return raw.rstrip("\x00").strip()
        raw = bytes.fromhex(raw[2:])
    return bytes(raw).rstrip(b"\x00").decode("utf-8", errors="replace").strip()


def max_of(a: int, b: int) -> int:
    """Larger of two integer amounts."""
    return a if a >= b else b


def mul_div(a: int, b: int, denom: int) -> int:
    """
    Compute a * b / denom on integers, truncating toward zero.

    Multiplying first keeps full precision; truncation never overstates the result.
    """
    if denom == 0:
        raise ArithmeticInvariantViolation("division by zero in mul_div")
    numer = a * b
    q = abs(numer) // abs(denom)
    return q if (numer >= 0) == (denom > 0) else -q


def scale_to_display(amount: int, decimals: int) -> Decimal:
    """
    Scale a base-unit amount to a human-readable Decimal (amount / 10**decimals).

    Built from the digit tuple rather than by division, so no context rounding applies
    however large the amount is. Trailing fractional zeros are dropped.
    """
    if amount == 0:
        return Decimal(0)
    sign, digits, exp = Decimal(amount).as_tuple()
    exp -= decimals
    digits = list(digits)
    while exp < 0 and len(digits) > 1 and digits[-1] == 0:
        digits.pop()
        exp += 1
    return Decimal((sign, tuple(digits), exp))


def format_amount(amount: int, decimals: int, symbol: str | None = None, *, places: int | None = None) -> str:
    """Format a base-unit amount, trimming trailing zeros."""
    value = scale_to_display(amount, decimals)
    s = f"{value:.{decimals if places is None else places}f}"
    if "." in s:
        s = s.rstrip("0").rstrip(".")
    return f"{s} {symbol}" if symbol else s
