"""Saturating arithmetic for unsigned 256-bit totals."""

U256_MAX = 2**256 - 1


def saturating_add(a: int, b: int, maximum: int = U256_MAX) -> int:
    """Add two non-negative integers, clamping at ``maximum``."""
    if a < 0 or b < 0:
        raise ValueError("saturating_add expects non-negative operands")
    return min(a + b, maximum)


def saturating_mul(a: int, b: int, maximum: int = U256_MAX) -> int:
    """Multiply two non-negative integers, clamping at ``maximum``."""
    if a < 0 or b < 0:
        raise ValueError("saturating_mul expects non-negative operands")
    return min(a * b, maximum)
