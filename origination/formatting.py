"""Rupee formatting for customer-facing text."""

from __future__ import annotations

from origination.finance import round_half_up


def inr(amount: float) -> str:
    """Format rupees with Indian digit grouping, e.g. ₹5,00,000."""
    value = round_half_up(amount)
    sign = "-" if value < 0 else ""
    digits = str(abs(value))
    if len(digits) > 3:
        head, tail = digits[:-3], digits[-3:]
        groups: list[str] = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        digits = ",".join(groups + [tail])
    return f"{sign}₹{digits}"


def lakhs(amount: float) -> str:
    value = amount / 100_000
    if value == int(value):
        return f"{int(value)} lakhs"
    return f"{value:.1f} lakhs"
