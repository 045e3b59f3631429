"""
Stock alert rules.

A material is low on stock when ``quantity_available <= min_stock_level``.
Severity is a pure function of how far below the threshold it sits, so the
notification layer can render it without re-deriving the rule.
"""

from inventory_kernel.domain.values import AlertSeverity


def is_low_stock(quantity_available: int, min_stock_level: int) -> bool:
    return quantity_available <= min_stock_level


def classify_severity(quantity_available: int, min_stock_level: int) -> AlertSeverity | None:
    """
    Classify a material's stock position.

    Returns:
        None when the material is above its minimum, CRITICAL when it is
        out of stock or at/below half of its minimum, WARNING otherwise.
    """
    if not is_low_stock(quantity_available, min_stock_level):
        return None
    if quantity_available == 0 or quantity_available * 2 <= min_stock_level:
        return AlertSeverity.CRITICAL
    return AlertSeverity.WARNING


def shortfall_to_minimum(quantity_available: int, min_stock_level: int) -> int:
    """Units needed to get back up to the minimum (never negative)."""
    return max(min_stock_level - quantity_available, 0)
