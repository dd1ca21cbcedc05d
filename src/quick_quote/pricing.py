"""Derived-value formulas shared by every line item entry point.

Values are plain floats and are never rounded here; formatting is left to
the presentation layer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from .models.line_item import LineItem


def net_price(list_price: float, discount_percent: float) -> float:
    return list_price * (1 - discount_percent / 100)


def line_total(net: float, quantity: int) -> float:
    return net * quantity


def gross_new_value(products: Iterable["LineItem"], current_assets: Iterable["LineItem"]) -> float:
    """Products total minus current-assets total (GNACV)."""
    return sum(item.line_total for item in products) - sum(item.line_total for item in current_assets)


def price_line(item: "LineItem") -> "LineItem":
    return item.repriced()


__all__ = ["net_price", "line_total", "gross_new_value", "price_line"]
