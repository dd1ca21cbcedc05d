from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, Field

from ..pricing import line_total, net_price


class Section(str, Enum):
    current_assets = "current"
    products = "products"


def persisted(name: str, *aliases: str, **kwargs: Any) -> Any:
    """Field stored under ``name`` in the quote document, also read from ``aliases``."""
    return Field(
        validation_alias=AliasChoices(name, *aliases),
        serialization_alias=name,
        **kwargs,
    )


class LineItem(BaseModel):
    id: int | float = 0
    name: str = persisted("assetName", "name", default="")
    quantity: int = 1
    list_price: float = persisted("listPrice", default=0.0)
    discount_percent: float = persisted("discount", "discountPercent", default=0.0)
    net_price: float = persisted("netPrice", default=0.0)
    line_total: float = persisted("totalNetPrice", "lineTotal", default=0.0)
    start_date: date = persisted("startDate", default=date(2024, 1, 1))
    end_date: date = persisted("endDate", default=date(2024, 12, 31))
    auto_copied: bool | None = persisted("autoCopied", default=None)

    class Config:
        populate_by_name = True

    def repriced(self) -> "LineItem":
        """Return a copy whose net price and line total follow its inputs."""
        net = net_price(self.list_price, self.discount_percent)
        return self.model_copy(update={"net_price": net, "line_total": line_total(net, self.quantity)})


__all__ = ["LineItem", "Section", "persisted"]
