from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from ..pricing import gross_new_value
from .line_item import LineItem, persisted


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Quote(BaseModel):
    estimate_id: str = persisted("estimateId")
    estimate_name: str = persisted("estimateName", default="")
    customer_name: str = persisted("customerName", default="")
    customer_contact: str = persisted("customerContact", default="")
    payment_terms: str = persisted("paymentTerms", default="Net 30")
    start_date: date = persisted("startDate", default=date(2024, 1, 1))
    end_date: date = persisted("endDate", default=date(2024, 12, 31))
    current_assets: list[LineItem] = persisted("assets", "currentAssets", default_factory=list)
    products: list[LineItem] = Field(default_factory=list)
    consumption_performance: float = persisted("consumptionPerformance", default=0)
    envelopes_purchased: int = persisted("envelopesPurchased", default=10000)
    envelopes_sent: int = persisted("envelopesSent", default=0)
    gross_new_value: float = persisted("gnacv", "grossNewValue", default=0.0)
    created_at: datetime | None = persisted("createdAt", default=None)
    last_modified: datetime = persisted("lastModified", default_factory=utcnow)

    class Config:
        populate_by_name = True

    @field_validator("created_at", "last_modified")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def _derive_gross_new_value(self) -> "Quote":
        self.gross_new_value = gross_new_value(self.products, self.current_assets)
        return self

    def total_products(self) -> float:
        return sum(item.line_total for item in self.products)

    def total_current_assets(self) -> float:
        return sum(item.line_total for item in self.current_assets)

    def to_document(self) -> dict[str, Any]:
        """Serialize with the field names used by the persisted collection."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class QuoteSummary(BaseModel):
    estimate_id: str
    estimate_name: str
    customer_name: str
    customer_contact: str
    total_net_price: float
    gross_new_value: float
    last_modified: datetime

    @staticmethod
    def from_quote(quote: Quote) -> "QuoteSummary":
        return QuoteSummary(
            estimate_id=quote.estimate_id,
            estimate_name=quote.estimate_name,
            customer_name=quote.customer_name,
            customer_contact=quote.customer_contact,
            total_net_price=quote.total_products(),
            gross_new_value=quote.gross_new_value,
            last_modified=quote.last_modified,
        )


__all__ = ["Quote", "QuoteSummary", "utcnow"]
