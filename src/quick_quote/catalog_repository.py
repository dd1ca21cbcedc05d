from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Mapping, Protocol, Sequence

from pydantic import BaseModel, Field

from .catalog import AssetTemplate, Catalog, ContractTerm, CustomerProfile


class TermDocument(BaseModel):
    start_date: date
    end_date: date

    def to_term(self) -> ContractTerm:
        return ContractTerm(start_date=self.start_date, end_date=self.end_date)


class AssetTemplateDocument(BaseModel):
    name: str
    quantity: int = Field(gt=0)
    discount_percent: float = Field(ge=0, le=100)


class CustomerDocument(BaseModel):
    name: str
    contact: str
    consumption_performance: float = 0
    envelopes_sent: int = 0
    envelopes_purchased: int = 10000
    default_assets: Sequence[AssetTemplateDocument] = Field(default_factory=list)


class CatalogDocument(BaseModel):
    customers: Sequence[CustomerDocument]
    list_prices: Mapping[str, float]
    payment_terms: Sequence[str] = ("Net 30", "Net 45", "Net 60")
    contacts: Sequence[str] = Field(default_factory=list)
    asset_term: TermDocument | None = None
    product_term: TermDocument | None = None
    growth_factor: float = 1.3
    auto_copy_threshold: float = 80

    def to_catalog(self) -> Catalog:
        customers = {
            doc.name: CustomerProfile(
                name=doc.name,
                contact=doc.contact,
                consumption_performance=doc.consumption_performance,
                envelopes_sent=doc.envelopes_sent,
                envelopes_purchased=doc.envelopes_purchased,
                default_assets=tuple(
                    AssetTemplate(name=a.name, quantity=a.quantity, discount_percent=a.discount_percent)
                    for a in doc.default_assets
                ),
            )
            for doc in self.customers
        }
        contacts = list(self.contacts)
        for profile in customers.values():
            if profile.contact not in contacts:
                contacts.append(profile.contact)
        kwargs = {}
        if self.asset_term is not None:
            kwargs["asset_term"] = self.asset_term.to_term()
        if self.product_term is not None:
            kwargs["product_term"] = self.product_term.to_term()
        return Catalog(
            customers=customers,
            list_prices=self.list_prices,
            payment_terms=self.payment_terms,
            contacts=contacts,
            growth_factor=self.growth_factor,
            auto_copy_threshold=self.auto_copy_threshold,
            **kwargs,
        )


class CatalogRepository(Protocol):
    def get(self, name: str) -> Catalog:
        ...


class LocalCatalogRepository:
    def __init__(self, *, base_path: Path) -> None:
        self._base_path = base_path

    def get(self, name: str) -> Catalog:
        file_path = self._base_path / f"{name}.json"
        if not file_path.exists():
            raise FileNotFoundError(f"Catalog payload not found: {file_path}")
        with file_path.open("r", encoding="utf-8") as fp:
            data = json.load(fp)
        return CatalogDocument.model_validate(data).to_catalog()


def load_catalog(path: Path) -> Catalog:
    return LocalCatalogRepository(base_path=path.parent).get(path.stem)


__all__ = ["CatalogDocument", "CatalogRepository", "LocalCatalogRepository", "load_catalog"]
