from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import Mapping, Sequence


@dataclass(frozen=True)
class ContractTerm:
    start_date: date
    end_date: date

    def following_year(self) -> "ContractTerm":
        return ContractTerm(
            start_date=self.start_date.replace(year=self.start_date.year + 1),
            end_date=self.end_date.replace(year=self.end_date.year + 1),
        )


@dataclass(frozen=True)
class AssetTemplate:
    name: str
    quantity: int
    discount_percent: float


@dataclass(frozen=True)
class CustomerProfile:
    name: str
    contact: str
    consumption_performance: float
    envelopes_sent: int
    envelopes_purchased: int = 10000
    default_assets: Sequence[AssetTemplate] = ()


@dataclass(frozen=True)
class Catalog:
    customers: Mapping[str, CustomerProfile]
    list_prices: Mapping[str, float]
    payment_terms: Sequence[str]
    contacts: Sequence[str]
    asset_term: ContractTerm = ContractTerm(date(2024, 1, 1), date(2024, 12, 31))
    product_term: ContractTerm | None = None
    growth_factor: float = 1.3
    auto_copy_threshold: float = 80
    default_payment_terms: str = field(default="Net 30")

    def __post_init__(self) -> None:
        object.__setattr__(self, "customers", MappingProxyType(dict(self.customers)))
        object.__setattr__(self, "list_prices", MappingProxyType(dict(self.list_prices)))
        object.__setattr__(self, "payment_terms", tuple(self.payment_terms))
        object.__setattr__(self, "contacts", tuple(self.contacts))
        if self.product_term is None:
            object.__setattr__(self, "product_term", self.asset_term.following_year())

    @property
    def customer_names(self) -> tuple[str, ...]:
        return tuple(self.customers)

    @property
    def product_names(self) -> tuple[str, ...]:
        return tuple(self.list_prices)

    def has_product(self, name: str) -> bool:
        return name in self.list_prices

    def list_price_for(self, name: str) -> float:
        return float(self.list_prices.get(name, 0.0))

    def customer(self, name: str) -> CustomerProfile | None:
        return self.customers.get(name)


DEFAULT_LIST_PRICES: Mapping[str, float] = {
    "eSignature Envelope Subs": 5.00,
    "DocuSign Monitor": 3.00,
    "ID Verification": 3.50,
    "DocuSign Retrieve": 2.00,
    "IAM for CX": 1530.00,
    "IAM for Sales": 900.00,
}


DEFAULT_CUSTOMERS: Mapping[str, CustomerProfile] = {
    "Bank of America": CustomerProfile(
        name="Bank of America",
        contact="Mike Trout",
        consumption_performance=85,
        envelopes_sent=8500,
        default_assets=(
            AssetTemplate(name="eSignature Envelope Subs", quantity=20, discount_percent=5),
            AssetTemplate(name="DocuSign Monitor", quantity=10, discount_percent=7),
        ),
    ),
    "Wells Fargo": CustomerProfile(
        name="Wells Fargo",
        contact="Trea Turner",
        consumption_performance=90,
        envelopes_sent=9000,
        default_assets=(
            AssetTemplate(name="eSignature Envelope Subs", quantity=20, discount_percent=10),
            AssetTemplate(name="ID Verification", quantity=20, discount_percent=10),
        ),
    ),
    "T-Mobile": CustomerProfile(
        name="T-Mobile",
        contact="Pete Alonso",
        consumption_performance=82,
        envelopes_sent=8200,
    ),
    "Chase": CustomerProfile(
        name="Chase",
        contact="Austin Riley",
        consumption_performance=60,
        envelopes_sent=6000,
    ),
    "Papa John's": CustomerProfile(
        name="Papa John's",
        contact="Matt Olson",
        consumption_performance=55,
        envelopes_sent=5000,
    ),
}


DEFAULT_CONTACTS: Sequence[str] = (
    "Mike Trout",
    "Trea Turner",
    "Pete Alonso",
    "Austin Riley",
    "Matt Olson",
    "Ronald Acuña Jr.",
    "Mookie Betts",
    "Freddie Freeman",
    "Juan Soto",
    "Shohei Ohtani",
)


DEFAULT_PAYMENT_TERMS: Sequence[str] = ("Net 30", "Net 45", "Net 60")


DEFAULT_CATALOG = Catalog(
    customers=DEFAULT_CUSTOMERS,
    list_prices=DEFAULT_LIST_PRICES,
    payment_terms=DEFAULT_PAYMENT_TERMS,
    contacts=DEFAULT_CONTACTS,
)


__all__ = [
    "AssetTemplate",
    "Catalog",
    "ContractTerm",
    "CustomerProfile",
    "DEFAULT_CATALOG",
    "DEFAULT_CONTACTS",
    "DEFAULT_CUSTOMERS",
    "DEFAULT_LIST_PRICES",
    "DEFAULT_PAYMENT_TERMS",
]
