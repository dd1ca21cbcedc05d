from __future__ import annotations

import logging
import math
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Mapping

from pydantic import ValidationError

from .catalog import DEFAULT_CATALOG, AssetTemplate, Catalog, ContractTerm
from .errors import QuotePersistenceError, QuoteValidationError
from .models.line_item import LineItem, Section
from .models.quote import Quote, utcnow
from .notifier import LoggingNotifier, Notifier
from .pricing import gross_new_value
from .quote_store import QuoteStore
from .wizard import GuidedEntry, WizardSelection

logger = logging.getLogger(__name__)

# Accepts both the Python attribute names and the persisted document names.
LINE_ITEM_FIELDS: Mapping[str, str] = {
    "name": "name",
    "assetName": "name",
    "quantity": "quantity",
    "list_price": "list_price",
    "listPrice": "list_price",
    "discount": "discount_percent",
    "discount_percent": "discount_percent",
    "discountPercent": "discount_percent",
    "start_date": "start_date",
    "startDate": "start_date",
    "end_date": "end_date",
    "endDate": "end_date",
}

PRICING_FIELDS = frozenset({"name", "quantity", "list_price", "discount_percent"})

QUOTE_FIELDS: Mapping[str, str] = {
    "estimate_name": "set_estimate_name",
    "customer_contact": "set_customer_contact",
    "payment_terms": "set_payment_terms",
    "start_date": "set_dates",
    "end_date": "set_dates",
    "consumption_performance": "set_consumption_performance",
    "envelopes_purchased": "set_envelopes_purchased",
}

REQUIRED_FIELDS = (
    ("customer_name", "Customer Name"),
    ("customer_contact", "Customer Contact"),
    ("estimate_name", "Estimate Name"),
)


def coerce_section(section: Section | str) -> Section:
    if isinstance(section, Section):
        return section
    try:
        return Section(section)
    except ValueError:
        pass
    try:
        return Section[section]
    except KeyError:
        raise QuoteValidationError(f"Unknown section: {section}", field="section") from None


def parse_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def parse_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            return None
    return None


def grow_quantity(quantity: int, growth_factor: float) -> int:
    """Ceiling of ``quantity * growth_factor`` without binary float drift."""
    return math.ceil(Decimal(quantity) * Decimal(str(growth_factor)))


class QuoteEditor:
    """Working state of one quote, with derived fields kept consistent.

    Every mutation recomputes the affected net prices and line totals,
    refreshes GNACV, and stamps ``last_modified``. Changes to current
    assets, consumption performance, or the customer re-run the auto-copy
    rule. Rejected input is reported through the notifier, raised as
    :class:`QuoteValidationError`, and leaves the state untouched.
    """

    def __init__(
        self,
        catalog: Catalog = DEFAULT_CATALOG,
        *,
        store: QuoteStore,
        notifier: Notifier | None = None,
        clock: Callable[[], datetime] = utcnow,
        estimate_id: str = "QQ1",
        estimate_number: int = 1,
        initial: Quote | None = None,
    ) -> None:
        self._catalog = catalog
        self._store = store
        self._notifier = notifier or LoggingNotifier()
        self._clock = clock
        self._estimate_number = estimate_number

        if initial is not None:
            self._baseline = self._restore(initial)
            self._is_existing = True
        else:
            self._baseline = Quote(
                estimate_id=estimate_id,
                payment_terms=catalog.default_payment_terms,
                start_date=catalog.asset_term.start_date,
                end_date=catalog.asset_term.end_date,
                last_modified=clock(),
            )
            self._is_existing = False

        self._quote = self._baseline.model_copy(deep=True)
        rows = [*self._quote.current_assets, *self._quote.products]
        self._next_id = 1 + max((math.floor(row.id) for row in rows), default=0)

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    @property
    def is_existing(self) -> bool:
        return self._is_existing

    @property
    def estimate_id(self) -> str:
        return self._quote.estimate_id

    @property
    def quote(self) -> Quote:
        snapshot = self._quote.model_copy(deep=True)
        snapshot.gross_new_value = gross_new_value(snapshot.products, snapshot.current_assets)
        return snapshot

    def rows(self, section: Section | str) -> list[LineItem]:
        return [row.model_copy() for row in self._rows(self._section(section))]

    def suggest_estimate_name(self, customer_name: str) -> str:
        return f"{customer_name} - Estimate {self._estimate_number}"

    # Customer

    def select_customer(self, name: str) -> Quote:
        profile = self._catalog.customer(name)
        if profile is None:
            raise self._reject(f"Unknown customer: {name}", field="customer_name")

        quote = self._quote
        quote.customer_name = profile.name
        quote.estimate_name = self.suggest_estimate_name(profile.name)
        quote.customer_contact = profile.contact
        quote.consumption_performance = profile.consumption_performance
        quote.envelopes_purchased = profile.envelopes_purchased
        quote.envelopes_sent = profile.envelopes_sent
        quote.current_assets = [self._seed_row(template) for template in profile.default_assets]

        logger.debug(
            "Selected customer",
            extra={
                "estimate_id": quote.estimate_id,
                "customer": profile.name,
                "seeded_assets": len(quote.current_assets),
            },
        )
        self._run_auto_copy()
        self._changed()
        return self.quote

    def set_customer_contact(self, contact: str) -> None:
        if contact not in self._catalog.contacts:
            raise self._reject(f"Unknown customer contact: {contact}", field="customer_contact")
        self._quote.customer_contact = contact
        self._changed()

    def set_consumption_performance(self, value: Any) -> None:
        number = parse_number(value)
        if number is None or number < 0:
            raise self._reject("Consumption performance must be a non-negative number", field="consumption_performance")
        self._quote.consumption_performance = number
        self._run_auto_copy()
        self._changed()

    def set_envelopes_purchased(self, value: Any) -> None:
        number = parse_number(value)
        if number is None or number < 0 or not number.is_integer():
            raise self._reject("Envelopes purchased must be a whole number", field="envelopes_purchased")
        self._quote.envelopes_purchased = int(number)
        self._changed()

    # Quote-level metadata

    def set_estimate_name(self, name: str) -> None:
        self._quote.estimate_name = name
        self._changed()

    def set_payment_terms(self, terms: str) -> None:
        if terms not in self._catalog.payment_terms:
            raise self._reject(f"Unknown payment terms: {terms}", field="payment_terms")
        self._quote.payment_terms = terms
        self._changed()

    def set_dates(self, start_date: Any = None, end_date: Any = None) -> None:
        changes: dict[str, date] = {}
        for attr, value in (("start_date", start_date), ("end_date", end_date)):
            if value is None:
                continue
            parsed = parse_date(value)
            if parsed is None:
                raise self._reject(f"Invalid date: {value}", field=attr)
            changes[attr] = parsed
        for attr, parsed in changes.items():
            setattr(self._quote, attr, parsed)
        if changes:
            self._changed()

    def update_quote(self, changes: Mapping[str, Any]) -> Quote:
        """Apply several quote-level fields at once; nothing changes if any is rejected."""
        unknown = [attr for attr in changes if attr not in QUOTE_FIELDS]
        if unknown:
            raise self._reject(f"Unknown quote field: {unknown[0]}", field=unknown[0])

        before = self._quote.model_copy(deep=True)
        next_id = self._next_id
        try:
            for attr, value in changes.items():
                if attr in ("start_date", "end_date"):
                    self.set_dates(**{attr: value})
                else:
                    getattr(self, QUOTE_FIELDS[attr])(value)
        except QuoteValidationError:
            self._quote = before
            self._next_id = next_id
            raise
        return self.quote

    # Line items

    def add_line_item(self, section: Section | str, item: LineItem | Mapping[str, Any]) -> LineItem:
        section = self._section(section)
        if not isinstance(item, LineItem):
            try:
                item = LineItem.model_validate(dict(item))
            except ValidationError as exc:
                raise self._reject(f"Invalid line item: {exc.errors()[0]['msg']}") from exc

        if not item.name:
            noun = "an asset" if section is Section.current_assets else "a product"
            raise self._reject(f"Please select {noun} name", field="name")
        if not self._catalog.has_product(item.name):
            raise self._reject(f"Unknown product: {item.name}", field="name")

        provided = item.model_fields_set
        list_price = item.list_price if "list_price" in provided else self._catalog.list_price_for(item.name)
        if not math.isfinite(list_price) or list_price <= 0:
            raise self._reject("List price must be greater than 0", field="list_price")
        if item.quantity < 1:
            raise self._reject("Quantity must be a whole number greater than 0", field="quantity")
        self._check_discount(item.discount_percent)

        term = self._term(section)
        row = item.model_copy(
            update={
                "id": self._new_id(),
                "list_price": list_price,
                "start_date": item.start_date if "start_date" in provided else term.start_date,
                "end_date": item.end_date if "end_date" in provided else term.end_date,
                "auto_copied": None,
            }
        ).repriced()
        self._rows(section).append(row)

        logger.debug(
            "Added line item",
            extra={"estimate_id": self._quote.estimate_id, "section": section.value, "item_id": row.id},
        )
        if section is Section.current_assets:
            self._run_auto_copy()
        self._changed()
        return row

    def update_line_item(self, section: Section | str, item_id: int | float, field: str, value: Any) -> LineItem | None:
        section = self._section(section)
        attr = LINE_ITEM_FIELDS.get(field)
        if attr is None:
            raise self._reject(f"Unknown line item field: {field}", field=field)

        rows = self._rows(section)
        index = next((i for i, row in enumerate(rows) if row.id == item_id), None)
        if index is None:
            return None

        changes = self._coerce_change(attr, value)
        updated = rows[index].model_copy(update=changes)
        if attr in PRICING_FIELDS:
            updated = updated.repriced()
        rows[index] = updated

        if section is Section.current_assets:
            self._run_auto_copy()
        self._changed()
        return updated

    def remove_line_item(self, section: Section | str, item_id: int | float) -> bool:
        section = self._section(section)
        rows = self._rows(section)
        remaining = [row for row in rows if row.id != item_id]
        if len(remaining) == len(rows):
            return False
        rows[:] = remaining

        if section is Section.current_assets:
            self._run_auto_copy()
        self._changed()
        return True

    def recompute_gross_new_value(self) -> float:
        value = gross_new_value(self._quote.products, self._quote.current_assets)
        self._quote.gross_new_value = value
        return value

    def apply_auto_copy(self) -> bool:
        fired = self._run_auto_copy()
        if fired:
            self._changed()
        return fired

    # Guided entry

    def add_wizard_selection(self, selection: WizardSelection) -> LineItem:
        return self.add_line_item(
            Section.products,
            {
                "name": selection.name,
                "quantity": selection.quantity,
                "discount_percent": selection.discount,
            },
        )

    def guided_entry(self, *, reset_delay: float = GuidedEntry.DEFAULT_RESET_DELAY, **kwargs: Any) -> GuidedEntry:
        return GuidedEntry(
            self._catalog.product_names,
            on_complete=self.add_wizard_selection,
            list_prices=self._catalog.list_prices,
            reset_delay=reset_delay,
            **kwargs,
        )

    # Persistence

    def save(self) -> Quote:
        missing = [(attr, label) for attr, label in REQUIRED_FIELDS if not getattr(self._quote, attr).strip()]
        if missing:
            message = "Please fill in all required fields:\n" + "\n".join(f"- {label}" for _, label in missing)
            raise self._reject(message, field=missing[0][0])

        snapshot = self.quote
        if self._is_existing and self._baseline.created_at is not None:
            snapshot.created_at = self._baseline.created_at

        stored = self._store.upsert(snapshot)
        if stored is None:
            message = "There was an error saving your quote. Please try again."
            self._notifier.error(message)
            raise QuotePersistenceError(message) from self._store.last_error

        self._baseline = stored.model_copy(deep=True)
        self._is_existing = True
        logger.info(
            "Saved quote",
            extra={
                "estimate_id": stored.estimate_id,
                "customer": stored.customer_name,
                "gnacv": stored.gross_new_value,
            },
        )
        self._notifier.info(f"Quick Quote saved for {stored.customer_name}.")
        return stored

    def discard(self) -> Quote:
        """Drop unsaved changes and return to the last saved state."""
        self._quote = self._baseline.model_copy(deep=True)
        logger.debug("Discarded changes", extra={"estimate_id": self._quote.estimate_id})
        return self.quote

    # Internals

    def _restore(self, initial: Quote) -> Quote:
        quote = initial.model_copy(deep=True)
        profile = self._catalog.customer(quote.customer_name)
        if profile is not None:
            if not quote.consumption_performance:
                quote.consumption_performance = profile.consumption_performance
            if not quote.envelopes_sent:
                quote.envelopes_sent = profile.envelopes_sent
        if not quote.envelopes_purchased:
            quote.envelopes_purchased = 10000
        return quote

    def _section(self, section: Section | str) -> Section:
        try:
            return coerce_section(section)
        except QuoteValidationError as exc:
            self._notifier.error(exc.message)
            raise

    def _rows(self, section: Section) -> list[LineItem]:
        if section is Section.current_assets:
            return self._quote.current_assets
        return self._quote.products

    def _term(self, section: Section) -> ContractTerm:
        if section is Section.current_assets:
            return self._catalog.asset_term
        return self._catalog.product_term

    def _new_id(self) -> int:
        item_id = self._next_id
        self._next_id += 1
        return item_id

    def _seed_row(self, template: AssetTemplate) -> LineItem:
        term = self._catalog.asset_term
        return LineItem(
            id=self._new_id(),
            name=template.name,
            quantity=template.quantity,
            list_price=self._catalog.list_price_for(template.name),
            discount_percent=template.discount_percent,
            start_date=term.start_date,
            end_date=term.end_date,
        ).repriced()

    def _run_auto_copy(self) -> bool:
        quote = self._quote
        if not (
            quote.customer_name
            and quote.consumption_performance > self._catalog.auto_copy_threshold
            and quote.current_assets
        ):
            return False

        manual = [row for row in quote.products if not row.auto_copied]
        copies = [
            asset.model_copy(
                update={
                    "id": self._new_id(),
                    "quantity": grow_quantity(asset.quantity, self._catalog.growth_factor),
                    "auto_copied": True,
                }
            ).repriced()
            for asset in quote.current_assets
        ]
        quote.products = manual + copies
        logger.debug(
            "Regenerated auto-copied products",
            extra={"estimate_id": quote.estimate_id, "manual": len(manual), "copied": len(copies)},
        )
        return True

    def _coerce_change(self, attr: str, value: Any) -> dict[str, Any]:
        if attr == "name":
            name = "" if value is None else str(value)
            if name and not self._catalog.has_product(name):
                raise self._reject(f"Unknown product: {name}", field="name")
            return {"name": name, "list_price": self._catalog.list_price_for(name)}

        if attr == "quantity":
            number = parse_number(value)
            if number is None or number < 1 or not number.is_integer():
                raise self._reject("Quantity must be a whole number greater than 0", field="quantity")
            return {"quantity": int(number)}

        if attr == "discount_percent":
            number = parse_number(value)
            if number is None:
                raise self._reject("Discount must be a number between 0 and 100", field="discount_percent")
            self._check_discount(number)
            return {"discount_percent": number}

        if attr == "list_price":
            number = parse_number(value)
            if number is None or number < 0:
                raise self._reject("List price must be a non-negative number", field="list_price")
            return {"list_price": number}

        parsed = parse_date(value)
        if parsed is None:
            raise self._reject(f"Invalid date: {value}", field=attr)
        return {attr: parsed}

    def _check_discount(self, discount: float) -> None:
        if not math.isfinite(discount) or not 0 <= discount <= 100:
            raise self._reject("Discount must be a number between 0 and 100", field="discount_percent")

    def _changed(self) -> None:
        self.recompute_gross_new_value()
        self._quote.last_modified = self._clock()

    def _reject(self, message: str, *, field: str | None = None) -> QuoteValidationError:
        self._notifier.error(message)
        logger.debug("Rejected input", extra={"estimate_id": self._quote.estimate_id, "field": field})
        return QuoteValidationError(message, field=field)


__all__ = ["QuoteEditor", "LINE_ITEM_FIELDS", "coerce_section", "grow_quantity", "parse_number"]
