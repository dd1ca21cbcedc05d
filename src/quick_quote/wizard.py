"""Guided product entry: pick a product, then a quantity, then a discount.

The flow is strictly linear. A completed selection is handed to
``on_complete`` (normally :meth:`QuoteEditor.add_wizard_selection`) and the
flow returns to product selection once ``reset_delay`` seconds have passed.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping, Sequence

from .errors import QuoteValidationError, WizardStateError

logger = logging.getLogger(__name__)

GREETING = "Hi! I'm here to help you add products to your quick quote."
NEXT_PROMPT = "What other product can I help you add to your quote?"
QUANTITY_RETRY = "I need a valid number greater than 0. Could you please try again?"
DISCOUNT_RETRY = "I need a valid discount percentage between 0 and 100. Could you please try again?"


class WizardStep(str, Enum):
    choosing_product = "choosing-product"
    entering_quantity = "entering-quantity"
    entering_discount = "entering-discount"
    done = "done"


@dataclass(frozen=True)
class WizardSelection:
    name: str
    quantity: int
    discount: float


@dataclass(frozen=True)
class WizardMessage:
    text: str
    kind: str = "bot"
    options: Sequence[str] = ()


@dataclass
class WizardReply:
    accepted: bool
    step: WizardStep
    message: WizardMessage
    selection: WizardSelection | None = None


@dataclass
class _Draft:
    product: str = ""
    quantity: int = 0


class GuidedEntry:
    DEFAULT_RESET_DELAY = 2.0

    def __init__(
        self,
        product_names: Sequence[str],
        *,
        on_complete: Callable[[WizardSelection], object],
        list_prices: Mapping[str, float] | None = None,
        reset_delay: float = DEFAULT_RESET_DELAY,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._product_names = tuple(product_names)
        self._on_complete = on_complete
        self._list_prices = dict(list_prices or {})
        self._reset_delay = reset_delay
        self._clock = clock
        self._step = WizardStep.choosing_product
        self._done_at: float | None = None
        self._draft = _Draft()
        self._transcript: list[WizardMessage] = []
        self._say(GREETING, options=self._product_names)

    @property
    def step(self) -> WizardStep:
        self._expire_done()
        return self._step

    @property
    def transcript(self) -> list[WizardMessage]:
        self._expire_done()
        return list(self._transcript)

    @property
    def product_names(self) -> tuple[str, ...]:
        return self._product_names

    def reset(self) -> None:
        was_done = self._step is WizardStep.done
        self._step = WizardStep.choosing_product
        self._done_at = None
        self._draft = _Draft()
        if was_done:
            self._say(NEXT_PROMPT, options=self._product_names)

    def select_product(self, name: str) -> WizardReply:
        self._require(WizardStep.choosing_product)
        if name not in self._product_names:
            raise QuoteValidationError(f"Unknown product: {name}", field="name")

        self._transcript.append(WizardMessage(text=name, kind="user"))
        self._draft.product = name
        self._step = WizardStep.entering_quantity
        message = self._say(f"I would love to help you with {name}! How many would you like? (Enter a number)")
        return WizardReply(accepted=True, step=self._step, message=message)

    def submit(self, text: str) -> WizardReply:
        step = self.step
        if step is WizardStep.entering_quantity:
            return self._submit_quantity(text)
        if step is WizardStep.entering_discount:
            return self._submit_discount(text)
        raise WizardStateError(f"No typed input expected while {step.value}", field="step")

    def _submit_quantity(self, text: str) -> WizardReply:
        self._transcript.append(WizardMessage(text=text, kind="user"))
        quantity = _parse_int(text)
        if quantity is None or quantity <= 0:
            return WizardReply(accepted=False, step=self._step, message=self._say(QUANTITY_RETRY))

        self._draft.quantity = quantity
        self._step = WizardStep.entering_discount
        message = self._say("Great choice! What discount would you like me to apply? (Enter a percentage between 0-100)")
        return WizardReply(accepted=True, step=self._step, message=message)

    def _submit_discount(self, text: str) -> WizardReply:
        self._transcript.append(WizardMessage(text=text, kind="user"))
        discount = _parse_float(text)
        if discount is None or not 0 <= discount <= 100:
            return WizardReply(accepted=False, step=self._step, message=self._say(DISCOUNT_RETRY))

        selection = WizardSelection(name=self._draft.product, quantity=self._draft.quantity, discount=discount)
        self._on_complete(selection)
        logger.debug(
            "Guided entry completed",
            extra={"product": selection.name, "quantity": selection.quantity, "discount": selection.discount},
        )

        self._step = WizardStep.done
        self._done_at = self._clock()
        price = self._list_prices.get(selection.name)
        price_text = f" The list price is ${price:,.2f}." if price is not None else ""
        message = self._say(
            f"Wonderful! I've added {selection.quantity} {selection.name} with a {discount:g}% discount."
            f"{price_text} Would you like me to help you add another product?"
        )
        return WizardReply(accepted=True, step=self._step, message=message, selection=selection)

    def _expire_done(self) -> None:
        if self._step is WizardStep.done and self._done_at is not None:
            if self._clock() - self._done_at >= self._reset_delay:
                self.reset()

    def _require(self, expected: WizardStep) -> None:
        step = self.step
        if step is not expected:
            raise WizardStateError(f"Expected {expected.value}, currently {step.value}", field="step")

    def _say(self, text: str, *, options: Sequence[str] = ()) -> WizardMessage:
        message = WizardMessage(text=text, kind="bot", options=tuple(options))
        self._transcript.append(message)
        return message


def _parse_int(text: str) -> int | None:
    try:
        return int(str(text).strip())
    except ValueError:
        return None


def _parse_float(text: str) -> float | None:
    try:
        number = float(str(text).strip())
    except ValueError:
        return None
    return number if math.isfinite(number) else None


__all__ = [
    "GuidedEntry",
    "WizardMessage",
    "WizardReply",
    "WizardSelection",
    "WizardStep",
]
