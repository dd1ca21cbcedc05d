import pytest

from quick_quote.catalog import DEFAULT_CATALOG
from quick_quote.errors import QuoteValidationError, WizardStateError
from quick_quote.models.line_item import Section
from quick_quote.wizard import DISCOUNT_RETRY, GREETING, NEXT_PROMPT, QUANTITY_RETRY, GuidedEntry, WizardStep


class ManualClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def wizard_clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def completed() -> list:
    return []


@pytest.fixture
def wizard(wizard_clock, completed) -> GuidedEntry:
    return GuidedEntry(
        DEFAULT_CATALOG.product_names,
        on_complete=completed.append,
        list_prices=DEFAULT_CATALOG.list_prices,
        reset_delay=2.0,
        clock=wizard_clock,
    )


def test_starts_by_offering_the_catalog(wizard):
    assert wizard.step is WizardStep.choosing_product
    [greeting] = wizard.transcript
    assert greeting.text == GREETING
    assert tuple(greeting.options) == DEFAULT_CATALOG.product_names


def test_full_pass_emits_selection(wizard, completed):
    assert wizard.select_product("DocuSign Monitor").step is WizardStep.entering_quantity
    assert wizard.submit("12").step is WizardStep.entering_discount

    reply = wizard.submit("7.5")

    assert reply.accepted
    assert reply.step is WizardStep.done
    assert [(s.name, s.quantity, s.discount) for s in completed] == [("DocuSign Monitor", 12, 7.5)]
    assert "12 DocuSign Monitor with a 7.5% discount" in reply.message.text
    assert "$3.00" in reply.message.text


@pytest.mark.parametrize("text", ["0", "-3", "two", "1.5", ""])
def test_bad_quantity_stays_and_prompts_again(wizard, completed, text):
    wizard.select_product("IAM for CX")

    reply = wizard.submit(text)

    assert not reply.accepted
    assert reply.message.text == QUANTITY_RETRY
    assert wizard.step is WizardStep.entering_quantity
    assert completed == []


@pytest.mark.parametrize("text", ["101", "-0.5", "ten", "nan"])
def test_bad_discount_stays_and_prompts_again(wizard, completed, text):
    wizard.select_product("IAM for CX")
    wizard.submit("1")

    reply = wizard.submit(text)

    assert not reply.accepted
    assert reply.message.text == DISCOUNT_RETRY
    assert wizard.step is WizardStep.entering_discount
    assert completed == []


@pytest.mark.parametrize("text", ["0", "100"])
def test_discount_bounds_are_inclusive(wizard, completed, text):
    wizard.select_product("IAM for CX")
    wizard.submit("1")

    assert wizard.submit(text).accepted
    assert completed[0].discount == float(text)


def test_returns_to_product_choice_after_delay(wizard, wizard_clock):
    wizard.select_product("ID Verification")
    wizard.submit("3")
    wizard.submit("0")

    wizard_clock.now += 1.0
    assert wizard.step is WizardStep.done

    wizard_clock.now += 1.0
    assert wizard.step is WizardStep.choosing_product
    assert wizard.transcript[-1].text == NEXT_PROMPT

    assert wizard.select_product("ID Verification").accepted


def test_reset_returns_immediately(wizard):
    wizard.select_product("ID Verification")

    wizard.reset()

    assert wizard.step is WizardStep.choosing_product


def test_input_out_of_order_is_rejected(wizard):
    with pytest.raises(WizardStateError):
        wizard.submit("5")

    wizard.select_product("ID Verification")
    with pytest.raises(WizardStateError):
        wizard.select_product("IAM for CX")


def test_unknown_product_is_rejected(wizard):
    with pytest.raises(QuoteValidationError):
        wizard.select_product("Fax Machine")
    assert wizard.step is WizardStep.choosing_product


def test_editor_guided_entry_adds_product_rows(editor):
    wizard = editor.guided_entry(reset_delay=0)

    wizard.select_product("eSignature Envelope Subs")
    wizard.submit("20")
    wizard.submit("5")

    [row] = editor.quote.products
    assert row.name == "eSignature Envelope Subs"
    assert row.list_price == 5.00
    assert row.net_price == pytest.approx(4.75)
    assert row.line_total == pytest.approx(95.0)
    assert row.start_date.year == 2025
    assert not row.auto_copied
    assert editor.rows(Section.products) == [row]
    assert wizard.step is WizardStep.choosing_product
