"""
Invoice arithmetic shared by every caller.

Line-item pricing, invoice totals, line renumbering and balance settlement
live here and nowhere else. The API preview, the invoice service and the
payment service all call these functions, so a formula changes in one place.

Everything is pure Decimal arithmetic: no I/O, no validation, no rounding.
Values are cleaned at the request boundary (core.models.common) before they
get here. Rounding to cents is a display concern, see round_money().
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Mapping, Sequence, TypeVar

from core.models.invoice import InvoiceStatus

ZERO = Decimal(0)
HUNDRED = Decimal(100)
CENT = Decimal("0.01")

Number = Decimal | int | float | str

T = TypeVar("T")


def to_decimal(value: Number) -> Decimal:
    """
    Convert a numeric input to Decimal.

    Floats go through str() so 0.1 stays 0.1 instead of its binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_money(value: Number) -> Decimal:
    """Round to cents, half up. For display and reporting only."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(part: Number, whole: Number) -> Decimal:
    """Share of whole as a rounded percent; zero when whole is zero."""
    whole = to_decimal(whole)
    if whole.is_nan() or whole == ZERO:
        return ZERO
    return round_money(to_decimal(part) * HUNDRED / whole)


# =============================================================================
# LINE ITEMS
# =============================================================================


@dataclass(frozen=True)
class LineTotals:
    """Derived amounts for one line item."""

    discount_amount: Decimal
    tax_amount: Decimal
    line_total: Decimal
    line_total_with_tax: Decimal


def compute_line_item(
    quantity: Number,
    unit_price: Number,
    discount_percent: Number = 0,
    discount_amount: Number = 0,
    tax_percent: Number = 0,
) -> LineTotals:
    """
    Price a single line item.

    A percentage discount, when set, replaces any flat discount amount.
    Tax is charged on the discounted amount, never on the gross.

    Args:
        quantity: Units billed
        unit_price: Price per unit
        discount_percent: Percentage off the gross (0 means "use discount_amount")
        discount_amount: Flat discount, kept only when discount_percent is 0
        tax_percent: Tax rate applied after discount

    Returns:
        LineTotals with discount_amount, tax_amount, line_total, line_total_with_tax
    """
    subtotal = to_decimal(quantity) * to_decimal(unit_price)

    percent = to_decimal(discount_percent)
    if not percent.is_nan() and percent > 0:
        discount = subtotal * percent / HUNDRED
    else:
        discount = to_decimal(discount_amount)

    line_total = subtotal - discount
    tax = line_total * to_decimal(tax_percent) / HUNDRED

    return LineTotals(
        discount_amount=discount,
        tax_amount=tax,
        line_total=line_total,
        line_total_with_tax=line_total + tax,
    )


def price_line_item(item: T) -> T:
    """
    Fill in the derived amounts of a line item model.

    Args:
        item: Pydantic model with quantity, unit_price, discount_percent,
            discount_amount and tax_percent

    Returns:
        Copy of the model with discount_amount, tax_amount, line_total and
        line_total_with_tax set
    """
    totals = compute_line_item(
        item.quantity,
        item.unit_price,
        item.discount_percent,
        item.discount_amount,
        item.tax_percent,
    )
    return item.model_copy(update={
        "discount_amount": totals.discount_amount,
        "tax_amount": totals.tax_amount,
        "line_total": totals.line_total,
        "line_total_with_tax": totals.line_total_with_tax,
    })


def renumber_lines(items: Sequence[T]) -> list[T]:
    """
    Reassign line numbers 1..N in the current order.

    Works on pydantic models and plain dicts. Returns new objects; the
    inputs are left untouched.
    """
    renumbered = []
    for number, item in enumerate(items, start=1):
        if isinstance(item, Mapping):
            renumbered.append({**item, "line_number": number})
        else:
            renumbered.append(item.model_copy(update={"line_number": number}))
    return renumbered


def prepare_line_items(items: Sequence[T]) -> list[T]:
    """Price every line and number them 1..N, in submission order."""
    return renumber_lines([price_line_item(item) for item in items])


@dataclass(frozen=True)
class LineItemSummary:
    """Column totals shown under the line-item editor."""

    subtotal: Decimal
    discount: Decimal
    after_discount: Decimal
    tax: Decimal
    total: Decimal


def summarize_line_items(items: Iterable[Any]) -> LineItemSummary:
    """Sum gross, discount, net, tax and final amounts across line items."""
    subtotal = discount = after_discount = tax = total = ZERO

    for item in items:
        totals = compute_line_item(
            item.quantity,
            item.unit_price,
            item.discount_percent,
            item.discount_amount,
            item.tax_percent,
        )
        subtotal += to_decimal(item.quantity) * to_decimal(item.unit_price)
        discount += totals.discount_amount
        after_discount += totals.line_total
        tax += totals.tax_amount
        total += totals.line_total_with_tax

    return LineItemSummary(
        subtotal=subtotal,
        discount=discount,
        after_discount=after_discount,
        tax=tax,
        total=total,
    )


# =============================================================================
# INVOICES
# =============================================================================


def _line_value(line: Any) -> Decimal:
    if isinstance(line, (Decimal, int, float, str)):
        return to_decimal(line)
    if isinstance(line, Mapping):
        return to_decimal(line["line_total_with_tax"])
    return to_decimal(line.line_total_with_tax)


def compute_invoice_total(
    monthly_rent: Number,
    additional_charges: Number,
    discount: Number,
    line_items: Iterable[Any] = (),
    floor_at_zero: bool = False,
) -> Decimal:
    """
    Grand total of an invoice.

    total = monthly_rent + additional_charges + sum(line_total_with_tax) - discount

    Additional charges are not taxed. A discount larger than the charges
    yields a negative total unless floor_at_zero is set.

    Args:
        monthly_rent: Rent for the billing period
        additional_charges: Untaxed extra charges
        discount: Flat invoice-level discount
        line_items: Priced line items (anything with line_total_with_tax) or
            bare line amounts
        floor_at_zero: Clamp negative totals to zero

    Returns:
        Invoice total as Decimal
    """
    lines = sum((_line_value(line) for line in line_items), ZERO)
    total = (
        to_decimal(monthly_rent)
        + to_decimal(additional_charges)
        + lines
        - to_decimal(discount)
    )
    if floor_at_zero and not total.is_nan() and total < ZERO:
        return ZERO
    return total


@dataclass(frozen=True)
class Settlement:
    """Balance and status of an invoice after payments."""

    remaining_balance: Decimal
    status: InvoiceStatus


def settle(total_amount: Number, paid_amount: Number) -> Settlement:
    """
    Derive remaining balance and payment status from totals.

    Nothing owed means paid; something paid but not all means partially
    paid; nothing paid returns the invoice to issued.
    """
    total = to_decimal(total_amount)
    paid = to_decimal(paid_amount)
    remaining = total - paid

    # A NaN balance never settles to paid
    if not remaining.is_nan() and remaining <= ZERO:
        status = InvoiceStatus.PAID
    elif not paid.is_nan() and paid > ZERO:
        status = InvoiceStatus.PARTIALLY_PAID
    else:
        status = InvoiceStatus.ISSUED

    return Settlement(remaining_balance=remaining, status=status)
