"""
Pricing calculator for order lines and order totals.

Pure functions over ``Decimal``: no session, no I/O. Values are carried at
full precision through the calculation and only rounded with ``to_money``
when they are persisted or returned to a client.
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Any

from erp.exceptions import ValidationError

ZERO = Decimal('0')
HUNDRED = Decimal('100')
CENT = Decimal('0.01')


@dataclass(frozen=True)
class LineTotals:
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total: Decimal


def to_decimal(value: Any, field: str = 'value') -> Decimal:
    """Convert user or DB input to Decimal without going through binary floats."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValidationError(errors=[f'{field} must be a number'])
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(errors=[f'{field} must be a number'])
    if not result.is_finite():
        raise ValidationError(errors=[f'{field} must be a finite number'])
    return result


def to_money(value: Any) -> Decimal:
    """Round a monetary amount to cents (half-up)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_tax_inclusive_price(base_price: Any, tax_rate: Any) -> Decimal:
    """Tax-inclusive price: base_price * (1 + tax_rate / 100)."""
    base = to_decimal(base_price, 'base_price')
    rate = to_decimal(tax_rate, 'tax_rate')
    if base < 0:
        raise ValidationError(errors=['base_price must be >= 0'])
    if rate < 0 or rate > HUNDRED:
        raise ValidationError(errors=['tax_rate must be between 0 and 100'])
    return base * (1 + rate / HUNDRED)


def compute_line_item(quantity: int, unit_price: Any, tax_rate: Any = 0,
                      discount_amount: Any = 0) -> LineTotals:
    """
    Compute subtotal, tax and total for one order line.

    subtotal = quantity * unit_price
    tax      = (subtotal - discount) * tax_rate / 100
    total    = subtotal - discount + tax

    Raises:
        ValidationError: quantity not a positive integer, negative price,
            tax rate outside [0, 100] or a discount outside [0, subtotal].
    """
    errors = []
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        errors.append('quantity must be a positive integer')

    price = to_decimal(unit_price, 'unit_price')
    rate = to_decimal(tax_rate, 'tax_rate')
    discount = to_decimal(discount_amount, 'discount_amount')

    if price < 0:
        errors.append('unit_price must be >= 0')
    if rate < 0 or rate > HUNDRED:
        errors.append('tax_rate must be between 0 and 100')
    if discount < 0:
        errors.append('discount_amount must be >= 0')
    if errors:
        raise ValidationError(errors=errors)

    subtotal = price * quantity
    if discount > subtotal:
        raise ValidationError(errors=['discount_amount cannot exceed the line subtotal'])

    taxable = subtotal - discount
    tax_amount = taxable * rate / HUNDRED
    return LineTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        total=taxable + tax_amount,
    )


def compute_order_totals(line_items: Iterable[LineTotals], discount_percentage: Any = 0,
                         discount_amount: Any = 0) -> OrderTotals:
    """
    Aggregate line totals into order totals.

    A positive ``discount_percentage`` takes precedence over the flat
    ``discount_amount``; the percentage applies to the pre-tax subtotal.
    """
    percentage = to_decimal(discount_percentage, 'discount_percentage')
    flat = to_decimal(discount_amount, 'discount_amount')

    errors = []
    if percentage < 0 or percentage > HUNDRED:
        errors.append('discount_percentage must be between 0 and 100')
    if flat < 0:
        errors.append('discount_amount must be >= 0')
    if errors:
        raise ValidationError(errors=errors)

    subtotal = ZERO
    tax_amount = ZERO
    for line in line_items:
        subtotal += line.subtotal
        tax_amount += line.tax_amount

    if percentage > 0:
        discount = subtotal * percentage / HUNDRED
    else:
        discount = flat
        if discount > subtotal:
            raise ValidationError(errors=['discount_amount cannot exceed the order subtotal'])

    return OrderTotals(
        subtotal=subtotal,
        discount_amount=discount,
        tax_amount=tax_amount,
        total=subtotal - discount + tax_amount,
    )
