"""
Order request validators.

Each ``parse_*`` function takes a decoded JSON body, collects every problem
it finds and either returns a normalized dict or raises ``ValidationError``
with the full list of messages.
"""
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from erp.exceptions import ValidationError
from erp.models import ORDER_STATUS_VALUES, PAYMENT_STATUS_VALUES

HEADER_TEXT_FIELDS = (
    'payment_method', 'shipping_address', 'shipping_city',
    'billing_address', 'billing_city', 'notes',
)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def parse_positive_int(value: Any) -> Optional[int]:
    """Positive int from JSON or a query string, else None."""
    if _is_int(value):
        return value if value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        parsed = int(value.strip())
        return parsed if parsed > 0 else None
    return None


def parse_decimal(value: Any) -> Optional[Decimal]:
    """Decimal from an int, float, Decimal or numeric string, else None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float, Decimal, str)):
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return None
        return result if result.is_finite() else None
    return None


def has_cents_precision(number: Decimal) -> bool:
    """At most two decimal places, the precision every amount is stored at."""
    return number % Decimal('0.01') == 0


def parse_datetime(value: Any) -> Optional[datetime]:
    """ISO-8601 date or datetime string, else None."""
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _check_range(data: Dict[str, Any], field: str, errors: List[str], label: str,
                 minimum: Decimal = Decimal('0'), maximum: Optional[Decimal] = None) -> Optional[Decimal]:
    value = data.get(field)
    if value is None:
        return None
    number = parse_decimal(value)
    if number is None or number < minimum or (maximum is not None and number > maximum):
        if maximum is not None:
            errors.append(f'{label} must be between {minimum} and {maximum}')
        else:
            errors.append(f'{label} must be a positive number')
        return None
    if not has_cents_precision(number):
        errors.append(f'{label} must have at most 2 decimal places')
        return None
    return number


def _parse_item(item: Any, index: int, errors: List[str]) -> Optional[Dict[str, Any]]:
    if not isinstance(item, dict):
        errors.append(f'Item {index + 1}: must be an object')
        return None

    item_errors: List[str] = []
    product_id = item.get('product_id')
    if product_id is None:
        item_errors.append('Product ID is required')
    elif not _is_int(product_id) or product_id <= 0:
        item_errors.append('Product ID must be a positive integer')

    quantity = item.get('quantity')
    if quantity is None:
        item_errors.append('Quantity is required')
    elif not _is_int(quantity) or quantity <= 0:
        item_errors.append('Quantity must be a positive integer')

    unit_price = _check_range(item, 'unit_price', item_errors, 'Unit price')
    tax_rate = _check_range(item, 'tax_rate', item_errors, 'Tax rate', maximum=Decimal('100'))
    discount_amount = _check_range(item, 'discount_amount', item_errors, 'Discount amount')

    if item_errors:
        errors.append(f"Item {index + 1}: {', '.join(item_errors)}")
        return None

    return {
        'product_id': product_id,
        'quantity': quantity,
        'unit_price': unit_price,
        'tax_rate': tax_rate,
        'discount_amount': discount_amount or Decimal('0'),
    }


def _parse_items(items: Any, errors: List[str]) -> List[Dict[str, Any]]:
    if items is None or not isinstance(items, list):
        errors.append('Items array is required')
        return []
    if not items:
        errors.append('Order must contain at least one item')
        return []
    parsed = []
    for index, item in enumerate(items):
        result = _parse_item(item, index, errors)
        if result is not None:
            parsed.append(result)
    return parsed


def _parse_header(data: Dict[str, Any], errors: List[str]) -> Dict[str, Any]:
    header: Dict[str, Any] = {}

    for field, label in (('order_date', 'order date'),
                         ('expected_delivery_date', 'expected delivery date')):
        if data.get(field) is not None:
            parsed = parse_datetime(data[field])
            if parsed is None:
                errors.append(f'Invalid {label} format')
            else:
                header[field] = parsed

    if data.get('status') is not None:
        if data['status'] not in ORDER_STATUS_VALUES:
            errors.append(f"Status must be one of: {', '.join(ORDER_STATUS_VALUES)}")
        else:
            header['status'] = data['status']

    if data.get('payment_status') is not None:
        if data['payment_status'] not in PAYMENT_STATUS_VALUES:
            errors.append(f"Payment status must be one of: {', '.join(PAYMENT_STATUS_VALUES)}")
        else:
            header['payment_status'] = data['payment_status']

    percentage = _check_range(data, 'discount_percentage', errors, 'Discount percentage',
                              maximum=Decimal('100'))
    if percentage is not None:
        header['discount_percentage'] = percentage
    discount = _check_range(data, 'discount_amount', errors, 'Discount amount')
    if discount is not None:
        header['discount_amount'] = discount
    paid = _check_range(data, 'paid_amount', errors, 'Paid amount')
    if paid is not None:
        header['paid_amount'] = paid

    for field in HEADER_TEXT_FIELDS:
        if field in data:
            value = data[field]
            if value is not None and not isinstance(value, str):
                errors.append(f'{field} must be a string')
            else:
                header[field] = value

    return header


def parse_order_create(data: Any) -> Dict[str, Any]:
    """Validate a create-order body."""
    if not isinstance(data, dict):
        raise ValidationError(errors=['Request body must be a JSON object'])

    errors: List[str] = []
    customer_id = data.get('customer_id')
    if not customer_id:
        errors.append('Customer ID is required')
    elif not _is_int(customer_id) or customer_id <= 0:
        errors.append('Customer ID must be a positive integer')

    items = _parse_items(data.get('items'), errors)
    header = _parse_header(data, errors)

    if errors:
        raise ValidationError(errors=errors)

    header['customer_id'] = customer_id
    header['items'] = items
    return header


def parse_order_edit(data: Any) -> Dict[str, Any]:
    """Validate a full-edit body. Every field is optional; ``items`` replaces all lines."""
    if not isinstance(data, dict):
        raise ValidationError(errors=['Request body must be a JSON object'])

    errors: List[str] = []
    header = _parse_header(data, errors)
    if 'order_date' in header:
        errors.append('order_date cannot be changed')
    if 'items' in data:
        header['items'] = _parse_items(data.get('items'), errors)
    if 'customer_id' in data:
        errors.append('customer_id cannot be changed')

    if errors:
        raise ValidationError(errors=errors)
    if not header:
        raise ValidationError(errors=['No fields to update'])
    return header


def parse_status_update(data: Any) -> str:
    errors: List[str] = []
    status = data.get('status') if isinstance(data, dict) else None
    if not status:
        errors.append('Status is required')
    elif status not in ORDER_STATUS_VALUES:
        errors.append(f"Status must be one of: {', '.join(ORDER_STATUS_VALUES)}")
    if errors:
        raise ValidationError(errors=errors)
    return status


def parse_payment_update(data: Any) -> Dict[str, Any]:
    errors: List[str] = []
    if not isinstance(data, dict):
        raise ValidationError(errors=['Request body must be a JSON object'])

    payment_status = data.get('payment_status')
    if not payment_status:
        errors.append('Payment status is required')
    elif payment_status not in PAYMENT_STATUS_VALUES:
        errors.append(f"Payment status must be one of: {', '.join(PAYMENT_STATUS_VALUES)}")

    paid_amount = _check_range(data, 'paid_amount', errors, 'Paid amount')

    if errors:
        raise ValidationError(errors=errors)
    return {'payment_status': payment_status, 'paid_amount': paid_amount}
