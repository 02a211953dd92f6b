"""Product request validators."""
from decimal import Decimal
from typing import Any, Dict, List

from erp.exceptions import ValidationError
from erp.validators.order_validator import parse_decimal, has_cents_precision
from erp.validators.pagination import parse_pagination, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

REQUIRED_FIELDS = ('name', 'sku', 'base_price')
TEXT_FIELDS = ('name', 'description', 'sku', 'barcode', 'category', 'unit')
STOCK_UPDATE_TYPES = ('add', 'subtract', 'adjust')


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def parse_product(data: Any, partial: bool) -> Dict[str, Any]:
    """Validate a product body. ``partial`` allows any subset of fields (updates)."""
    if not isinstance(data, dict):
        raise ValidationError(errors=['Request body must be a JSON object'])

    errors: List[str] = []
    values: Dict[str, Any] = {}

    if not partial:
        for field in REQUIRED_FIELDS:
            if data.get(field) in (None, ''):
                errors.append(f'{field} is required')

    for field in TEXT_FIELDS:
        if field in data and data[field] is not None:
            if not isinstance(data[field], str) or (field in ('name', 'sku') and not data[field].strip()):
                errors.append(f'{field} must be a non-empty string')
            else:
                values[field] = data[field].strip()

    for field in ('base_price', 'cost_price'):
        if field in data and data[field] is not None:
            number = parse_decimal(data[field])
            if number is None or number < 0:
                errors.append(f'{field} must be a positive number')
            elif not has_cents_precision(number):
                errors.append(f'{field} must have at most 2 decimal places')
            else:
                values[field] = number

    if 'tax_rate' in data and data['tax_rate'] is not None:
        rate = parse_decimal(data['tax_rate'])
        if rate is None or rate < 0 or rate > 100:
            errors.append('tax_rate must be between 0 and 100')
        elif not has_cents_precision(rate):
            errors.append('tax_rate must have at most 2 decimal places')
        else:
            values['tax_rate'] = rate

    for field in ('stock_quantity', 'low_stock_threshold'):
        if field in data and data[field] is not None:
            if not _is_int(data[field]) or data[field] < 0:
                errors.append(f'{field} must be a non-negative integer')
            else:
                values[field] = data[field]

    if 'is_active' in data and data['is_active'] is not None:
        if not isinstance(data['is_active'], bool):
            errors.append('is_active must be a boolean')
        else:
            values['is_active'] = data['is_active']

    if errors:
        raise ValidationError(errors=errors)
    if partial and not values:
        raise ValidationError(errors=['No fields to update'])

    if not partial:
        values.setdefault('tax_rate', Decimal('0'))
        values.setdefault('stock_quantity', 0)
    return values


def parse_stock_update(data: Any) -> int:
    """Signed stock delta from ``{"quantity": n, "type": "add"|"subtract"|"adjust"}``."""
    if not isinstance(data, dict):
        raise ValidationError(errors=['Request body must be a JSON object'])

    errors: List[str] = []
    quantity = data.get('quantity')
    update_type = data.get('type', 'adjust')

    if not _is_int(quantity) or quantity == 0:
        errors.append('quantity must be a non-zero integer')
    if update_type not in STOCK_UPDATE_TYPES:
        errors.append(f"type must be one of: {', '.join(STOCK_UPDATE_TYPES)}")
    if errors:
        raise ValidationError(errors=errors)

    if update_type == 'add':
        return abs(quantity)
    if update_type == 'subtract':
        return -abs(quantity)
    return quantity


def parse_bool_arg(value: Any):
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        return value
    lowered = str(value).lower()
    if lowered in ('1', 'true', 'yes'):
        return True
    if lowered in ('0', 'false', 'no'):
        return False
    raise ValidationError(errors=[f'Invalid boolean value: {value}'])


def parse_product_filters(args: Dict[str, Any], default_limit: int = DEFAULT_PAGE_SIZE,
                          max_limit: int = MAX_PAGE_SIZE) -> Dict[str, Any]:
    filters: Dict[str, Any] = parse_pagination(args, default_limit, max_limit)
    errors: List[str] = []

    filters['category'] = args.get('category') or None
    filters['search'] = (args.get('search') or '')[:100] or None
    filters['is_active'] = parse_bool_arg(args.get('is_active'))
    filters['low_stock'] = parse_bool_arg(args.get('low_stock')) or False

    for field in ('min_price', 'max_price'):
        if args.get(field) not in (None, ''):
            number = parse_decimal(args.get(field))
            if number is None or number < 0:
                errors.append(f'{field} must be a positive number')
            filters[field] = number
        else:
            filters[field] = None

    if errors:
        raise ValidationError(errors=errors)
    return filters
