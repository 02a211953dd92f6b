"""Pagination query arguments."""
from typing import Any, Dict, List

from erp.exceptions import ValidationError
from erp.validators.order_validator import parse_positive_int

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


def parse_pagination(args: Dict[str, Any], default_limit: int = DEFAULT_PAGE_SIZE,
                     max_limit: int = MAX_PAGE_SIZE) -> Dict[str, int]:
    """``page`` and ``limit`` from query args; ``limit`` is capped at ``max_limit``."""
    errors: List[str] = []
    page = 1
    limit = default_limit

    if args.get('page') not in (None, ''):
        page = parse_positive_int(args.get('page'))
        if page is None:
            errors.append('page must be a positive integer')
    if args.get('limit') not in (None, ''):
        limit = parse_positive_int(args.get('limit'))
        if limit is None:
            errors.append('limit must be a positive integer')
        elif limit > max_limit:
            limit = max_limit

    if errors:
        raise ValidationError(errors=errors)
    return {'page': page, 'limit': limit}
