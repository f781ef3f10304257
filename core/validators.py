"""
Custom validators for marketplace models.
"""

import re
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import URLValidator


CURRENCY_CODE_PATTERN = re.compile(r'^[A-Z]{3}$')


def validate_currency_code(value):
    """
    Validate an ISO 4217 style currency code.

    Codes are stored upper-case; three letters, nothing else. No check is made
    against a list of active currencies since amounts are never converted.

    Args:
        value: Currency code string to validate

    Raises:
        ValidationError: If the code is not three upper-case letters
    """
    if not value or not CURRENCY_CODE_PATTERN.match(value):
        raise ValidationError(
            'Currency code must be three upper-case letters (for example USD).',
            code='invalid_currency_code'
        )


def validate_positive_amount(value):
    """
    Validate a money amount is strictly greater than zero.

    Args:
        value: Decimal amount

    Raises:
        ValidationError: If amount is zero or negative
    """
    if value is None:
        return

    if Decimal(value) <= 0:
        raise ValidationError(
            'Amount must be greater than zero.',
            code='amount_not_positive'
        )


def validate_external_url(value):
    """
    Validate avatar, lot image and attachment links.

    Uploads are handled outside this service, so only http(s) links are
    accepted. Empty values are allowed (all these fields are optional).

    Args:
        value: URL string

    Raises:
        ValidationError: If the URL is malformed or uses another scheme
    """
    if not value:
        return

    URLValidator(schemes=['http', 'https'])(value)
