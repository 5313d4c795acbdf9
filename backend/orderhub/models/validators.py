"""Model-level validation utilities for data integrity.

Reusable validators that enforce business rules at the ORM level,
so invalid data never reaches the database regardless of which
route or service writes it.
"""

from decimal import Decimal


def non_negative(key: str, value):
    """Validate that a numeric value is >= 0."""
    if value is not None:
        v = Decimal(str(value)) if not isinstance(value, Decimal) else value
        if v < 0:
            raise ValueError(f"{key} cannot be negative, got {value}")
    return value


def positive(key: str, value):
    """Validate that a numeric value is > 0."""
    if value is not None:
        v = Decimal(str(value)) if not isinstance(value, Decimal) else value
        if v <= 0:
            raise ValueError(f"{key} must be positive, got {value}")
    return value


def validate_price_map(key: str, value):
    """Validate a platform -> price JSON map (or None)."""
    if value is None:
        return value
    if not isinstance(value, dict):
        raise ValueError(f"{key} must be a dict, got {type(value).__name__}")
    for platform, price in value.items():
        if price is None:
            continue
        non_negative(f"{key}[{platform}]", price)
    return value
