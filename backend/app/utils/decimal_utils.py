"""
Decimal precision utilities for the MoMo Wallet backend.

Money columns in the database use NUMERIC(precision, scale). These helpers read
the scale from the model so amounts are truncated exactly as they will be stored.

Usage:
    from backend.app.utils.decimal_utils import truncate_to_db_precision

    truncated = truncate_to_db_precision(Decimal("10.129"), Transaction, "amount")
    # Returns: Decimal("10.12")
"""
from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Type, Tuple

from sqlalchemy import Numeric
from sqlmodel import SQLModel

from backend.app.db.models import Transaction


def get_model_column_precision(model: Type[SQLModel], column_name: str) -> Tuple[int, int]:
    """
    Get (precision, scale) for a numeric column from SQLModel.

    Args:
        model: SQLModel class (e.g., User, Transaction)
        column_name: Column name (e.g., "balance", "amount")

    Returns:
        Tuple of (precision, scale)

    Raises:
        ValueError: If column not found or not a Numeric type

    Example:
        >>> get_model_column_precision(Transaction, "amount")
        (18, 2)
    """
    if not hasattr(model, '__table__'):
        raise ValueError(f"Model {model.__name__} has no __table__ attribute")

    table = model.__table__

    if column_name not in table.columns:
        raise ValueError(f"Column '{column_name}' not found in {model.__name__}")

    column_type = table.columns[column_name].type

    if not isinstance(column_type, Numeric):
        raise ValueError(
            f"Column '{column_name}' in {model.__name__} is not Numeric type "
            f"(found: {type(column_type).__name__})"
            )

    precision = column_type.precision
    scale = column_type.scale

    if precision is None or scale is None:
        raise ValueError(f"Column '{column_name}' in {model.__name__} has undefined precision/scale")

    return precision, scale


def truncate_to_db_precision(value: Decimal, model: Type[SQLModel], column_name: str) -> Decimal:
    """
    Truncate decimal to match database column precision.

    Args:
        value: Decimal value to truncate
        model: SQLModel class
        column_name: Column name

    Returns:
        Truncated Decimal matching DB precision

    Raises:
        ValueError: If the value does not fit in NUMERIC(precision, scale)

    Note:
        Uses ROUND_DOWN so a user is never credited or debited more than requested.
    """
    precision, scale = get_model_column_precision(model, column_name)
    quantizer = Decimal(10) ** -scale
    try:
        result = value.quantize(quantizer, rounding=ROUND_DOWN)
    except InvalidOperation as e:
        # More digits than the decimal context holds
        raise ValueError(f"Value {value} exceeds NUMERIC({precision}, {scale})") from e
    if abs(result) >= Decimal(10) ** (precision - scale):
        raise ValueError(f"Value {value} exceeds NUMERIC({precision}, {scale})")
    return result


def to_decimal(value) -> Decimal:
    """
    Coerce int/str/float/Decimal to Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1"), not its binary expansion.

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as e:
            raise ValueError(f"Not a valid amount: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"Not a valid amount: {value!r}")
    return result


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def truncate_amount(value: Decimal) -> Decimal:
    """Truncate value with the precision used in DB transactions.amount."""
    return truncate_to_db_precision(value, Transaction, "amount")
