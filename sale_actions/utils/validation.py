"""
Input validation utilities for the sale actions worker.

Provides reusable checks for collection names, document keys, batch sizes
and contact addresses so that values coming from configuration or from
stored documents are vetted before they reach SQL or the mailing API.
"""

import re

from pydantic import ValidationError as PydanticValidationError
from pydantic.networks import validate_email
from pydantic_core import PydanticCustomError


class ValidationError(ValueError):
    """Raised when input validation fails."""
    pass


def sanitize_sql_identifier(identifier: str, field_name: str = "identifier") -> str:
    """
    Sanitize an SQL identifier (collection table name, document field name).

    Only allows safe SQL identifiers. Use this for dynamic table names to
    prevent SQL injection.

    Args:
        identifier: The identifier to sanitize
        field_name: Name of the field (for error messages)

    Returns:
        The validated identifier

    Raises:
        ValidationError: If validation fails

    Examples:
        >>> sanitize_sql_identifier("sales")
        'sales'
        >>> sanitize_sql_identifier("ar_processed")
        'ar_processed'
        >>> sanitize_sql_identifier("sales; DROP TABLE metadata;")  # doctest: +SKIP
        ValidationError: identifier contains invalid characters
    """
    if not identifier or not isinstance(identifier, str):
        raise ValidationError(f"{field_name} must be a non-empty string")

    identifier = identifier.strip()

    if not re.match(r'^[a-zA-Z_][a-zA-Z0-9_]*$', identifier):
        raise ValidationError(
            f"{field_name} contains invalid characters. "
            "SQL identifiers must start with a letter or underscore and contain only "
            "alphanumeric characters and underscores."
        )

    if len(identifier) > 63:  # PostgreSQL limit
        raise ValidationError(f"{field_name} exceeds PostgreSQL maximum length of 63 characters")

    reserved_keywords = {
        "select", "insert", "update", "delete", "drop", "create", "alter",
        "table", "database", "index", "view", "user", "grant", "revoke"
    }
    if identifier.lower() in reserved_keywords:
        raise ValidationError(
            f"{field_name} '{identifier}' is a reserved SQL keyword. "
            "Please use a different name."
        )

    return identifier


def validate_batch_size(batch_size: int, field_name: str = "batch_size", max_size: int = 1000) -> int:
    """
    Validate a dispatch batch size.

    Args:
        batch_size: Number of records grouped per dispatch
        field_name: Name of the field (for error messages)
        max_size: Maximum allowed batch size

    Returns:
        The validated batch size

    Raises:
        ValidationError: If validation fails
    """
    # bool is an int subclass
    if not isinstance(batch_size, int) or isinstance(batch_size, bool):
        raise ValidationError(f"{field_name} must be an integer, got {type(batch_size).__name__}")

    if batch_size < 1:
        raise ValidationError(f"{field_name} must be a positive integer, got {batch_size}")

    if batch_size > max_size:
        raise ValidationError(f"{field_name} exceeds maximum of {max_size}")

    return batch_size


def is_valid_marker_key(key: object) -> bool:
    """
    Check that a processed-marker key is a non-blank string.

    Keys are opaque content hashes or transaction identifiers.
    """
    return isinstance(key, str) and bool(key.strip())


def is_valid_email(address: str) -> bool:
    """
    Check that a contact address is a syntactically valid email address.

    Examples:
        >>> is_valid_email("alice@example.com")
        True
        >>> is_valid_email("not-an-address")
        False
    """
    if not isinstance(address, str) or not address:
        return False
    try:
        _, normalized = validate_email(address)
    except (PydanticCustomError, PydanticValidationError):
        return False
    # The address is sent verbatim, so display-name forms such as
    # "Alice <a@b.com>" and padded input are rejected.
    return normalized.casefold() == address.casefold()
