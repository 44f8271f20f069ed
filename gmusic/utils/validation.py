"""
Argument validation for gmusic operations

Required collection arguments fail fast with ArgumentError before any
request is built. Blank identifiers are not errors: operations treat
them as "nothing to do" and return a failure value.
"""

from typing import Any, Iterable, List, Optional

from ..core.exceptions import ArgumentError


def require_argument(value: Any, name: str, operation: str) -> Any:
    """
    Ensure a required argument is not None

    Args:
        value: Argument value
        name: Argument name used in the error message
        operation: Name of the public operation being called

    Returns:
        The value unchanged

    Raises:
        ArgumentError: If the value is None
    """
    if value is None:
        raise ArgumentError(
            f"Argument '{name}' in {operation} must not be None!",
            details={'argument': name, 'operation': operation}
        )
    return value


def require_ids(values: Optional[Iterable[str]], name: str, operation: str) -> List[str]:
    """
    Validate and materialize an identifier collection

    A bare string is rejected: iterating it would silently send one id
    per character.

    Args:
        values: Iterable of identifiers
        name: Argument name used in the error message
        operation: Name of the public operation being called

    Returns:
        List of the non-empty identifiers, in input order

    Raises:
        ArgumentError: If the collection is None or a plain string
    """
    require_argument(values, name, operation)
    if isinstance(values, str):
        raise ArgumentError(
            f"Argument '{name}' in {operation} must be a collection of ids, not a string!",
            details={'argument': name, 'operation': operation}
        )
    return [value for value in values if value]


def is_blank(value: Optional[str]) -> bool:
    """Check for None, empty or whitespace-only strings"""
    return value is None or not str(value).strip()
