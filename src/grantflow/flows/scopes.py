"""Scope validation shared by both grant flows."""

from __future__ import annotations

from collections.abc import Sequence

from grantflow.exceptions import InvalidArgumentError


def validate_scopes(scopes: Sequence[str]) -> list[str]:
    """Return *scopes* as a list after checking its shape.

    Duplicates are kept as given.

    Raises:
        InvalidArgumentError: *scopes* is not a sequence, is a bare string,
            is empty, or contains an empty or non-string element.
    """
    if isinstance(scopes, (str, bytes)) or not isinstance(scopes, Sequence):
        raise InvalidArgumentError("Scopes must be a sequence of strings")
    if len(scopes) == 0:
        raise InvalidArgumentError("At least one scope is required")
    for scope in scopes:
        if not isinstance(scope, str):
            raise InvalidArgumentError(
                f"Every scope must be a string, got {type(scope).__name__}"
            )
        if not scope:
            raise InvalidArgumentError("Scopes must not be empty strings")
    return list(scopes)
