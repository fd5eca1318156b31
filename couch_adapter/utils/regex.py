"""Regex patterns and utilities for recognising relationship keys."""

import re

_to_many_key_pattern = re.compile(r"^(?P<name>.+)Ids$")
_to_one_key_pattern = re.compile(r"^(?P<name>.+)Id$")


def split_relationship_key(key: str) -> tuple[str, bool] | None:
    """
    Split a document key into its relationship name and plurality.

    ``authorId`` gives ``("author", False)`` and ``tagIds`` gives
    ``("tag", True)``. Keys without a stem before the suffix, and keys that do
    not end in ``Id`` or ``Ids``, give None.
    """
    if match := _to_many_key_pattern.match(key):
        return match["name"], True
    if match := _to_one_key_pattern.match(key):
        return match["name"], False
    return None
