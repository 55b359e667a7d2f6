"""
Naming helpers for entity metadata.
"""

import re


_FIRST_CAP_RE = re.compile("(.)([A-Z][a-z]+)")
_ALL_CAP_RE = re.compile("([a-z0-9])([A-Z])")


def camel_to_snake(name: str) -> str:
    """
    Convert ``LineItem`` style class names to ``line_item`` store table names.
    """
    step1 = _FIRST_CAP_RE.sub(r"\1_\2", name)
    return _ALL_CAP_RE.sub(r"\1_\2", step1).lower()


def entity_alias(name: str) -> str:
    """
    Alias prefix used for an entity's selected fields (``LineItem`` -> ``lineitem``).
    """
    return name.lower()


def field_alias(alias: str, attribute: str) -> str:
    return f"{alias}_{attribute}"
