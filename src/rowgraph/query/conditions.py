"""
Translation of attribute-level conditions and orderings into column-level ones.

Accepted condition forms:

* ``None`` - no filtering beyond the auto-conditions.
* a ``str`` - a literal clause handed to the driver untouched; auto-conditions
  are not added.
* a mapping ``{"status": "paid"}`` - equality on each key.
* a sequence whose items are ``"attribute operator value"`` expressions,
  ``(attribute, operator, value)`` tuples or ready :class:`Condition` objects.

Names that do not resolve to a mapped attribute are dropped.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from ..utils import get_logger
from .spec import Condition, Conditions, OrderBy, OrderTerm

logger = get_logger("query.conditions")

OPERATORS = ("=", "!=", "<>", "<", "<=", ">", ">=", "LIKE", "NOT LIKE", "IS", "IS NOT", "IN", "NOT IN")

_EXPRESSION_RE = re.compile(
    r"^\s*(?P<name>[\w\-]+(?:\.[\w\-]+){0,2})"
    r"(?P<op>\s*(?:<=|>=|<>|!=|=|<|>)\s*|\s+(?:NOT\s+LIKE|LIKE|IS\s+NOT|IS|NOT\s+IN|IN)\s+)"
    r"(?P<value>.+?)\s*$",
    re.IGNORECASE | re.DOTALL,
)
_INT_RE = re.compile(r"^[+-]?\d+$")
_FLOAT_RE = re.compile(r"^[+-]?(?:\d+\.\d*|\.\d+)(?:[eE][+-]?\d+)?$")
_LIST_ITEM_RE = re.compile(r"""\s*('(?:[^']|'')*'|"(?:[^"]|"")*"|[^,]+?)\s*(?:,|$)""")
_ORDER_RE = re.compile(r"^\s*(?P<minus>-)?(?P<name>[\w.\-]+)(?:\s+(?P<dir>ASC|DESC))?\s*$", re.IGNORECASE)

RawCondition = Union[str, Tuple[str, str, Any], Condition]


def normalize_operator(operator: str) -> str:
    normalized = " ".join(operator.split()).upper()
    if normalized not in OPERATORS:
        raise ValueError(f"Unsupported condition operator '{operator}'")
    return normalized


def parse_literal(text: str) -> Any:
    """Convert a literal from an expression string into a Python value."""
    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        quote = text[0]
        return text[1:-1].replace(quote * 2, quote)
    upper = text.upper()
    if upper == "NULL":
        return None
    if upper in ("TRUE", "FALSE"):
        return upper == "TRUE"
    if _INT_RE.match(text):
        return int(text)
    if _FLOAT_RE.match(text):
        return float(text)
    if text.startswith("(") and text.endswith(")"):
        inner = text[1:-1].strip()
        if not inner:
            return ()
        return tuple(parse_literal(item) for item in _LIST_ITEM_RE.findall(inner) if item)
    return text


def parse_expression(expression: str) -> Tuple[str, str, Any]:
    """
    Split ``"status = 'paid'"`` into ``("status", "=", "paid")``.

    Raises ``ValueError`` for text that is not ``name operator value``.
    """
    match = _EXPRESSION_RE.match(expression)
    if match is None:
        raise ValueError(f"Malformed condition expression {expression!r}")
    operator = normalize_operator(match.group("op"))
    return match.group("name"), operator, parse_literal(match.group("value"))


class ConditionsTranslator:
    """
    Translates conditions for one entity instance: resolves attribute names
    through its attribute map and prepends its auto-conditions.
    """

    def __init__(self, attribute_map, auto_conditions: Iterable[Condition] = ()) -> None:
        self.attribute_map = attribute_map
        self.auto_conditions = list(auto_conditions)

    def translate(self, conditions: Any) -> Conditions:
        if isinstance(conditions, str):
            return conditions
        translated = list(self.auto_conditions)
        for item in self._iter_raw(conditions):
            condition = self._translate_one(item)
            if condition is not None:
                translated.append(condition)
        return translated

    def translate_order(self, order: Any) -> OrderBy:
        if order is None:
            return None
        items: Sequence[Any] = [order] if isinstance(order, (str, OrderTerm)) else order
        terms: List[Union[OrderTerm, str]] = []
        for item in items:
            if isinstance(item, OrderTerm):
                terms.append(item)
                continue
            match = _ORDER_RE.match(item)
            attribute = self.attribute_map.resolve(match.group("name")) if match else None
            if match is None or attribute is None:
                terms.append(item)
                continue
            descending = bool(match.group("minus")) or (match.group("dir") or "").upper() == "DESC"
            terms.append(OrderTerm(self.attribute_map.qualified(attribute), descending))
        return terms

    @staticmethod
    def _iter_raw(conditions: Any) -> Iterable[RawCondition]:
        if conditions is None:
            return []
        if isinstance(conditions, Mapping):
            return [(name, "=", value) for name, value in conditions.items()]
        return conditions

    def _translate_one(self, item: RawCondition) -> Optional[Condition]:
        if isinstance(item, Condition):
            return item
        if isinstance(item, str):
            name, operator, value = parse_expression(item)
        else:
            try:
                name, operator, value = item
            except (TypeError, ValueError) as exc:
                raise ValueError(f"Condition must be (attribute, operator, value), got {item!r}") from exc
            operator = normalize_operator(operator)
        attribute = self.attribute_map.resolve(name)
        if attribute is None:
            logger.debug("Dropping condition on unmapped attribute %r", name)
            return None
        return Condition(self.attribute_map.qualified(attribute), operator, value)
