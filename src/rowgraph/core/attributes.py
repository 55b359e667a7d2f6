"""
Bidirectional attribute <-> column mapping for one store table.
"""

from __future__ import annotations

from typing import Dict, Iterator, Optional, Tuple

from ..query.spec import ColumnRef
from .errors import ModelConfigurationError


class AttributeMap:
    """
    Maps entity attribute names to the columns of ``table``.

    Both directions are unique: an attribute maps to one column and a column
    belongs to one attribute. Lookups of unmapped names return ``None``.
    """

    def __init__(self, table: str) -> None:
        self.table = table
        self._columns: Dict[str, str] = {}
        self._attributes: Dict[str, str] = {}

    def add_mapping(self, attribute: str, column: str) -> None:
        existing_column = self._columns.get(attribute)
        if existing_column == column:
            return
        if existing_column is not None:
            raise ModelConfigurationError(
                f"Attribute '{attribute}' is already mapped to column '{existing_column}' on '{self.table}'"
            )
        owner = self._attributes.get(column)
        if owner is not None:
            raise ModelConfigurationError(
                f"Column '{column}' on '{self.table}' is already mapped to attribute '{owner}'"
            )
        self._columns[attribute] = column
        self._attributes[column] = attribute

    def column_for(self, attribute: str) -> Optional[str]:
        return self._columns.get(attribute)

    def attribute_for(self, column: str) -> Optional[str]:
        return self._attributes.get(column)

    def resolve(self, name: str) -> Optional[str]:
        """
        Resolve an attribute name, optionally qualified as ``table.attribute``.
        """
        if name in self._columns:
            return name
        if "." in name:
            table, _, attribute = name.rpartition(".")
            if table.split(".")[-1] == self.table.split(".")[-1] and attribute in self._columns:
                return attribute
        return None

    def qualified(self, attribute: str) -> Optional[ColumnRef]:
        column = self._columns.get(attribute)
        if column is None:
            return None
        return ColumnRef(self.table, column)

    def attributes(self) -> Tuple[str, ...]:
        return tuple(self._columns)

    def columns(self) -> Tuple[str, ...]:
        return tuple(self._attributes)

    def items(self) -> Iterator[Tuple[str, str]]:
        return iter(self._columns.items())

    def remap(self, table: str) -> "AttributeMap":
        """Return a copy bound to ``table`` with the same attribute names."""
        clone = AttributeMap(table)
        clone._columns = dict(self._columns)
        clone._attributes = dict(self._attributes)
        return clone

    def __contains__(self, attribute: object) -> bool:
        return attribute in self._columns

    def __iter__(self) -> Iterator[str]:
        return iter(self._columns)

    def __len__(self) -> int:
        return len(self._columns)

    def __repr__(self) -> str:
        return f"<AttributeMap {self.table} {self._columns!r}>"
