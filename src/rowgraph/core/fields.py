"""
Typed attribute descriptors for entities.

Assignments made through a field (``order.status = "paid"``) are routed to
:meth:`Entity.set`, so dirty tracking and the attribute-set hooks apply to
plain attribute syntax as well.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional, Sequence

if TYPE_CHECKING:
    from .entity import Entity


class FieldError(Exception):
    """Internal exception for field configuration issues."""


class Field:
    """
    Base class for entity attribute descriptors.

    A field maps one attribute to one store column (``db_column`` defaults to
    the attribute name) and carries the metadata used by validation.
    """

    _creation_counter = 0

    def __init__(
        self,
        *,
        primary_key: bool = False,
        unique: bool = False,
        nullable: bool = True,
        default: Any = None,
        db_column: Optional[str] = None,
        choices: Optional[Sequence[Any]] = None,
        validators: Optional[Iterable[Callable[[Any], None]]] = None,
        help_text: Optional[str] = None,
    ) -> None:
        self.primary_key = primary_key
        self.unique = unique
        self.nullable = nullable
        self.default = default
        self.db_column = db_column
        self.choices = tuple(choices) if choices is not None else None
        self.validators = list(validators or [])
        self.help_text = help_text

        self.entity: type["Entity"] | None = None
        self.name: str | None = None
        self.creation_counter = Field._creation_counter
        Field._creation_counter += 1

    # Descriptor protocol -------------------------------------------------
    def __get__(self, instance: Optional["Entity"], owner: type | None = None) -> Any:
        if instance is None:
            return self
        return instance._values.get(self.require_name())

    def __set__(self, instance: "Entity", value: Any) -> None:
        instance.set(self.require_name(), value)

    # Metadata helpers ----------------------------------------------------
    def contribute_to_class(self, entity: type["Entity"], name: str) -> None:
        self.entity = entity
        self.name = name
        if self.db_column is None:
            self.db_column = name
        setattr(entity, name, self)

    def require_name(self) -> str:
        if self.name is None:
            raise FieldError("Field name is not set.")
        return self.name

    def column_name(self) -> str:
        return self.db_column or self.require_name()

    # Conversion / validation ---------------------------------------------
    def get_default(self) -> Any:
        if callable(self.default):
            return self.default()
        return self.default

    @property
    def has_default(self) -> bool:
        return self.default is not None

    def clean_value(self, value: Any) -> Any:
        """Convert an assigned value and check it against ``choices``."""
        if value is None:
            return None
        python_value = self.to_python(value)
        if self.choices and python_value not in self.choices:
            raise ValueError(
                f"Value '{value}' for field '{self.require_name()}' not in choices {self.choices}"
            )
        return python_value

    def to_python(self, value: Any) -> Any:
        return value

    def run_validators(self, value: Any) -> None:
        for validator in self.validators:
            validator(value)


class IntegerField(Field):
    def to_python(self, value: Any) -> int | None:
        if value is None:
            return value
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid integer value '{value}'") from exc


class FloatField(Field):
    def to_python(self, value: Any) -> float | None:
        if value is None:
            return value
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid float value '{value}'") from exc


class BooleanField(Field):
    _TRUE = {"true", "t", "1", "yes"}
    _FALSE = {"false", "f", "0", "no"}

    def to_python(self, value: Any) -> bool | None:
        if value is None or isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in self._TRUE:
                return True
            if lowered in self._FALSE:
                return False
        if isinstance(value, (int, float)):
            return bool(value)
        raise ValueError(f"Invalid boolean value '{value}'")


class StringField(Field):
    def __init__(self, *, max_length: int | None = 255, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.max_length = max_length

    def to_python(self, value: Any) -> str | None:
        if value is None:
            return value
        result = value.decode("utf-8") if isinstance(value, bytes) else str(value)
        if self.max_length and len(result) > self.max_length:
            raise ValueError(
                f"Value for field '{self.require_name()}' exceeds max_length {self.max_length}"
            )
        return result
