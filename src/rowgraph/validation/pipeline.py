"""
Field and entity level checks run by the persistence engine before a write.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List

from .errors import NON_FIELD_ERRORS, ValidationError

if TYPE_CHECKING:
    from ..core.entity import Entity
    from ..core.fields import Field


def validate_instance(instance: "Entity") -> None:
    """
    Check every declared field and then the entity's ``clean`` hook,
    raising one :class:`ValidationError` carrying all problems found.
    """
    errors: Dict[str, List[str]] = {}

    for field in instance._meta.get_fields():
        name = field.require_name()
        try:
            _validate_field(field, instance._values.get(name))
        except ValidationError as exc:
            _merge_errors(errors, exc.errors)
        except ValueError as exc:
            errors.setdefault(name, []).append(str(exc))

    try:
        instance.clean()
    except ValidationError as exc:
        _merge_errors(errors, exc.errors)
    except ValueError as exc:
        errors.setdefault(NON_FIELD_ERRORS, []).append(str(exc))

    if errors:
        raise ValidationError(errors)


def _validate_field(field: "Field", value: Any) -> None:
    if value is None:
        # generated on insert
        if field.primary_key:
            return
        if not field.nullable:
            raise ValidationError({field.require_name(): ["This field cannot be null."]})
        return
    if field.choices and value not in field.choices:
        raise ValidationError({field.require_name(): [f"Value {value!r} is not one of {field.choices}."]})
    field.run_validators(value)


def _merge_errors(target: Dict[str, List[str]], source: Dict[str, List[str]]) -> None:
    for name, messages in source.items():
        target.setdefault(name, []).extend(messages)
