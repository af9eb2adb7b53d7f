"""
Property metadata for input-gathering workflows.

A PropertyMetadataCollection describes the values a workflow must collect
from the user before moving on. It is immutable configuration, never state.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import TypeAdapter, ValidationError

# (state, property_name) -> PropertyFulfilledResult
IsPropertyFulfilled = Callable[[Any, str], "PropertyFulfilledResult"]


@dataclass(frozen=True)
class PropertyFulfilledResult:
    is_fulfilled: bool
    reason: str | None = None


@dataclass(frozen=True)
class PropertyMetadata:
    """
    Describes one property a workflow collects.

    ``type_`` is any annotation pydantic can validate (``str``, ``int``,
    ``Literal[...]``, a model class). ``validator`` runs after type
    validation and may normalise the value or raise ValueError.
    """

    friendly_name: str
    description: str
    type_: Any = str
    required: bool = True
    validator: Callable[[Any], Any] | None = None
    _adapter: TypeAdapter = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_adapter", TypeAdapter(self.type_))

    def validate_value(self, value: Any) -> Any:
        """
        Validate and normalise a value for this property.

        Raises:
            pydantic.ValidationError: Type validation failed
            ValueError: The custom validator rejected the value
        """
        validated = self._adapter.validate_python(value)
        if self.validator is not None:
            validated = self.validator(validated)
        return validated

    def is_valid(self, value: Any) -> bool:
        try:
            self.validate_value(value)
        except (ValidationError, ValueError):
            return False
        return True

    def json_schema(self) -> dict[str, Any]:
        schema = self._adapter.json_schema()
        schema.setdefault("description", self.description)
        return schema


PropertyMetadataCollection = Mapping[str, PropertyMetadata]


def default_is_property_fulfilled(state: Any, property_name: str) -> PropertyFulfilledResult:
    """A property is fulfilled when the state holds a truthy value for it."""
    if getattr(state, property_name, None):
        return PropertyFulfilledResult(is_fulfilled=True)
    return PropertyFulfilledResult(
        is_fulfilled=False,
        reason=f"Property '{property_name}' is missing from the workflow state.",
    )


def required_property_names(properties: PropertyMetadataCollection) -> list[str]:
    return [name for name, meta in properties.items() if meta.required]
