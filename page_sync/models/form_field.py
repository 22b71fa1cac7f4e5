"""Small value types attached to a page."""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional


@dataclass
class FormField:
    """One named value of a page's Scaffolding form.

    Attributes:
        name: Field name as defined in the Scaffolding template
        value: Field value; any JSON value the add-on returned
        extra: Other keys of the wire object, sent back unchanged
    """
    name: str
    value: Any = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FormField":
        rest = {key: val for key, val in data.items() if key not in ("name", "value")}
        return cls(name=data.get("name", ""), value=data.get("value", ""), extra=rest)

    def to_dict(self) -> Dict[str, Any]:
        result = dict(self.extra)
        result["name"] = self.name
        result["value"] = self.value
        return result


@dataclass(frozen=True)
class Modifier:
    """User who last modified a page."""
    username: Optional[str]
    display_name: Optional[str]
