"""Display-name lookup for tag types.

Tag types carry no display names themselves; the application injects a
resolver (e.g. backed by its tag registry or locale).
"""

from typing import Protocol

from .models import TagType

DEFAULT_KIND_NAMES: dict[str, str] = {
    "memory": "Memory",
    "location": "Location",
    "root": "Root",
    "shape": "Shape",
    "sound": "Sound",
}


class TagNameResolver(Protocol):
    def display_name(self, tag_type: TagType) -> str: ...

    def for_identifier(self, identifier: str) -> str: ...


class StaticTagNames:
    """Resolver backed by a fixed mapping, with per-identifier overrides.

    Overrides are keyed by tag type identifier (``memory``, ``custom:root``).
    Unknown custom keys fall back to the title-cased key.
    """

    def __init__(self, overrides: dict[str, str] | None = None):
        self._overrides = dict(overrides or {})

    def display_name(self, tag_type: TagType) -> str:
        if tag_type.identifier in self._overrides:
            return self._overrides[tag_type.identifier]
        if tag_type.kind == "custom":
            return (tag_type.key or "").replace("_", " ").title()
        return DEFAULT_KIND_NAMES.get(tag_type.kind, tag_type.kind)

    def for_identifier(self, identifier: str) -> str:
        """Resolve a stored identifier string (as used in node groups)."""
        if identifier == "unknown":
            return identifier
        return self.display_name(TagType.model_validate(identifier))
