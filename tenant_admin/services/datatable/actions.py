from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

# (ability, row) -> bool, usually bound to the requesting user's policies
AbilityCheck = Callable[[str, Any], bool]


def _route_for(route, row) -> str | None:
    if route is None:
        return None
    if callable(route):
        return route(row)
    return route.format(id=getattr(row, "id", None), uuid=getattr(row, "uuid", None))


@dataclass(frozen=True)
class ActionDefinition:
    key: str
    label: str
    icon: str | None = None
    route: str | Callable[[Any], str] | None = None
    method: str = "GET"
    ability: str | None = None
    visible: Callable[[Any], bool] | None = None
    confirm: str | None = None
    variant: str = "default"

    def is_visible(self, row, can: AbilityCheck | None = None) -> bool:
        if self.visible is not None and not self.visible(row):
            return False
        if self.ability is None:
            return True
        return can is not None and can(self.ability, row)

    def to_dict(self, row) -> dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "icon": self.icon,
            "url": _route_for(self.route, row),
            "method": self.method,
            "confirm": self.confirm,
            "variant": self.variant,
        }


class Action:
    """Fluent builder for a per-row :class:`ActionDefinition`."""

    def __init__(self, key: str, label: str):
        self._key = key
        self._label = label
        self._icon: str | None = None
        self._route = None
        self._method = "GET"
        self._ability: str | None = None
        self._visible = None
        self._confirm: str | None = None
        self._variant = "default"

    @classmethod
    def make(cls, key: str, label: str | None = None) -> "Action":
        return cls(key, label if label is not None else key.replace("_", " ").capitalize())

    def icon(self, name: str) -> "Action":
        self._icon = name
        return self

    def route(self, route: str | Callable[[Any], str], method: str = "GET") -> "Action":
        """``route`` may use ``{id}`` and ``{uuid}`` placeholders or be a callable of the row."""
        self._route = route
        self._method = method.upper()
        return self

    def can(self, ability: str) -> "Action":
        self._ability = ability
        return self

    def show(self, callback: Callable[[Any], bool]) -> "Action":
        self._visible = callback
        return self

    def confirm(self, message: str) -> "Action":
        self._confirm = message
        return self

    def variant(self, name: str) -> "Action":
        self._variant = name
        return self

    def danger(self) -> "Action":
        return self.variant("danger")

    def build(self) -> ActionDefinition:
        return ActionDefinition(
            key=self._key,
            label=self._label,
            icon=self._icon,
            route=self._route,
            method=self._method,
            ability=self._ability,
            visible=self._visible,
            confirm=self._confirm,
            variant=self._variant,
        )


@dataclass(frozen=True)
class BulkActionDefinition:
    key: str
    label: str
    handler: Callable[..., Any]
    icon: str | None = None
    ability: str | None = None
    confirm: str | None = None
    variant: str = "default"

    def is_available(self, rows: list, can: AbilityCheck | None = None) -> bool:
        if self.ability is None:
            return True
        return can is not None and any(can(self.ability, row) for row in rows)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "icon": self.icon,
            "confirm": self.confirm,
            "variant": self.variant,
        }


class BulkAction:
    """Fluent builder for :class:`BulkActionDefinition`.

    The handler is called as ``handler(db, rows, actor)`` with the rows the
    actor may act on; the caller commits.
    """

    def __init__(self, key: str, label: str):
        self._key = key
        self._label = label
        self._handler = None
        self._icon: str | None = None
        self._ability: str | None = None
        self._confirm: str | None = None
        self._variant = "default"

    @classmethod
    def make(cls, key: str, label: str | None = None) -> "BulkAction":
        return cls(key, label if label is not None else key.replace("_", " ").capitalize())

    def icon(self, name: str) -> "BulkAction":
        self._icon = name
        return self

    def can(self, ability: str) -> "BulkAction":
        self._ability = ability
        return self

    def execute(self, handler: Callable[..., Any]) -> "BulkAction":
        self._handler = handler
        return self

    def confirm(self, message: str) -> "BulkAction":
        self._confirm = message
        return self

    def variant(self, name: str) -> "BulkAction":
        self._variant = name
        return self

    def danger(self) -> "BulkAction":
        return self.variant("danger")

    def build(self) -> BulkActionDefinition:
        return BulkActionDefinition(
            key=self._key,
            label=self._label,
            handler=self._handler,
            icon=self._icon,
            ability=self._ability,
            confirm=self._confirm,
            variant=self._variant,
        )
