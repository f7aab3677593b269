from __future__ import annotations

from dataclasses import dataclass, field as dc_field
from types import MappingProxyType
from typing import Any, Callable, Mapping

from tenant_admin.services.datatable.types import ColumnType


@dataclass(frozen=True)
class ColumnDefinition:
    key: str
    label: str
    type: ColumnType = ColumnType.TEXT
    field: str | None = None
    sortable: bool = False
    searchable: bool = False
    options: Mapping[str, Any] = dc_field(default_factory=lambda: MappingProxyType({}))
    content: Callable[[Any], Any] | None = None
    formatter: Callable[[Any, Any], Any] | None = None
    search: Callable[[str, Any], Any] | None = None
    sort: Callable[..., Any] | None = None
    hidden: bool = False

    @property
    def path(self) -> str:
        return self.field or self.key

    @property
    def relationship_path(self) -> tuple[str, ...]:
        return tuple(self.path.split(".")[:-1])

    @property
    def attribute(self) -> str:
        return self.path.split(".")[-1]

    def option(self, name: str, default: Any = None) -> Any:
        return self.options.get(name, default)


class Column:
    """Fluent builder for :class:`ColumnDefinition`.

    ``Column.make("email", "Email").searchable().sortable().build()``
    """

    def __init__(self, key: str, label: str):
        self._key = key
        self._label = label
        self._type = ColumnType.TEXT
        self._field: str | None = None
        self._sortable = False
        self._searchable = False
        self._options: dict[str, Any] = {}
        self._content = None
        self._formatter = None
        self._search = None
        self._sort = None
        self._hidden = False

    @classmethod
    def make(cls, key: str, label: str | None = None) -> "Column":
        return cls(key, label if label is not None else key.replace("_", " ").capitalize())

    def field(self, path: str) -> "Column":
        self._field = path
        return self

    def type(self, column_type: ColumnType | str, **options: Any) -> "Column":
        self._type = ColumnType(column_type)
        self._options.update(options)
        return self

    def options(self, **options: Any) -> "Column":
        self._options.update(options)
        return self

    def sortable(self, callback: bool | Callable[..., Any] = True) -> "Column":
        if callable(callback):
            self._sortable = True
            self._sort = callback
        else:
            self._sortable = bool(callback)
        return self

    def searchable(self, callback: bool | Callable[[str, Any], Any] = True) -> "Column":
        if callable(callback):
            self._searchable = True
            self._search = callback
        else:
            self._searchable = bool(callback)
        return self

    def content(self, callback: Callable[[Any], Any]) -> "Column":
        self._content = callback
        return self

    def format(self, callback: Callable[[Any, Any], Any]) -> "Column":
        self._formatter = callback
        return self

    def hidden(self, value: bool = True) -> "Column":
        self._hidden = value
        return self

    def text(self) -> "Column":
        return self.type(ColumnType.TEXT)

    def badge(self, colors: Mapping[str, str] | None = None, **options: Any) -> "Column":
        if colors:
            options["colors"] = dict(colors)
        return self.type(ColumnType.BADGE, **options)

    def boolean(self, **options: Any) -> "Column":
        return self.type(ColumnType.BOOLEAN, **options)

    def date(self, fmt: str | None = None) -> "Column":
        return self.type(ColumnType.DATE, **({"format": fmt} if fmt else {}))

    def datetime(self, fmt: str | None = None) -> "Column":
        return self.type(ColumnType.DATETIME, **({"format": fmt} if fmt else {}))

    def currency(self, currency: str | None = None, decimals: int | None = None, **options: Any) -> "Column":
        if currency:
            options["currency"] = currency
        if decimals is not None:
            options["decimals"] = decimals
        return self.type(ColumnType.CURRENCY, **options)

    def number(self, decimals: int = 0, **options: Any) -> "Column":
        return self.type(ColumnType.NUMBER, decimals=decimals, **options)

    def link(self, href: Callable[[Any], str] | str, **options: Any) -> "Column":
        return self.type(ColumnType.LINK, href=href, **options)

    def avatar(self, **options: Any) -> "Column":
        return self.type(ColumnType.AVATAR, **options)

    def safe_html(self) -> "Column":
        return self.type(ColumnType.SAFE_HTML)

    def build(self) -> ColumnDefinition:
        return ColumnDefinition(
            key=self._key,
            label=self._label,
            type=self._type,
            field=self._field,
            sortable=self._sortable,
            searchable=self._searchable,
            options=MappingProxyType(dict(self._options)),
            content=self._content,
            formatter=self._formatter,
            search=self._search,
            sort=self._sort,
            hidden=self._hidden,
        )
