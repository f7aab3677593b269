from __future__ import annotations

from typing import Any, Mapping

from jinja2 import DictLoader, Environment, StrictUndefined
from markupsafe import Markup

from tenant_admin.core import i18n
from tenant_admin.services.datatable.columns import ColumnDefinition
from tenant_admin.services.datatable.filters import FilterDefinition
from tenant_admin.services.datatable.registry import (
    COMPONENT_CELL_AVATAR,
    COMPONENT_CELL_BADGE,
    COMPONENT_CELL_BOOLEAN,
    COMPONENT_CELL_CURRENCY,
    COMPONENT_CELL_DATE,
    COMPONENT_CELL_DATETIME,
    COMPONENT_CELL_LINK,
    COMPONENT_CELL_NUMBER,
    COMPONENT_CELL_SAFE_HTML,
    COMPONENT_CELL_TEXT,
    COMPONENT_FILTER_BOOLEAN,
    COMPONENT_FILTER_DATE_RANGE,
    COMPONENT_FILTER_MULTISELECT,
    COMPONENT_FILTER_RELATIONSHIP,
    COMPONENT_FILTER_SELECT,
    ColumnComponentRegistry,
    FilterComponentRegistry,
    column_components,
    filter_components,
)

# Generic UI components usable through render_component().
COMPONENT_BADGE = "badge"
COMPONENT_BUTTON = "button"
COMPONENT_AVATAR = "avatar"
COMPONENT_LINK = "link"

_BADGE = (
    '<span class="badge badge-{{ options.variant or "neutral" }} badge-{{ options.size or "sm" }}">'
    "{{ content }}</span>"
)
_SELECT_OPTIONS = (
    "{% for option in choices %}"
    '<option value="{{ option.value }}"{% if option.value|string in selected %} selected{% endif %}>'
    "{{ option.label }}</option>"
    "{% endfor %}"
)

TEMPLATES: dict[str, str] = {
    COMPONENT_BADGE: _BADGE,
    COMPONENT_BUTTON: (
        '<button type="{{ options.type or "button" }}" class="btn btn-{{ options.variant or "primary" }}'
        ' btn-{{ options.size or "md" }}">{{ content }}</button>'
    ),
    COMPONENT_AVATAR: (
        '<div class="avatar avatar-{{ options.size or "sm" }}">'
        '{% if options.src %}<img src="{{ options.src }}" alt="{{ content }}">'
        '{% else %}<span class="avatar-initials">{{ content|initials }}</span>{% endif %}</div>'
    ),
    COMPONENT_LINK: '<a class="link link-{{ options.variant or "primary" }}" href="{{ options.href or "#" }}">{{ content }}</a>',
    COMPONENT_CELL_TEXT: '<span class="cell-text">{{ content }}</span>',
    COMPONENT_CELL_BADGE: _BADGE,
    COMPONENT_CELL_BOOLEAN: (
        '{% if content|string in ("1", "True", "true") %}<span class="cell-boolean cell-boolean-true">{{ options.true_label or "✓" }}</span>'
        '{% else %}<span class="cell-boolean cell-boolean-false">{{ options.false_label or "✗" }}</span>{% endif %}'
    ),
    COMPONENT_CELL_DATE: '<time class="cell-date">{{ content }}</time>',
    COMPONENT_CELL_DATETIME: '<time class="cell-datetime">{{ content }}</time>',
    COMPONENT_CELL_CURRENCY: '<span class="cell-currency tabular-nums">{{ content }}</span>',
    COMPONENT_CELL_NUMBER: '<span class="cell-number tabular-nums">{{ content }}</span>',
    COMPONENT_CELL_LINK: '<a class="cell-link" href="{{ options.href or "#" }}">{{ content }}</a>',
    COMPONENT_CELL_AVATAR: (
        '<div class="cell-avatar avatar avatar-{{ options.size or "sm" }}">'
        '{% if options.src %}<img src="{{ options.src }}" alt="{{ content }}">'
        '{% else %}<span class="avatar-initials">{{ content|initials }}</span>{% endif %}</div>'
    ),
    COMPONENT_CELL_SAFE_HTML: "{{ content|safe }}",
    COMPONENT_FILTER_SELECT: (
        '<select name="{{ filter.key }}" class="select select-sm" aria-label="{{ filter.label }}">'
        '<option value="">{{ placeholder }}</option>' + _SELECT_OPTIONS + "</select>"
    ),
    COMPONENT_FILTER_RELATIONSHIP: (
        '<select name="{{ filter.key }}" class="select select-sm" aria-label="{{ filter.label }}">'
        '<option value="">{{ placeholder }}</option>' + _SELECT_OPTIONS + "</select>"
    ),
    COMPONENT_FILTER_MULTISELECT: (
        '<select name="{{ filter.key }}" class="select select-sm" multiple aria-label="{{ filter.label }}">'
        + _SELECT_OPTIONS
        + "</select>"
    ),
    COMPONENT_FILTER_BOOLEAN: (
        '<select name="{{ filter.key }}" class="select select-sm" aria-label="{{ filter.label }}">'
        '<option value="">{{ labels.any }}</option>'
        '<option value="1"{% if "1" in selected %} selected{% endif %}>{{ labels.yes }}</option>'
        '<option value="0"{% if "0" in selected %} selected{% endif %}>{{ labels.no }}</option>'
        "</select>"
    ),
    COMPONENT_FILTER_DATE_RANGE: (
        '<fieldset class="filter-date-range"><legend>{{ filter.label }}</legend>'
        '<label>{{ labels.date_from }} <input type="date" name="{{ filter.from_key }}" value="{{ from_value }}"></label>'
        '<label>{{ labels.date_to }} <input type="date" name="{{ filter.to_key }}" value="{{ to_value }}"></label>'
        "</fieldset>"
    ),
}


def _initials(value) -> str:
    words = [w for w in str(value or "").split() if w]
    return "".join(w[0] for w in words[:2]).upper()


env = Environment(loader=DictLoader(TEMPLATES), autoescape=True, undefined=StrictUndefined)
env.filters["initials"] = _initials


def _display(item: Any) -> Any:
    if isinstance(item, bool):
        return "1" if item else "0"
    if item is None:
        return ""
    if isinstance(item, Mapping) and "label" in item:
        return _display(item["label"])
    return item


def has_template(name: str) -> bool:
    return name in TEMPLATES


def _render(name: str, content: Any, options: Mapping[str, Any]) -> Markup:
    if isinstance(content, (list, tuple)):
        return Markup("").join(_render(name, item, options) for item in content)
    template = env.get_template(name)
    return Markup(template.render(content=_display(content), options=_Options(options)))


class _Options(dict):
    """Template options: missing keys read as None instead of raising."""

    def __getattr__(self, name):
        return self.get(name)


def render_component(name: str, content: Any, options: Mapping[str, Any] | None = None) -> Any:
    """Render a named UI component. Unknown names give back ``content`` untouched."""
    if not has_template(name):
        return content
    return _render(name, content, options or {})


def _cell_options(column: ColumnDefinition, value: Any) -> dict[str, Any]:
    options = dict(column.options)
    colors = options.pop("colors", None)
    if colors and not isinstance(value, (list, tuple)):
        options["variant"] = colors.get(str(_display(value)), options.get("variant"))
    href = options.get("href")
    if callable(href):
        options["href"] = href(value)
    elif isinstance(href, str) and "{value}" in href:
        options["href"] = href.replace("{value}", str(_display(value)))
    return options


def render_cell(column: ColumnDefinition, value: Any, registry: ColumnComponentRegistry | None = None) -> Markup:
    component = (registry or column_components).get_component(column.type)
    if isinstance(value, (list, tuple)):
        return Markup("").join(render_cell(column, item, registry) for item in value)
    return _render(component, value, _cell_options(column, value))


def render_filter(
    item: FilterDefinition,
    value: Any = None,
    choices: list[dict[str, Any]] | None = None,
    locale: str | None = None,
    registry: FilterComponentRegistry | None = None,
) -> Markup:
    component = (registry or filter_components).get_component(item.type)
    if isinstance(value, Mapping):
        selected = set()
    elif isinstance(value, (list, tuple, set)):
        selected = {str(_display(v)) for v in value}
    elif value is None or value == "":
        selected = set()
    else:
        selected = {str(_display(value))}
    labels = {
        "any": i18n.translate("datatable.filters.any", locale),
        "yes": i18n.translate("datatable.filters.yes", locale),
        "no": i18n.translate("datatable.filters.no", locale),
        "date_from": i18n.translate("datatable.filters.from", locale),
        "date_to": i18n.translate("datatable.filters.to", locale),
    }
    template = env.get_template(component)
    return Markup(
        template.render(
            filter=item,
            from_value=_display(value.get("from")) if isinstance(value, Mapping) else "",
            to_value=_display(value.get("to")) if isinstance(value, Mapping) else "",
            selected=selected,
            choices=choices if choices is not None else item.resolve_options(),
            placeholder=item.placeholder or labels["any"],
            labels=labels,
        )
    )
