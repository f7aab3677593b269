from __future__ import annotations

import logging
from typing import Any, Mapping

from fastapi import Request
from sqlalchemy.orm import Session

from tenant_admin.models.user import User
from tenant_admin.services.datatable.definition import TableDefinition
from tenant_admin.services.datatable.types import FilterType
from tenant_admin.services.preferences import CookiePreferencesStore, PreferencesStore, UserJsonPreferencesStore

_LOG = logging.getLogger("tenant_admin.datatable.preferences")

KEY_DATATABLES = "datatables"
LISTING_KEYS = ("sort_by", "sort_dir", "per_page")
RESET_PARAM = "reset"


def _filter_keys(definition: TableDefinition) -> list[str]:
    keys: list[str] = []
    for item in definition.filters:
        if item.type == FilterType.DATE_RANGE:
            keys += [item.from_key, item.to_key]
        else:
            keys.append(item.key)
    return keys


def _value(params: Mapping[str, Any], key: str) -> Any:
    if hasattr(params, "getlist"):
        values = params.getlist(key)
        return values if len(values) > 1 else params.get(key)
    return params.get(key)


class DataTablePreferencesService:
    """Remembers sort, page size and filters per table.

    Values present in the request are saved; missing ones are restored from
    what was saved last. ``reset`` drops the saved state for the table.
    """

    def __init__(self, store: PreferencesStore):
        self.store = store

    @classmethod
    def for_request(cls, request: Request | None, db: Session | None = None, user: User | None = None):
        if user is not None and db is not None:
            return cls(UserJsonPreferencesStore(db, user))
        return cls(CookiePreferencesStore(request))

    def _tables(self) -> dict[str, Any]:
        tables = self.store.all().get(KEY_DATATABLES)
        return dict(tables) if isinstance(tables, dict) else {}

    def get(self, table: str) -> dict[str, Any]:
        saved = self._tables().get(table)
        return dict(saved) if isinstance(saved, dict) else {}

    def set(self, table: str, values: dict[str, Any]) -> None:
        tables = self._tables()
        tables[table] = values
        self.store.set_many({KEY_DATATABLES: tables})

    def forget(self, table: str) -> None:
        tables = self._tables()
        if tables.pop(table, None) is not None:
            self.store.set_many({KEY_DATATABLES: tables})

    def resolve(self, definition: TableDefinition, params: Mapping[str, Any]) -> dict[str, Any]:
        """Request parameters merged with the saved state of ``definition.name``."""
        merged = {key: _value(params, key) for key in params.keys()}
        table = definition.name
        if not table:
            return merged
        if str(params.get(RESET_PARAM) or "").lower() in {"1", "true", "yes"}:
            self.forget(table)
            return merged

        saved = self.get(table)
        state = dict(saved)
        for key in LISTING_KEYS:
            if key in params:
                state[key] = merged[key]
            elif saved.get(key) not in (None, ""):
                merged[key] = saved[key]

        filter_keys = _filter_keys(definition)
        if any(key in params for key in filter_keys):
            state["filters"] = {key: merged[key] for key in filter_keys if key in params and merged[key] not in (None, "")}
        else:
            for key, value in (saved.get("filters") or {}).items():
                if key in filter_keys:
                    merged[key] = value

        if state != saved:
            self.set(table, state)
            _LOG.debug("saved listing state for table %s", table)
        return merged
