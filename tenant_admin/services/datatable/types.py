from enum import Enum


class ColumnType(str, Enum):
    TEXT = "text"
    BADGE = "badge"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    CURRENCY = "currency"
    NUMBER = "number"
    LINK = "link"
    AVATAR = "avatar"
    SAFE_HTML = "safe_html"


class FilterType(str, Enum):
    SELECT = "select"
    MULTISELECT = "multiselect"
    BOOLEAN = "boolean"
    DATE_RANGE = "date_range"
    RELATIONSHIP = "relationship"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"

    @classmethod
    def parse(cls, raw) -> "SortDirection":
        text = str(raw or "").strip().lower()
        return cls.DESC if text == "desc" else cls.ASC


# Special select values that test for NULL rather than equality.
FILTER_NULL = "null"
FILTER_NOT_NULL = "not_null"
