"""
Field type tags reported by the record query API.

Every field value in a record arrives as {"type": <tag>, "value": <raw>}.
The set is closed: new tags are added here and in the formatter's dispatch,
never detected by probing the raw value.
"""

from enum import Enum


class FieldType(str, Enum):
    """Declared type tag of a field value."""

    SINGLE_LINE_TEXT = "SINGLE_LINE_TEXT"
    MULTI_LINE_TEXT = "MULTI_LINE_TEXT"
    RICH_TEXT = "RICH_TEXT"
    NUMBER = "NUMBER"
    CALC = "CALC"
    LINK = "LINK"
    RECORD_NUMBER = "RECORD_NUMBER"

    DATE = "DATE"
    DATETIME = "DATETIME"
    CREATED_TIME = "CREATED_TIME"
    UPDATED_TIME = "UPDATED_TIME"

    TIME = "TIME"
    DROP_DOWN = "DROP_DOWN"
    RADIO_BUTTON = "RADIO_BUTTON"

    CHECK_BOX = "CHECK_BOX"
    MULTI_SELECT = "MULTI_SELECT"

    USER_SELECT = "USER_SELECT"
    ORGANIZATION_SELECT = "ORGANIZATION_SELECT"
    GROUP_SELECT = "GROUP_SELECT"
    CREATOR = "CREATOR"
    MODIFIER = "MODIFIER"

    FILE = "FILE"
    SUBTABLE = "SUBTABLE"

    ID = "__ID__"
    REVISION = "__REVISION__"

    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, tag) -> "FieldType":
        """Map a raw tag string (or a FieldType) to a member, UNKNOWN if unrecognized."""
        if isinstance(tag, cls):
            return tag
        try:
            return cls(tag)
        except ValueError:
            return cls.UNKNOWN


PLAIN_TYPES = frozenset({
    FieldType.SINGLE_LINE_TEXT,
    FieldType.MULTI_LINE_TEXT,
    FieldType.RICH_TEXT,
    FieldType.NUMBER,
    FieldType.CALC,
    FieldType.LINK,
    FieldType.RECORD_NUMBER,
})

DATE_TYPES = frozenset({
    FieldType.DATE,
    FieldType.DATETIME,
    FieldType.CREATED_TIME,
    FieldType.UPDATED_TIME,
})

SINGLE_CHOICE_TYPES = frozenset({
    FieldType.TIME,
    FieldType.DROP_DOWN,
    FieldType.RADIO_BUTTON,
})

MULTI_CHOICE_TYPES = frozenset({
    FieldType.CHECK_BOX,
    FieldType.MULTI_SELECT,
})

ENTITY_TYPES = frozenset({
    FieldType.USER_SELECT,
    FieldType.ORGANIZATION_SELECT,
    FieldType.GROUP_SELECT,
    FieldType.CREATOR,
    FieldType.MODIFIER,
})

INTERNAL_TYPES = frozenset({
    FieldType.ID,
    FieldType.REVISION,
})
