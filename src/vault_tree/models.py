"""Domain model dataclasses and enums for vault-tree."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import TypeVar

from vault_tree.exceptions import InvalidPropertyError

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ElementType(IntEnum):
    """How an element value is presented to the user."""

    CLEAR_TEXT = 0
    PASSWORD = 1


class UserRole(IntEnum):
    """Access level of a vault user."""

    NORMAL = 0
    ADMIN = 1


class NodeKind(str, Enum):
    """The levels of the ownership tree (plus the owning user)."""

    USER = "user"
    GROUP = "group"
    ENTRY = "entry"
    SECTION = "section"
    ELEMENT = "element"


class GroupField(str, Enum):
    """Group properties addressable by name."""

    NAME = "name"
    ICON = "icon"
    POS_INDEX = "pos_index"
    SUPERGROUP_ID = "supergroup_id"


class EntryField(str, Enum):
    """Settable entry properties."""

    NAME = "name"
    TAGS = "tags"
    ICON = "icon"
    POS_INDEX = "pos_index"
    GROUP_ID = "group_id"


class SectionField(str, Enum):
    """Settable section properties."""

    NAME = "name"
    POS_INDEX = "pos_index"
    ENTRY_ID = "entry_id"


class ElementField(str, Enum):
    """Settable element properties."""

    NAME = "name"
    VALUE = "value"
    TYPE = "type"
    POS_INDEX = "pos_index"
    SECTION_ID = "section_id"


class UserField(str, Enum):
    """User properties readable through get_user_property."""

    USERNAME = "username"
    EMAIL = "email"
    DISPLAY_NAME = "display_name"
    FORENAME = "forename"
    SURNAME = "surname"
    ROLE = "role"
    ENABLED = "enabled"
    ROOT_ID = "root_id"
    CREATED_AT = "created_at"
    PROFILE_PICTURE = "profile_picture"
    LAST_LOGIN = "last_login"


class Severity(str, Enum):
    """Severity level for validation results."""

    ERROR = "ERROR"
    WARNING = "WARNING"


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class UserModel:
    """A vault user owning exactly one root group."""

    id: int
    username: str
    email: str
    display_name: str | None
    forename: str | None
    surname: str | None
    role: UserRole
    enabled: bool
    root_id: int
    created_at: str
    profile_picture: str | None
    last_login: str | None


@dataclass(frozen=True, slots=True)
class ElementModel:
    """A single named value inside a section (e.g. a username)."""

    id: int
    name: str
    value: str
    type: ElementType
    pos_index: int | None
    section_id: int


@dataclass(frozen=True, slots=True)
class SectionModel:
    """A region of an entry grouping related elements."""

    id: int
    name: str
    pos_index: int | None
    entry_id: int
    elements: tuple[ElementModel, ...] = ()


@dataclass(frozen=True, slots=True)
class EntryModel:
    """A stored credential record inside a group."""

    id: int
    name: str
    tags: frozenset[str]
    icon: str | None
    pos_index: int | None
    group_id: int
    sections: tuple[SectionModel, ...] = ()


@dataclass(frozen=True, slots=True)
class GroupModel:
    """A folder of entries and sub-groups.

    ``subgroups`` and ``entries`` are only populated when the group was
    fetched with a non-zero depth.
    """

    id: int
    name: str
    icon: str | None
    pos_index: int | None
    supergroup_id: int | None
    subgroups: tuple[GroupModel, ...] = ()
    entries: tuple[EntryModel, ...] = ()

    @property
    def is_root(self) -> bool:
        return self.supergroup_id is None


@dataclass(frozen=True, slots=True)
class EditRecord:
    """A single edit-history entry recording one change to a node."""

    id: int
    entity_type: str
    entity_id: int
    field_name: str | None
    operation: str
    old_value: str | None
    new_value: str | None
    timestamp: str


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """A single integrity finding (error or warning)."""

    rule_id: str
    severity: str
    entity_type: str
    entity_id: int
    message: str
    details: dict | None


_F = TypeVar("_F", bound=Enum)


def parse_field(field_type: type[_F], name: str | Enum) -> _F:
    """Resolve a property name to a member of a closed field enum."""
    try:
        return field_type(name)
    except ValueError:
        valid = ", ".join(f.value for f in field_type)
        raise InvalidPropertyError(
            f"Invalid property name {name!r}; expected one of: {valid}"
        ) from None
