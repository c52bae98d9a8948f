"""Declarative field contracts for every entity in the transfer format.

Each ``EntitySpec`` lists its fields in the exact column order of the text
format. The same tuple drives row parsing, UPDATE/INSERT generation and the
exporter, so import and export can never disagree about column positions.
Rows written by older exports may be shorter than the current contract;
missing trailing fields are treated as "not supplied" rather than blank.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Literal, Sequence, Tuple

from sqlalchemy import Boolean, DateTime, Integer, Text, column, table
from sqlalchemy.sql.expression import TableClause
from sqlalchemy.types import TypeEngine

from lyceum.models.enums import EditStatus, LikeEntityType, UserRole

from .errors import RowError
from .values import clean, parse_bool, parse_datetime, parse_int

logger = logging.getLogger(__name__)

FieldKind = Literal["id", "text", "int", "bool", "datetime", "enum", "ref", "secret"]

_SQL_TYPES: Dict[str, TypeEngine] = {
    "id": Integer(),
    "int": Integer(),
    "ref": Integer(),
    "bool": Boolean(),
    "datetime": DateTime(),
    "text": Text(),
    "enum": Text(),
    "secret": Text(),
}


@dataclass(frozen=True)
class FieldSpec:
    """Metadata describing one column of an entity section."""

    name: str
    label: str
    kind: FieldKind = "text"
    required: bool = False
    default: object | None = None
    # Entity key of the referenced entity for ``ref`` fields
    target: str | None = None
    # Wired by the association pass after every row of the section exists
    deferred: bool = False
    # Export the referenced row's column instead of its id (e.g. author username)
    export_via: str | None = None
    # Older schemas name the column differently
    alternates: Tuple[str, ...] = ()
    choices: Tuple[str, ...] = ()
    max_length: int | None = None
    # Filled with the current time on insert when not supplied
    audit: bool = False
    # A blank value never overwrites what is stored
    preserve: bool = False

    @property
    def is_reference(self) -> bool:
        return self.kind == "ref"

    @property
    def keeps_stored_value(self) -> bool:
        return self.preserve or self.audit or self.is_reference

    @property
    def sql_type(self) -> TypeEngine:
        return _SQL_TYPES[self.kind]

    def column_candidates(self) -> Tuple[str, ...]:
        return (self.name, *self.alternates)


@dataclass(frozen=True)
class EntitySpec:
    """One section of the transfer format and the table it loads."""

    key: str
    table: str
    title: str
    fields: Tuple[FieldSpec, ...]
    titles: Tuple[str, ...] = ()
    keyword_sets: Tuple[Tuple[str, ...], ...] = ()
    exclude: Tuple[str, ...] = ()
    natural_keys: Tuple[str, ...] = ()
    unique_keys: Tuple[Tuple[str, ...], ...] = ()
    # Drop a stored row with the incoming identity before writing
    replace_existing: bool = False
    # Link tables have no identity column
    keyed: bool = True
    # Rows repeating these values are stray header lines
    header_labels: Tuple[str, ...] = ()
    # Emit the ``ID`` header line on export
    export_header: bool = True
    # Rows shorter than this are rejected outright
    min_fields: int = 1

    @property
    def all_titles(self) -> Tuple[str, ...]:
        return (self.title, *self.titles)

    @property
    def identity(self) -> FieldSpec | None:
        return self.fields[0] if self.keyed else None

    @property
    def references(self) -> Tuple[FieldSpec, ...]:
        return tuple(spec for spec in self.fields if spec.is_reference)

    @property
    def deferred_references(self) -> Tuple[FieldSpec, ...]:
        return tuple(spec for spec in self.fields if spec.is_reference and spec.deferred)

    def header(self) -> Tuple[str, ...]:
        return tuple(spec.label for spec in self.fields)

    def field(self, name: str) -> FieldSpec:
        for spec in self.fields:
            if spec.name == name:
                return spec
        raise KeyError(f"{self.key} has no field {name!r}")


@dataclass
class ParsedRow:
    """A row after scalar parsing; references are still raw tokens."""

    index: int
    identity: int | None
    values: Dict[str, object] = field(default_factory=dict)
    references: Dict[str, str | None] = field(default_factory=dict)
    supplied: Tuple[str, ...] = ()

    def is_supplied(self, name: str) -> bool:
        return name in self.supplied


def sql_table(name: str, columns: Iterable[Tuple[str, TypeEngine]]) -> TableClause:
    """Lightweight typed table construct for columns confirmed to exist."""
    return table(name, *(column(column_name, type_) for column_name, type_ in columns))


def _parse_scalar(entity: EntitySpec, spec: FieldSpec, token: str, row_index: int) -> object | None:
    try:
        if spec.kind in ("int", "id"):
            return parse_int(token)
        if spec.kind == "bool":
            return parse_bool(token)
        if spec.kind == "datetime":
            return parse_datetime(token)
    except ValueError:
        logger.warning(
            "%s row %s: malformed %s value %r for %s, treating as absent",
            entity.key,
            row_index,
            spec.kind,
            token,
            spec.name,
        )
        return None
    if spec.kind == "enum":
        normalized = token.upper()
        if normalized not in spec.choices:
            logger.warning(
                "%s row %s: unknown %s value %r, treating as absent",
                entity.key,
                row_index,
                spec.name,
                token,
            )
            return None
        return normalized
    if spec.max_length is not None and len(token) > spec.max_length:
        return token[: spec.max_length]
    return token


def read_row(entity: EntitySpec, row: Sequence[str], row_index: int) -> ParsedRow:
    """
    Parse one field array against ``entity``'s contract.

    Raises ``RowError`` when the identity or a required scalar is missing.
    Malformed scalars are logged and fall back to the field default.
    """
    identity: int | None = None
    start = 0
    if entity.keyed:
        start = 1
        token = clean(row[0]) if row else None
        if token is None:
            raise RowError("missing ID", row_index=row_index)
        try:
            identity = parse_int(token)
        except ValueError:
            raise RowError(f"malformed ID {token!r}", row_index=row_index, identity=token) from None

    if len(row) < entity.min_fields:
        raise RowError(
            f"too few fields: need at least {entity.min_fields}, got {len(row)}",
            row_index=row_index,
            identity=identity,
        )

    parsed = ParsedRow(index=row_index, identity=identity)
    supplied: List[str] = []
    for position in range(start, len(entity.fields)):
        spec = entity.fields[position]
        if position >= len(row):
            if spec.required:
                raise RowError(f"missing required field {spec.label}", row_index=row_index, identity=identity)
            continue
        supplied.append(spec.name)
        token = clean(row[position], reference=spec.is_reference)
        if spec.is_reference:
            parsed.references[spec.name] = token
            continue
        value = None if token is None else _parse_scalar(entity, spec, str(token), row_index)
        if value is None:
            value = spec.default
        if value is None and spec.required:
            raise RowError(f"missing required field {spec.label}", row_index=row_index, identity=identity)
        parsed.values[spec.name] = value
    parsed.supplied = tuple(supplied)
    return parsed


def _ref(name, label, target, *, required=False, deferred=False, export_via=None):
    return FieldSpec(
        name=name,
        label=label,
        kind="ref",
        required=required,
        target=target,
        deferred=deferred,
        export_via=export_via,
    )


def _ts(name, label, *, audit=False):
    return FieldSpec(name=name, label=label, kind="datetime", audit=audit)


def _flag(name, label, default=False):
    return FieldSpec(name=name, label=label, kind="bool", default=default)


def _count(name, label, default=0):
    return FieldSpec(name=name, label=label, kind="int", default=default)


_ID = FieldSpec(name="id", label="ID", kind="id", required=True)
_CREATED = _ts("created_at", "Created At", audit=True)
_UPDATED = _ts("updated_at", "Updated At", audit=True)

USERS = EntitySpec(
    key="users",
    table="users",
    title="Users Data",
    titles=("用户数据",),
    keyword_sets=(("users",),),
    natural_keys=("username", "email"),
    unique_keys=(("username",), ("email",)),
    replace_existing=True,
    min_fields=5,
    fields=(
        _ID,
        FieldSpec("username", "Username", required=True, max_length=50),
        FieldSpec("email", "Email", max_length=100),
        FieldSpec("password", "Password", kind="secret", preserve=True),
        FieldSpec("first_name", "First Name", max_length=50),
        FieldSpec("last_name", "Last Name", max_length=50),
        FieldSpec(
            "role",
            "Role",
            kind="enum",
            default=UserRole.USER.value,
            choices=tuple(role.value for role in UserRole),
        ),
        _flag("enabled", "Enabled", default=True),
        _count("failed_login_attempts", "Failed Login Attempts"),
        _flag("account_locked", "Account Locked"),
        _ts("lock_time", "Lock Time"),
        _ts("lock_expire_time", "Lock Expire Time"),
        _flag("profile_private", "Profile Private"),
        _flag("comments_private", "Comments Private"),
        _flag("contents_private", "Contents Private"),
        _count("admin_login_attempts", "Admin Login Attempts"),
        _count("like_count", "Like Count"),
        FieldSpec("assigned_school_id", "Assigned School ID", kind="int"),
        FieldSpec("ip_address", "IP Address", max_length=45),
        FieldSpec("device_type", "Device Type", max_length=50),
        FieldSpec("user_agent", "User Agent", max_length=500),
        FieldSpec("avatar_url", "Avatar URL", max_length=500),
        FieldSpec("language", "Language", default="zh", max_length=10),
        FieldSpec("theme", "Theme", default="midnight", max_length=10),
        _CREATED,
        _UPDATED,
    ),
)

SCHOOLS = EntitySpec(
    key="schools",
    table="schools",
    title="Schools Data",
    titles=("学派数据", "流派数据"),
    keyword_sets=(("school",), ("学派",), ("流派",)),
    exclude=("translation", "翻译", "associat", "关联", "philosopher", "哲学家"),
    natural_keys=("name", "name_en"),
    unique_keys=(("name",),),
    fields=(
        _ID,
        FieldSpec("name", "Name", required=True, max_length=100),
        FieldSpec("name_en", "Name EN", max_length=100),
        FieldSpec("description", "Description"),
        FieldSpec("description_en", "Description EN"),
        _ref("parent_id", "Parent ID", "schools", deferred=True),
        _ref("user_id", "User ID", "users"),
        _count("like_count", "Like Count"),
        _CREATED,
        _UPDATED,
    ),
)

PHILOSOPHERS = EntitySpec(
    key="philosophers",
    table="philosophers",
    title="Philosophers Data",
    titles=("哲学家数据",),
    keyword_sets=(("philosopher",), ("哲学家",)),
    exclude=("school", "学派", "流派", "translation", "翻译", "associat", "关联"),
    natural_keys=("name", "name_en"),
    fields=(
        _ID,
        FieldSpec("name", "Name", required=True, max_length=100),
        FieldSpec("name_en", "Name EN", max_length=100),
        FieldSpec("birth_year", "Birth Year", kind="int"),
        FieldSpec("death_year", "Death Year", kind="int"),
        FieldSpec("era", "Era", max_length=50),
        FieldSpec("nationality", "Nationality", max_length=100),
        FieldSpec("biography", "Biography", alternates=("bio",)),
        FieldSpec("bio_en", "Bio EN"),
        FieldSpec("image_url", "Image URL", max_length=500),
        _ref("user_id", "User ID", "users"),
        _count("like_count", "Like Count"),
        _CREATED,
        _UPDATED,
    ),
)

PHILOSOPHER_SCHOOLS = EntitySpec(
    key="philosopher_schools",
    table="philosopher_school",
    title="Philosopher School Associations Data",
    titles=("哲学家学派关联数据", "哲学家-学派关联数据", "哲学家流派关联数据"),
    keyword_sets=(("philosopher", "school"), ("哲学家", "学派", "关联"), ("哲学家", "流派", "关联")),
    exclude=("translation", "翻译"),
    unique_keys=(("philosopher_id", "school_id"),),
    keyed=False,
    header_labels=("philosopher id", "school id", "哲学家id", "学派id", "流派id"),
    export_header=False,
    fields=(
        _ref("philosopher_id", "Philosopher ID", "philosophers", required=True),
        _ref("school_id", "School ID", "schools", required=True),
    ),
)

CONTENTS = EntitySpec(
    key="contents",
    table="contents",
    title="Contents Data",
    titles=("内容数据", "内容数据？"),
    keyword_sets=(("content",), ("内容",)),
    exclude=("translation", "翻译", "edit", "编辑", "associat", "关联"),
    fields=(
        _ID,
        FieldSpec("content", "Content"),
        FieldSpec("content_en", "Content EN"),
        _ref("philosopher_id", "Philosopher ID", "philosophers"),
        _ref("school_id", "School ID", "schools"),
        _ref("user_id", "User ID", "users"),
        FieldSpec("title", "Title", max_length=200),
        FieldSpec("order_index", "Order Index", kind="int"),
        _ref("locked_by_user_id", "Locked By User ID", "users"),
        _ts("locked_at", "Locked At"),
        _ts("locked_until", "Locked Until"),
        _flag("history_pinned", "History Pinned"),
        _count("like_count", "Like Count"),
        _flag("is_private", "Is Private"),
        _ref("privacy_set_by", "Privacy Set By", "users"),
        _ts("privacy_set_at", "Privacy Set At"),
        _count("status", "Status"),
        _flag("is_blocked", "Is Blocked"),
        _ref("blocked_by", "Blocked By", "users"),
        _ts("blocked_at", "Blocked At"),
        _count("version", "Version"),
        _CREATED,
        _UPDATED,
    ),
)

COMMENTS = EntitySpec(
    key="comments",
    table="comments",
    title="Comments Data",
    titles=("评论数据",),
    keyword_sets=(("comment",), ("评论",)),
    fields=(
        _ID,
        FieldSpec("body", "Body", required=True),
        _ref("user_id", "Username", "users", required=True, export_via="username"),
        _ref("content_id", "Content ID", "contents", required=True),
        _ref("parent_id", "Parent ID", "comments", deferred=True),
        _CREATED,
        _UPDATED,
        _count("like_count", "Like Count"),
        _count("status", "Status"),
        _flag("is_private", "Is Private"),
        _flag("is_blocked", "Is Blocked"),
        _ref("privacy_set_by", "Privacy Set By", "users"),
        _ts("privacy_set_at", "Privacy Set At"),
        _ref("blocked_by", "Blocked By", "users"),
        _ts("blocked_at", "Blocked At"),
    ),
)

LIKES = EntitySpec(
    key="likes",
    table="likes",
    title="Likes Data",
    titles=("点赞数据",),
    keyword_sets=(("like",), ("点赞",)),
    unique_keys=(("user_id", "entity_type", "entity_id"),),
    fields=(
        _ID,
        _ref("user_id", "User ID", "users", required=True),
        FieldSpec(
            "entity_type",
            "Entity Type",
            kind="enum",
            required=True,
            choices=tuple(kind.value for kind in LikeEntityType),
        ),
        FieldSpec("entity_id", "Entity ID", kind="int", required=True),
        _CREATED,
    ),
)

USER_CONTENT_EDITS = EntitySpec(
    key="user_content_edits",
    table="user_content_edits",
    title="User Content Edits Data",
    titles=("用户内容编辑数据",),
    keyword_sets=(("edit",), ("编辑",)),
    fields=(
        _ID,
        _ref("user_id", "User ID", "users", required=True),
        FieldSpec("content", "Content", default=""),
        FieldSpec("title", "Title", default="", max_length=200),
        _ref("philosopher_id", "Philosopher ID", "philosophers", required=True),
        _ref("school_id", "School ID", "schools", required=True),
        FieldSpec(
            "status",
            "Status",
            kind="enum",
            default=EditStatus.PENDING.value,
            choices=tuple(status.value for status in EditStatus),
        ),
        _CREATED,
        _ref("original_content_id", "Original Content ID", "contents"),
        FieldSpec("content_en", "Content EN"),
        FieldSpec("admin_notes", "Admin Notes"),
        _UPDATED,
    ),
)

USER_BLOCKS = EntitySpec(
    key="user_blocks",
    table="user_blocks",
    title="User Blocks Data",
    titles=("用户屏蔽数据",),
    keyword_sets=(("user", "block"),),
    exclude=("moderator", "版主"),
    unique_keys=(("blocker_id", "blocked_id"),),
    fields=(
        _ID,
        _ref("blocker_id", "Blocker ID", "users", required=True),
        _ref("blocked_id", "Blocked ID", "users", required=True),
        _CREATED,
        _UPDATED,
    ),
)

MODERATOR_BLOCKS = EntitySpec(
    key="moderator_blocks",
    table="moderator_blocks",
    title="Moderator Blocks Data",
    titles=("版主屏蔽数据",),
    keyword_sets=(("moderator",), ("版主",)),
    unique_keys=(("moderator_id", "blocked_user_id", "school_id"),),
    fields=(
        _ID,
        _ref("moderator_id", "Moderator ID", "users", required=True),
        _ref("blocked_user_id", "Blocked User ID", "users", required=True),
        _ref("school_id", "School ID", "schools", required=True),
        FieldSpec("reason", "Reason"),
        _CREATED,
        _UPDATED,
    ),
)

USER_LOGIN_INFO = EntitySpec(
    key="user_login_info",
    table="user_login_info",
    title="User Login Info Data",
    titles=("用户登录信息数据",),
    keyword_sets=(("login",), ("登录",)),
    fields=(
        _ID,
        _ref("user_id", "User ID", "users", required=True),
        FieldSpec("ip_address", "IP Address", default="", max_length=45),
        FieldSpec("browser", "Browser", max_length=50),
        FieldSpec("operating_system", "Operating System", max_length=50),
        FieldSpec("device_type", "Device Type", max_length=50),
        _ts("login_time", "Login Time", audit=True),
        FieldSpec("user_agent", "User Agent"),
        FieldSpec("device_id", "Device ID", max_length=128),
        _CREATED,
    ),
)

USER_FOLLOWS = EntitySpec(
    key="user_follows",
    table="user_follows",
    title="User Follows Data",
    titles=("用户关注数据",),
    keyword_sets=(("follow",), ("关注",)),
    unique_keys=(("follower_id", "following_id"),),
    fields=(
        _ID,
        _ref("follower_id", "Follower ID", "users", required=True),
        _ref("following_id", "Following ID", "users", required=True),
        _CREATED,
    ),
)

SCHOOL_TRANSLATIONS = EntitySpec(
    key="school_translations",
    table="schools_translation",
    title="School Translations Data",
    titles=("学派翻译数据", "流派翻译数据"),
    keyword_sets=(("school", "translation"), ("学派", "翻译"), ("流派", "翻译")),
    unique_keys=(("school_id", "language_code"),),
    fields=(
        _ID,
        _ref("school_id", "School ID", "schools", required=True),
        FieldSpec("language_code", "Language Code", default="en", max_length=10),
        FieldSpec("name_en", "Name EN", max_length=100),
        FieldSpec("description_en", "Description EN"),
        _CREATED,
        _UPDATED,
    ),
)

CONTENT_TRANSLATIONS = EntitySpec(
    key="content_translations",
    table="contents_translation",
    title="Content Translations Data",
    titles=("内容翻译数据",),
    keyword_sets=(("content", "translation"), ("内容", "翻译")),
    unique_keys=(("content_id", "language_code"),),
    fields=(
        _ID,
        _ref("content_id", "Content ID", "contents", required=True),
        FieldSpec("language_code", "Language Code", default="en", max_length=10),
        FieldSpec("content_en", "Content EN"),
        _CREATED,
        _UPDATED,
    ),
)

PHILOSOPHER_TRANSLATIONS = EntitySpec(
    key="philosopher_translations",
    table="philosophers_translation",
    title="Philosopher Translations Data",
    titles=("哲学家翻译数据",),
    keyword_sets=(("philosopher", "translation"), ("哲学家", "翻译")),
    unique_keys=(("philosopher_id", "language_code"),),
    fields=(
        _ID,
        _ref("philosopher_id", "Philosopher ID", "philosophers", required=True),
        FieldSpec("language_code", "Language Code", default="en", max_length=10),
        FieldSpec("name_en", "Name EN", max_length=100),
        FieldSpec("biography_en", "Biography EN"),
        _CREATED,
        _UPDATED,
    ),
)

# Dependency order: every entity only references entities listed before it
# (self-references and ``original_content_id`` are the deferred exceptions).
ENTITIES: Tuple[EntitySpec, ...] = (
    USERS,
    SCHOOLS,
    PHILOSOPHERS,
    PHILOSOPHER_SCHOOLS,
    CONTENTS,
    COMMENTS,
    LIKES,
    USER_CONTENT_EDITS,
    USER_BLOCKS,
    MODERATOR_BLOCKS,
    USER_LOGIN_INFO,
    USER_FOLLOWS,
    SCHOOL_TRANSLATIONS,
    CONTENT_TRANSLATIONS,
    PHILOSOPHER_TRANSLATIONS,
)

ENTITIES_BY_KEY: Dict[str, EntitySpec] = {spec.key: spec for spec in ENTITIES}
ENTITIES_BY_TABLE: Dict[str, EntitySpec] = {spec.table: spec for spec in ENTITIES}


def get_entity(key: str) -> EntitySpec:
    """Return the contract registered under ``key``."""
    try:
        return ENTITIES_BY_KEY[key]
    except KeyError:
        raise KeyError(f"Unknown transfer entity {key!r}") from None
