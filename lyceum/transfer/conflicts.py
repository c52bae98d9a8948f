"""
Unique-key conflict handling and the generic cascade delete.

Replaying an export must converge instead of failing on unique constraints, so
a stored row that collides with an incoming one on a unique key (but carries a
different identity) is removed together with everything that depends on it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Literal, Mapping, Set, Tuple

from sqlalchemy import Integer, and_, delete, select, update
from sqlalchemy.orm import Session

from . import metrics
from .contracts import EntitySpec, sql_table
from .errors import ConflictError
from .introspection import SchemaIntrospector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DependencyEdge:
    """``table.column`` references the parent table's ``id``."""

    table: str
    column: str
    action: Literal["cascade", "nullify"] = "cascade"


def _cascade(table: str, column: str) -> DependencyEdge:
    return DependencyEdge(table, column, "cascade")


def _nullify(table: str, column: str) -> DependencyEdge:
    return DependencyEdge(table, column, "nullify")


# Parent table -> rows that reference it. Children are always handled first.
DEPENDENCIES: Dict[str, Tuple[DependencyEdge, ...]] = {
    "users": (
        _cascade("user_login_info", "user_id"),
        _cascade("user_follows", "follower_id"),
        _cascade("user_follows", "following_id"),
        _cascade("user_blocks", "blocker_id"),
        _cascade("user_blocks", "blocked_id"),
        _cascade("moderator_blocks", "moderator_id"),
        _cascade("moderator_blocks", "blocked_user_id"),
        _cascade("user_content_edits", "user_id"),
        _cascade("likes", "user_id"),
        _cascade("comments", "user_id"),
        _cascade("contents", "user_id"),
        _nullify("comments", "privacy_set_by"),
        _nullify("comments", "blocked_by"),
        _nullify("contents", "locked_by_user_id"),
        _nullify("contents", "privacy_set_by"),
        _nullify("contents", "blocked_by"),
        _nullify("schools", "user_id"),
        _nullify("philosophers", "user_id"),
    ),
    "contents": (
        _cascade("contents_translation", "content_id"),
        _cascade("comments", "content_id"),
        _cascade("user_content_edits", "original_content_id"),
    ),
    "comments": (_cascade("comments", "parent_id"),),
    "schools": (
        _cascade("philosopher_school", "school_id"),
        _cascade("schools_translation", "school_id"),
        _cascade("moderator_blocks", "school_id"),
        _cascade("user_content_edits", "school_id"),
        _nullify("schools", "parent_id"),
        _nullify("contents", "school_id"),
    ),
    "philosophers": (
        _cascade("philosopher_school", "philosopher_id"),
        _cascade("philosophers_translation", "philosopher_id"),
        _cascade("user_content_edits", "philosopher_id"),
        _nullify("contents", "philosopher_id"),
    ),
}


class ConflictResolver:
    """Clear the way for an incoming row before it is upserted."""

    def __init__(self, session: Session, introspector: SchemaIntrospector):
        self.session = session
        self.introspector = introspector

    def resolve(self, entity: EntitySpec, identity: int | None, values: Mapping[str, object]) -> int:
        """
        Remove stored rows that would collide with the incoming one.

        Returns the number of rows deleted (dependents included).
        """
        if not entity.keyed:
            return 0
        removed = 0
        for key in entity.unique_keys:
            stale = self._find_conflicts(entity, key, identity, values)
            if not stale:
                continue
            logger.warning("%s; cascading delete of the stale rows", ConflictError(entity.key, identity, key, stale))
            removed += self.cascade_delete(entity.table, stale)

        if entity.replace_existing and identity is not None and self._exists(entity.table, identity):
            logger.debug("%s row %s already stored; replacing it", entity.key, identity)
            removed += self.cascade_delete(entity.table, [identity])
        return removed

    def cascade_delete(self, table: str, identities: Iterable[int]) -> int:
        """Delete ``identities`` from ``table`` and every row depending on them."""
        return self._delete(table, list(identities), set())

    def _delete(self, table: str, identities: List[int], seen: Set[Tuple[str, int]]) -> int:
        pending = sorted({identity for identity in identities if (table, identity) not in seen})
        if not pending:
            return 0
        seen.update((table, identity) for identity in pending)

        removed = 0
        for edge in DEPENDENCIES.get(table, ()):
            if not self.introspector.column_exists(edge.table, edge.column):
                continue
            child = sql_table(edge.table, [("id", Integer()), (edge.column, Integer())])
            reference = child.c[edge.column]
            if edge.action == "nullify":
                self.session.execute(update(child).where(reference.in_(pending)).values({edge.column: None}))
            elif self.introspector.column_exists(edge.table, "id"):
                child_ids = self.session.execute(select(child.c.id).where(reference.in_(pending))).scalars().all()
                removed += self._delete(edge.table, list(child_ids), seen)
            else:
                result = self.session.execute(delete(child).where(reference.in_(pending)))
                removed += max(result.rowcount or 0, 0)

        parent = sql_table(table, [("id", Integer())])
        result = self.session.execute(delete(parent).where(parent.c.id.in_(pending)))
        deleted = max(result.rowcount or 0, 0)
        metrics.record_cascade(table, deleted)
        return removed + deleted

    def _find_conflicts(
        self,
        entity: EntitySpec,
        key: Tuple[str, ...],
        identity: int | None,
        values: Mapping[str, object],
    ) -> List[object]:
        key_values = {name: values.get(name) for name in key}
        if any(value is None for value in key_values.values()):
            return []
        if not all(self.introspector.column_exists(entity.table, name) for name in key):
            return []

        columns = [("id", Integer())] + [(name, entity.field(name).sql_type) for name in key]
        target = sql_table(entity.table, columns)
        statement = select(target.c.id).where(and_(*(target.c[name] == value for name, value in key_values.items())))
        if identity is not None:
            statement = statement.where(target.c.id != identity)
        return list(self.session.execute(statement).scalars().all())

    def _exists(self, table: str, identity: int) -> bool:
        target = sql_table(table, [("id", Integer())])
        return self.session.execute(select(target.c.id).where(target.c.id == identity).limit(1)).first() is not None
