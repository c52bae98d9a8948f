"""Resolve reference fields to identities of already-imported rows."""

from __future__ import annotations

import logging

from sqlalchemy import Integer, Text, select
from sqlalchemy.orm import Session

from .contracts import EntitySpec, get_entity, sql_table
from .introspection import SchemaIntrospector
from .values import clean, parse_int

logger = logging.getLogger(__name__)


class EntityResolver:
    """
    Turn a raw reference token into a target identity.

    Numeric tokens are verified by point lookup; anything else (or a numeric id
    that does not exist) falls back to the target's natural keys, accepting a
    match only when it is unique. When the reference was exported through a
    natural key (``prefer``), that key is tried before the numeric id so a
    username such as ``"1"`` is not mistaken for user 1. A miss is retried once
    after flushing the session so rows written earlier in the same transaction
    become visible.
    """

    def __init__(self, session: Session, introspector: SchemaIntrospector):
        self.session = session
        self.introspector = introspector

    def resolve(self, value: object | None, target: str, *, prefer: str | None = None) -> int | None:
        token = clean(value, reference=True)
        if token is None:
            return None
        token = str(token)
        entity = get_entity(target)
        identity = self._lookup(token, entity, prefer)
        if identity is not None:
            return identity

        self.session.flush()
        self.session.expire_all()
        identity = self._lookup(token, entity, prefer)
        if identity is None:
            logger.debug("Unresolved %s reference %r", entity.key, token)
        return identity

    def exists(self, table: str, identity: int) -> bool:
        if not self.introspector.column_exists(table, "id"):
            return False
        target = sql_table(table, [("id", Integer())])
        found = self.session.execute(select(target.c.id).where(target.c.id == identity).limit(1)).first()
        return found is not None

    def _lookup(self, token: str, entity: EntitySpec, prefer: str | None = None) -> int | None:
        keys = list(entity.natural_keys)
        if prefer in keys:
            keys.remove(prefer)
            matches = self._matches(token, entity, prefer)
            if len(matches) == 1:
                return matches[0]
            if len(matches) > 1:
                self._warn_ambiguous(token, entity, prefer)
                return None

        try:
            identity = parse_int(token)
        except ValueError:
            identity = None
        if identity is not None and self.exists(entity.table, identity):
            return identity

        for key in keys:
            matches = self._matches(token, entity, key)
            if len(matches) == 1:
                return matches[0]
            if len(matches) > 1:
                self._warn_ambiguous(token, entity, key)
                return None
        return None

    def _matches(self, token: str, entity: EntitySpec, key: str) -> list:
        column_name = self.introspector.actual_name(entity.table, key)
        if column_name is None:
            return []
        target = sql_table(entity.table, [("id", Integer()), (column_name, Text())])
        return (
            self.session.execute(select(target.c.id).where(target.c[column_name] == token).limit(2))
            .scalars()
            .all()
        )

    def _warn_ambiguous(self, token: str, entity: EntitySpec, key: str) -> None:
        logger.warning(
            "Ambiguous %s reference %r matches several rows by %s; leaving it unresolved",
            entity.key,
            token,
            key,
        )
