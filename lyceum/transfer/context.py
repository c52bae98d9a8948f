"""Run-scoped collaborators shared by the import phases."""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from lyceum.utils.security import hash_secret

from .associations import AssociationUpdater
from .conflicts import ConflictResolver
from .introspection import SchemaIntrospector
from .resolver import EntityResolver
from .results import SectionResult
from .upsert import UpsertExecutor


@dataclass
class ImportContext:
    """
    Everything one import run needs, built fresh per run.

    Column-existence caches and missing-column warnings live on the
    introspector held here, so nothing leaks between runs.
    """

    session: Session
    max_diagnostics: int = 50
    default_password: str | None = None

    introspector: SchemaIntrospector = field(init=False)
    resolver: EntityResolver = field(init=False)
    conflicts: ConflictResolver = field(init=False)
    upserts: UpsertExecutor = field(init=False)
    associations: AssociationUpdater = field(init=False)
    _default_password_hash: str | None = field(init=False, default=None, repr=False)

    def __post_init__(self) -> None:
        self.introspector = SchemaIntrospector(self.session)
        self.resolver = EntityResolver(self.session, self.introspector)
        self.conflicts = ConflictResolver(self.session, self.introspector)
        self.upserts = UpsertExecutor(self.session, self.introspector)
        self.associations = AssociationUpdater(self.session, self.introspector, self.resolver)

    def default_password_hash(self) -> str | None:
        """Hash of the configured default password, computed once per run."""
        if self.default_password is None:
            return None
        if self._default_password_hash is None:
            self._default_password_hash = hash_secret(self.default_password)
        return self._default_password_hash

    def new_section(self, name: str) -> SectionResult:
        return SectionResult(name, max_diagnostics=self.max_diagnostics)
