from __future__ import annotations

import pytest
from transfer_builders import DEFAULT_PASSWORD, base_document

from lyceum.models import db
from lyceum.transfer.context import ImportContext
from lyceum.transfer.orchestrator import ImportOrchestrator


@pytest.fixture
def orchestrator(app):
    return ImportOrchestrator(db.session, max_diagnostics=50, default_password=DEFAULT_PASSWORD)


@pytest.fixture
def import_context(app):
    return ImportContext(db.session, max_diagnostics=50, default_password=DEFAULT_PASSWORD)


@pytest.fixture
def seeded(orchestrator):
    """Store populated from the base document."""
    result = orchestrator.import_all(base_document())
    assert result.total_failed == 0, result.as_dict()
    return result
