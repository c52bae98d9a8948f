"""
Bulk transfer feature package.

Exposes the import/export engine and registers the ``flask transfer`` CLI
group. The engine itself only needs a SQLAlchemy session; the Flask app is
required for configuration lookups and the CLI.
"""

from __future__ import annotations

from flask import Flask

from .cli import transfer_cli
from .contracts import ENTITIES, EntitySpec, FieldSpec, get_entity
from .errors import ClearDataError, ConflictError, PhaseError, RowError, StructuralError, TransferError
from .exporter import Exporter, export_all
from .orchestrator import ImportOrchestrator, clear_all, import_all, parse_author_pairs, repair_authors
from .results import ImportResult, RepairResult, SectionResult
from .sections import find_section, parse_sections

TRANSFER_EXTENSION_KEY = "transfer"

__all__ = [
    "init_transfer",
    "TRANSFER_EXTENSION_KEY",
    "ENTITIES",
    "EntitySpec",
    "FieldSpec",
    "get_entity",
    "Exporter",
    "ImportOrchestrator",
    "ImportResult",
    "RepairResult",
    "SectionResult",
    "TransferError",
    "StructuralError",
    "RowError",
    "PhaseError",
    "ClearDataError",
    "ConflictError",
    "import_all",
    "export_all",
    "clear_all",
    "repair_authors",
    "parse_author_pairs",
    "parse_sections",
    "find_section",
]


def _set_cli(app: Flask) -> None:
    # Avoid duplicate registrations when running tests
    command_name = transfer_cli.name
    if command_name in app.cli.commands:
        app.cli.commands.pop(command_name)
    app.cli.add_command(transfer_cli)


def init_transfer(app: Flask) -> None:
    """Register the transfer CLI and record the effective settings."""
    app.extensions[TRANSFER_EXTENSION_KEY] = {
        "entities": tuple(entity.key for entity in ENTITIES),
        "allow_clear": bool(app.config.get("TRANSFER_ALLOW_CLEAR", False)),
        "run_history": bool(app.config.get("TRANSFER_RUN_HISTORY", True)),
    }
    _set_cli(app)
    app.logger.info("Transfer engine registered with %s sections", len(ENTITIES))
