"""Result values produced by the transfer engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List


@dataclass
class SectionResult:
    """Outcome counters for one import phase."""

    name: str
    success: int = 0
    failure: int = 0
    diagnostics: List[str] = field(default_factory=list)
    max_diagnostics: int = 50

    def record_success(self, count: int = 1) -> None:
        self.success += count

    def record_failure(self, reason: str, *, row_index: int | None = None, identity: object | None = None) -> None:
        self.failure += 1
        self.add_diagnostic(_format_diagnostic(reason, row_index, identity))

    def add_diagnostic(self, message: str) -> None:
        if len(self.diagnostics) < self.max_diagnostics:
            self.diagnostics.append(message)

    def merge(self, other: "SectionResult") -> "SectionResult":
        """Fold another result for the same section into this one."""
        self.success += other.success
        self.failure += other.failure
        for message in other.diagnostics:
            self.add_diagnostic(message)
        return self

    def as_dict(self) -> Dict[str, object]:
        return {
            "success": self.success,
            "failure": self.failure,
            "diagnostics": list(self.diagnostics),
        }


def _format_diagnostic(reason: str, row_index: int | None, identity: object | None) -> str:
    if row_index is None:
        return reason
    if identity is None or identity == "":
        return f"Row {row_index}: {reason}"
    return f"Row {row_index} (ID={identity}): {reason}"


@dataclass
class ImportResult:
    """Aggregate outcome of ``import_all``."""

    sections: Dict[str, SectionResult] = field(default_factory=dict)
    message: str = ""
    parsed_sections: Dict[str, int] = field(default_factory=dict)
    diagnostics: List[str] = field(default_factory=list)

    @property
    def total_imported(self) -> int:
        return sum(section.success for section in self.sections.values())

    @property
    def total_failed(self) -> int:
        return sum(section.failure for section in self.sections.values())

    @property
    def success(self) -> bool:
        return self.total_imported > 0

    def add(self, section: SectionResult) -> None:
        existing = self.sections.get(section.name)
        if existing is None:
            self.sections[section.name] = section
        else:
            existing.merge(section)

    def as_dict(self) -> Dict[str, object]:
        return {
            "success": self.success,
            "message": self.message,
            "total_imported": self.total_imported,
            "total_failed": self.total_failed,
            "sections": {name: section.as_dict() for name, section in self.sections.items()},
            "parsed_sections": dict(self.parsed_sections),
            "diagnostics": list(self.diagnostics),
        }


@dataclass
class RepairResult:
    """Counts from ``repair_authors``."""

    updated: int = 0
    skipped_missing_user: int = 0
    skipped_missing_content: int = 0
    skipped_already_set: int = 0
    skipped_invalid: int = 0

    @property
    def skipped(self) -> int:
        return (
            self.skipped_missing_user
            + self.skipped_missing_content
            + self.skipped_already_set
            + self.skipped_invalid
        )

    def as_dict(self) -> Dict[str, int]:
        return {
            "updated": self.updated,
            "skipped": self.skipped,
            "skipped_missing_user": self.skipped_missing_user,
            "skipped_missing_content": self.skipped_missing_content,
            "skipped_already_set": self.skipped_already_set,
            "skipped_invalid": self.skipped_invalid,
        }
