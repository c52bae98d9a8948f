"""
Run history for bulk transfer operations.

Rows here describe imports, exports, repairs and clears executed through the
``flask transfer`` commands. The table is never touched by ``clear_all``.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import Enum
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel, db


class TransferRunKind(str, enum.Enum):
    IMPORT = "import"
    EXPORT = "export"
    REPAIR = "repair"
    CLEAR = "clear"


class TransferRunStatus(str, enum.Enum):
    """Lifecycle states for a transfer run."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    PARTIALLY_FAILED = "partially_failed"
    FAILED = "failed"


class TransferRun(BaseModel):
    """Metadata describing a single transfer execution."""

    __tablename__ = "transfer_runs"

    id: Mapped[int] = mapped_column(primary_key=True)
    kind: Mapped[TransferRunKind] = mapped_column(
        Enum(TransferRunKind, name="transfer_run_kind_enum"),
        nullable=False,
        index=True,
    )
    status: Mapped[TransferRunStatus] = mapped_column(
        Enum(TransferRunStatus, name="transfer_run_status_enum"),
        nullable=False,
        default=TransferRunStatus.PENDING,
        index=True,
    )
    source_name: Mapped[str | None] = mapped_column(db.String(500), nullable=True)
    clear_existing: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    started_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True))
    finished_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True))
    counts_json: Mapped[dict | None] = mapped_column(db.JSON, nullable=True)
    error_summary: Mapped[str | None] = mapped_column(db.Text, nullable=True)

    def mark_running(self) -> None:
        self.status = TransferRunStatus.RUNNING
        self.started_at = datetime.now(timezone.utc)

    def mark_finished(self, status: TransferRunStatus, *, error_summary: str | None = None) -> None:
        self.status = status
        self.finished_at = datetime.now(timezone.utc)
        if error_summary is not None:
            self.error_summary = error_summary

    def __repr__(self):
        return f"<TransferRun {self.id} {self.kind.value} {self.status.value}>"
