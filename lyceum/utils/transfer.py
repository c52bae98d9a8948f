"""
Utility helpers for transfer configuration lookups.
"""

from __future__ import annotations

from flask import current_app


def _get_config(app=None):
    if app is not None:
        return app.config
    return current_app.config


def get_max_failure_details(app=None) -> int:
    """Return how many row diagnostics each section keeps."""
    config = _get_config(app)
    return int(config.get("TRANSFER_MAX_FAILURE_DETAILS", 50))


def get_default_password(app=None) -> str:
    config = _get_config(app)
    return str(config.get("TRANSFER_DEFAULT_PASSWORD", "123456"))


def is_clear_allowed(app=None) -> bool:
    """Return True when ``clear_all`` may run without an explicit override."""
    config = _get_config(app)
    return bool(config.get("TRANSFER_ALLOW_CLEAR", False))


def is_run_history_enabled(app=None) -> bool:
    config = _get_config(app)
    return bool(config.get("TRANSFER_RUN_HISTORY", True))


def is_export_bom_enabled(app=None) -> bool:
    config = _get_config(app)
    return bool(config.get("TRANSFER_EXPORT_BOM", False))
