# config/validation.py

"""
Environment variable validation for the Lyceum application.
Validates required environment variables at startup.
"""

import os
import sys
from typing import List, Tuple

_INSECURE_DEFAULT_PASSWORDS = {"", "123456", "password", "changeme"}


def validate_environment(flask_env: str = None) -> Tuple[bool, List[str]]:
    """
    Validate required environment variables.

    Args:
        flask_env: Flask environment (development, production, testing)
                  If None, reads from FLASK_ENV environment variable

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    if flask_env is None:
        flask_env = os.environ.get("FLASK_ENV", "development")

    errors = []

    # Only validate in production
    if flask_env != "production":
        return True, []

    secret_key = os.environ.get("SECRET_KEY", "")
    if not secret_key or secret_key in {"your-secret-key", "your_secret_key"}:
        errors.append(
            "SECRET_KEY is required in production and must not be the default value. "
            'Generate a secure key: python -c "import secrets; print(secrets.token_hex(32))"'
        )

    if not os.environ.get("DATABASE_URL"):
        errors.append("DATABASE_URL is required in production. Set it to your database connection string.")

    default_password = os.environ.get("TRANSFER_DEFAULT_PASSWORD", "123456")
    if default_password.strip().lower() in _INSECURE_DEFAULT_PASSWORDS:
        errors.append(
            "TRANSFER_DEFAULT_PASSWORD must be set to a non-trivial value in production; "
            "it is assigned to imported users whose rows carry no password."
        )

    raw_limit = os.environ.get("TRANSFER_MAX_FAILURE_DETAILS")
    if raw_limit is not None:
        try:
            if int(raw_limit) < 1:
                errors.append("TRANSFER_MAX_FAILURE_DETAILS must be a positive integer")
        except ValueError:
            errors.append("TRANSFER_MAX_FAILURE_DETAILS must be a positive integer")

    is_valid = len(errors) == 0
    return is_valid, errors


def validate_and_exit(flask_env: str = None) -> None:
    """
    Validate environment variables and exit with error if validation fails.
    Intended to be called at application startup.
    """
    is_valid, errors = validate_environment(flask_env)

    if not is_valid:
        print("=" * 80, file=sys.stderr)
        print("ENVIRONMENT VALIDATION FAILED", file=sys.stderr)
        print("=" * 80, file=sys.stderr)
        print("\nThe following environment variables are missing or invalid:\n", file=sys.stderr)

        for i, error in enumerate(errors, 1):
            print(f"{i}. {error}", file=sys.stderr)

        print("\n" + "=" * 80, file=sys.stderr)
        print("Please check your .env file or environment variables.", file=sys.stderr)
        print("=" * 80, file=sys.stderr)

        sys.exit(1)
