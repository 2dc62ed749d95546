#!/usr/bin/env python
"""
Marketplace Platform management entry point.
"""

import os
import sys
from pathlib import Path

from dotenv import load_dotenv


def main() -> None:
    # Local overrides for DB credentials, SECRET_KEY and retry knobs
    env_path = Path(__file__).resolve().parent / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.dev")

    try:
        from django.core.management import execute_from_command_line
    except ImportError as exc:
        raise ImportError(
            "Couldn't import Django. Is the marketplace-platform virtualenv active?"
        ) from exc

    execute_from_command_line(sys.argv)


if __name__ == "__main__":
    main()
