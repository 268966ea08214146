#!/usr/bin/env python
"""
Shop ledger management entrypoint.

Defaults to backend.settings.dev. The bare settings package
("backend.settings") loads nothing, so it is treated as unset.
Production deployments set DJANGO_SETTINGS_MODULE=backend.settings.prod.
"""

from __future__ import annotations

import os
import sys

DEFAULT_SETTINGS = "backend.settings.dev"


def main() -> None:
    selected = (os.environ.get("DJANGO_SETTINGS_MODULE") or "").strip()
    if selected in {"", "backend.settings"}:
        os.environ["DJANGO_SETTINGS_MODULE"] = DEFAULT_SETTINGS

    try:
        from django.core.management import execute_from_command_line
    except ImportError as exc:
        raise ImportError(
            "Couldn't import Django. Install the project (pip install -e .) "
            "inside an active virtual environment."
        ) from exc

    execute_from_command_line(sys.argv)


if __name__ == "__main__":
    main()
