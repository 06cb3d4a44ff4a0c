#!/usr/bin/env python3
"""Run the release phase, then exec gunicorn on $PORT (default 8080)."""

from __future__ import annotations

import os
import sys

from release import run_release

GUNICORN_ARGS = ("--workers", "2", "--timeout", "60", "--preload", "--access-logfile", "-", "--error-logfile", "-")


def main() -> None:
    port = (os.environ.get("PORT") or "").strip() or "8080"
    if not port.isdigit() or not 0 < int(port) < 65536:
        sys.exit(f"Invalid PORT {port!r}")

    run_release()
    os.execvp("gunicorn", ["gunicorn", "app.wsgi:app", "--bind", f"0.0.0.0:{port}", *GUNICORN_ARGS])


if __name__ == "__main__":
    main()
