"""Punto de entrada: ``python -m gym_progress``."""

from __future__ import annotations

from gym_progress.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
