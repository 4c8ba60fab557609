"""
Atajo ejecutable del job Google Sheet -> Postgres.

  python scripts/sync_google_sheet.py [--schema-only | --init-table | --allow-empty-wipe]

Equivale al comando instalado `student-sheet-sync`.
"""

from __future__ import annotations

import sys
from pathlib import Path

# Permite ejecutar este script desde cualquier cwd sin instalar el paquete.
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from student_sync.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
