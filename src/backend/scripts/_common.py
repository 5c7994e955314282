"""
Common utilities for backend scripts.

Puts the backend root on sys.path so scripts can be run directly
(python scripts/init_db.py) and import db, models, services, etc.

Usage:
    import _common  # noqa: F401
"""

import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).parent.parent
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))
