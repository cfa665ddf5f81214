"""Pytest configuration.

Tests run in 64-bit precision so that exact-arithmetic properties of the
filter can be checked with tight tolerances.
"""

import os
import sys
from pathlib import Path


# Ensure the repository root is importable without an editable install.
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))


os.environ.setdefault("JAX_ENABLE_X64", "True")
