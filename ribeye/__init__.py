"""ribeye: daily RIB dump processing (peer-stats, pfx2as, as2rel, pfx2dist)."""
from __future__ import annotations

__version__ = "0.3.0"
