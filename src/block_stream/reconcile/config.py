"""
Reconciliation configuration constants.

Bounds on how much recent history is retained in memory.
"""

from __future__ import annotations

from typing import Final

DEFAULT_BLOCK_RETENTION: Final[int] = 100
"""
Default number of most recent blocks kept in block history.

Also the age, in blocks relative to the newest reconciled block, past which
logs are dropped from log history. A fork whose common ancestor is older
than this cannot be reconciled block by block and resets history instead.
"""
