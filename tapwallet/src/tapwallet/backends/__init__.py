"""
Blockchain backend implementations.

Available backends:
- MempoolBackend: mempool.space / Esplora REST API (third-party, no setup required)
"""

from tapwallet.backends.base import BlockchainBackend
from tapwallet.backends.mempool import MempoolBackend

__all__ = [
    "BlockchainBackend",
    "MempoolBackend",
]
