"""File-level deduplication for ingestion.

Files are identified by path and by a content fingerprint of their raw
bytes. Both are checked against the store's committed file hashes and
against files already accepted earlier in the same run.
"""

from __future__ import annotations

import hashlib
import threading

from core.constants import HASH_ALGORITHM
from core.errors import OdmValidationError
from core.types import SUPPORTED_DEDUP_STRATEGIES, DedupStrategy

_STRATEGY_ALIASES = {"bypath": "path", "bycontent": "content"}


def fingerprint_content(payload: bytes) -> str:
    """Hash raw file content with the configured digest algorithm.

    Args:
        payload: Raw file bytes.

    Returns:
        Hex digest string.
    """
    hasher = hashlib.new(HASH_ALGORITHM)
    hasher.update(payload)
    return hasher.hexdigest()


def parse_dedup_strategy(raw_value: str) -> DedupStrategy:
    """Parse a user-supplied dedup strategy name.

    Raises:
        OdmValidationError: If the name is not a known strategy.
    """
    normalized = raw_value.strip().lower().replace("_", "").replace("-", "")
    normalized = _STRATEGY_ALIASES.get(normalized, normalized)
    for strategy in SUPPORTED_DEDUP_STRATEGIES:
        if strategy == normalized:
            return strategy
    supported = ", ".join(SUPPORTED_DEDUP_STRATEGIES)
    raise OdmValidationError(
        f"Unsupported dedup strategy '{raw_value}'. Use one of: {supported}."
    )


class DedupFilter:
    """Thread-safe seen-set for paths and content fingerprints.

    Args:
        strategy: Active dedup strategy.
        known_paths: Paths staged by committed batches.
        known_fingerprints: Fingerprints staged by committed batches.
    """

    def __init__(
        self,
        strategy: DedupStrategy,
        known_paths: set[str],
        known_fingerprints: set[str],
    ) -> None:
        self._strategy = strategy
        self._paths = set(known_paths)
        self._fingerprints = set(known_fingerprints)
        self._lock = threading.Lock()

    @property
    def checks_path(self) -> bool:
        return self._strategy in ("path", "both")

    @property
    def checks_content(self) -> bool:
        return self._strategy in ("content", "both")

    def path_seen(self, path: str) -> bool:
        """Return whether ``path`` should be skipped before it is read."""
        if not self.checks_path:
            return False
        with self._lock:
            return path in self._paths

    def accept(self, path: str, fingerprint: str) -> bool:
        """Claim a file for ingestion.

        Returns:
            ``False`` when the file duplicates one already seen, else ``True``.
        """
        with self._lock:
            if self.checks_path and path in self._paths:
                return False
            if self.checks_content and fingerprint in self._fingerprints:
                return False
            self._paths.add(path)
            self._fingerprints.add(fingerprint)
            return True
