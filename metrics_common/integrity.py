"""
Metrics Relay - Payload Integrity

HMAC-SHA256 over the exact bytes on the wire (after compression).
"""

import hashlib
import hmac
from typing import Optional

HASH_HEADER = "HashSHA256"


class IntegrityGuard:
    """Signs and verifies payloads with a shared key.

    Without a key the guard is disabled: ``sign`` returns None and
    ``verify`` accepts everything.
    """

    def __init__(self, key: Optional[str] = None):
        self._key = key.encode("utf-8") if key else b""

    @property
    def enabled(self) -> bool:
        return bool(self._key)

    def sign(self, payload: bytes) -> Optional[str]:
        """Return the hex signature of ``payload``, or None when disabled."""
        if not self.enabled:
            return None
        return hmac.new(self._key, payload, hashlib.sha256).hexdigest()

    def verify(self, payload: bytes, signature: Optional[str]) -> bool:
        """Check ``signature`` against ``payload`` in constant time."""
        if not self.enabled:
            return True
        if not signature:
            return False
        return hmac.compare_digest(self.sign(payload), signature.strip().lower())
