"""Reversible integer <-> token codec for externally exposed ids."""

from __future__ import annotations

from typing import Any, Optional

from hashids import Hashids

from config import settings


class OpaqueIdCodec:
    """Encode internal integer ids as opaque tokens, one salt per entity."""

    def __init__(self, namespace: str, *, salt: Optional[str] = None, min_length: Optional[int] = None) -> None:
        self.namespace = namespace
        self._hashids = Hashids(
            salt=f"{salt if salt is not None else settings.HASHIDS_SALT}:{namespace}",
            min_length=int(min_length if min_length is not None else settings.HASHIDS_MIN_LENGTH),
        )

    def encode(self, value: int) -> str:
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValueError(f"{self.namespace} id must be a non-negative integer")
        return self._hashids.encode(value)

    def decode(self, token: Any) -> Optional[int]:
        """Return the id behind ``token`` or ``None``; never raises."""
        if not isinstance(token, str) or not token.strip():
            return None
        decoded = self._hashids.decode(token.strip())
        if len(decoded) != 1:
            return None
        # Reject tokens that decode but are not what encode() would produce.
        if self._hashids.encode(decoded[0]) != token.strip():
            return None
        return int(decoded[0])


flux_ids = OpaqueIdCodec("flux")
charge_order_ids = OpaqueIdCodec("charge_order")
charge_product_ids = OpaqueIdCodec("charge_product")
