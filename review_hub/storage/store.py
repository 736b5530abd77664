"""
Review store: the single serialization boundary over a KVBackend.

Values are JSON-encoded exactly once on write and decoded on read. Reads
never raise: a backend or decode failure is logged and the read degrades
to an absent/empty result, skipping only the corrupt record.
"""

import json
import logging
from typing import Any, AsyncIterator, Iterable, List, Optional

from review_hub.config.settings import LIST_PAGE_SIZE
from review_hub.exceptions import StoreCorruptionError
from review_hub.storage.backends import KVBackend
from review_hub.utils.logger import get_logger

# Python values a backend may hand back already decoded
_MATERIALIZED = (dict, list, int, float, bool)


class Store:
    """
    Hash, list and scalar storage of JSON values.

    Handles three value shapes:
        - hashes of records keyed by id (get_all, get_by_id, put, delete)
        - append-only lists (append_to_list, read_list, iter_list)
        - scalar blobs (get_scalar, set_scalar)
    """

    def __init__(self, backend: KVBackend, logger: Optional[logging.Logger] = None):
        self.backend = backend
        self.logger = logger or get_logger("storage")

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    @staticmethod
    def encode(value: Any) -> str:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))

    @staticmethod
    def decode(key: str, raw: Any) -> Any:
        """
        Decode one stored value.

        Raises:
            StoreCorruptionError: if the value is not valid JSON
        """
        if raw is None or isinstance(raw, _MATERIALIZED):
            return raw
        if isinstance(raw, bytes):
            try:
                raw = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise StoreCorruptionError(key, str(e)) from e
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            raise StoreCorruptionError(key, str(e)) from e

    def _safe_decode(self, key: str, raw: Any) -> Any:
        try:
            return self.decode(key, raw)
        except StoreCorruptionError as e:
            self.logger.warning(f"Skipping corrupt record: {e}")
            return None

    # -------------------------------------------------------------------------
    # Hashes of records
    # -------------------------------------------------------------------------

    async def get_all(self, hash_key: str) -> List[Any]:
        """All records of a hash in insertion order; corrupt ones skipped."""
        try:
            raw_map = await self.backend.hgetall(hash_key)
        except Exception as e:
            self.logger.error(f"Failed to read {hash_key}: {e}")
            return []

        records = []
        for record_id, raw in raw_map.items():
            value = self._safe_decode(f"{hash_key}[{record_id}]", raw)
            if value is not None:
                records.append(value)
        return records

    async def get_by_id(self, hash_key: str, record_id: str) -> Optional[Any]:
        try:
            raw = await self.backend.hget(hash_key, record_id)
        except Exception as e:
            self.logger.error(f"Failed to read {hash_key}[{record_id}]: {e}")
            return None
        return self._safe_decode(f"{hash_key}[{record_id}]", raw)

    async def put(self, hash_key: str, record_id: str, value: Any) -> None:
        """Insert or replace one record."""
        await self.backend.hset(hash_key, record_id, self.encode(value))

    async def delete(
        self,
        hash_key: str,
        record_id: str,
        dependent_keys: Iterable[str] = ()
    ) -> None:
        """Remove a record and every list/scalar key that belongs to it."""
        await self.backend.hdel(hash_key, record_id)
        keys = list(dependent_keys)
        if keys:
            await self.backend.delete(*keys)

    # -------------------------------------------------------------------------
    # Append-only lists
    # -------------------------------------------------------------------------

    async def append_to_list(self, list_key: str, items: Iterable[Any]) -> int:
        """Append items in one push. Returns the number appended."""
        encoded = [self.encode(item) for item in items]
        if encoded:
            await self.backend.rpush(list_key, *encoded)
        return len(encoded)

    async def iter_list(
        self,
        list_key: str,
        page_size: int = LIST_PAGE_SIZE,
        start: int = 0
    ) -> AsyncIterator[Any]:
        """
        Lazily yield list items, reading page_size items per request.

        Restart from any position by passing the index to resume at as
        start. Corrupt items are skipped; a failed page read ends the
        sequence.
        """
        offset = start
        while True:
            try:
                page = await self.backend.lrange(list_key, offset, offset + page_size - 1)
            except Exception as e:
                self.logger.error(f"Failed to read {list_key}[{offset}:]: {e}")
                return

            for index, raw in enumerate(page):
                value = self._safe_decode(f"{list_key}[{offset + index}]", raw)
                if value is not None:
                    yield value

            if len(page) < page_size:
                return
            offset += page_size

    async def read_list(self, list_key: str, page_size: int = LIST_PAGE_SIZE) -> List[Any]:
        """Whole list, read page by page."""
        return [item async for item in self.iter_list(list_key, page_size)]

    async def list_length(self, list_key: str) -> int:
        try:
            return await self.backend.llen(list_key)
        except Exception as e:
            self.logger.error(f"Failed to read length of {list_key}: {e}")
            return 0

    # -------------------------------------------------------------------------
    # Scalars
    # -------------------------------------------------------------------------

    async def get_scalar(self, key: str, default: Any = None) -> Any:
        try:
            raw = await self.backend.get(key)
        except Exception as e:
            self.logger.error(f"Failed to read {key}: {e}")
            return default
        value = self._safe_decode(key, raw)
        return default if value is None else value

    async def set_scalar(self, key: str, value: Any) -> None:
        await self.backend.set(key, self.encode(value))

    async def delete_key(self, *keys: str) -> None:
        await self.backend.delete(*keys)

    async def close(self) -> None:
        await self.backend.close()
