#!/usr/bin/env python3

import json
import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import redis

import settings
from domain.exceptions import RecordStoreError, TransientStoreError
from domain.repositories.record_store import Document, RecordStore, TransactionFn
from services.redis.redis_connection import RedisConnection
from shared.shared import split_document_path
from shared.util import order_key

logger = logging.getLogger(__name__)

# Fields kept in a per-collection sorted set so ordered queries read only `limit` documents
INDEXED_ORDER_FIELDS = ("publishedOn", "savedAt")

# KEYS[1] document hash, KEYS[2] collection id set, KEYS[3..] order indexes
# ARGV[1] document id, ARGV[2] field sets, ARGV[3] increments, ARGV[4] array appends,
# ARGV[5] one score per order index (false removes the document from it)
ATOMIC_UPDATE_SCRIPT = """
local fields = cjson.decode(ARGV[2])
local increments = cjson.decode(ARGV[3])
local appends = cjson.decode(ARGV[4])
local scores = cjson.decode(ARGV[5])
for field, value in pairs(fields) do
  redis.call('HSET', KEYS[1], field, value)
end
for field, delta in pairs(increments) do
  redis.call('HINCRBY', KEYS[1], field, delta)
end
for field, values in pairs(appends) do
  if #values > 0 then
    local current = redis.call('HGET', KEYS[1], field)
    local items = {}
    if current then
      items = cjson.decode(current)
    end
    for _, value in ipairs(values) do
      table.insert(items, value)
    end
    redis.call('HSET', KEYS[1], field, cjson.encode(items))
  end
end
for i, score in ipairs(scores) do
  if score then
    redis.call('ZADD', KEYS[i + 2], score, ARGV[1])
  else
    redis.call('ZREM', KEYS[i + 2], ARGV[1])
  end
end
redis.call('SADD', KEYS[2], ARGV[1])
return 1
"""


class RedisRecordStore(RecordStore):
    """Redis implementation of the record store.

    Each document is a hash of JSON-encoded fields; integers are stored as
    plain digits so HINCRBY can update them in place. Each collection keeps
    a set of its document ids, plus one sorted set per indexed order field
    scored by the field's timestamp.
    """

    def __init__(
        self,
        connection: RedisConnection = None,
        key_prefix: str = None,
        max_attempts: int = None,
        indexed_fields: Sequence[str] = INDEXED_ORDER_FIELDS,
    ):
        self.connection = connection or RedisConnection()
        self.key_prefix = key_prefix or settings.REDIS_KEY_PREFIX
        self.max_attempts = max_attempts or settings.STORE_TRANSACTION_ATTEMPTS
        self.indexed_fields = tuple(indexed_fields)
        self._atomic_update_script = self.client.register_script(ATOMIC_UPDATE_SCRIPT)

    @property
    def client(self) -> redis.Redis:
        return self.connection.client

    def _get_document_key(self, path: str) -> str:
        """Generate Redis key for a document hash"""
        split_document_path(path)
        return f"{self.key_prefix}:doc:{path}"

    def _get_collection_key(self, collection_path: str) -> str:
        """Generate Redis key for a collection's document id set"""
        return f"{self.key_prefix}:col:{collection_path}"

    def _get_index_key(self, collection_path: str, field: str) -> str:
        """Generate Redis key for a collection's order index on field"""
        return f"{self.key_prefix}:idx:{collection_path}:{field}"

    @staticmethod
    def _encode(document: Mapping[str, Any]) -> Dict[str, str]:
        return {field: json.dumps(value, default=str) for field, value in document.items()}

    @staticmethod
    def _decode(raw: Mapping[str, str]) -> Optional[Document]:
        if not raw:
            return None
        document = {}
        for field, value in raw.items():
            try:
                document[field] = json.loads(value)
            except (json.JSONDecodeError, TypeError):
                document[field] = value
        return document

    @contextmanager
    def _translate_errors(self, operation: str, path: str):
        try:
            yield
        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.error(f"Redis unavailable during {operation} on {path}: {e}")
            raise TransientStoreError(f"Record store unavailable during {operation}") from e
        except redis.RedisError as e:
            logger.error(f"Redis error during {operation} on {path}: {e}")
            raise RecordStoreError(f"Record store rejected {operation}: {e}") from e

    def get_document(self, path: str) -> Optional[Document]:
        key = self._get_document_key(path)
        with self._translate_errors("get_document", path):
            return self._decode(self.client.hgetall(key))

    def _fetch(self, collection_path: str, document_ids: Sequence[str]) -> List[Optional[Document]]:
        if not document_ids:
            return []
        pipe = self.client.pipeline(transaction=False)
        for document_id in document_ids:
            pipe.hgetall(self._get_document_key(f"{collection_path}/{document_id}"))
        return [self._decode(raw) for raw in pipe.execute()]

    def query(
        self,
        collection_path: str,
        order_by: str,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Tuple[str, Document]]:
        if limit is not None and limit <= 0:
            return []
        if order_by in self.indexed_fields:
            return self._query_index(collection_path, order_by, descending, limit)
        return self._query_scan(collection_path, order_by, descending, limit)

    def _query_index(
        self, collection_path: str, order_by: str, descending: bool, limit: Optional[int]
    ) -> List[Tuple[str, Document]]:
        """Read the order index; equal scores come back in member order, like (key, id) sorting"""
        index_key = self._get_index_key(collection_path, order_by)
        end = -1 if limit is None else limit - 1
        with self._translate_errors("query", collection_path):
            if descending:
                document_ids = self.client.zrevrange(index_key, 0, end)
            else:
                document_ids = self.client.zrange(index_key, 0, end)
            documents = self._fetch(collection_path, document_ids)

        return [
            (document_id, document)
            for document_id, document in zip(document_ids, documents)
            if document is not None
        ]

    def _query_scan(
        self, collection_path: str, order_by: str, descending: bool, limit: Optional[int]
    ) -> List[Tuple[str, Document]]:
        with self._translate_errors("query", collection_path):
            document_ids = sorted(self.client.smembers(self._get_collection_key(collection_path)))
            documents = self._fetch(collection_path, document_ids)

        rows = []
        for document_id, document in zip(document_ids, documents):
            if document is None:
                continue
            key = order_key(document.get(order_by))
            if key is None:
                continue
            rows.append((key, document_id, document))

        rows.sort(key=lambda row: (row[0], row[1]), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return [(document_id, document) for _, document_id, document in rows]

    def run_transaction(self, path: str, update_fn: TransactionFn) -> Document:
        key = self._get_document_key(path)
        collection_path, document_id = split_document_path(path)
        collection_key = self._get_collection_key(collection_path)

        with self._translate_errors("run_transaction", path):
            with self.client.pipeline() as pipe:
                for attempt in range(1, self.max_attempts + 1):
                    try:
                        pipe.watch(key)
                        current = self._decode(pipe.hgetall(key))
                        updated = update_fn(current)
                        if not updated:
                            raise RecordStoreError(f"Transaction on {path} produced an empty document")

                        pipe.multi()
                        pipe.delete(key)
                        pipe.hset(key, mapping=self._encode(updated))
                        pipe.sadd(collection_key, document_id)
                        for field in self.indexed_fields:
                            index_key = self._get_index_key(collection_path, field)
                            score = order_key(updated.get(field))
                            if score is None:
                                pipe.zrem(index_key, document_id)
                            else:
                                pipe.zadd(index_key, {document_id: score})
                        pipe.execute()
                        return updated
                    except redis.WatchError:
                        logger.info(f"Transaction on {path} contended, attempt {attempt}/{self.max_attempts}")
                        continue

        raise TransientStoreError(
            f"Transaction on {path} did not commit after {self.max_attempts} attempts"
        )

    def atomic_update(
        self,
        path: str,
        increments: Optional[Mapping[str, int]] = None,
        array_appends: Optional[Mapping[str, Sequence[Any]]] = None,
        fields: Optional[Mapping[str, Any]] = None,
    ) -> None:
        key = self._get_document_key(path)
        collection_path, document_id = split_document_path(path)
        fields = fields or {}

        index_keys, scores = [], []
        for field in self.indexed_fields:
            if field in fields:
                index_keys.append(self._get_index_key(collection_path, field))
                score = order_key(fields[field])
                # text keeps full precision; Lua formats numbers to 14 digits
                scores.append(False if score is None else repr(score))

        args = [
            document_id,
            json.dumps(self._encode(fields)),
            json.dumps({field: int(delta) for field, delta in (increments or {}).items()}),
            json.dumps({field: list(values) for field, values in (array_appends or {}).items()}, default=str),
            json.dumps(scores),
        ]
        with self._translate_errors("atomic_update", path):
            self._atomic_update_script(
                keys=[key, self._get_collection_key(collection_path)] + index_keys,
                args=args,
            )

    def ping(self) -> bool:
        return self.connection.ping()

    def close(self) -> None:
        self.connection.close()
