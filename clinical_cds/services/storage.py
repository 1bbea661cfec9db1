"""
Clinical CDS - Persistence Service
Key-value stores and the JSON collection repository used by the history and audit stores
"""

import logging
from typing import Dict, Generic, Iterable, List, Optional, Protocol, Type, TypeVar

import redis
from redis import Redis, RedisError
from pydantic import BaseModel, TypeAdapter, ValidationError
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from clinical_cds.config import settings
from clinical_cds.models import Base, KeyValueEntry

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class KeyValueStore(Protocol):
    """Minimal string key-value collaborator"""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...


# =============================================================================
# Store Backends
# =============================================================================

class InMemoryKeyValueStore:
    """Process-local store, used in tests and single-process deployments"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class RedisKeyValueStore:
    """Redis-backed store"""

    def __init__(self, client: Optional[Redis] = None, url: Optional[str] = None):
        """
        Initialize Redis store

        Args:
            client: Existing Redis client (decode_responses=True)
            url: Redis URL used when no client is given (default: settings.redis_url)
        """
        self.redis_client = client or redis.from_url(
            url or settings.redis_url,
            decode_responses=True,
            max_connections=settings.redis_max_connections,
            socket_connect_timeout=5,
            socket_timeout=5
        )

    @retry(
        retry=retry_if_exception_type(RedisError),
        stop=stop_after_attempt(settings.storage_max_retries),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        reraise=True
    )
    def get(self, key: str) -> Optional[str]:
        value = self.redis_client.get(key)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    @retry(
        retry=retry_if_exception_type(RedisError),
        stop=stop_after_attempt(settings.storage_max_retries),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        reraise=True
    )
    def set(self, key: str, value: str) -> None:
        self.redis_client.set(key, value)


class SQLKeyValueStore:
    """Database-backed store (one row per key in cds_storage)"""

    def __init__(
        self,
        database_url: Optional[str] = None,
        engine: Optional[Engine] = None,
        create_tables: bool = True
    ):
        self.engine = engine or create_engine(
            database_url or settings.database_url,
            echo=settings.database_echo
        )
        if create_tables:
            Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(bind=self.engine)

    def get(self, key: str) -> Optional[str]:
        with self.Session() as session:
            entry = session.get(KeyValueEntry, key)
            return entry.value if entry is not None else None

    def set(self, key: str, value: str) -> None:
        with self.Session() as session:
            entry = session.get(KeyValueEntry, key)
            if entry is None:
                session.add(KeyValueEntry(key=key, value=value))
            else:
                entry.value = value
            session.commit()


# =============================================================================
# JSON Collection Repository
# =============================================================================

class JsonCollectionRepository(Generic[ModelT]):
    """
    Whole collection of models serialized as one JSON array under one key

    Reads never fail: a missing or malformed value loads as an empty list.
    Writes never raise: failures are logged and reported as False. Every save
    rewrites the full collection, which assumes a single logical writer.
    """

    def __init__(self, store: KeyValueStore, key: str, model: Type[ModelT]):
        self.store = store
        self.key = key
        self._adapter = TypeAdapter(List[model])

    def load(self) -> List[ModelT]:
        try:
            raw = self.store.get(self.key)
        except Exception as e:
            logger.error(f"Error loading {self.key}: {e}")
            return []

        if not raw:
            return []

        try:
            return self._adapter.validate_json(raw)
        except ValidationError as e:
            logger.error(f"Discarding malformed data at {self.key}: {e.error_count()} errors")
            return []

    def save(self, items: Iterable[ModelT]) -> bool:
        try:
            payload = self._adapter.dump_json(list(items)).decode("utf-8")
            self.store.set(self.key, payload)
            return True
        except Exception as e:
            logger.error(f"Error saving {self.key}: {e}")
            return False


# =============================================================================
# Global Store Instance
# =============================================================================

_key_value_store: Optional[KeyValueStore] = None


def create_key_value_store(backend: Optional[str] = None) -> KeyValueStore:
    """Build the store for a backend name (memory, redis, database)"""
    backend = backend or settings.storage_backend
    if backend == "redis":
        store: KeyValueStore = RedisKeyValueStore()
    elif backend == "database":
        store = SQLKeyValueStore()
    elif backend == "memory":
        store = InMemoryKeyValueStore()
    else:
        raise ValueError(f"Unknown storage backend: {backend}")
    logger.info(f"✓ CDS storage backend: {backend}")
    return store


def get_key_value_store() -> KeyValueStore:
    """Get or create the global key-value store"""
    global _key_value_store
    if _key_value_store is None:
        _key_value_store = create_key_value_store()
    return _key_value_store
