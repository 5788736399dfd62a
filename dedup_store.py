import aiohttp
import asyncio
import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, List, Optional
from aiohttp_retry import RetryClient, ExponentialRetry
from config import Settings

logger = logging.getLogger(__name__)


class DedupStore(ABC):
    """
    Remembers which transaction signatures were already handled.

    `mark_processed` returns False only when the store knows another
    delivery claimed the signature first.
    """
    name = "base"

    @abstractmethod
    async def has(self, signature: str) -> bool:
        ...

    @abstractmethod
    async def mark_processed(self, signature: str) -> bool:
        ...

    async def start(self):
        pass

    async def close(self):
        pass

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


class NoDedupStore(DedupStore):
    """Every delivery is treated as new, retries included."""
    name = "none"

    async def has(self, signature: str) -> bool:
        return False

    async def mark_processed(self, signature: str) -> bool:
        return True


class MemoryDedupStore(DedupStore):
    """
    Fixed-capacity, process-local set of signatures.

    Insertion order is kept so that going over capacity evicts the oldest
    signatures first. Neither method awaits, so each call runs atomically
    on the event loop.
    """
    name = "memory"

    def __init__(self, max_size: int = 1000):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self._seen: "OrderedDict[str, None]" = OrderedDict()

    def __len__(self):
        return len(self._seen)

    def __contains__(self, signature):
        return signature in self._seen

    async def has(self, signature: str) -> bool:
        return signature in self._seen

    async def mark_processed(self, signature: str) -> bool:
        if signature in self._seen:
            return False
        self._seen[signature] = None
        evicted = 0
        while len(self._seen) > self.max_size:
            self._seen.popitem(last=False)
            evicted += 1
        if evicted:
            logger.debug(f"Evicted {evicted} old signatures, keeping {len(self._seen)}")
        return True


class UpstashError(Exception):
    """Error reply from the Upstash REST endpoint"""


class RedisDedupStore(DedupStore):
    """
    Signatures kept in Upstash Redis (REST API) with a per-key expiry.

    Store failures never propagate: an unreachable store answers "not seen"
    and lets the claim through so the event is still processed.
    """
    name = "redis"

    def __init__(self, rest_url: str, rest_token: str, ttl: int = 900, timeout: int = 10):
        if not rest_url or not rest_token:
            raise ValueError("Upstash REST url and token must be provided")
        self.rest_url = rest_url.rstrip('/')
        self.rest_token = rest_token
        self.ttl = ttl
        self.timeout = timeout
        self.client: Optional[RetryClient] = None
        self._session: Optional[aiohttp.ClientSession] = None

        self.retry_options = ExponentialRetry(
            attempts=3,
            statuses={429, 500, 502, 503, 504},
            exceptions={aiohttp.ClientError, asyncio.TimeoutError},
            factor=2
        )

    async def start(self):
        if self.client:
            return
        self._session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout),
            headers={"Authorization": f"Bearer {self.rest_token}"}
        )
        self.client = RetryClient(
            client_session=self._session,
            retry_options=self.retry_options
        )
        logger.info(f"Redis dedup store ready (ttl={self.ttl}s)")

    async def _command(self, *args: Any) -> Any:
        """Run one Redis command through the REST endpoint and return its result"""
        if not self.client:
            raise RuntimeError("Redis dedup store not started")

        command: List[Any] = [str(arg) for arg in args]
        async with self.client.post(self.rest_url, json=command) as response:
            data = await response.json(content_type=None)
            if not isinstance(data, dict):
                raise UpstashError(f"Unexpected reply (HTTP {response.status})")
            if response.status >= 400 or 'error' in data:
                raise UpstashError(data.get('error') or f"HTTP {response.status}")
            return data.get('result')

    async def has(self, signature: str) -> bool:
        try:
            return int(await self._command("EXISTS", signature) or 0) > 0
        except (aiohttp.ClientError, asyncio.TimeoutError, UpstashError, ValueError) as e:
            logger.error(f"[Tx {signature}] Dedup lookup failed, treating as new: {str(e)}")
            return False

    async def mark_processed(self, signature: str) -> bool:
        try:
            result = await self._command("SET", signature, "1", "EX", self.ttl, "NX")
            return result == "OK"
        except (aiohttp.ClientError, asyncio.TimeoutError, UpstashError, ValueError) as e:
            logger.error(f"[Tx {signature}] Dedup record failed, processing anyway: {str(e)}")
            return True

    async def close(self):
        try:
            if self.client:
                await self.client.close()
            elif self._session:
                await self._session.close()
        except Exception as e:
            logger.warning(f"Error closing redis dedup store: {str(e)}")
        finally:
            self.client = None
            self._session = None


def build_dedup_store(settings: Settings) -> DedupStore:
    """Pick the dedup backend configured for this deployment"""
    if settings.dedup_backend == "none":
        return NoDedupStore()
    if settings.dedup_backend == "redis":
        return RedisDedupStore(
            settings.upstash_redis_rest_url,
            settings.upstash_redis_rest_token,
            ttl=settings.dedup_ttl,
            timeout=settings.http_timeout
        )
    return MemoryDedupStore(max_size=settings.dedup_max_size)
