"""
Redis-backed cache of finished analysis results.

An analysis costs one long model round-trip, so identical uploads analysed
with the same model reuse the stored report payload. Any Redis failure is a
cache miss; the cache never blocks or fails an analysis.
"""
import redis
import json
from typing import Optional, Any
from autoaudit.config import config
from autoaudit.utils.hashing import compute_sha256

REPORT_KEY_PREFIX = "autoaudit:report:"

_redis_client = None

def get_redis_client() -> Optional[redis.Redis]:
    """Get or create singleton Redis client"""
    global _redis_client

    if not config.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            client = redis.Redis(
                host=config.REDIS_HOST,
                port=config.REDIS_PORT,
                password=config.REDIS_PASSWORD,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2
            )
            client.ping()
            _redis_client = client
            print(f"Report cache connected to Redis at {config.REDIS_HOST}:{config.REDIS_PORT}")
        except Exception as e:
            print(f"Report cache disabled, Redis unreachable: {e}")
            return None

    return _redis_client

def report_cache_key(model: str, exam: bytes, matrix: Optional[bytes]) -> str:
    """Key on the model name and the exact uploaded bytes"""
    digest = compute_sha256(model.encode("utf-8"), exam, matrix if matrix is not None else b"")
    suffix = "m" if matrix is not None else "n"
    return f"{REPORT_KEY_PREFIX}{digest}:{suffix}"

def load_cached_report(key: str) -> Optional[dict]:
    """Return the cached wire payload, or None on miss or error"""
    try:
        client = get_redis_client()
        if not client:
            return None

        value = client.get(key)
        if value:
            print(f"Report cache hit: {key[len(REPORT_KEY_PREFIX):][:12]}...")
            return json.loads(value)
        return None
    except Exception as e:
        print(f"Report cache read error: {e}")
        return None

def store_report(key: str, payload: Any, ttl: int = None) -> bool:
    """Store a wire payload with the configured TTL"""
    try:
        client = get_redis_client()
        if not client:
            return False

        if ttl is None:
            ttl = config.CACHE_TTL

        client.setex(key, ttl, json.dumps(payload, ensure_ascii=False))
        return True
    except Exception as e:
        print(f"Report cache write error: {e}")
        return False
