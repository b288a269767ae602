from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Optional

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from pulse.config import Settings, load_settings
from pulse.constants import (
    AI_NEWS_KEY_PREFIX,
    GENERATION_DEFAULT_COUNT,
    REDIS_FRAGMENTATION_WARNING,
    REDIS_KEY_COUNT_WARNING,
    REDIS_KEYS_LIMIT,
)
from pulse.logging_config import configure_logging, get_logger
from pulse.redis_store import RedisStats
from pulse.services import Services

logger = get_logger(__name__)


class AnalyzeRequest(BaseModel):
    title: str
    content: str = ""
    source_category: Optional[str] = None


def _now() -> str:
    return datetime.now(UTC).isoformat()


def build_health_report(stats: RedisStats) -> dict:
    keyspace = stats["keyspace"]
    total_keys = sum(keyspace.values())
    fragmentation = stats["memory"]["fragmentation"]

    status = "healthy"
    warnings: list[str] = []
    if fragmentation > REDIS_FRAGMENTATION_WARNING:
        status = "warning"
        warnings.append(f"High memory fragmentation: {fragmentation:.2f}")
    if total_keys > REDIS_KEY_COUNT_WARNING:
        warnings.append(f"Large number of keys: {total_keys}")

    return {
        "status": status,
        "stats": stats,
        "keyspace": keyspace,
        "total_keys": total_keys,
        "warnings": warnings,
        "timestamp": _now(),
    }


def create_app(
    settings: Optional[Settings] = None, services: Optional[Services] = None
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        nonlocal services
        if services is None:
            resolved = settings or load_settings()
            configure_logging(resolved.log_level)
            services = Services.from_settings(resolved)
        app.state.services = services
        await services.start()
        try:
            yield
        finally:
            await services.close()

    app = FastAPI(title="AI Pulse News Core", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def svc(request: Request) -> Services:
        return request.app.state.services

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/news/ai/generate")
    async def generate_ai_news(
        request: Request,
        count: int = Query(GENERATION_DEFAULT_COUNT, ge=1, le=50),
    ):
        items = await svc(request).generator.generate_realtime_news(count)
        return {"success": True, "data": [item.to_dict() for item in items]}

    @app.delete("/news/cache/ai-news")
    async def clear_ai_news_cache(request: Request):
        deleted = await svc(request).cache.delete_by_pattern(f"{AI_NEWS_KEY_PREFIX}:*")
        return {
            "success": True,
            "message": f"Successfully cleared {deleted} cached items",
            "data": {"deleted_count": deleted},
        }

    @app.post("/news/analyze")
    async def analyze_news(request: Request, body: AnalyzeRequest):
        result = await svc(request).analyzer.analyze_news(
            body.title, body.content, body.source_category
        )
        return {"success": True, "data": result.to_dict()}

    @app.get("/cache/stats")
    async def cache_stats(request: Request):
        services = svc(request)
        return {
            "timestamp": _now(),
            "redis": await services.store.get_stats(),
            "cache_strategy": services.cache.get_stats(),
        }

    @app.get("/cache/keys")
    async def cache_keys(
        request: Request,
        pattern: str = "*",
        limit: int = Query(REDIS_KEYS_LIMIT, ge=1, le=1000),
    ):
        keys = await svc(request).cache.keys(pattern, limit)
        return {"pattern": pattern, "count": len(keys), "limit": limit, "keys": keys}

    @app.get("/cache/keyspace")
    async def cache_keyspace(request: Request):
        keyspace = await svc(request).store.keyspace_stats()
        return {"timestamp": _now(), "keyspace": keyspace, "total": sum(keyspace.values())}

    @app.get("/cache/info")
    async def cache_info(request: Request, section: Optional[str] = None):
        return {"section": section or "all", "info": await svc(request).store.get_info(section)}

    @app.post("/cache/cleanup")
    async def cache_cleanup(request: Request, pattern: str = "*"):
        cleaned = await svc(request).cache.cleanup(pattern)
        return {
            "pattern": pattern,
            "cleaned_count": cleaned,
            "message": f"Cleaned up {cleaned} expired keys",
        }

    @app.delete("/cache/clear-all")
    async def cache_clear_all(request: Request):
        success = await svc(request).cache.flush_all()
        logger.warning("cache_flushed_by_request", success=success)
        return {
            "success": success,
            "message": "All cache cleared successfully" if success else "Failed to clear cache",
        }

    @app.delete("/cache/clear/{pattern}")
    async def cache_clear_pattern(request: Request, pattern: str):
        deleted = await svc(request).cache.delete_by_pattern(pattern)
        return {
            "pattern": pattern,
            "deleted_count": deleted,
            "message": f"Deleted {deleted} keys matching pattern",
        }

    @app.get("/cache/health")
    async def cache_health(request: Request):
        available = svc(request).store.is_available()
        return {
            "redis": {
                "connected": available,
                "status": "healthy" if available else "disconnected",
            },
            "timestamp": _now(),
        }

    @app.get("/cache/report")
    async def cache_report(request: Request):
        return build_health_report(await svc(request).store.get_stats())

    return app


app = create_app()
