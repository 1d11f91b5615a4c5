from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from sqlalchemy import text

from invite_hub.core.config import get_settings
from invite_hub.db.session import SessionLocal
from invite_hub.workers.celery_app import celery_app

router = APIRouter(tags=["health"])
logger = structlog.get_logger(__name__)

CheckResult = dict[str, Any]


def _probe_failed(error: str) -> CheckResult:
    return {"status": "failed", "error": error}


async def _check_database() -> CheckResult:
    try:
        async with SessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        return _probe_failed(str(exc))
    return {"status": "ok"}


async def _check_redis() -> CheckResult:
    client = Redis.from_url(get_settings().redis_url)
    try:
        if await client.ping() is not True:
            return _probe_failed("redis did not answer PONG")
    except Exception as exc:
        return _probe_failed(str(exc))
    finally:
        await client.aclose()
    return {"status": "ok"}


def _ping_celery_workers() -> CheckResult:
    try:
        inspector = celery_app.control.inspect(timeout=1.0)
        replies = (inspector.ping() if inspector is not None else None) or {}
    except Exception as exc:
        return _probe_failed(str(exc))
    if not replies:
        return _probe_failed("no referral workers answered")
    return {"status": "ok", "workers": len(replies)}


async def _check_celery_worker() -> CheckResult:
    return await asyncio.to_thread(_ping_celery_workers)


async def _check_stripe_config() -> CheckResult:
    settings = get_settings()
    configured = sorted(slug for slug, key in settings.stripe_secret_keys.items() if key)
    missing_webhook_secrets = sorted(
        slug for slug in configured if not settings.stripe_webhook_secrets.get(slug)
    )
    if not configured:
        return _probe_failed("no product has a stripe secret key")
    result: CheckResult = {"status": "ok", "products": configured}
    if missing_webhook_secrets:
        result["missing_webhook_secrets"] = missing_webhook_secrets
    return result


def _probes() -> dict[str, Callable[[], Awaitable[CheckResult]]]:
    # Resolved per request so tests can monkeypatch module attributes.
    return {
        "database": _check_database,
        "redis": _check_redis,
        "celery": _check_celery_worker,
        "stripe": _check_stripe_config,
    }


async def _run_probes() -> tuple[bool, dict[str, CheckResult]]:
    probes = _probes()
    results = await asyncio.gather(*(probe() for probe in probes.values()))
    checks = dict(zip(probes.keys(), results))
    failed = [name for name, check in checks.items() if check.get("status") != "ok"]
    if failed:
        logger.warning("health_probes_failed", failed=failed)
    return not failed, checks


def _probe_response(*, healthy: bool, label: str, checks: dict[str, CheckResult]) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": label, "checks": checks},
    )


@router.get("/health")
async def health() -> JSONResponse:
    healthy, checks = await _run_probes()
    return _probe_response(healthy=healthy, label="ok" if healthy else "degraded", checks=checks)


@router.get("/ready")
async def ready() -> JSONResponse:
    healthy, checks = await _run_probes()
    return _probe_response(healthy=healthy, label="ready" if healthy else "not_ready", checks=checks)
