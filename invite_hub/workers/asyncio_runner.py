from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

import structlog

from invite_hub.db.session import dispose_engine

T = TypeVar("T")
logger = structlog.get_logger(__name__)


async def _run_with_fresh_db_pool(awaitable: Awaitable[T], *, job_name: str) -> T:
    # Each asyncio.run() owns a new loop; asyncpg connections cannot cross loops.
    await dispose_engine()
    with structlog.contextvars.bound_contextvars(job=job_name):
        try:
            return await awaitable
        except Exception:
            logger.exception("async_job_failed")
            raise
        finally:
            await dispose_engine()


def run_async_job(awaitable: Awaitable[T], *, job_name: str) -> T:
    return asyncio.run(_run_with_fresh_db_pool(awaitable, job_name=job_name))
