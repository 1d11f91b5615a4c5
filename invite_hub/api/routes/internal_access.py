from __future__ import annotations

import structlog
from fastapi import HTTPException, Request

from invite_hub.core.config import get_settings
from invite_hub.services.internal_auth import (
    extract_client_ip,
    is_client_ip_allowed,
    is_internal_request_authenticated,
)

logger = structlog.get_logger(__name__)


def assert_internal_access(request: Request) -> None:
    settings = get_settings()
    client_ip = extract_client_ip(
        request,
        trusted_proxies=settings.internal_api_trusted_proxies,
    )

    if not is_client_ip_allowed(client_ip=client_ip, allowlist=settings.internal_api_allowlist):
        logger.warning(
            "internal_api_auth_failed",
            reason="ip_not_allowed",
            client_ip=client_ip,
            path=request.url.path,
        )
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})

    if not is_internal_request_authenticated(
        request,
        expected_token=settings.internal_api_token,
    ):
        logger.warning(
            "internal_api_auth_failed",
            reason="invalid_credentials",
            client_ip=client_ip,
            path=request.url.path,
        )
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})
