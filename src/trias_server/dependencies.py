"""FastAPI dependency injection — provides the engine registry, the
caller's engine, and user identity.
"""

import hmac
from typing import AsyncGenerator

from fastapi import Depends, Header, HTTPException, Request

from trias_assessment.catalog import Catalog
from trias_assessment.engine import AssessmentEngine

from trias_server.registry import EngineRegistry


# ------------------------------------------------------------------
# Registry & catalog: stashed on app.state during lifespan
# ------------------------------------------------------------------

def get_registry(request: Request) -> EngineRegistry:
    """Return the registry singleton from ``app.state``."""
    return request.app.state.registry


async def get_catalog(registry: EngineRegistry = Depends(get_registry)) -> Catalog:
    return await registry.catalog()


# ------------------------------------------------------------------
# User identity: extracted from the X-User-ID header
# ------------------------------------------------------------------

async def get_user_id(
    request: Request,
    x_user_id: str | None = Header(None, alias="X-User-ID"),
    x_proxy_secret: str | None = Header(None, alias="X-Proxy-Secret"),
) -> str:
    """Extract user identity from the ``X-User-ID`` header.

    Returns 401 if the header is missing.  When ``TRUSTED_PROXY_SECRET``
    is configured, the request must also carry a matching
    ``X-Proxy-Secret`` header (403 otherwise).
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="X-User-ID header is required")

    expected_secret: str | None = request.app.state.settings.trusted_proxy_secret
    if expected_secret:
        if not x_proxy_secret:
            raise HTTPException(
                status_code=403,
                detail="X-Proxy-Secret header is required",
            )
        # Constant-time comparison
        if not hmac.compare_digest(x_proxy_secret, expected_secret):
            raise HTTPException(status_code=403, detail="Invalid proxy secret")

    return x_user_id


# ------------------------------------------------------------------
# Engine: held under the user's lock for the whole request
# ------------------------------------------------------------------

async def get_engine(
    user_id: str = Depends(get_user_id),
    registry: EngineRegistry = Depends(get_registry),
) -> AsyncGenerator[AssessmentEngine, None]:
    async with registry.session(user_id) as engine:
        yield engine
