from __future__ import annotations

from fastapi import APIRouter

from notify_backend.config import settings
from notify_backend.schemas_common import RootResponse

router = APIRouter(tags=["root"])


@router.get("/", response_model=RootResponse)
async def get_root() -> RootResponse:
    return RootResponse(
        service=settings.service_name,
        title=settings.app_name,
        version=settings.service_version,
        api_version=settings.api_prefix.strip("/") or "v2",
    )
