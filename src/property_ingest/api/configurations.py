"""Page configuration conversion endpoints.

Both accept any stored configuration blob (v1, v2 or garbage) and never
fail on its content: unreadable input converts from the default.
"""

from typing import Any

from fastapi import APIRouter, Body

from property_ingest.services.page_config import (
    serialize_for_storage,
    serialize_legacy_view,
    to_current,
    to_legacy_view,
)

router = APIRouter()


@router.post("/current")
async def convert_to_current(config: Any = Body(default=None)):
    """Return the v2 form of a stored configuration."""
    return serialize_for_storage(to_current(config))


@router.post("/legacy-view")
async def convert_to_legacy_view(config: Any = Body(default=None)):
    """Return the v1 form for older editor components."""
    return serialize_legacy_view(to_legacy_view(to_current(config)))
