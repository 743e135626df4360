from __future__ import annotations
"""Proxy relay endpoint: the browser's only route to vendor APIs.

The browser sends ``{endpoint, method, payload, apiKey?}``; the server
attaches the vendor secret and returns the vendor's body unchanged.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from castforge.api.deps import get_relay
from castforge.errors import ConfigurationError, ValidationError
from castforge.schemas.jobs import Vendor
from castforge.schemas.relay import RelayRequest
from castforge.services.relay import ProxyRelay, get_relay_target

router = APIRouter()
logger = logging.getLogger(__name__)


def _vendor_or_404(vendor: str) -> Vendor:
    try:
        return Vendor(vendor)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown vendor: {vendor}")


@router.post("/{vendor}")
async def relay_call(vendor: str, req: RelayRequest, relay: ProxyRelay = Depends(get_relay)):
    """Forward one call to ``vendor``.

    Vendor status codes >= 400 are passed through; non-JSON answers and
    network failures come back as 502 with the vendor's error shape.
    """
    target = get_relay_target(_vendor_or_404(vendor))
    try:
        resp = await relay.forward(target.vendor, req)
    except ConfigurationError as e:
        logger.error("%s relay: %s", target.label, e)
        return JSONResponse(status_code=500, content=target.error_body(e.message))
    except ValidationError as e:
        return JSONResponse(status_code=400, content=target.error_body(e.message))
    return JSONResponse(status_code=resp.status_code, content=resp.body)
