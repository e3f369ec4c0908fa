import logging
from datetime import date

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from catfe_tv.db import get_db
from catfe_tv.security import require_admin
from catfe_tv.services import guest_sessions as sessions
from catfe_tv.services.clock import local_now
from catfe_tv.services.roller import RollerClient, RollerError, event_type, is_redemption, parse_redemption

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["webhooks"])

_roller_client = RollerClient()


def get_roller_client() -> RollerClient:
    return _roller_client


@router.get("/webhooks/roller")
def roller_webhook_health():
    return {
        "ok": True,
        "message": "Roller webhook endpoint is active",
        "accepts": ["redemption.Created"],
    }


@router.post("/webhooks/roller")
async def roller_webhook(request: Request, db: Session = Depends(get_db)):
    """Booking redemption from Roller: check the guest in automatically.

    Each delivery creates a new session, repeated deliveries are not merged.
    """
    try:
        body = await request.json()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Body must be JSON") from exc
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Body must be a JSON object")

    kind = event_type(body)
    logger.info("Roller webhook received: %s", kind or "<no event type>")
    if not is_redemption(body):
        return {"ok": True, "message": "Event type ignored"}

    redemption = parse_redemption(body)
    # the check-in commits, so keep it off the event loop
    session = await run_in_threadpool(
        sessions.check_in,
        db,
        guest_name=redemption.guest_name,
        duration=redemption.duration,
        now=local_now(),
        guest_count=redemption.guest_count,
        notes=f"Auto check-in via Roller: {redemption.product_name}",
    )
    return {
        "ok": True,
        "session_id": session.id,
        "guest_name": session.guest_name,
        "duration": f"{redemption.duration} min",
        "product": redemption.product_name,
    }


@router.get("/roller/test", dependencies=[Depends(require_admin)])
async def roller_test_connection(client: RollerClient = Depends(get_roller_client)):
    return await client.test_connection()


@router.get("/roller/availability", dependencies=[Depends(require_admin)])
async def roller_availability(day: date | None = None, client: RollerClient = Depends(get_roller_client)):
    try:
        return await client.get_product_availability((day or local_now().date()).isoformat())
    except (RollerError, httpx.HTTPError) as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@router.get("/roller/bookings", dependencies=[Depends(require_admin)])
async def roller_bookings(
    date_from: date,
    date_to: date | None = None,
    client: RollerClient = Depends(get_roller_client),
):
    try:
        return await client.search_bookings(date_from.isoformat(), date_to.isoformat() if date_to else None)
    except (RollerError, httpx.HTTPError) as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@router.get("/roller/webhooks", dependencies=[Depends(require_admin)])
async def roller_webhooks(client: RollerClient = Depends(get_roller_client)):
    try:
        return await client.list_webhooks()
    except (RollerError, httpx.HTTPError) as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
