"""In-process fake of the OpenCDP API for integration tests.

The app is served to the client through httpx.ASGITransport. It checks the
API key, records every JSON body it receives on ``app.state.received`` and
answers the way the real gateway does for a few known failure cases.
"""

from typing import Any

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse

GATEWAY_PREFIX = "/gateway/data-gateway"
VALID_API_KEY = "integration-key"

# Template id the fake gateway does not know about
MISSING_TEMPLATE_ID = "MISSING"


def create_fake_cdp() -> FastAPI:
    """Create a fresh fake CDP app with an empty request log."""
    app = FastAPI()
    app.state.received = []

    def require_api_key(authorization: str | None = Header(default=None)) -> None:
        if authorization != VALID_API_KEY:
            raise HTTPException(status_code=401, detail="Invalid API key")

    router = APIRouter(prefix=GATEWAY_PREFIX, dependencies=[Depends(require_api_key)])

    async def record(request: Request) -> dict[str, Any]:
        body = await request.json()
        app.state.received.append((request.url.path.removeprefix(GATEWAY_PREFIX), body))
        return body

    @router.get("/v1/health/ping")
    async def ping() -> dict[str, str]:
        return {"status": "ok"}

    @router.post("/v1/persons/identify")
    async def identify(request: Request) -> dict[str, str]:
        await record(request)
        return {"status": "ok"}

    @router.post("/v1/persons/track")
    async def track(request: Request) -> dict[str, str]:
        await record(request)
        return {"status": "ok"}

    @router.post("/v1/persons/registerDevice")
    async def register_device(request: Request) -> dict[str, str]:
        await record(request)
        return {"status": "ok"}

    @router.post("/v1/send/email")
    async def send_email(request: Request):
        body = await record(request)
        if body.get("transactional_message_id") == MISSING_TEMPLATE_ID:
            return JSONResponse(status_code=404, content={"message": "Template not found"})
        return {"delivery_id": "email-1", "queued_at": 1700000000}

    @router.post("/v1/send/push")
    async def send_push(request: Request) -> dict[str, str]:
        await record(request)
        return {"delivery_id": "push-1"}

    @router.post("/v1/send/sms")
    async def send_sms(request: Request) -> dict[str, str]:
        await record(request)
        return {"delivery_id": "sms-1"}

    app.include_router(router)
    return app
