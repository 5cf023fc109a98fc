import asyncio
import json
import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from provisioning import config
from provisioning.db_connection import build_db_session_factory
from provisioning.errors import ProvisioningServiceError, ValidationError
from provisioning.saga import CancellationToken
from provisioning.service import ProjectProvisioningService, build_service

logger = logging.getLogger("provisioning.server")

DISCONNECT_POLL_SECONDS = 0.5

app = FastAPI()

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_service() -> ProjectProvisioningService:
    return build_service(build_db_session_factory())


@app.exception_handler(ProvisioningServiceError)
async def provisioning_error_handler(request: Request, exc: ProvisioningServiceError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


@app.get("/health")
async def health():
    return {"status": "ok"}


async def watch_disconnect(request: Request, token: CancellationToken, interval: float = DISCONNECT_POLL_SECONDS):
    """Cancel ``token`` once the caller goes away; the saga stops at its next step boundary."""
    while not token.cancelled:
        if await request.is_disconnected():
            logger.warning("Client disconnected, cancelling provisioning run")
            token.cancel("client disconnected")
            return
        await asyncio.sleep(interval)


@app.post("/generate-client-project")
@app.post("/functions/v1/generate-client-project")
async def generate_client_project(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    service: ProjectProvisioningService = Depends(get_service),
):
    # the gate runs before the body is even parsed
    role = await asyncio.to_thread(service.gate.admit, authorization)

    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError([{"field": "body", "message": "Request body must be valid JSON"}])
    if not isinstance(body, dict) or "wizardData" not in body:
        raise ValidationError([{"field": "wizardData", "message": "wizardData is required"}])

    token = CancellationToken(service.timeout_seconds)
    watcher = asyncio.create_task(watch_disconnect(request, token))
    try:
        result = await asyncio.to_thread(service.provision_admitted, role, body["wizardData"], token)
    except ProvisioningServiceError as e:
        logger.error("Error generating project: %s", e)
        raise
    except Exception as e:
        logger.exception("Unexpected error generating project")
        return JSONResponse(status_code=500, content={"error": str(e)})
    finally:
        watcher.cancel()

    if result.view is None:
        return JSONResponse(status_code=result.assembly_error.status_code, content=result.assembly_error.to_response())
    return result.view.to_response()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.SERVER_HOST, port=config.SERVER_PORT)
