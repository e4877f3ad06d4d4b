from __future__ import annotations

from typing import Any

import uvicorn
from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from drhub.config import settings
from drhub.domain.states import DRActionType
from drhub.infra.hub_client import HubClientError
from drhub.logging_setup import configure_logging
from drhub.services.action_submitter import ActionInProgressError
from drhub.services.dr_service import ActionBlockedError, DRService, describe_application


configure_logging()

app = FastAPI(title="DR Hub API", version="0.1.0")
_service: DRService | None = None


def get_service() -> DRService:
    global _service
    if _service is None:
        _service = DRService()
    return _service


class ActionRequest(BaseModel):
    action: DRActionType
    block_on_warnings: bool = False


@app.exception_handler(ValueError)
async def value_error_handler(_request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(LookupError)
async def lookup_error_handler(_request: Request, exc: LookupError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc.args[0]) if exc.args else str(exc)})


@app.exception_handler(ActionBlockedError)
async def action_blocked_handler(_request: Request, exc: ActionBlockedError) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={"detail": str(exc), "code": int(exc.code), "name": exc.code.name},
    )


@app.exception_handler(ActionInProgressError)
async def action_in_progress_handler(_request: Request, exc: ActionInProgressError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(HubClientError)
async def hub_error_handler(_request: Request, exc: HubClientError) -> JSONResponse:
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.get("/health")
def health() -> dict[str, Any]:
    return {
        "status": "ok",
        "env": settings.app_env,
        "patch_concurrency": settings.patch_concurrency,
    }


@app.get("/applications")
def list_applications(service: DRService = Depends(get_service)) -> list[dict[str, Any]]:
    return [describe_application(info, service.health(info)) for info in service.applications()]


@app.get("/applications/{namespace}/{name}")
def get_application(namespace: str, name: str, service: DRService = Depends(get_service)) -> dict[str, Any]:
    info = service.find_application(namespace, name)
    return describe_application(info, service.health(info))


@app.get("/applications/{namespace}/{name}/readiness")
def get_readiness(
    namespace: str,
    name: str,
    action: DRActionType = Query(...),
    include_warnings: bool = True,
    service: DRService = Depends(get_service),
) -> dict[str, Any]:
    return service.readiness(namespace, name, action, include_warnings=include_warnings).as_dict()


@app.post("/applications/{namespace}/{name}/actions")
def initiate_action(
    namespace: str,
    name: str,
    payload: ActionRequest,
    service: DRService = Depends(get_service),
) -> Any:
    result = service.initiate(namespace, name, payload.action, block_on_warnings=payload.block_on_warnings)
    if not result.succeeded:
        return JSONResponse(status_code=502, content=result.as_dict())
    return result.as_dict()


@app.get("/dashboard/clusters")
def dashboard_clusters(service: DRService = Depends(get_service)) -> list[dict[str, Any]]:
    return [entry.as_dict() for entry in service.cluster_apps().values()]


@app.get("/dashboard/summary")
def dashboard_summary(service: DRService = Depends(get_service)) -> dict[str, Any]:
    return service.summary()


def run() -> None:
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_config=None)
