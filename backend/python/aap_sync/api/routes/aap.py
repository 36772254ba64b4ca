from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from aap_sync.config.constants.http_status_code import HttpStatusCode
from aap_sync.connectors.sources.aap.connector import AAPEntityConnector
from aap_sync.exceptions.aap_exceptions import AAPError

router = APIRouter(tags=["AAP"])


async def get_services(request: Request) -> Dict[str, Any]:
    """Get all required services from the container"""
    container = request.app.container
    connectors = container.entity_connectors()
    if not connectors:
        raise HTTPException(
            status_code=HttpStatusCode.SERVICE_UNAVAILABLE.value,
            detail="No AAP entity provider configured.",
        )
    return {
        "connector": connectors[0],
        "logger": container.logger(),
    }


@router.get("/health")
async def health(request: Request) -> JSONResponse:
    request.app.container.logger().info("PONG!")
    return JSONResponse(content={"status": "ok"})


@router.get("/aap/sync_orgs_users_teams")
async def sync_orgs_users_teams(request: Request) -> JSONResponse:
    """Run a full organizations, users and teams sync"""
    services = await get_services(request)
    connector: AAPEntityConnector = services["connector"]
    services["logger"].info("Starting orgs, users and teams sync")
    result = await connector.run()
    return JSONResponse(status_code=HttpStatusCode.OK.value, content=result)


@router.post("/aap/create_user")
async def create_user(request: Request) -> JSONResponse:
    """Reconcile a single user into the catalog"""
    services = await get_services(request)
    connector: AAPEntityConnector = services["connector"]
    logger = services["logger"]

    try:
        body = await request.json()
    except ValueError:
        body = {}
    username = body.get("username") if isinstance(body, dict) else None
    user_id = body.get("userID") if isinstance(body, dict) else None
    if not username or user_id is None:
        return JSONResponse(
            status_code=HttpStatusCode.BAD_REQUEST.value,
            content={"error": "Missing username and user id in request body."},
        )

    logger.info(f"Creating user {username} in catalog")
    try:
        created = await connector.create_single_user(username, user_id)
    except AAPError as e:
        logger.error(f"Failed to create user {username}: {e.message}")
        return JSONResponse(
            status_code=HttpStatusCode.INTERNAL_SERVER_ERROR.value,
            content={"error": f"Failed to create user: {e.message}"},
        )
    return JSONResponse(
        status_code=HttpStatusCode.OK.value,
        content={"success": True, "user": username, "created": created},
    )
