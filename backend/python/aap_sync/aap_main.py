import asyncio
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

import uvicorn
import yaml
from fastapi import FastAPI

from aap_sync.api.routes.aap import router as aap_router
from aap_sync.containers.container import AAPSyncContainer, initialize_container


def load_app_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load the YAML application config named by AAP_SYNC_CONFIG, empty when unset"""
    path = path or os.getenv("AAP_SYNC_CONFIG")
    if not path:
        return {}
    with open(path, "r", encoding="utf-8") as config_file:
        return yaml.safe_load(config_file) or {}


def create_app(container: Optional[AAPSyncContainer] = None) -> FastAPI:
    """Build the FastAPI application; the container is initialized on startup"""
    container = container or AAPSyncContainer.init("aap_sync", load_app_config())
    container_lock = asyncio.Lock()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        async with container_lock:
            await initialize_container(container)
        yield
        rhaap = (container.app_config().get("ansible") or {}).get("rhaap") or {}
        if rhaap.get("baseUrl"):
            await container.aap_client().get_client().close()

    app = FastAPI(title="AAP Sync", lifespan=lifespan)
    app.container = container
    app.include_router(aap_router)
    return app


def run(host: str = "0.0.0.0", port: int = 8091) -> None:
    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":
    run()
