from typing import Optional
from fastapi import FastAPI
from . import __version__
from .config import AppConfig
from .inspector import InspectorFacade
from .routers import health, ping

description = """
## dbping

Keeps hosted databases from being suspended for inactivity and shows which
ones are reachable.

* **Check now:** `GET /api/ping-dbs` connects to every configured database,
  samples one row from a chosen table and runs `SELECT 1`.
* **Health:** `GET /health` reports that the service itself is up.
"""


def create_app(config: Optional[AppConfig] = None, facade: Optional[InspectorFacade] = None) -> FastAPI:
    if facade is None:
        facade = InspectorFacade(config or AppConfig.load())

    app = FastAPI(
        title="dbping",
        description=description,
        version=__version__,
        openapi_tags=[
            {"name": "health", "description": "Service liveness"},
            {"name": "ping", "description": "Database connectivity checks"},
        ],
    )
    app.state.facade = facade

    app.include_router(health.router, prefix="/health", tags=["health"])
    app.include_router(ping.router, prefix="/api", tags=["ping"])
    return app
