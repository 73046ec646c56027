# catalog_sync/main.py

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from catalog_sync.core import logging_config  # noqa: F401  configures logging on import
from catalog_sync.core.exceptions import ConfigError
from catalog_sync.routes import health
from catalog_sync.routes.sync import router as sync_router
from catalog_sync.services.sync_services import config_error_result

logger = logging.getLogger(__name__)

app = FastAPI(title="inFlow to Shopify Catalog Sync")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ConfigError)
async def config_error_handler(request: Request, exc: ConfigError):
    """Missing credentials: answer with an empty sync result instead of a bare 500"""
    logger.error(f"Configuration error on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content=config_error_result(exc).model_dump(exclude_none=True))


app.include_router(health.router)
app.include_router(sync_router)
