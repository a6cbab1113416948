import os
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import TYPE_CHECKING

import uvicorn
from fastapi import FastAPI
from rich import traceback
from starlette.middleware.cors import CORSMiddleware
from starlette_compress import CompressMiddleware

from learnova.api.main import api_router
from learnova.constants import API_V1_STR, DEFAULT_INSTANCE_PATH
from learnova.core.config import LearnovaConf
from learnova.database.handlers import CatalogHandler, TokenUsageHandler
from learnova.database.init import create_db_engine, init_db
from learnova.services.app_paths_helper import AppPathsHelper
from learnova.services.capability_token import CapabilityTokenService, TokenUsageJanitor
from learnova.services.credential_pool import ConfigurationError, CredentialPool
from learnova.services.upload import UploadPipeline
from learnova.utils.background_tasks import BackgroundTasks
from learnova.utils.logger import get_logger, setup_logger
from learnova.version import PROGRAM_NAME, __version__

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

    from fastapi.routing import APIRoute
else:
    AsyncIterator = object
    Path = object
    APIRoute = object

logger = get_logger(__name__)

# Don't put anything on stdout if we are generating openapi json
IN_OPEN_API_MODE: bool = os.getenv("IN_OPEN_API_MODE", "false").lower() == "true"


def custom_generate_unique_id(route: APIRoute) -> str:
    return f"{route.tags[0]}-{route.name}"


def clear_stale_uploads(upload_tmp_dir: Path) -> None:
    """Remove temp files left behind by a previous process that died mid-upload."""
    stale = list(upload_tmp_dir.glob("*.part"))
    for path in stale:
        path.unlink(missing_ok=True)
    if stale:
        logger.warning("Removed %d stale upload temp file(s) from %s", len(stale), upload_tmp_dir)


def load_credential_pool(settings: LearnovaConf) -> CredentialPool | None:
    """The app still starts without media accounts, uploads then answer with a configuration error."""
    try:
        return CredentialPool.from_settings(settings.media, settings.pool)
    except ConfigurationError as e:
        logger.critical("%s, uploads are disabled", e)
        return None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifespan - startup and shutdown."""
    # Startup
    clear_stale_uploads(app.state.paths.upload_tmp_dir)
    app.state.token_janitor.start()

    yield

    # Shutdown
    app.state.token_janitor.stop()
    await app.state.background_tasks.drain()


def create_app(settings: LearnovaConf | None = None, instance_path: Path | None = None) -> FastAPI:
    """Build the app, with the given settings or the ones from the config file and environment."""
    paths = AppPathsHelper(instance_path if instance_path is not None else DEFAULT_INSTANCE_PATH)

    if settings is None:
        settings = LearnovaConf()
        if not IN_OPEN_API_MODE:
            traceback.install()
            settings.write_config(paths.settings_file)

    if not IN_OPEN_API_MODE:
        setup_logger(settings=settings.logging)
        setup_logger(settings=settings.logging, in_logger="uvicorn.error")

    engine = create_db_engine(paths.database_url)
    init_db(engine)
    usage_handler = TokenUsageHandler(engine)
    catalog = CatalogHandler(engine)

    credential_pool = load_credential_pool(settings)
    background_tasks = BackgroundTasks()
    upload_pipeline = (
        UploadPipeline.from_settings(settings.media, credential_pool, background_tasks, paths.upload_tmp_dir)
        if credential_pool is not None
        else None
    )

    app = FastAPI(
        title=PROGRAM_NAME,
        version=__version__,
        openapi_url=f"{API_V1_STR}/openapi.json",
        generate_unique_id_function=custom_generate_unique_id,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.paths = paths
    app.state.catalog = catalog
    app.state.credential_pool = credential_pool
    app.state.background_tasks = background_tasks
    app.state.upload_pipeline = upload_pipeline
    app.state.token_service = CapabilityTokenService.from_settings(settings, usage_handler, catalog)
    app.state.token_janitor = TokenUsageJanitor(
        usage_handler,
        retention=timedelta(seconds=settings.tokens.usage_retention_seconds),
        interval=settings.tokens.janitor_interval_seconds,
    )

    app.add_middleware(CompressMiddleware)
    app.include_router(api_router, prefix=API_V1_STR)

    # Set all CORS enabled origins
    if settings.all_cors_origins:
        app.add_middleware(
            middleware_class=CORSMiddleware,
            allow_origins=settings.all_cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    media_accounts = len(credential_pool) if credential_pool is not None else 0
    msg = f""">>>
-------------------------------------------------------------------------------
{PROGRAM_NAME}
Version: {__version__}
Config file: {paths.settings_file.absolute()}
Environment: {settings.ENVIRONMENT.capitalize()}
External URL: {settings.EXTERNAL_URL}
Media accounts: {media_accounts}
-------------------------------------------------------------------------------"""
    logger.info(msg)

    return app


def serve() -> None:
    """Run the app with uvicorn, single worker since the pool lives in process."""
    uvicorn.run(
        "learnova.main:create_app",
        factory=True,
        host=os.getenv("LEARNOVA_HOST", "127.0.0.1"),
        port=int(os.getenv("LEARNOVA_PORT", "5100")),
        workers=1,
    )


if __name__ == "__main__":
    serve()
