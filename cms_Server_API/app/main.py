# main.py
# Description: This file contains the FastAPI application serving the site CMS (content, share links, admin).
#
# Imports
import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional
#
# 3rd-party Libraries
from fastapi import FastAPI
from loguru import logger
#
# Local Imports
#
# Admin Access Endpoint
from cms_Server_API.app.api.v1.endpoints.admin_access import router as admin_access_router
#
# Content Endpoint
from cms_Server_API.app.api.v1.endpoints.content import router as content_router
#
# Share Links Endpoint
from cms_Server_API.app.api.v1.endpoints.share_links import router as share_links_router
#
from cms_Server_API.app.core.AuthNZ.Admin_Session import SessionGuard
from cms_Server_API.app.core.config import settings
from cms_Server_API.app.core.DB_Management.Content_DB import ContentDatabase
from cms_Server_API.app.core.RateLimiting.Rate_Limit import LoginRateLimiter
from cms_Server_API.app.core.Security.Share_Links import LinkIssuer
from cms_Server_API.app.core.Sync import GitDataTransport, SyncQueue
#
########################################################################################################################
#
# Functions:


# --- Loguru Configuration with Intercept Handler ---

# Define a handler class to intercept standard logging messages
class InterceptHandler(logging.Handler):
    def emit(self, record):
        # Get corresponding Loguru level if it exists
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def configure_logging(log_level: str = "INFO") -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        colorize=True,
    )

    loggers_to_intercept = ["uvicorn", "uvicorn.error", "uvicorn.access", "httpx"]
    for logger_name in loggers_to_intercept:
        mod_logger = logging.getLogger(logger_name)
        mod_logger.handlers = [InterceptHandler()]
        mod_logger.propagate = False


def build_sync_queue(config: Dict[str, Any]) -> SyncQueue:
    """A disabled (no-op) queue unless remote sync is configured."""
    if not (config["GITHUB_SYNC_ENABLED"] and config["GITHUB_TOKEN"] and config["GITHUB_REPO"]):
        logger.info("Remote content sync disabled")
        return SyncQueue()
    transport = GitDataTransport(
        token=config["GITHUB_TOKEN"],
        repo=config["GITHUB_REPO"],
        branch=config["GITHUB_BRANCH"],
        path_prefix=config["GITHUB_PATH"],
    )
    return SyncQueue(transport, debounce_seconds=config["SYNC_DEBOUNCE_SECONDS"],
                     max_retries=config["SYNC_MAX_RETRIES"])


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = app.state.settings
    content_db = ContentDatabase(
        config["CONTENT_STORE_DIR"],
        sync_queue=build_sync_queue(config),
        share_links_file=config["SHARE_LINKS_FILE"],
        share_links_legacy_file=config["SHARE_LINKS_LEGACY_FILE"],
        history_max_entries=config["HISTORY_MAX_ENTRIES"],
    )
    app.state.content_db = content_db
    app.state.link_issuer = LinkIssuer(
        content_db.share_links,
        secret=config["JWT_SECRET"],
        prefix=config["SHARE_CODE_PREFIX"],
        code_length=config["SHARE_CODE_LENGTH"],
        issuer=config["SHARE_LINK_ISSUER"],
    )
    app.state.session_guard = SessionGuard(
        secret=config["JWT_SECRET"],
        admin_user=config["ADMIN_USER"],
        admin_pass=config["ADMIN_PASS"],
        rate_limiter=LoginRateLimiter(
            window_seconds=config["ADMIN_LOGIN_WINDOW_SECONDS"],
            max_attempts=config["ADMIN_LOGIN_MAX_ATTEMPTS"],
            block_seconds=config["ADMIN_LOGIN_BLOCK_SECONDS"],
        ),
        ttl_minutes=config["ADMIN_SESSION_TTL_MINUTES"],
        issuer=f"{config['SHARE_LINK_ISSUER']}-admin",
        login_disabled=config["ADMIN_LOGIN_DISABLED"],
        require_https=config["ADMIN_REQUIRE_HTTPS"],
        is_production=config["IS_PRODUCTION"],
        env_issues=config["ADMIN_ENV_ISSUES"],
    )
    logger.info(f"App Startup: content store at {config['CONTENT_STORE_DIR']}")
    yield
    logger.info("App Shutdown: flushing pending content sync")
    await content_db.aclose()


def create_app(config: Optional[Dict[str, Any]] = None) -> FastAPI:
    config = config or settings
    app = FastAPI(
        title="Site CMS API",
        version="0.1.0",
        description="FastAPI backend for the site's editable content, share links and admin access",
        lifespan=lifespan,
    )
    app.state.settings = config

    app.include_router(admin_access_router, prefix="/api/v1/admin-access", tags=["admin-access"])
    app.include_router(share_links_router, prefix="/api/v1/share-links", tags=["share-links"])
    app.include_router(content_router, prefix="/api/v1/content", tags=["content"])

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app


configure_logging(settings["LOG_LEVEL"])
app = create_app()

#
## End of main.py
########################################################################################################################
