"""ASGI application factory."""

from __future__ import annotations

import logging
from typing import Any

from advanced_alchemy.config import AsyncSessionConfig, EngineConfig
from advanced_alchemy.extensions.litestar import SQLAlchemyAsyncConfig, SQLAlchemyPlugin
from litestar import Litestar

from sitepress.config import Settings, get_settings
from sitepress.controllers.deployments import DeploymentsController
from sitepress.controllers.versions import VersionsController
from sitepress.db.base import Base
from sitepress.deploy.orchestrator import DeploymentOrchestrator
from sitepress.deploy.registry import ProviderRegistry
from sitepress.lib import observability
from sitepress.lib.exceptions import EXCEPTION_HANDLERS
from sitepress.lib.hooks import LOGFIRE_CONFIGURED, hooks

logger = logging.getLogger(__name__)


def create_db_config(settings: Settings, create_all: bool = False) -> SQLAlchemyAsyncConfig:
    """Build the advanced-alchemy config from ``settings.db``."""
    if "sqlite" in settings.db.url:
        engine_config = EngineConfig(echo=settings.db.echo)
    else:
        engine_kwargs: dict[str, Any] = dict(
            pool_size=settings.db.pool_size,
            max_overflow=settings.db.pool_overflow,
            pool_timeout=settings.db.pool_timeout,
            pool_pre_ping=settings.db.pool_pre_ping,
            echo=settings.db.echo,
        )
        engine_config = EngineConfig(**engine_kwargs)

    return SQLAlchemyAsyncConfig(
        connection_string=settings.db.url,
        metadata=Base.metadata,
        create_all=create_all,
        session_config=AsyncSessionConfig(expire_on_commit=False),
        engine_config=engine_config,
    )


def create_app(settings: Settings | None = None, create_all: bool = False) -> Litestar:
    """Create the Litestar application with the deployment orchestrator attached.

    Args:
        settings: Settings to use instead of ``get_settings()``
        create_all: Create missing tables on startup (tests and local demos)
    """
    settings = settings or get_settings()

    observability.configure(settings)
    observability.instrument_httpx()

    db_config = create_db_config(settings, create_all=create_all)
    providers = ProviderRegistry(settings.deploy)
    orchestrator = DeploymentOrchestrator.from_settings(settings, db_config.get_session, providers)

    async def on_startup(_app: Litestar) -> None:
        """Instrument the engine and resume polling for in-flight deployments."""
        observability.instrument_sqlalchemy(db_config.get_engine())
        await hooks.do_action(LOGFIRE_CONFIGURED)
        try:
            await orchestrator.resume_inflight()
        except Exception:
            logger.info("Deployment resume skipped (DB may not exist)", exc_info=True)

    async def on_shutdown(_app: Litestar) -> None:
        """Stop background deployment tasks and close provider clients."""
        await orchestrator.shutdown()
        await providers.close()

    app = Litestar(
        on_startup=[on_startup],
        on_shutdown=[on_shutdown],
        route_handlers=[VersionsController, DeploymentsController],
        plugins=[SQLAlchemyPlugin(config=db_config)],
        exception_handlers=EXCEPTION_HANDLERS,
        debug=settings.debug,
    )
    app.state.orchestrator = orchestrator
    app.state.providers = providers
    return app


def create_asgi_app():
    """Entry point used by ``sitepress serve``."""
    settings = get_settings()
    observability.configure_logging(settings.log_level)
    return observability.instrument_app(create_app(settings))
