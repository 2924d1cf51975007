"""ASGI application factory for Stratum.

The app is a JSON API over the content core. The schema is managed by Alembic
(``stratum db upgrade head``); the app never creates tables itself.
"""

import logging

from advanced_alchemy.extensions.litestar import SQLAlchemyPlugin
from litestar import Litestar
from litestar.di import Provide

from stratum.app_config import build_db_config
from stratum.config import Settings, configure_logging, get_settings
from stratum.controllers import CollectionController, ContentController, VersionController
from stratum.controllers.helpers import provide_actor
from stratum.lib import observability
from stratum.lib.exceptions import EXCEPTION_HANDLERS

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> Litestar:
    """Create the Litestar application.

    Args:
        settings: Settings to build the app with (loaded from .env/app.yaml when omitted)
    """
    settings = settings or get_settings()

    configure_logging(settings)
    observability.configure(settings)

    db_config = build_db_config(settings)

    async def on_startup(_app: Litestar) -> None:
        observability.instrument_sqlalchemy(db_config.get_engine())
        logger.info("Stratum started with database %s", db_config.get_engine().url.render_as_string())

    app = Litestar(
        on_startup=[on_startup],
        route_handlers=[CollectionController, ContentController, VersionController],
        dependencies={"actor": Provide(provide_actor, sync_to_thread=False)},
        plugins=[SQLAlchemyPlugin(config=db_config)],
        exception_handlers=EXCEPTION_HANDLERS,
        debug=settings.debug,
    )
    return app


def create_asgi_app():
    """Entry point for ``hypercorn stratum.asgi:app``; wraps the app for tracing."""
    return observability.instrument_app(create_app())


app = create_asgi_app()
