"""
FastAPI application factory.

Usage:
    uvicorn podcast_studio.rest.app:app --port 8000

    # Or with an explicit configuration block
    PODCAST_STUDIO_CONFIG_MGR_CLI_ARGS="config_block_id=development" uvicorn podcast_studio.rest.app:app
"""

import os
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from podcast_studio import __version__
from podcast_studio.rest.db import database
from podcast_studio.rest.dependencies.config import get_config_manager, set_config_manager
from podcast_studio.rest.routers import script_generation, audio, podcasts

logger = logging.getLogger( __name__ )


def create_app( config_mgr = None ) -> FastAPI:
    """
    Build the application.

    Requires:
        - config_mgr is a ConfigurationManager, or None to use the process-wide one

    Ensures:
        - Logging is configured at `app log level`
        - The database engine is initialized and tables exist
        - Routers, /health and the static directory are mounted

    Returns:
        FastAPI: Configured application
    """
    if config_mgr is not None:
        set_config_manager( config_mgr )
    config_mgr = get_config_manager()

    logging.basicConfig(
        level  = config_mgr.get( "app log level", "INFO" ).upper(),
        format = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )

    database_url = config_mgr.get( "database url", database.DEFAULT_DATABASE_URL )
    database.init_engine( database_url )

    app = FastAPI(
        title       = "Podcast Studio API",
        description = "Script generation, text-to-speech and audio assembly for two-host podcasts",
        version     = __version__
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins     = config_mgr.get( "cors allow origins", "*", return_type="list-string" ),
        allow_credentials = True,
        allow_methods     = [ "*" ],
        allow_headers     = [ "*" ]
    )

    app.include_router( script_generation.router )
    app.include_router( audio.router )
    app.include_router( podcasts.router )

    @app.get( "/health" )
    async def health():
        return { "status": "ok" }

    static_root   = config_mgr.get( "storage local root", "static" )
    static_prefix = config_mgr.get( "static url prefix", "/static" ).rstrip( "/" )
    os.makedirs( static_root, exist_ok=True )
    app.mount( static_prefix, StaticFiles( directory=static_root ), name="static" )

    logger.info( f"Podcast Studio {__version__} ready ({config_mgr.get( 'environment', 'production' )}, {database_url})" )
    return app


app = create_app()


if __name__ == "__main__":

    import uvicorn

    config_mgr = get_config_manager()
    uvicorn.run(
        app,
        host      = config_mgr.get( "app host", "0.0.0.0" ),
        port      = config_mgr.get( "app port", 8000, return_type="int" ),
        log_level = config_mgr.get( "app log level", "INFO" ).lower()
    )
