"""
Fixtures for router tests: an application on the [testing] block with an
in-memory database and local storage under tmp_path.
"""

import pytest
from fastapi.testclient import TestClient

from podcast_studio.rest.app import create_app
from podcast_studio.rest.auth import get_current_user_id


@pytest.fixture
def app( config_mgr, tmp_path ):
    config_mgr.set_config( "storage local root", str( tmp_path / "static" ) )
    application = create_app( config_mgr )
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client( app ):
    with TestClient( app ) as test_client:
        yield test_client


@pytest.fixture
def login( app ):
    """Act as the given user for subsequent requests."""
    def login_as( user_id: str ):
        app.dependency_overrides[ get_current_user_id ] = lambda: user_id
    return login_as
