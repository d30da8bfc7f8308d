"""
Shared fixtures for the core, db and REST unit tests.

Importing podcast_studio.rest.app builds the default application, so the
process is pointed at the [testing] block (in-memory sqlite) before any
test module is collected.
"""

import os
import tempfile

import pytest

os.environ.setdefault( "PODCAST_STUDIO_CONFIG_MGR_CLI_ARGS", "config_block_id=testing" )
os.environ.setdefault( "PODCAST_STUDIO__STORAGE_LOCAL_ROOT", os.path.join( tempfile.gettempdir(), "podcast-studio-test-static" ) )

from podcast_studio.config.configuration_manager import ConfigurationManager
from podcast_studio.rest.db import database
from podcast_studio.rest.dependencies.config import reset_dependencies


@pytest.fixture
def config_mgr():
    """A fresh ConfigurationManager on the [testing] block."""
    ConfigurationManager.reset_for_testing()
    config_mgr = ConfigurationManager( config_block_id="testing" )
    yield config_mgr
    ConfigurationManager.reset_for_testing()
    reset_dependencies()


@pytest.fixture
def memory_db():
    """An empty in-memory database for the duration of one test."""
    engine = database.init_engine( "sqlite://" )
    yield engine
    engine.dispose()
