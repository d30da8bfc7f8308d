"""
Configuration and shared service dependencies for the FastAPI application.

Provides singleton getters for the configuration manager, the generation
status store, the agents and the storage and record services. These
dependencies are injected into endpoints with Depends() so tests can
replace any of them through app.dependency_overrides.
"""

import os

from podcast_studio.config.configuration_manager import ConfigurationManager
from podcast_studio.agents.script_pipeline.config import ScriptPipelineConfig
from podcast_studio.agents.script_pipeline.status_store import GenerationStatusStore
from podcast_studio.agents.script_pipeline.orchestrator import ScriptPipelineAgent
from podcast_studio.agents.audio_assembly.config import AudioConfig
from podcast_studio.agents.audio_assembly.tts_client import RemoteTTSClient
from podcast_studio.agents.audio_assembly.google_tts_client import GoogleTTSClient
from podcast_studio.agents.audio_assembly.audio_stitcher import AudioAssembler
from podcast_studio.agents.audio_assembly.producer import PodcastProducer
from podcast_studio.rest.podcast_service import PodcastService
from podcast_studio.rest.storage_service import create_storage_service

CONFIG_ENV_VAR_NAME = "PODCAST_STUDIO_CONFIG_MGR_CLI_ARGS"

# Global instances (initialized once)
_config_mgr        = None
_status_store      = None
_script_agent      = None
_audio_config      = None
_storage           = None
_podcast_service   = None
_tts_client        = None
_google_tts_client = None
_assembler         = None
_producer          = None


def set_config_manager( config_mgr ) -> None:
    """
    Install an explicit configuration manager (used by create_app).

    Ensures:
        - Every service built afterwards reads this configuration
    """
    global _config_mgr
    reset_dependencies()
    _config_mgr = config_mgr


def reset_dependencies() -> None:
    """Forget every singleton so the next request rebuilds them."""
    global _config_mgr, _status_store, _script_agent, _audio_config, _storage
    global _podcast_service, _tts_client, _google_tts_client, _assembler, _producer

    _config_mgr        = None
    _status_store      = None
    _script_agent      = None
    _audio_config      = None
    _storage           = None
    _podcast_service   = None
    _tts_client        = None
    _google_tts_client = None
    _assembler         = None
    _producer          = None


def get_config_manager():
    """
    Dependency to get configuration manager singleton.

    Ensures:
        - Created on first call from PODCAST_STUDIO_CONFIG_MGR_CLI_ARGS, or the bundled INI
        - Returns same instance on subsequent calls
    """
    global _config_mgr
    if _config_mgr is None:
        env_var_name = CONFIG_ENV_VAR_NAME if CONFIG_ENV_VAR_NAME in os.environ else None
        _config_mgr  = ConfigurationManager( env_var_name=env_var_name )
    return _config_mgr


def _is_debug() -> bool:
    return get_config_manager().get( "app debug", False, return_type="boolean" )


def _is_verbose() -> bool:
    return get_config_manager().get( "app verbose", False, return_type="boolean" )


def get_status_store() -> GenerationStatusStore:
    """
    Dependency to get the process-wide generation status store.

    Ensures:
        - Exactly one store per process, so at most one job runs at a time
    """
    global _status_store
    if _status_store is None:
        timeout = get_config_manager().get( "script job timeout seconds", 600, return_type="int" )
        _status_store = GenerationStatusStore( job_timeout_seconds=timeout, debug=_is_debug(), verbose=_is_verbose() )
    return _status_store


def get_script_agent() -> ScriptPipelineAgent:
    """Dependency to get the script pipeline agent, bound to the shared store."""
    global _script_agent
    if _script_agent is None:
        config = ScriptPipelineConfig.from_config_manager( get_config_manager() )
        _script_agent = ScriptPipelineAgent( get_status_store(), config=config, debug=_is_debug(), verbose=_is_verbose() )
    return _script_agent


def get_audio_config() -> AudioConfig:
    global _audio_config
    if _audio_config is None:
        _audio_config = AudioConfig.from_config_manager( get_config_manager() )
    return _audio_config


def get_storage_service():
    """Dependency to get the object storage backend selected by `storage backend`."""
    global _storage
    if _storage is None:
        _storage = create_storage_service( get_config_manager(), debug=_is_debug(), verbose=_is_verbose() )
    return _storage


def get_podcast_service() -> PodcastService:
    global _podcast_service
    if _podcast_service is None:
        _podcast_service = PodcastService( debug=_is_debug(), verbose=_is_verbose() )
    return _podcast_service


def get_tts_client() -> RemoteTTSClient:
    global _tts_client
    if _tts_client is None:
        _tts_client = RemoteTTSClient( get_audio_config(), debug=_is_debug(), verbose=_is_verbose() )
    return _tts_client


def get_google_tts_client() -> GoogleTTSClient:
    global _google_tts_client
    if _google_tts_client is None:
        _google_tts_client = GoogleTTSClient( get_audio_config(), debug=_is_debug(), verbose=_is_verbose() )
    return _google_tts_client


def get_audio_assembler() -> AudioAssembler:
    global _assembler
    if _assembler is None:
        _assembler = AudioAssembler(
            storage         = get_storage_service(),
            podcast_service = get_podcast_service(),
            config          = get_audio_config(),
            debug           = _is_debug(),
            verbose         = _is_verbose()
        )
    return _assembler


def get_podcast_producer() -> PodcastProducer:
    global _producer
    if _producer is None:
        _producer = PodcastProducer(
            tts_client      = get_tts_client(),
            assembler       = get_audio_assembler(),
            podcast_service = get_podcast_service(),
            config          = get_audio_config(),
            debug           = _is_debug(),
            verbose         = _is_verbose()
        )
    return _producer
