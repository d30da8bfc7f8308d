#!/usr/bin/env python3
"""
Router tests for /script/*.

The agent is replaced by a stub that only claims the job slot, so no
pipeline runs in the background; completion is driven through the store.

Run with: pytest -v tests/unit/rest/test_script_generation_router.py
"""

from datetime import datetime, timedelta
from unittest.mock import Mock

import pytest

from podcast_studio.agents.script_pipeline.state import ScriptResult
from podcast_studio.agents.script_pipeline.status_store import GenerationStatusStore
from podcast_studio.rest.dependencies.config import get_script_agent, get_status_store


class FakeClock:

    def __init__( self ):
        self.now = datetime( 2024, 5, 1, 12, 0, 0 )

    def __call__( self ):
        return self.now

    def advance( self, seconds: float ):
        self.now = self.now + timedelta( seconds=seconds )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store( app, clock ):
    store = GenerationStatusStore( job_timeout_seconds=60, clock=clock )
    app.dependency_overrides[ get_status_store ] = lambda: store
    return store


@pytest.fixture
def agent( app, store ):
    """Claims the slot like ScriptPipelineAgent.start, without launching a task."""
    agent = Mock()

    def start( topic, owner_id ):
        store.start( topic, owner_id )
        return store.read( owner_id )

    agent.start.side_effect = start
    app.dependency_overrides[ get_script_agent ] = lambda: agent
    return agent


def _complete( store ):
    store.complete( store.current_job_id(), ScriptResult( script="Apresentador 1: Oi", title="T", description="D", topic="samba" ) )


class TestGenerate:

    def test_starts_job( self, client, login, agent ):
        login( "alice" )

        response = client.post( "/script/generate", json={ "topic": "samba" } )

        assert response.status_code == 202
        body = response.json()
        assert body[ "jobStarted" ] is True
        assert body[ "status" ][ "inProgress" ] is True
        assert body[ "status" ][ "stage" ] == "interpreting"
        assert body[ "status" ][ "topic" ] == "samba"
        assert "ownerId" not in body[ "status" ]
        agent.start.assert_called_once_with( "samba", "alice" )

    def test_empty_topic( self, client, login, agent ):
        login( "alice" )

        assert client.post( "/script/generate", json={ "topic": "   " } ).status_code == 400

    def test_second_job_conflicts( self, client, login, agent ):
        """A running job blocks everyone, the owner included."""
        login( "alice" )
        client.post( "/script/generate", json={ "topic": "samba" } )

        login( "bob" )
        response = client.post( "/script/generate", json={ "topic": "jazz" } )

        assert response.status_code == 409
        assert response.json()[ "status" ][ "topic" ] == "samba"
        assert response.json()[ "message" ]

    def test_stale_job_is_replaced( self, client, login, agent, clock ):
        login( "alice" )
        client.post( "/script/generate", json={ "topic": "samba" } )
        clock.advance( 61 )

        login( "bob" )
        response = client.post( "/script/generate", json={ "topic": "jazz" } )

        assert response.status_code == 202
        assert response.json()[ "status" ][ "topic" ] == "jazz"


class TestStatusAndResult:

    def test_idle_status( self, client, login, store ):
        login( "alice" )

        body = client.get( "/script/status" ).json()

        assert body[ "inProgress" ] is False
        assert body[ "stage" ] == "idle"
        assert body[ "jobId" ] is None

    def test_status_is_owner_only( self, client, login, agent, clock ):
        login( "alice" )
        client.post( "/script/generate", json={ "topic": "samba" } )
        clock.advance( 5 )

        assert client.get( "/script/status" ).json()[ "elapsedSeconds" ] == pytest.approx( 5.0 )

        login( "bob" )
        assert client.get( "/script/status" ).status_code == 403

    def test_result_lifecycle( self, client, login, agent, store ):
        login( "alice" )
        assert client.get( "/script/result" ).status_code == 404

        client.post( "/script/generate", json={ "topic": "samba" } )
        pending = client.get( "/script/result" )
        assert pending.status_code == 202
        assert pending.json()[ "status" ][ "inProgress" ] is True

        _complete( store )
        done = client.get( "/script/result" )
        assert done.status_code == 200
        assert done.json() == { "script": "Apresentador 1: Oi", "title": "T", "description": "D", "topic": "samba" }

        login( "bob" )
        assert client.get( "/script/result" ).status_code == 403

    def test_failed_job_has_no_result( self, client, login, agent, store ):
        login( "alice" )
        client.post( "/script/generate", json={ "topic": "samba" } )
        store.fail( store.current_job_id(), "Research stage failed" )

        response = client.get( "/script/result" )

        assert response.status_code == 404
        assert "Research stage failed" in response.json()[ "detail" ]


class TestReset:

    def test_no_job( self, client, login, store ):
        login( "alice" )

        assert client.post( "/script/reset", json={ } ).status_code == 404

    def test_owner_needs_force_for_running_job( self, client, login, agent ):
        login( "alice" )
        client.post( "/script/generate", json={ "topic": "samba" } )

        assert client.post( "/script/reset", json={ } ).status_code == 409

        response = client.post( "/script/reset", json={ "force": True } )
        assert response.status_code == 200
        assert response.json()[ "reset" ] is True
        assert response.json()[ "status" ][ "inProgress" ] is False

    def test_other_user_cannot_reset_fresh_job( self, client, login, agent ):
        login( "alice" )
        client.post( "/script/generate", json={ "topic": "samba" } )

        login( "bob" )
        assert client.post( "/script/reset", json={ "force": True } ).status_code == 403

    def test_anyone_resets_stale_job( self, client, login, agent, clock ):
        login( "alice" )
        client.post( "/script/generate", json={ "topic": "samba" } )
        clock.advance( 61 )

        login( "bob" )
        response = client.post( "/script/reset" )

        assert response.status_code == 200
        assert response.json()[ "status" ][ "stage" ] == "idle"

    def test_late_completion_ignored_after_reset( self, client, login, agent, store ):
        login( "alice" )
        client.post( "/script/generate", json={ "topic": "samba" } )
        job_id = store.current_job_id()
        client.post( "/script/reset", json={ "force": True } )

        assert store.complete( job_id, ScriptResult( script="s", title="t", description="d" ) ) is False
        assert client.get( "/script/result" ).status_code == 404
