"""
Script generation API router.

A single background job turns a topic into a two-host dialogue script.
Only one job runs per process; the caller who started it owns it.

Endpoints:
    POST /script/generate - Start a job for a topic (202)
    GET  /script/status   - Snapshot of the current job
    GET  /script/result   - Script of the last completed job
    POST /script/reset    - Reset a finished, stale or (with force) running job

Example:
    POST /script/generate
    {"topic": "The history of the Brazilian samba"}
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from podcast_studio.errors import JobConflictError, JobNotFoundError, JobNotReadyError, JobOwnershipError
from podcast_studio.agents.script_pipeline.state import CamelModel
from podcast_studio.rest.auth import get_current_user_id
from podcast_studio.rest.dependencies.config import get_script_agent, get_status_store

logger = logging.getLogger( __name__ )

router = APIRouter(
    prefix="/script",
    tags=[ "script-generation" ]
)


class GenerateScriptRequest( CamelModel ):
    """Request body for POST /script/generate."""
    topic : str


class ResetRequest( CamelModel ):
    """Request body for POST /script/reset."""
    force : Optional[ bool ] = False


def _snapshot( store, user_id: Optional[ str ] = None ) -> dict:
    """Current job as a camelCase dict; unfiltered when user_id is None."""
    return store.read( user_id ).model_dump( by_alias=True )


@router.post( "/generate", status_code=status.HTTP_202_ACCEPTED )
async def generate_script(
    request: GenerateScriptRequest,
    user_id: str = Depends( get_current_user_id ),
    agent = Depends( get_script_agent ),
    store = Depends( get_status_store )
):
    """
    Start script generation in the background.

    Ensures:
        - Returns 202 with the new job's snapshot at once
        - Returns 409 with the running job's snapshot while another job runs

    Raises:
        - HTTPException 400 for an empty topic
    """
    try:
        snapshot = agent.start( request.topic, user_id )

    except ValueError as e:
        raise HTTPException( status_code=400, detail=str( e ) )

    except JobConflictError as e:
        logger.info( f"Rejected generation request from [{user_id}]: {e}" )
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={ "message": str( e ), "status": _snapshot( store ) }
        )

    return { "jobStarted": True, "status": snapshot.model_dump( by_alias=True ) }


@router.get( "/status" )
async def get_status(
    user_id: str = Depends( get_current_user_id ),
    store = Depends( get_status_store )
):
    """
    Snapshot of the current job.

    Raises:
        - HTTPException 403 if the caller does not own the job
    """
    try:
        return _snapshot( store, user_id )

    except JobOwnershipError as e:
        raise HTTPException( status_code=403, detail=str( e ) )


@router.get( "/result" )
async def get_result(
    user_id: str = Depends( get_current_user_id ),
    store = Depends( get_status_store )
):
    """
    Script, title and description of the last completed job.

    Ensures:
        - Returns 202 with the job snapshot while the job is still running

    Raises:
        - HTTPException 404 if no job has completed (or the last one failed)
        - HTTPException 403 if the caller does not own the job
    """
    try:
        result = store.result( user_id )

    except JobOwnershipError as e:
        raise HTTPException( status_code=403, detail=str( e ) )

    except JobNotReadyError as e:
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content={ "message": str( e ), "status": _snapshot( store, user_id ) }
        )

    except JobNotFoundError as e:
        raise HTTPException( status_code=404, detail=str( e ) )

    return result.model_dump( by_alias=True )


@router.post( "/reset" )
async def reset_job(
    request: Optional[ ResetRequest ] = None,
    user_id: str = Depends( get_current_user_id ),
    store = Depends( get_status_store )
):
    """
    Reset the job slot.

    Raises:
        - HTTPException 404 if no job has run
        - HTTPException 403 if the caller is not the owner and the job is not stale
        - HTTPException 409 if the owner's job is still running and force is not set
    """
    force = bool( request.force ) if request else False

    try:
        snapshot = store.force_reset( user_id, force=force )

    except JobNotFoundError as e:
        raise HTTPException( status_code=404, detail=str( e ) )

    except JobOwnershipError as e:
        raise HTTPException( status_code=403, detail=str( e ) )

    except JobConflictError as e:
        raise HTTPException( status_code=409, detail=str( e ) )

    return { "reset": True, "status": snapshot.model_dump( by_alias=True ) }
