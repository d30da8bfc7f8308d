"""
Podcasts API router: podcast records, chunk records and server-side production.

Endpoints:
    GET  /podcasts          - The caller's podcasts, newest first
    GET  /podcasts/{id}     - One podcast with its audio chunks
    POST /podcasts          - Create a podcast record
    POST /podcasts/chunks   - Attach an audio chunk record to a podcast
    POST /podcasts/produce  - Conversation in, merged podcast out
"""

import logging
from typing import Optional, Dict, Union

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import Field

from podcast_studio.errors import TTSError, AudioAssemblyError
from podcast_studio.agents.script_pipeline.state import CamelModel
from podcast_studio.rest.auth import get_current_user_id
from podcast_studio.rest.podcast_service import can_read, is_owner
from podcast_studio.rest.dependencies.config import get_podcast_service, get_podcast_producer

logger = logging.getLogger( __name__ )

router = APIRouter(
    prefix="/podcasts",
    tags=[ "podcasts" ]
)


class CreatePodcastRequest( CamelModel ):
    """Request body for POST /podcasts; the owner is always the caller."""
    title           : str = ""
    author          : Optional[ str ] = None
    description     : Optional[ str ] = None
    category        : Optional[ str ] = None
    language        : Optional[ str ] = None
    audio_url       : Optional[ str ] = None
    cover_image_url : Optional[ str ] = None
    duration        : Optional[ int ] = Field( default=None, ge=0 )
    chunk_count     : Optional[ int ] = Field( default=None, ge=0 )
    file_size       : Optional[ int ] = Field( default=None, ge=0 )
    conversation    : Optional[ str ] = None
    metadata        : Optional[ dict ] = None


class CreateChunkRequest( CamelModel ):
    podcast_id  : int
    chunk_index : int
    audio_url   : str
    duration    : int = 0
    file_size   : int = 0
    text        : Optional[ str ] = None
    speaker_map : Optional[ Union[ Dict[ str, str ], str ] ] = None


class ProduceRequest( CamelModel ):
    conversation    : str = ""
    title           : str = ""
    author          : Optional[ str ] = None
    description     : Optional[ str ] = None
    category        : Optional[ str ] = None
    language        : str = "en"
    speaker_genders : Optional[ Dict[ str, str ] ] = None


def _dump( view ) -> dict:
    return view.model_dump( by_alias=True, mode="json" )


@router.get( "" )
def list_podcasts(
    user_id: str = Depends( get_current_user_id ),
    podcast_service = Depends( get_podcast_service )
):
    return [ _dump( podcast ) for podcast in podcast_service.list_podcasts( user_id ) ]


@router.get( "/{podcast_id}" )
def get_podcast(
    podcast_id: int,
    user_id: str = Depends( get_current_user_id ),
    podcast_service = Depends( get_podcast_service )
):
    """
    One podcast with audioChunks sorted by index and audioChunkUrls.

    Raises:
        - HTTPException 404 for an unknown podcast
        - HTTPException 403 unless the caller owns it or it is demo content
    """
    podcast = podcast_service.get_podcast_detail( podcast_id )
    if podcast is None:
        raise HTTPException( status_code=404, detail="Podcast not found" )

    if not can_read( podcast, user_id ):
        logger.warning( f"User [{user_id}] denied access to podcast {podcast_id}" )
        raise HTTPException( status_code=403, detail="You don't have permission to access this podcast" )

    return _dump( podcast )


@router.post( "", status_code=status.HTTP_201_CREATED )
def create_podcast(
    request: CreatePodcastRequest,
    user_id: str = Depends( get_current_user_id ),
    podcast_service = Depends( get_podcast_service )
):
    """
    Create a podcast owned by the caller.

    Raises:
        - HTTPException 400 for a missing title
    """
    fields = request.model_dump( exclude={ "metadata" } )
    fields[ "meta" ] = request.metadata

    try:
        podcast = podcast_service.create_podcast( user_id, **fields )
    except ValueError as e:
        raise HTTPException( status_code=400, detail=str( e ) )

    return _dump( podcast )


@router.post( "/chunks", status_code=status.HTTP_201_CREATED )
def create_chunk(
    request: CreateChunkRequest,
    user_id: str = Depends( get_current_user_id ),
    podcast_service = Depends( get_podcast_service )
):
    """
    Attach a chunk record to one of the caller's podcasts.

    Raises:
        - HTTPException 404 for an unknown podcast
        - HTTPException 403 if the caller does not own it
        - HTTPException 400 for a negative chunk index
    """
    podcast = podcast_service.get_podcast( request.podcast_id )
    if podcast is None:
        raise HTTPException( status_code=404, detail="Podcast not found" )
    if not is_owner( podcast, user_id ):
        raise HTTPException( status_code=403, detail="You don't have permission to modify this podcast" )

    try:
        chunk = podcast_service.create_chunk(
            request.podcast_id,
            request.chunk_index,
            request.audio_url,
            duration    = request.duration,
            file_size   = request.file_size,
            text        = request.text,
            speaker_map = request.speaker_map,
        )
    except ValueError as e:
        raise HTTPException( status_code=400, detail=str( e ) )

    return _dump( chunk )


@router.post( "/produce", status_code=status.HTTP_201_CREATED )
async def produce_podcast(
    request: ProduceRequest,
    user_id: str = Depends( get_current_user_id ),
    producer = Depends( get_podcast_producer )
):
    """
    Chunk, synthesize, record and merge a conversation in one call.

    Raises:
        - HTTPException 400 for an empty title or conversation
        - HTTPException 502 when a chunk fails text-to-speech
        - HTTPException 500 when no audio could be assembled
    """
    try:
        result = await producer.produce(
            request.conversation,
            request.title,
            user_id,
            author          = request.author,
            description     = request.description,
            category        = request.category,
            language        = request.language,
            speaker_genders = request.speaker_genders,
        )

    except ValueError as e:
        raise HTTPException( status_code=400, detail=str( e ) )

    except TTSError as e:
        raise HTTPException( status_code=e.status_code, detail=e.message )

    except AudioAssemblyError as e:
        logger.error( f"Production of \"{request.title}\" for [{user_id}] failed: {e}" )
        raise HTTPException( status_code=500, detail=f"Failed to assemble podcast audio: {e}" )

    return {
        "podcast"     : _dump( result.podcast ),
        "mergedAudio" : result.merged_audio.to_dict(),
        "chunks"      : [ _dump( chunk ) for chunk in result.chunks ],
    }
