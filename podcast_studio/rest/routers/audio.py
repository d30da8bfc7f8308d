"""
Audio API router: text-to-speech, chunking, merging and uploads.

Endpoints:
    POST /audio/generate               - Synthesize one chunk through the TTS service
    POST /audio/chunk                  - Split a conversation into TTS-sized chunks
    POST /audio/merge-chunks           - Merge chunk audio into one file for a podcast
    POST /audio/upload                 - Upload base64 audio to storage
    GET  /audio/portuguese-voices      - Catalog of Portuguese voices
    POST /audio/portuguese/generate    - Multi-voice Portuguese podcast via Google TTS
"""

import time
import uuid
import base64
import binascii
import asyncio
import logging
import traceback
from typing import Optional, Union, List, Dict

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from podcast_studio.errors import TTSError, TTSInputTooLongError, AudioAssemblyError, StorageError
from podcast_studio.agents.script_pipeline.state import CamelModel
from podcast_studio.agents.audio_assembly.chunker import chunk_conversation
from podcast_studio.agents.audio_assembly.audio_stitcher import AudioSegmentRef
from podcast_studio.agents.audio_assembly.google_tts_client import PORTUGUESE_VOICES, prepare_conversation
from podcast_studio.rest.auth import get_current_user_id
from podcast_studio.rest.podcast_service import is_owner
from podcast_studio.rest.dependencies.config import (
    get_config_manager,
    get_audio_config,
    get_tts_client,
    get_google_tts_client,
    get_audio_assembler,
    get_podcast_service,
    get_storage_service
)

logger = logging.getLogger( __name__ )

router = APIRouter(
    prefix="/audio",
    tags=[ "audio" ]
)


class GenerateAudioRequest( CamelModel ):
    text        : str = ""
    voice_id    : Optional[ str ] = None
    speaker_map : Optional[ Union[ Dict[ str, str ], str ] ] = None
    author_name : Optional[ str ] = None
    title       : Optional[ str ] = None
    description : Optional[ str ] = None


class ChunkRequest( CamelModel ):
    text           : str = ""
    max_chunk_size : Optional[ int ] = None


class MergeChunksRequest( CamelModel ):
    urls       : List[ str ] = [ ]
    podcast_id : Optional[ int ] = None


class UploadAudioRequest( CamelModel ):
    file_name    : Optional[ str ] = None
    file_data    : Optional[ str ] = None
    content_type : Optional[ str ] = None


class ConversationItem( CamelModel ):
    text     : str
    voice_id : Optional[ str ] = None


class PortugueseMetadata( CamelModel ):
    title       : Optional[ str ] = None
    author      : Optional[ str ] = None
    description : Optional[ str ] = None
    category    : Optional[ str ] = None


class PortugueseGenerateRequest( CamelModel ):
    conversation : List[ ConversationItem ] = [ ]
    metadata     : Optional[ PortugueseMetadata ] = None


# ═══════════════════════════════════════════════════════════════════════════════
# Text-to-speech
# ═══════════════════════════════════════════════════════════════════════════════

@router.post( "/generate" )
async def generate_audio(
    request: GenerateAudioRequest,
    user_id: str = Depends( get_current_user_id ),
    tts_client = Depends( get_tts_client )
):
    """
    Synthesize one chunk of conversation.

    Ensures:
        - Text over the safe length is truncated at a line or word boundary
        - truncated is True when that happened

    Raises:
        - HTTPException 400 for empty text
        - HTTPException 413 for text over the hard cap or markup the service rejects
        - HTTPException 502 for any other TTS failure
    """
    if not request.text or not request.text.strip():
        raise HTTPException( status_code=400, detail="Text is required" )

    try:
        result = await tts_client.synthesize(
            request.text,
            voice_id    = request.voice_id,
            speaker_map = request.speaker_map,
            author_name = request.author_name,
            author_id   = user_id,
            title       = request.title or "",
            description = request.description or "",
        )

    except ValueError as e:
        raise HTTPException( status_code=400, detail=str( e ) )

    except TTSInputTooLongError as e:
        raise HTTPException( status_code=413, detail=e.message )

    except TTSError as e:
        logger.error( f"TTS request from [{user_id}] failed: {e.message}" )
        raise HTTPException( status_code=502, detail=e.message )

    return {
        "audioUrl"               : result.audio_url,
        "durationSeconds"        : result.duration_seconds,
        "estimatedFileSizeBytes" : result.estimated_file_size_bytes,
        "truncated"              : result.truncated,
    }


@router.post( "/chunk" )
async def chunk_text(
    request: ChunkRequest,
    audio_config = Depends( get_audio_config )
):
    """Split a speaker-tagged conversation into chunks with their voice assignments."""
    max_chunk_size = request.max_chunk_size or audio_config.max_chunk_size
    if max_chunk_size <= 0:
        raise HTTPException( status_code=400, detail="maxChunkSize must be positive" )

    chunks = chunk_conversation( request.text, max_chunk_size )
    return { "chunks": [ chunk.to_dict() for chunk in chunks ] }


# ═══════════════════════════════════════════════════════════════════════════════
# Merging and uploads
# ═══════════════════════════════════════════════════════════════════════════════

@router.post( "/merge-chunks" )
async def merge_chunks(
    request: MergeChunksRequest,
    user_id: str = Depends( get_current_user_id ),
    assembler = Depends( get_audio_assembler ),
    podcast_service = Depends( get_podcast_service ),
    config_mgr = Depends( get_config_manager )
):
    """
    Merge the audio of a podcast's chunks, in the order given.

    Ensures:
        - A single URL is returned as is, without downloading
        - The podcast record points at the final audio

    Raises:
        - HTTPException 400 for empty urls or a missing podcastId
        - HTTPException 404 for an unknown podcast
        - HTTPException 403 if the caller does not own the podcast
    """
    if not request.urls:
        raise HTTPException( status_code=400, detail="Missing or invalid 'urls' parameter. Must be a non-empty array of audio URLs." )
    if request.podcast_id is None:
        raise HTTPException( status_code=400, detail="Missing 'podcastId' parameter. Required to link merged audio to podcast." )

    podcast = await asyncio.to_thread( podcast_service.get_podcast, request.podcast_id )
    if podcast is None:
        raise HTTPException( status_code=404, detail="Podcast not found" )
    if not is_owner( podcast, user_id ):
        logger.warning( f"User [{user_id}] denied merge for podcast {podcast.id} owned by [{podcast.user_id}]" )
        raise HTTPException( status_code=403, detail="You don't have permission to modify this podcast" )

    segments = [ AudioSegmentRef( chunk_index=index, source_url=url ) for index, url in enumerate( request.urls ) ]

    try:
        merged = await assembler.merge( segments, podcast.id )

        # Real merges update the record inside the assembler
        if not merged.merged and len( segments ) > 1:
            await asyncio.to_thread( podcast_service.update_podcast_audio, podcast.id, merged.url, merged.file_size_bytes )

    except ( AudioAssemblyError, StorageError ) as e:
        logger.error( f"Merge failed for podcast {podcast.id}: {e}" )
        content = { "message": "Failed to merge audio chunks", "error": str( e ) }
        if config_mgr.get( "environment", "production" ) == "development":
            content[ "stack" ] = traceback.format_exc()
        return JSONResponse( status_code=500, content=content )

    return merged.to_dict()


@router.post( "/upload" )
async def upload_audio(
    request: UploadAudioRequest,
    user_id: str = Depends( get_current_user_id ),
    storage = Depends( get_storage_service ),
    audio_config = Depends( get_audio_config )
):
    """
    Upload base64-encoded audio to the chunk audio bucket.

    Raises:
        - HTTPException 400 for missing fields, bad base64 or a non-audio content type
        - HTTPException 413 over the upload size limit
        - HTTPException 500 when storage rejects the upload
    """
    if not request.file_name or not request.file_data or not request.content_type:
        raise HTTPException( status_code=400, detail="FileName, fileData, and contentType are required" )

    if not request.content_type.startswith( "audio/" ):
        raise HTTPException( status_code=400, detail="Only audio files are allowed" )

    try:
        data = base64.b64decode( request.file_data, validate=True )
    except ( binascii.Error, ValueError ):
        raise HTTPException( status_code=400, detail="fileData is not valid base64" )

    if len( data ) > audio_config.max_upload_bytes:
        limit_mb    = audio_config.max_upload_bytes / ( 1024 * 1024 )
        received_mb = len( data ) / ( 1024 * 1024 )
        raise HTTPException( status_code=413, detail=f"File too large: maximum is {limit_mb:.0f}MB, received {received_mb:.2f}MB" )

    extension = request.file_name.rsplit( ".", 1 )[ -1 ] if "." in request.file_name else "mp3"
    file_name = f"podcast-{int( time.time() * 1000 )}-{uuid.uuid4().hex[ :8 ]}.{extension}"

    logger.info( f"Upload of {len( data )} bytes requested by [{user_id}]" )

    try:
        url = await storage.upload( data, file_name, request.content_type, audio_config.audio_bucket )
    except StorageError as e:
        raise HTTPException( status_code=500, detail=f"Failed to upload audio to storage: {e}" )

    return { "success": True, "url": url, "fileName": file_name }


# ═══════════════════════════════════════════════════════════════════════════════
# Portuguese multi-voice
# ═══════════════════════════════════════════════════════════════════════════════

@router.get( "/portuguese-voices" )
async def get_portuguese_voices():
    return PORTUGUESE_VOICES


@router.post( "/portuguese/generate" )
async def generate_portuguese_podcast(
    request: PortugueseGenerateRequest,
    user_id: str = Depends( get_current_user_id ),
    google_tts = Depends( get_google_tts_client ),
    storage = Depends( get_storage_service ),
    podcast_service = Depends( get_podcast_service ),
    audio_config = Depends( get_audio_config )
):
    """
    Synthesize a two-voice Portuguese conversation and save it as a podcast.

    Requires:
        - conversation is a non-empty list of { text, voiceId }

    Ensures:
        - The stitched audio is uploaded to the merged bucket
        - A podcast record in category "portuguese" points at it

    Raises:
        - HTTPException 400 for an empty conversation or missing voice ids
        - HTTPException 500 when no piece could be synthesized or the upload fails
    """
    items = [ item.model_dump( by_alias=True ) for item in request.conversation ]

    try:
        conversation_text, first_voice, second_voice = prepare_conversation( items )
    except ValueError as e:
        raise HTTPException( status_code=400, detail=str( e ) )

    try:
        result = await google_tts.synthesize_conversation( conversation_text, first_voice, second_voice )

        file_name = f"portuguese-podcast-{int( time.time() * 1000 )}.mp3"
        audio_url = await storage.upload( result[ "audio_bytes" ], file_name, "audio/mpeg", audio_config.merged_bucket )

    except ( AudioAssemblyError, StorageError ) as e:
        logger.error( f"Portuguese podcast for [{user_id}] failed: {e}" )
        raise HTTPException( status_code=500, detail=f"Failed to generate Portuguese audio: {e}" )

    metadata = request.metadata or PortugueseMetadata()
    podcast = await asyncio.to_thread(
        podcast_service.create_podcast,
        user_id,
        title        = metadata.title or "Conversa em Português",
        author       = metadata.author or audio_config.default_author_name,
        description  = metadata.description or "Podcast gerado automaticamente usando TTS em português",
        category     = "portuguese",
        language     = audio_config.google_language_code,
        audio_url    = audio_url,
        duration     = round( result[ "duration_seconds" ] ),
        chunk_count  = len( result[ "segment_bytes" ] ),
        file_size    = result[ "file_size_bytes" ],
        conversation = conversation_text,
        meta         = { "language": audio_config.google_language_code, "voices": [ first_voice, second_voice ] },
    )

    return {
        "success"  : True,
        "podcast"  : podcast.model_dump( by_alias=True, mode="json" ),
        "audioUrl" : audio_url,
        "duration" : result[ "duration_seconds" ],
        "fileSize" : result[ "file_size_bytes" ],
    }
