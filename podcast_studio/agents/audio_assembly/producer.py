#!/usr/bin/env python3
"""
Podcast Producer: conversation text in, merged podcast out.

Design Pattern: Sequential pipeline over the audio agents
- chunk -> TTS per chunk -> podcast record -> chunk records -> merge
- TTS runs one chunk at a time, any failure aborts the production
- Database calls run in worker threads, the event loop only awaits I/O
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from podcast_studio.errors import TTSError
from .config import AudioConfig
from .chunker import chunk_conversation, ConversationChunk
from .tts_client import RemoteTTSClient
from .audio_stitcher import AudioAssembler, AudioSegmentRef, MergedAudio

logger = logging.getLogger( __name__ )


@dataclass
class ProductionResult:
    """Everything a production created: the podcast, its chunks and the merged audio."""

    podcast      : object
    merged_audio : MergedAudio
    chunks       : list = field( default_factory=list )


class PodcastProducer:
    """
    Runs the full server-side podcast flow.

    Requires:
        - podcast_service exposes create_podcast, create_chunk,
          update_podcast_audio and get_podcast

    Ensures:
        - Chunks are synthesized in index order, one request at a time
        - The podcast record points at the merged (or fallback) audio
        - Raises TTSError( 502 ) naming the chunk that failed
    """

    def __init__(
        self,
        tts_client      : RemoteTTSClient,
        assembler       : AudioAssembler,
        podcast_service,
        config          : Optional[ AudioConfig ] = None,
        debug           : bool = False,
        verbose         : bool = False
    ):
        self.tts_client      = tts_client
        self.assembler       = assembler
        self.podcast_service = podcast_service
        self.config          = config or AudioConfig()
        self.debug           = debug
        self.verbose         = verbose

    async def synthesize_chunks(
        self,
        chunks          : list[ ConversationChunk ],
        title           : str = "",
        author          : Optional[ str ] = None,
        description     : str = "",
        user_id         : str = "",
        speaker_genders : Optional[ dict ] = None
    ) -> list[ AudioSegmentRef ]:
        """
        One TTS request per chunk, sending only the utterances.

        Raises:
            - TTSError( 502 ) for the first chunk that fails
        """
        genders  = speaker_genders or { }
        segments = [ ]

        for chunk in chunks:
            text        = "\n".join( chunk.utterances() )
            speaker_map = { speaker: genders.get( speaker, "male" ) for speaker in chunk.voice_assignment.speakers() }

            if self.debug: print( f"[PodcastProducer] TTS chunk {chunk.index + 1}/{len( chunks )} ({chunk.char_count} chars)" )

            try:
                result = await self.tts_client.synthesize(
                    text,
                    speaker_map = speaker_map,
                    author_name = author,
                    author_id   = user_id,
                    title       = title,
                    description = description,
                )

            except TTSError as e:
                logger.error( f"TTS failed for chunk {chunk.index}: {e.message}" )
                raise TTSError( 502, f"Audio generation failed for chunk {chunk.index}: {e.message}" ) from e

            segments.append( AudioSegmentRef(
                chunk_index                = chunk.index,
                source_url                 = result.audio_url,
                estimated_duration_seconds = result.duration_seconds,
                estimated_file_size_bytes  = result.estimated_file_size_bytes,
                text                       = chunk.text,
                speaker_map                = chunk.voice_assignment.to_dict(),
            ) )

        return segments

    async def produce(
        self,
        conversation    : str,
        title           : str,
        user_id         : str,
        author          : Optional[ str ] = None,
        description     : Optional[ str ] = None,
        category        : Optional[ str ] = None,
        language        : str = "en",
        speaker_genders : Optional[ dict ] = None
    ) -> ProductionResult:
        """
        Produce a podcast from a speaker-tagged conversation.

        Requires:
            - conversation has at least one non-blank line
            - title is non-empty

        Ensures:
            - One chunk record per synthesized segment
            - The podcast's audio_url and file_size reflect the final audio

        Raises:
            - ValueError for empty conversation or title
            - TTSError if any chunk fails
            - AudioAssemblyError if no segment could be downloaded
        """
        if not title or not title.strip():
            raise ValueError( "Title is required" )

        chunks = chunk_conversation( conversation, self.config.max_chunk_size )
        if not chunks:
            raise ValueError( "Conversation is empty" )

        logger.info( f"Producing \"{title}\" for [{user_id}]: {len( chunks )} chunks" )

        segments = await self.synthesize_chunks( chunks, title, author, description or "", user_id, speaker_genders )

        podcast = await asyncio.to_thread(
            self.podcast_service.create_podcast,
            user_id,
            title        = title,
            author       = author,
            description  = description,
            category     = category,
            language     = language,
            audio_url    = segments[ 0 ].source_url,
            duration     = round( sum( segment.estimated_duration_seconds for segment in segments ) ),
            chunk_count  = len( segments ),
            file_size    = sum( segment.estimated_file_size_bytes for segment in segments ),
            conversation = conversation,
            meta         = { "voiceAssignment": self._global_assignment( chunks ) },
        )

        chunk_records = [ ]
        for segment in segments:
            record = await asyncio.to_thread(
                self.podcast_service.create_chunk,
                podcast.id,
                segment.chunk_index,
                segment.source_url,
                duration    = round( segment.estimated_duration_seconds ),
                file_size   = segment.estimated_file_size_bytes,
                text        = segment.text,
                speaker_map = segment.speaker_map,
            )
            chunk_records.append( record )

        merged = await self.assembler.merge( segments, podcast.id )

        # The assembler only updates the record for a real merge
        if not merged.merged:
            await asyncio.to_thread( self.podcast_service.update_podcast_audio, podcast.id, merged.url, merged.file_size_bytes )

        podcast = await asyncio.to_thread( self.podcast_service.get_podcast, podcast.id )

        logger.info( f"Produced podcast {podcast.id}: {merged.url} (merged: {merged.merged})" )
        return ProductionResult( podcast=podcast, merged_audio=merged, chunks=chunk_records )

    def _global_assignment( self, chunks: list[ ConversationChunk ] ) -> dict:
        """Union of the per-chunk assignments, first-seen order."""
        assignment = { }
        for chunk in chunks:
            for speaker, role in chunk.voice_assignment.to_dict().items():
                assignment.setdefault( speaker, role )
        return assignment
