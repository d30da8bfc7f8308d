#!/usr/bin/env python3
"""
Audio assembler: merges per-chunk TTS audio into one podcast file.

Design Pattern: Download, concatenate, upload, with tiered fallback
- Segments are downloaded sequentially in chunk order
- ffmpeg's concat demuxer joins them, re-encoded at 44.1kHz stereo 192kbps
- The merged file is uploaded and the podcast record points at it
- When ffmpeg or the upload fails, the longest single segment stands in
"""

import os
import time
import uuid
import shutil
import asyncio
import logging
import tempfile
from dataclasses import dataclass, field
from typing import Optional

import aiohttp

from podcast_studio.errors import AudioAssemblyError, StorageError
from .config import AudioConfig

logger = logging.getLogger( __name__ )

DOWNLOAD_ACCEPT_HEADER = "audio/mpeg,audio/*;q=0.9,*/*;q=0.8"
FILELIST_NAME          = "filelist.txt"
MERGED_NAME            = "merged.mp3"
SCRATCH_PREFIX         = "podcast-merge-"


def _read_file( path: str ) -> bytes:
    with open( path, "rb" ) as source:
        return source.read()


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class AudioSegmentRef:
    """
    One generated chunk of audio, hosted at source_url.

    Requires:
        - chunk_index is a non-negative integer
        - source_url is a downloadable URL
    """

    chunk_index                : int
    source_url                 : str
    estimated_duration_seconds : float = 0.0
    estimated_file_size_bytes  : int   = 0
    text                       : str   = ""
    speaker_map                : dict  = field( default_factory=dict )


@dataclass
class MergedAudio:
    """
    Result of a merge request.

    Ensures:
        - merged is False when a single segment short-circuited or a fallback tier was used
        - fallback_reason explains a fallback, None otherwise
    """

    url              : str
    duration_seconds : int
    file_size_bytes  : int
    total_chunks     : int
    merged           : bool = True
    fallback_reason  : Optional[ str ] = None

    def to_dict( self ) -> dict:
        return {
            "success"         : True,
            "mergedUrl"       : self.url,
            "totalChunks"     : self.total_chunks,
            "fileSizeBytes"   : self.file_size_bytes,
            "durationSeconds" : self.duration_seconds,
            "merged"          : self.merged,
            "fallbackReason"  : self.fallback_reason,
        }


# =============================================================================
# Assembler
# =============================================================================

class AudioAssembler:
    """
    Merges ordered audio segments and records the result on the podcast.

    Requires:
        - storage exposes async upload( data, filename, content_type, bucket ) -> public url
          and local_path( url ) -> filesystem path or None
        - podcast_service exposes update_podcast_audio( podcast_id, url, size ),
          or is None when no record should be updated
        - ffmpeg is on the path (config.ffmpeg_path)

    Ensures:
        - Segments are joined in increasing chunk_index order
        - The scratch directory is removed whatever happens
        - Raises AudioAssemblyError only when no segment could be downloaded
    """

    def __init__(
        self,
        storage,
        podcast_service = None,
        config          : Optional[ AudioConfig ] = None,
        debug           : bool = False,
        verbose         : bool = False
    ):
        self.storage         = storage
        self.podcast_service = podcast_service
        self.config          = config or AudioConfig()
        self.debug           = debug
        self.verbose         = verbose

    async def merge( self, segments: list[ AudioSegmentRef ], podcast_id: Optional[ int ] = None ) -> MergedAudio:
        """
        Merge segments into one MP3 and upload it.

        Requires:
            - segments is non-empty

        Ensures:
            - One segment is returned as is, with no download and no subprocess
            - Failed downloads are skipped
            - ffmpeg or upload failure returns the longest downloaded segment, merged=False
            - On success the podcast record is updated with the merged URL and size

        Raises:
            - ValueError if segments is empty
            - AudioAssemblyError if no segment could be downloaded
        """
        if not segments:
            raise ValueError( "At least one audio segment is required" )

        if len( segments ) == 1:
            only = segments[ 0 ]
            if self.debug: print( f"[AudioAssembler] Single segment, returning {only.source_url}" )
            return MergedAudio(
                url              = only.source_url,
                duration_seconds = round( only.estimated_duration_seconds ),
                file_size_bytes  = only.estimated_file_size_bytes,
                total_chunks     = 1,
                merged           = False,
            )

        ordered = sorted( segments, key=lambda segment: segment.chunk_index )
        logger.info( f"Merging {len( ordered )} segments for podcast {podcast_id}" )

        downloaded = await self.download_all( ordered )
        if not downloaded:
            raise AudioAssemblyError( f"None of the {len( ordered )} audio segments could be downloaded" )

        duration = round( sum( segment.estimated_duration_seconds for segment, _ in downloaded ) )
        size     = sum( len( data ) for _, data in downloaded )

        scratch_dir = tempfile.mkdtemp( prefix=SCRATCH_PREFIX )
        try:
            try:
                merged_path = await self.concatenate( downloaded, scratch_dir )
                with open( merged_path, "rb" ) as merged_file:
                    merged_bytes = merged_file.read()

                url = await self.storage.upload(
                    merged_bytes,
                    self.merged_filename( podcast_id ),
                    "audio/mpeg",
                    self.config.merged_bucket,
                )

            except ( AudioAssemblyError, StorageError, OSError ) as e:
                return self._fallback_to_longest( downloaded, podcast_id, str( e ) )

        finally:
            shutil.rmtree( scratch_dir, ignore_errors=True )

        if podcast_id is not None and self.podcast_service is not None:
            await asyncio.to_thread( self.podcast_service.update_podcast_audio, podcast_id, url, size )

        logger.info( f"Merged {len( downloaded )}/{len( ordered )} segments for podcast {podcast_id}: {url}" )

        return MergedAudio(
            url              = url,
            duration_seconds = duration,
            file_size_bytes  = size,
            total_chunks     = len( downloaded ),
            merged           = True,
        )

    # =========================================================================
    # Steps
    # =========================================================================

    async def download_all( self, ordered: list[ AudioSegmentRef ] ) -> list[ tuple[ AudioSegmentRef, bytes ] ]:
        """Download every segment in order, skipping failures."""
        timeout    = aiohttp.ClientTimeout( total=self.config.download_timeout )
        downloaded = [ ]

        async with aiohttp.ClientSession( timeout=timeout, headers={ "Accept": DOWNLOAD_ACCEPT_HEADER } ) as session:
            for segment in ordered:
                data = await self.download( session, segment )
                if data:
                    downloaded.append( ( segment, data ) )

        if len( downloaded ) < len( ordered ):
            logger.warning( f"Downloaded {len( downloaded )} of {len( ordered )} segments, merging what is available" )

        return downloaded

    async def download( self, session, segment: AudioSegmentRef ) -> Optional[ bytes ]:
        """
        Fetch one segment.

        URLs the local storage backend handed out are read from disk, anything
        else goes over HTTP.

        Returns:
            bytes, or None when the download failed (logged)
        """
        local_path = self.storage.local_path( segment.source_url )
        if local_path is not None:
            try:
                return await asyncio.to_thread( _read_file, local_path )

            except OSError as e:
                logger.warning( f"Chunk {segment.chunk_index} read failed: {e} ({segment.source_url})" )
                return None

        try:
            async with session.get( segment.source_url ) as response:
                if response.status != 200:
                    logger.warning( f"Chunk {segment.chunk_index} download failed: HTTP {response.status} ({segment.source_url})" )
                    return None

                data = await response.read()
                if self.verbose: print( f"[AudioAssembler] Chunk {segment.chunk_index}: {len( data ) / 1024:.1f}KB" )
                return data

        except ( aiohttp.ClientError, asyncio.TimeoutError ) as e:
            logger.warning( f"Chunk {segment.chunk_index} download failed: {e} ({segment.source_url})" )
            return None

    async def concatenate( self, downloaded: list[ tuple[ AudioSegmentRef, bytes ] ], scratch_dir: str ) -> str:
        """
        Write segments to scratch_dir and join them with ffmpeg.

        Returns:
            str: Path of the merged MP3

        Raises:
            - AudioAssemblyError if ffmpeg is missing or exits non-zero
        """
        list_lines = [ ]
        for i, ( _, data ) in enumerate( downloaded ):
            chunk_path = os.path.join( scratch_dir, f"chunk-{i}.mp3" )
            with open( chunk_path, "wb" ) as chunk_file:
                chunk_file.write( data )
            list_lines.append( f"file '{chunk_path}'" )

        filelist_path = os.path.join( scratch_dir, FILELIST_NAME )
        with open( filelist_path, "w" ) as filelist:
            filelist.write( "\n".join( list_lines ) )

        output_path = os.path.join( scratch_dir, MERGED_NAME )
        command = [
            self.config.ffmpeg_path, "-y",
            "-f", "concat", "-safe", "0",
            "-i", filelist_path,
            "-ar", str( self.config.sample_rate ),
            "-ac", str( self.config.channels ),
            "-b:a", self.config.audio_bitrate,
            output_path,
        ]
        if self.debug: print( f"[AudioAssembler] {' '.join( command )}" )

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout = asyncio.subprocess.PIPE,
                stderr = asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise AudioAssemblyError( f"ffmpeg not found: {self.config.ffmpeg_path}" ) from e

        _, stderr = await process.communicate()

        if process.returncode != 0:
            detail = stderr.decode( "utf-8", errors="replace" )[ -500: ] if stderr else ""
            raise AudioAssemblyError( f"ffmpeg exited with code {process.returncode}: {detail}" )

        return output_path

    def merged_filename( self, podcast_id: Optional[ int ] ) -> str:
        """merged-podcast-{id}-{ms timestamp}-{random}.mp3"""
        return f"merged-podcast-{podcast_id}-{int( time.time() * 1000 )}-{uuid.uuid4().hex[ :8 ]}.mp3"

    def _fallback_to_longest(
        self,
        downloaded : list[ tuple[ AudioSegmentRef, bytes ] ],
        podcast_id : Optional[ int ],
        reason     : str
    ) -> MergedAudio:
        """
        The longest downloaded segment, by estimated duration then by byte length.

        Segments built from bare URLs carry no duration estimate, so their
        size decides. The first one wins a full tie.
        """
        longest, data = max( downloaded, key=lambda item: ( item[ 0 ].estimated_duration_seconds, len( item[ 1 ] ) ) )

        logger.warning( f"Merge failed for podcast {podcast_id} ({reason}), falling back to chunk {longest.chunk_index}" )

        return MergedAudio(
            url              = longest.source_url,
            duration_seconds = round( longest.estimated_duration_seconds ),
            file_size_bytes  = len( data ),
            total_chunks     = len( downloaded ),
            merged           = False,
            fallback_reason  = reason,
        )


def quick_smoke_test():
    """Quick smoke test for AudioAssembler (single-segment path, no network)."""
    import podcast_studio.utils.util as du

    du.print_banner( "AudioAssembler Smoke Test", prepend_nl=True )

    try:
        assembler = AudioAssembler( storage=None, debug=True )
        result    = asyncio.run( assembler.merge( [ AudioSegmentRef( 0, "https://example.com/a.mp3", 12.4, 200000 ) ], 1 ) )
        print( f"✓ Single segment: {result.to_dict()}" )
        print( f"✓ Merged filename: {assembler.merged_filename( 1 )}" )
        print( "\n✓ AudioAssembler smoke test completed successfully" )

    except Exception as e:
        print( f"\n✗ Smoke test failed: {e}" )
        import traceback
        traceback.print_exc()


if __name__ == "__main__":
    quick_smoke_test()
