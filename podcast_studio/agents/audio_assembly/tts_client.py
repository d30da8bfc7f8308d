#!/usr/bin/env python3
"""
Remote TTS client for the multi-speaker HTTP TTS proxy.

The proxy synthesizes a whole chunk of dialogue in one request and answers
with a hosted audio URL, so this client never handles audio bytes.

Design Pattern: Thin async HTTP adapter
- aiohttp POST with the proxy's fixed payload shape
- Voice order ("position") derived from the first speaker's gender
- Proxy errors translated into TTSError / TTSInputTooLongError
"""

import math
import json
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Union

import aiohttp

from podcast_studio.errors import TTSError, TTSInputTooLongError
from .config import AudioConfig

logger = logging.getLogger( __name__ )

PROXY_VOICES          = [ "R", "S" ]
FEMALE_FIRST_POSITION = [ 0, 1 ]
MALE_FIRST_POSITION   = [ 1, 0 ]
MARKUP_TOO_LONG_TEXT  = "MultiSpeakerMarkup is too long"

MIN_DURATION_SECONDS  = 3
WORDS_PER_SECOND      = 2.5
BYTES_PER_SECOND      = 16 * 1024
TRUNCATION_MIN_RATIO  = 0.8


# =============================================================================
# Estimates and truncation
# =============================================================================

def estimate_duration_seconds( text: str ) -> int:
    """
    Estimate spoken duration at 2.5 words per second.

    Ensures:
        - Returns at least 3 seconds
    """
    words = len( text.split() )
    return max( MIN_DURATION_SECONDS, math.ceil( words / WORDS_PER_SECOND ) )


def estimate_file_size_bytes( duration_seconds: float ) -> int:
    """Estimate MP3 size at 16KB per second."""
    return int( duration_seconds * BYTES_PER_SECOND )


def truncate_for_tts( text: str, limit: int = 1900 ) -> tuple[ str, bool ]:
    """
    Cut text to at most limit characters at a natural boundary.

    Requires:
        - limit > 0

    Ensures:
        - Text at or under the limit is returned unchanged with truncated=False
        - Otherwise cuts at the last newline before the limit, else the last space
        - Cuts hard at the limit when no boundary exists or it falls below 80% of the limit

    Returns:
        tuple: (text, truncated)
    """
    if len( text ) <= limit:
        return text, False

    cut_point = text.rfind( "\n", 0, limit + 1 )
    if cut_point == -1:
        cut_point = text.rfind( " ", 0, limit + 1 )

    if cut_point == -1 or cut_point < limit * TRUNCATION_MIN_RATIO:
        cut_point = limit

    logger.warning( f"Text is too long ({len( text )} chars), truncated to {cut_point} chars" )
    return text[ :cut_point ], True


def position_for_speaker_map( speaker_map: Optional[ Union[ dict, str ] ] ) -> list:
    """
    Voice order for the proxy: female first -> [0, 1], otherwise [1, 0].

    Args:
        speaker_map: Ordered speaker -> gender mapping, or its JSON encoding
    """
    if not speaker_map:
        return list( MALE_FIRST_POSITION )

    if isinstance( speaker_map, str ):
        try:
            speaker_map = json.loads( speaker_map )
        except json.JSONDecodeError as e:
            logger.warning( f"Could not parse speaker map, using default voice order: {e}" )
            return list( MALE_FIRST_POSITION )

    if not isinstance( speaker_map, dict ) or not speaker_map:
        return list( MALE_FIRST_POSITION )

    first_speaker = next( iter( speaker_map ) )
    gender        = str( speaker_map[ first_speaker ] or "" ).lower()

    return list( FEMALE_FIRST_POSITION if gender == "female" else MALE_FIRST_POSITION )


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class TTSResult:
    """
    Result of one TTS proxy request.

    Ensures:
        - duration_seconds falls back to the word-count estimate when the proxy sends none
        - estimated_file_size_bytes is derived from duration_seconds
    """

    audio_url                 : str
    text                      : str
    duration_seconds          : float = 0.0
    estimated_file_size_bytes : int   = 0
    truncated                 : bool  = False
    raw_response              : dict  = field( default_factory=dict )

    def __post_init__( self ):
        """Fill in estimates the proxy did not supply."""
        if not self.duration_seconds:
            self.duration_seconds = estimate_duration_seconds( self.text )
        if not self.estimated_file_size_bytes:
            self.estimated_file_size_bytes = estimate_file_size_bytes( self.duration_seconds )


# =============================================================================
# TTS Client Class
# =============================================================================

class RemoteTTSClient:
    """
    Client for the HTTP TTS proxy.

    Requires:
        - config.tts_api_url points at the proxy's generate-audio endpoint

    Ensures:
        - synthesize() returns a TTSResult carrying the proxy's audio_url
        - Raises TTSInputTooLongError (413) for over-long input
        - Raises TTSError (502) for any other proxy failure
    """

    def __init__( self, config: Optional[ AudioConfig ] = None, debug: bool = False, verbose: bool = False ):
        self.config  = config or AudioConfig()
        self.debug   = debug
        self.verbose = verbose

        if self.debug:
            print( f"[RemoteTTSClient] Initialized ({self.config.tts_api_url})" )

    def build_payload(
        self,
        text         : str,
        speaker_map  : Optional[ Union[ dict, str ] ] = None,
        author_name  : Optional[ str ] = None,
        author_id    : str = "",
        title        : str = "",
        description  : str = ""
    ) -> dict:
        """Request body in the shape the proxy expects."""
        return {
            "text"               : text,
            "voices"             : list( PROXY_VOICES ),
            "position"           : position_for_speaker_map( speaker_map ),
            "author_name"        : author_name or self.config.default_author_name,
            "author_id"          : author_id,
            "description"        : description,
            "podcast_title"      : title,
            "author_description" : "",
            "content_type"       : "",
            "type"               : 0,
            "typeVoice"          : 0,
        }

    async def synthesize(
        self,
        text         : str,
        voice_id     : Optional[ str ] = None,
        speaker_map  : Optional[ Union[ dict, str ] ] = None,
        author_name  : Optional[ str ] = None,
        author_id    : str = "",
        title        : str = "",
        description  : str = ""
    ) -> TTSResult:
        """
        Synthesize one chunk of dialogue.

        Requires:
            - text is non-empty

        Ensures:
            - Text over max_tts_input_length is rejected before any request
            - Text over max_safe_tts_length is truncated and flagged

        Raises:
            - ValueError for empty text
            - TTSInputTooLongError for input the proxy cannot take
            - TTSError for transport errors or a response without audio_url
        """
        if not text or not text.strip():
            raise ValueError( "Text is required" )

        if len( text ) > self.config.max_tts_input_length:
            raise TTSInputTooLongError(
                f"Text is too long ({len( text )} chars, limit {self.config.max_tts_input_length})",
                length=len( text )
            )

        text, truncated = truncate_for_tts( text, self.config.max_safe_tts_length )
        payload = self.build_payload( text, speaker_map, author_name, author_id, title, description )

        if self.debug: print( f"[RemoteTTSClient] Voice [{voice_id}] position {payload[ 'position' ]}, {len( text )} chars" )
        if self.verbose: print( f"[RemoteTTSClient] Payload: {json.dumps( payload, ensure_ascii=False )[ :500 ]}" )

        data = await self._post( payload )

        audio_url = data.get( "audio_url" ) if isinstance( data, dict ) else None
        if not audio_url:
            logger.error( f"TTS response has no audio_url: {str( data )[ :200 ]}" )
            raise TTSError( 502, "Failed to generate audio, invalid response from TTS API" )

        duration = data.get( "duration" ) or 0.0
        try:
            duration = float( duration )
        except ( TypeError, ValueError ):
            duration = 0.0

        return TTSResult(
            audio_url        = audio_url,
            text             = text,
            duration_seconds = duration,
            truncated        = truncated,
            raw_response     = data,
        )

    async def _post( self, payload: dict ) -> dict:
        """POST the payload and map proxy errors to TTSError."""
        timeout = aiohttp.ClientTimeout( total=self.config.tts_timeout_seconds )

        try:
            async with aiohttp.ClientSession( timeout=timeout ) as session:
                async with session.post( self.config.tts_api_url, json=payload ) as response:

                    if response.status == 200:
                        return await response.json( content_type=None )

                    error_text = await response.text()
                    logger.error( f"TTS API error {response.status}: {error_text[ :300 ]}" )

                    if MARKUP_TOO_LONG_TEXT in error_text:
                        raise TTSInputTooLongError(
                            "Text is too long for the TTS service. Use shorter text segments or fewer speakers.",
                            length=len( payload[ "text" ] )
                        )
                    raise TTSError( 502, f"TTS API returned {response.status}: {error_text[ :200 ]}" )

        except ( aiohttp.ClientError, asyncio.TimeoutError ) as e:
            logger.error( f"TTS request failed: {e}" )
            raise TTSError( 502, f"TTS request failed: {e}" ) from e


def quick_smoke_test():
    """Quick smoke test for the offline helpers (no request is made)."""
    import podcast_studio.utils.util as du

    du.print_banner( "RemoteTTSClient Smoke Test", prepend_nl=True )

    try:
        text = "Ana: " + "palavra " * 400
        truncated, was_truncated = truncate_for_tts( text )
        print( f"✓ Truncated {len( text )} -> {len( truncated )} chars ({was_truncated})" )
        print( f"✓ Estimated duration: {estimate_duration_seconds( text )}s" )
        print( f"✓ Position for female first: {position_for_speaker_map( { 'Ana': 'female', 'Bruno': 'male' } )}" )

        client = RemoteTTSClient( debug=True )
        print( f"✓ Payload keys: {sorted( client.build_payload( 'Ana: Oi' ).keys() )}" )
        print( "\n✓ RemoteTTSClient smoke test completed successfully" )

    except Exception as e:
        print( f"\n✗ Smoke test failed: {e}" )
        import traceback
        traceback.print_exc()


if __name__ == "__main__":
    quick_smoke_test()
