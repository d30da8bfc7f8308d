#!/usr/bin/env python3
"""
Google Cloud TTS client for Brazilian Portuguese two-voice podcasts.

Unlike the HTTP TTS proxy, Google returns raw MP3 bytes per request, so
this client synthesizes one utterance at a time and stitches the pieces
locally with pydub.

Design Pattern: Sequential synthesis with local stitching
- Speakers mapped to the two chosen voices in first-seen order
- Long utterances split at punctuation, one request per piece
- Blocking SDK and pydub calls run in worker threads
- Failed pieces are skipped, the podcast is built from what succeeded
"""

import io
import re
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from pydub import AudioSegment
from google.cloud import texttospeech

from podcast_studio.errors import AudioAssemblyError
from .config import AudioConfig
from .chunker import parse_conversation_lines, VoiceAssignment, VoiceRole

logger = logging.getLogger( __name__ )

VOICE_PREFIX = "pt-BR-Chirp3-HD-"

PORTUGUESE_VOICES = [
    # Female
    { "id": f"{VOICE_PREFIX}Aoede",        "name": "Aoede (Feminina)",        "gender": "female" },
    { "id": f"{VOICE_PREFIX}Kore",         "name": "Kore (Feminina)",         "gender": "female" },
    { "id": f"{VOICE_PREFIX}Leda",         "name": "Leda (Feminina)",         "gender": "female" },
    { "id": f"{VOICE_PREFIX}Zephyr",       "name": "Zephyr (Feminina)",       "gender": "female" },
    { "id": f"{VOICE_PREFIX}Erinome",      "name": "Erinome (Feminina)",      "gender": "female" },
    { "id": f"{VOICE_PREFIX}Vindemiatrix", "name": "Vindemiatrix (Feminina)", "gender": "female" },
    # Male
    { "id": f"{VOICE_PREFIX}Charon",       "name": "Charon (Masculina)",      "gender": "male" },
    { "id": f"{VOICE_PREFIX}Fenrir",       "name": "Fenrir (Masculina)",      "gender": "male" },
    { "id": f"{VOICE_PREFIX}Orus",         "name": "Orus (Masculina)",        "gender": "male" },
    { "id": f"{VOICE_PREFIX}Puck",         "name": "Puck (Masculina)",        "gender": "male" },
    { "id": f"{VOICE_PREFIX}Iapetus",      "name": "Iapetus (Masculina)",     "gender": "male" },
    { "id": f"{VOICE_PREFIX}Umbriel",      "name": "Umbriel (Masculina)",     "gender": "male" },
]
VOICE_IDS = [ voice[ "id" ] for voice in PORTUGUESE_VOICES ]

SPLIT_PUNCTUATION    = [ ".", "!", "?", ";", ":", "," ]
SPLIT_LOOKBACK       = 200
TERMINAL_PUNCTUATION = ( ".", "!", "?" )
PAUSE_TAG_PATTERN    = re.compile( r"\[pause.*?\]", re.IGNORECASE )


def split_speaker_text( text: str, max_length: int = 500 ) -> list[ str ]:
    """
    Split one utterance into pieces of at most max_length characters.

    Ensures:
        - Text at or under max_length comes back as a single piece
        - Cuts after the first of . ! ? ; : , (in that priority) found within
          the last 200 characters before the limit, else cuts hard at the limit
        - Pieces are stripped and none is empty
    """
    if len( text ) <= max_length:
        return [ text ]

    pieces    = [ ]
    remaining = text

    while remaining:
        cut_point = min( max_length, len( remaining ) )

        if len( remaining ) > max_length:
            for mark in SPLIT_PUNCTUATION:
                last_index = remaining.rfind( mark, 0, max_length + 1 )
                if last_index > 0 and last_index > cut_point - SPLIT_LOOKBACK:
                    cut_point = last_index + 1
                    break

        piece = remaining[ :cut_point ].strip()
        if piece:
            pieces.append( piece )
        remaining = remaining[ cut_point: ].strip()

    return pieces


def prepare_conversation( items: list[ dict ] ) -> tuple[ str, str, str ]:
    """
    Turn [ { text, voiceId } ] items into labeled conversation text.

    Ensures:
        - The first item's voice is the first voice
        - The second voice is the first different voice in the items, else
          the first catalog voice that differs from the first voice
        - Lines read "Speaker 1: ..." or "Speaker 2: ..."

    Raises:
        - ValueError for an empty list or a missing voice id

    Returns:
        tuple: (conversation_text, first_voice, second_voice)
    """
    if not items:
        raise ValueError( "Invalid conversation format. Expected non-empty array." )

    first_voice = items[ 0 ].get( "voiceId" )
    if not first_voice:
        raise ValueError( "Missing voice IDs for speakers" )

    second_voice = next( ( item.get( "voiceId" ) for item in items if item.get( "voiceId" ) and item.get( "voiceId" ) != first_voice ), None )
    if second_voice is None:
        second_voice = next( voice_id for voice_id in VOICE_IDS if voice_id != first_voice )

    lines = [ ]
    for item in items:
        speaker = "Speaker 1" if item.get( "voiceId" ) == first_voice else "Speaker 2"
        lines.append( f"{speaker}: {item.get( 'text', '' )}" )

    return "\n".join( lines ), first_voice, second_voice


@dataclass
class VoicePiece:
    """One synthesis request: a piece of an utterance and its voice."""

    index    : int
    speaker  : str
    voice_id : str
    text     : str


class GoogleTTSClient:
    """
    Synthesizes a two-voice conversation with Google Cloud TTS.

    Requires:
        - Google application credentials are available to the SDK

    Ensures:
        - synthesize_conversation() returns stitched MP3 bytes and metadata
        - Raises AudioAssemblyError when no piece could be synthesized
    """

    def __init__(
        self,
        config      : Optional[ AudioConfig ] = None,
        tts_client  = None,
        debug       : bool = False,
        verbose     : bool = False
    ):
        self.config      = config or AudioConfig()
        self.debug       = debug
        self.verbose     = verbose
        self._tts_client = tts_client

        if self.debug:
            print( f"[GoogleTTSClient] Initialized ({self.config.google_language_code}, max piece {self.config.google_max_segment_len} chars)" )

    @property
    def tts_client( self ):
        """Lazy initialization of the Google TTS SDK client."""
        if self._tts_client is None:
            self._tts_client = texttospeech.TextToSpeechClient()
        return self._tts_client

    def build_pieces( self, conversation_text: str, first_voice: str, second_voice: str ) -> list[ VoicePiece ]:
        """
        Parse the conversation and expand it into synthesis pieces.

        Ensures:
            - The first speaker seen uses first_voice, every other speaker second_voice
            - Pieces are at most google_max_segment_len characters
            - Every piece ends with terminal punctuation and has no [pause ...] tags
        """
        lines      = parse_conversation_lines( conversation_text )
        assignment = VoiceAssignment.from_lines( lines )
        voices     = { VoiceRole.PRIMARY: first_voice, VoiceRole.SECONDARY: second_voice }

        pieces = [ ]
        for line in lines:
            voice_id = voices[ assignment.role_of( line.speaker ) ]

            for text in split_speaker_text( line.text.strip(), self.config.google_max_segment_len ):
                text = PAUSE_TAG_PATTERN.sub( "", text ).strip()
                if not text:
                    continue
                if not text.endswith( TERMINAL_PUNCTUATION ):
                    text = f"{text}."
                pieces.append( VoicePiece( index=len( pieces ), speaker=line.speaker, voice_id=voice_id, text=text ) )

        if len( pieces ) > len( lines ):
            logger.info( f"Split {len( lines )} utterances into {len( pieces )} synthesis pieces" )

        return pieces

    def _synthesize_piece( self, piece: VoicePiece ) -> bytes:
        """Blocking SDK call for one piece."""
        response = self.tts_client.synthesize_speech(
            input        = texttospeech.SynthesisInput( text=piece.text ),
            voice        = texttospeech.VoiceSelectionParams(
                language_code = self.config.google_language_code,
                name          = piece.voice_id,
            ),
            audio_config = texttospeech.AudioConfig( audio_encoding=texttospeech.AudioEncoding.MP3 ),
        )
        return response.audio_content

    async def synthesize_conversation( self, conversation_text: str, first_voice: str, second_voice: str ) -> dict:
        """
        Synthesize and stitch a whole conversation.

        Requires:
            - first_voice and second_voice are Google voice names

        Ensures:
            - Pieces are synthesized sequentially with a pause between calls
            - A failed piece is logged and skipped

        Raises:
            - ValueError if the conversation has no speech
            - AudioAssemblyError if every piece failed

        Returns:
            dict: audio_bytes, duration_seconds, file_size_bytes, segment_bytes
        """
        pieces = self.build_pieces( conversation_text, first_voice, second_voice )
        if not pieces:
            raise ValueError( "Conversation has no speech to synthesize" )

        logger.info( f"Synthesizing {len( pieces )} pieces (voices {first_voice} / {second_voice})" )

        results = [ ]
        for i, piece in enumerate( pieces ):
            if self.debug: print( f"[GoogleTTSClient] Piece {i + 1}/{len( pieces )} ({piece.voice_id})" )

            try:
                audio = await asyncio.to_thread( self._synthesize_piece, piece )
                results.append( ( piece, audio ) )

            except Exception as e:
                logger.warning( f"Piece {i + 1}/{len( pieces )} failed, skipping: {e}" )

            if i < len( pieces ) - 1:
                await asyncio.sleep( self.config.google_pause_ms / 1000.0 )

        if not results:
            raise AudioAssemblyError( "No audio segment was generated successfully" )

        audio_bytes, duration_seconds = await asyncio.to_thread( self.stitch, results )

        if self.debug:
            print( f"[GoogleTTSClient] Stitched {len( results )}/{len( pieces )} pieces: {duration_seconds:.1f}s, {len( audio_bytes ) / 1024:.1f}KB" )

        return {
            "audio_bytes"      : audio_bytes,
            "duration_seconds" : duration_seconds,
            "file_size_bytes"  : len( audio_bytes ),
            "segment_bytes"    : [ audio for _, audio in results ],
        }

    def stitch( self, results: list ) -> tuple[ bytes, float ]:
        """
        Concatenate MP3 pieces with silence on every change of speaker.

        Returns:
            tuple: (mp3_bytes, duration_seconds)
        """
        combined     = AudioSegment.empty()
        silence      = AudioSegment.silent( duration=self.config.google_silence_ms )
        last_speaker = None

        for piece, audio in results:
            if last_speaker is not None and last_speaker != piece.speaker:
                combined += silence
            combined    += AudioSegment.from_file( io.BytesIO( audio ), format="mp3" )
            last_speaker = piece.speaker

        buffer = io.BytesIO()
        combined.export( buffer, format="mp3", bitrate=self.config.audio_bitrate )

        return buffer.getvalue(), len( combined ) / 1000.0


def quick_smoke_test():
    """Quick smoke test for the offline helpers (no synthesis)."""
    import podcast_studio.utils.util as du

    du.print_banner( "GoogleTTSClient Smoke Test", prepend_nl=True )

    try:
        text, first, second = prepare_conversation( [
            { "text": "Oi, tudo bem? [pause medium] Vamos falar de samba", "voiceId": VOICE_IDS[ 0 ] },
            { "text": "Vamos sim! " + "O samba nasceu no Rio de Janeiro, " * 20, "voiceId": VOICE_IDS[ 6 ] },
        ] )
        print( f"✓ Conversation:\n{text[ :160 ]}..." )

        client = GoogleTTSClient( tts_client=object(), debug=True )
        for piece in client.build_pieces( text, first, second ):
            print( f"✓ [{piece.index}] {piece.voice_id}: {piece.text[ :60 ]}..." )

        print( "\n✓ GoogleTTSClient smoke test completed successfully" )

    except Exception as e:
        print( f"\n✗ Smoke test failed: {e}" )
        import traceback
        traceback.print_exc()


if __name__ == "__main__":
    quick_smoke_test()
