#!/usr/bin/env python3
"""
Unit tests for TTS clients, the audio assembler and the podcast producer.

No network and no ffmpeg: aiohttp, the subprocess and storage are mocked.

Run with: pytest -v podcast_studio/agents/audio_assembly/tests/
"""

import os
import re
import json
import asyncio
from types import SimpleNamespace
from unittest.mock import Mock, MagicMock, AsyncMock, patch

import pytest

from podcast_studio.errors import TTSError, TTSInputTooLongError, AudioAssemblyError, StorageError
from podcast_studio.agents.audio_assembly.config import AudioConfig
from podcast_studio.agents.audio_assembly.tts_client import (
    RemoteTTSClient,
    TTSResult,
    truncate_for_tts,
    estimate_duration_seconds,
    estimate_file_size_bytes,
    position_for_speaker_map,
)
from podcast_studio.agents.audio_assembly.google_tts_client import (
    GoogleTTSClient,
    PORTUGUESE_VOICES,
    VOICE_IDS,
    split_speaker_text,
    prepare_conversation,
)
from podcast_studio.agents.audio_assembly.audio_stitcher import (
    AudioAssembler,
    AudioSegmentRef,
    MergedAudio,
)
from podcast_studio.agents.audio_assembly.producer import PodcastProducer
from podcast_studio.rest.storage_service import LocalStorageService, SupabaseStorageService


def _segments( durations: list, indices: list = None ) -> list:
    indices = indices if indices is not None else list( range( len( durations ) ) )
    return [
        AudioSegmentRef( chunk_index=index, source_url=f"https://tts.example/url{position + 1}.mp3", estimated_duration_seconds=duration )
        for position, ( index, duration ) in enumerate( zip( indices, durations ) )
    ]


def _fake_concatenate( seen: dict ):
    """Stand-in for AudioAssembler.concatenate that writes a merged file."""
    async def concatenate( downloaded, scratch_dir ):
        seen[ "order" ]       = [ segment.chunk_index for segment, _ in downloaded ]
        seen[ "scratch_dir" ] = scratch_dir
        path = os.path.join( scratch_dir, "merged.mp3" )
        with open( path, "wb" ) as merged:
            merged.write( b"".join( data for _, data in downloaded ) )
        return path
    return concatenate


def _assembler( upload_url: str = "https://cdn.example/merged.mp3" ):
    storage = Mock()
    storage.upload = AsyncMock( return_value=upload_url )
    storage.local_path.return_value = None
    podcast_service = Mock()
    return AudioAssembler( storage=storage, podcast_service=podcast_service ), storage, podcast_service


class TestTTSHelpers:
    """Tests for truncation and the duration and size estimates."""

    def test_short_text_unchanged( self ):
        """Test that text under the limit is not truncated."""
        assert truncate_for_tts( "Oi, tudo bem?" ) == ( "Oi, tudo bem?", False )

    def test_truncates_at_last_space( self ):
        """Test that text without newlines is cut at the last space before the limit."""
        text = "palavra " * 400
        truncated, was_truncated = truncate_for_tts( text, 1900 )
        assert was_truncated
        assert len( truncated ) <= 1900
        assert truncated.endswith( "palavra" )

    def test_truncates_at_last_newline( self ):
        """Test that a newline boundary is preferred."""
        text = "a" * 1800 + "\n" + "b " * 500
        truncated, _ = truncate_for_tts( text, 1900 )
        assert truncated == "a" * 1800

    def test_hard_cut_without_boundary( self ):
        """Test that text with no boundary is cut exactly at the limit."""
        truncated, _ = truncate_for_tts( "a" * 3000, 1900 )
        assert len( truncated ) == 1900

    def test_hard_cut_when_boundary_too_early( self ):
        """Test that a boundary below 80% of the limit is ignored."""
        truncated, _ = truncate_for_tts( "a" * 100 + "\n" + "b" * 3000, 1900 )
        assert len( truncated ) == 1900

    def test_duration_estimate( self ):
        """Test the 2.5 words per second estimate and its 3 second floor."""
        assert estimate_duration_seconds( "" ) == 3
        assert estimate_duration_seconds( "word " * 25 ) == 10
        assert estimate_duration_seconds( "word " * 26 ) == 11

    def test_file_size_estimate( self ):
        """Test 16KB per second."""
        assert estimate_file_size_bytes( 10 ) == 10 * 16 * 1024

    @pytest.mark.parametrize( "speaker_map, expected", [
        ( { "Ana": "female", "Bruno": "male" }, [ 0, 1 ] ),
        ( { "Bruno": "male", "Ana": "female" }, [ 1, 0 ] ),
        ( json.dumps( { "Ana": "Female" } ), [ 0, 1 ] ),
        ( None, [ 1, 0 ] ),
        ( "not json", [ 1, 0 ] ),
    ] )
    def test_position( self, speaker_map, expected ):
        """Test voice order from the first speaker's gender."""
        assert position_for_speaker_map( speaker_map ) == expected


class TestRemoteTTSClient:
    """Tests for RemoteTTSClient."""

    def test_payload_shape( self ):
        """Test the fixed fields of the proxy payload."""
        payload = RemoteTTSClient().build_payload( "Oi", { "Ana": "female" }, title="Episódio" )
        assert payload[ "voices" ] == [ "R", "S" ]
        assert payload[ "position" ] == [ 0, 1 ]
        assert payload[ "type" ] == 0
        assert payload[ "typeVoice" ] == 0
        assert payload[ "podcast_title" ] == "Episódio"

    def test_synthesize_uses_reported_duration( self ):
        """Test that the proxy's duration wins over the estimate."""
        client = RemoteTTSClient()
        with patch.object( client, "_post", AsyncMock( return_value={ "audio_url": "https://tts.example/a.mp3", "duration": 12 } ) ):
            result = asyncio.run( client.synthesize( "Oi, tudo bem?" ) )

        assert result.audio_url == "https://tts.example/a.mp3"
        assert result.duration_seconds == 12
        assert result.estimated_file_size_bytes == 12 * 16 * 1024
        assert result.truncated is False

    def test_synthesize_estimates_duration( self ):
        """Test the word-count estimate when the proxy sends no duration."""
        client = RemoteTTSClient()
        with patch.object( client, "_post", AsyncMock( return_value={ "audio_url": "https://tts.example/a.mp3" } ) ):
            result = asyncio.run( client.synthesize( "word " * 25 ) )
        assert result.duration_seconds == 10

    def test_synthesize_truncates_long_text( self ):
        """Test that text over the safe length is truncated before sending."""
        client = RemoteTTSClient()
        post   = AsyncMock( return_value={ "audio_url": "https://tts.example/a.mp3" } )
        with patch.object( client, "_post", post ):
            result = asyncio.run( client.synthesize( "palavra " * 400 ) )

        assert result.truncated is True
        assert len( post.call_args[ 0 ][ 0 ][ "text" ] ) <= 1900

    def test_missing_audio_url_is_502( self ):
        """Test that a response without audio_url is a 502."""
        client = RemoteTTSClient()
        with patch.object( client, "_post", AsyncMock( return_value={ "status": "ok" } ) ):
            with pytest.raises( TTSError ) as excinfo:
                asyncio.run( client.synthesize( "Oi" ) )
        assert excinfo.value.status_code == 502

    def test_over_hard_cap_is_413( self ):
        """Test that input over the hard cap is rejected without a request."""
        client = RemoteTTSClient()
        post   = AsyncMock()
        with patch.object( client, "_post", post ):
            with pytest.raises( TTSInputTooLongError ) as excinfo:
                asyncio.run( client.synthesize( "a" * 10001 ) )

        assert excinfo.value.status_code == 413
        post.assert_not_called()

    def test_empty_text_rejected( self ):
        """Test that blank text raises ValueError."""
        with pytest.raises( ValueError ):
            asyncio.run( RemoteTTSClient().synthesize( "   " ) )

    def test_markup_too_long_maps_to_413( self ):
        """Test that the proxy's markup-length error becomes TTSInputTooLongError."""
        response        = MagicMock()
        response.status = 400
        response.text   = AsyncMock( return_value='{"error": "MultiSpeakerMarkup is too long"}' )

        session = MagicMock()
        session.post.return_value.__aenter__.return_value = response

        with patch( "podcast_studio.agents.audio_assembly.tts_client.aiohttp.ClientSession" ) as session_class:
            session_class.return_value.__aenter__.return_value = session
            with pytest.raises( TTSInputTooLongError ):
                asyncio.run( RemoteTTSClient().synthesize( "Oi" ) )

    def test_other_proxy_error_maps_to_502( self ):
        """Test that other non-200 answers become a 502 TTSError."""
        response        = MagicMock()
        response.status = 500
        response.text   = AsyncMock( return_value="internal error" )

        session = MagicMock()
        session.post.return_value.__aenter__.return_value = response

        with patch( "podcast_studio.agents.audio_assembly.tts_client.aiohttp.ClientSession" ) as session_class:
            session_class.return_value.__aenter__.return_value = session
            with pytest.raises( TTSError ) as excinfo:
                asyncio.run( RemoteTTSClient().synthesize( "Oi" ) )

        assert excinfo.value.status_code == 502
        assert not isinstance( excinfo.value, TTSInputTooLongError )


class TestGoogleTTS:
    """Tests for the Portuguese voice path."""

    def test_voice_catalog( self ):
        """Test six female and six male Chirp3-HD voices."""
        genders = [ voice[ "gender" ] for voice in PORTUGUESE_VOICES ]
        assert genders.count( "female" ) == 6
        assert genders.count( "male" ) == 6
        assert all( voice[ "id" ].startswith( "pt-BR-Chirp3-HD-" ) for voice in PORTUGUESE_VOICES )

    def test_split_short_text( self ):
        """Test that short text is one piece."""
        assert split_speaker_text( "Oi, tudo bem?", 400 ) == [ "Oi, tudo bem?" ]

    def test_split_at_punctuation( self ):
        """Test that long text is cut after sentence punctuation."""
        text   = ( "a" * 300 + ". " ) * 3
        pieces = split_speaker_text( text, 400 )
        assert all( len( piece ) <= 400 for piece in pieces )
        assert all( piece.endswith( "." ) for piece in pieces )
        assert len( pieces ) == 3

    def test_split_hard_without_punctuation( self ):
        """Test that text without punctuation is cut at the limit."""
        assert [ len( piece ) for piece in split_speaker_text( "a" * 1000, 400 ) ] == [ 400, 400, 200 ]

    def test_prepare_conversation( self ):
        """Test voice selection and Speaker labels."""
        text, first, second = prepare_conversation( [
            { "text": "Oi", "voiceId": VOICE_IDS[ 0 ] },
            { "text": "Olá", "voiceId": VOICE_IDS[ 6 ] },
            { "text": "Tchau", "voiceId": VOICE_IDS[ 0 ] },
        ] )
        assert ( first, second ) == ( VOICE_IDS[ 0 ], VOICE_IDS[ 6 ] )
        assert text == "Speaker 1: Oi\nSpeaker 2: Olá\nSpeaker 1: Tchau"

    def test_prepare_conversation_single_voice( self ):
        """Test that a second voice is picked from the catalog when only one is used."""
        _, first, second = prepare_conversation( [ { "text": "Oi", "voiceId": VOICE_IDS[ 0 ] } ] )
        assert second != first
        assert second in VOICE_IDS

    def test_prepare_conversation_rejects_empty( self ):
        """Test that an empty conversation raises ValueError."""
        with pytest.raises( ValueError ):
            prepare_conversation( [ ] )

    def test_build_pieces( self ):
        """Test voice mapping, pause-tag removal and terminal periods."""
        client = GoogleTTSClient( tts_client=Mock() )
        pieces = client.build_pieces( "Ana: Oi [pause medium] tudo bem\nBeto: Sim!\nCarla: Eu também", "v1", "v2" )

        assert [ piece.voice_id for piece in pieces ] == [ "v1", "v2", "v2" ]
        assert all( "[pause" not in piece.text for piece in pieces )
        assert pieces[ 0 ].text.endswith( "." )
        assert pieces[ 1 ].text == "Sim!"

    def test_synthesize_skips_failed_pieces( self ):
        """Test that a failed piece is skipped and the rest are stitched."""
        sdk = Mock()
        sdk.synthesize_speech.side_effect = [
            SimpleNamespace( audio_content=b"one" ),
            RuntimeError( "quota" ),
            SimpleNamespace( audio_content=b"three" ),
        ]
        client = GoogleTTSClient( config=AudioConfig( google_pause_ms=0 ), tts_client=sdk )

        with patch.object( client, "stitch", Mock( return_value=( b"stitched", 4.5 ) ) ):
            result = asyncio.run( client.synthesize_conversation( "Ana: Um\nBeto: Dois\nAna: Três", "v1", "v2" ) )

        assert result[ "segment_bytes" ] == [ b"one", b"three" ]
        assert result[ "audio_bytes" ] == b"stitched"
        assert result[ "file_size_bytes" ] == len( b"stitched" )
        assert result[ "duration_seconds" ] == 4.5

    def test_synthesize_all_failed( self ):
        """Test that no successful piece raises AudioAssemblyError."""
        sdk = Mock()
        sdk.synthesize_speech.side_effect = RuntimeError( "down" )
        client = GoogleTTSClient( config=AudioConfig( google_pause_ms=0 ), tts_client=sdk )

        with pytest.raises( AudioAssemblyError ):
            asyncio.run( client.synthesize_conversation( "Ana: Um\nBeto: Dois", "v1", "v2" ) )


class TestAudioAssembler:
    """Tests for AudioAssembler.merge()."""

    def test_single_segment_short_circuits( self ):
        """Test that one segment returns its own URL with no download or subprocess."""
        assembler, storage, podcast_service = _assembler()
        segment = AudioSegmentRef( 0, "https://tts.example/only.mp3", 12.6, 4096 )

        with patch.object( assembler, "download_all", AsyncMock() ) as download_all, \
             patch.object( assembler, "concatenate", AsyncMock() ) as concatenate:
            result = asyncio.run( assembler.merge( [ segment ], 1 ) )

        assert result.url == "https://tts.example/only.mp3"
        assert result.total_chunks == 1
        assert result.duration_seconds == 13
        assert result.merged is False
        download_all.assert_not_called()
        concatenate.assert_not_called()
        storage.upload.assert_not_called()

    def test_failed_download_is_skipped( self ):
        """Test that a failing URL is skipped and the merge still succeeds."""
        assembler, storage, podcast_service = _assembler()
        segments = _segments( [ 10.0, 20.0, 30.0 ] )
        seen     = { }

        async def download( session, segment ):
            return None if segment.source_url.endswith( "url2.mp3" ) else b"x" * ( segment.chunk_index + 1 ) * 100

        with patch.object( assembler, "download", side_effect=download ), \
             patch.object( assembler, "concatenate", side_effect=_fake_concatenate( seen ) ):
            result = asyncio.run( assembler.merge( segments, 7 ) )

        assert result.merged is True
        assert result.url == "https://cdn.example/merged.mp3"
        assert result.total_chunks == 2
        assert result.duration_seconds == 40
        assert result.file_size_bytes == 100 + 300
        assert seen[ "order" ] == [ 0, 2 ]
        podcast_service.update_podcast_audio.assert_called_once_with( 7, "https://cdn.example/merged.mp3", 400 )

    def test_merge_in_chunk_order( self ):
        """Test that segments are merged by chunk_index, stable for ties."""
        assembler, _, _ = _assembler()
        segments = _segments( [ 1.0, 1.0, 1.0, 1.0 ], indices=[ 2, 0, 1, 0 ] )
        seen     = { }
        fetched  = [ ]

        async def download( session, segment ):
            fetched.append( segment.source_url )
            return b"data"

        with patch.object( assembler, "download", side_effect=download ), \
             patch.object( assembler, "concatenate", side_effect=_fake_concatenate( seen ) ):
            asyncio.run( assembler.merge( segments, 1 ) )

        assert seen[ "order" ] == [ 0, 0, 1, 2 ]
        # The two index-0 segments keep their input order
        assert fetched[ :2 ] == [ segments[ 1 ].source_url, segments[ 3 ].source_url ]

    def test_ffmpeg_failure_falls_back_to_longest( self ):
        """Test that an ffmpeg failure returns the longest segment, first one on ties."""
        assembler, storage, podcast_service = _assembler()
        segments = _segments( [ 10.0, 30.0, 30.0 ] )

        with patch.object( assembler, "download", AsyncMock( return_value=b"data" ) ), \
             patch.object( assembler, "concatenate", AsyncMock( side_effect=AudioAssemblyError( "ffmpeg exited with code 1" ) ) ):
            result = asyncio.run( assembler.merge( segments, 3 ) )

        assert result.merged is False
        assert result.url == segments[ 1 ].source_url
        assert result.duration_seconds == 30
        assert "ffmpeg" in result.fallback_reason
        storage.upload.assert_not_called()
        podcast_service.update_podcast_audio.assert_not_called()

    def test_upload_failure_falls_back_to_longest( self ):
        """Test that an upload failure also uses the longest segment."""
        assembler, storage, _ = _assembler()
        storage.upload.side_effect = StorageError( "bucket missing" )
        segments = _segments( [ 5.0, 50.0 ] )

        with patch.object( assembler, "download", AsyncMock( return_value=b"data" ) ), \
             patch.object( assembler, "concatenate", side_effect=_fake_concatenate( { } ) ):
            result = asyncio.run( assembler.merge( segments, 3 ) )

        assert result.merged is False
        assert result.url == segments[ 1 ].source_url

    def test_no_downloads_is_fatal( self ):
        """Test that zero successful downloads raises AudioAssemblyError."""
        assembler, _, _ = _assembler()
        with patch.object( assembler, "download", AsyncMock( return_value=None ) ):
            with pytest.raises( AudioAssemblyError ):
                asyncio.run( assembler.merge( _segments( [ 1.0, 2.0 ] ), 1 ) )

    def test_fallback_without_estimates_uses_largest_download( self ):
        """Test that bare-URL segments fall back to the biggest file, not the first."""
        assembler, _, _ = _assembler()
        segments = [ AudioSegmentRef( chunk_index=i, source_url=f"https://x/{i}.mp3" ) for i in range( 3 ) ]
        sizes    = { "https://x/0.mp3": 10, "https://x/1.mp3": 5000, "https://x/2.mp3": 20 }

        async def download( session, segment ):
            return b"x" * sizes[ segment.source_url ]

        with patch.object( assembler, "download", side_effect=download ), \
             patch.object( assembler, "concatenate", AsyncMock( side_effect=AudioAssemblyError( "ffmpeg exited with code 1" ) ) ):
            result = asyncio.run( assembler.merge( segments, 3 ) )

        assert result.merged is False
        assert result.url == "https://x/1.mp3"
        assert result.file_size_bytes == 5000
        assert result.total_chunks == 3

    def test_local_storage_urls_read_from_disk( self, tmp_path ):
        """Test that /static URLs from the local backend are read without HTTP."""
        storage   = LocalStorageService( root=str( tmp_path ), url_prefix="/static" )
        assembler = AudioAssembler( storage=storage )

        first  = asyncio.run( storage.upload( b"first", "c0.mp3", "audio/mpeg", "podcast_audio" ) )
        second = asyncio.run( storage.upload( b"second!", "c1.mp3", "audio/mpeg", "podcast_audio" ) )
        missing = "/static/audio/podcast_audio/gone.mp3"
        segments = [ AudioSegmentRef( 0, first ), AudioSegmentRef( 1, missing ), AudioSegmentRef( 2, second ) ]

        downloaded = asyncio.run( assembler.download_all( segments ) )

        assert [ ( segment.chunk_index, data ) for segment, data in downloaded ] == [ ( 0, b"first" ), ( 2, b"second!" ) ]

    def test_local_path_mapping( self, tmp_path ):
        """Test only URLs under the prefix and inside the root map to files."""
        storage = LocalStorageService( root=str( tmp_path ), url_prefix="/static/" )

        assert storage.local_path( "/static/audio/merged_podcasts/m.mp3" ) == str( tmp_path / "audio" / "merged_podcasts" / "m.mp3" )
        assert storage.local_path( "https://cdn.example/m.mp3" ) is None
        assert storage.local_path( "/static/../secrets.txt" ) is None
        assert SupabaseStorageService( client=Mock() ).local_path( "/static/audio/m.mp3" ) is None

    def test_scratch_directory_removed( self ):
        """Test that the scratch directory is gone after success and after fallback."""
        for failure in ( None, AudioAssemblyError( "boom" ) ):
            assembler, _, _ = _assembler()
            seen = { }
            fake = _fake_concatenate( seen )

            async def concatenate( downloaded, scratch_dir ):
                await fake( downloaded, scratch_dir )
                if failure:
                    raise failure
                return os.path.join( scratch_dir, "merged.mp3" )

            with patch.object( assembler, "download", AsyncMock( return_value=b"data" ) ), \
                 patch.object( assembler, "concatenate", side_effect=concatenate ):
                asyncio.run( assembler.merge( _segments( [ 1.0, 2.0 ] ), 1 ) )

            assert os.path.basename( seen[ "scratch_dir" ] ).startswith( "podcast-merge-" )
            assert not os.path.exists( seen[ "scratch_dir" ] )

    def test_empty_segments_rejected( self ):
        """Test that an empty segment list raises ValueError."""
        assembler, _, _ = _assembler()
        with pytest.raises( ValueError ):
            asyncio.run( assembler.merge( [ ], 1 ) )

    def test_concatenate_runs_ffmpeg( self, tmp_path ):
        """Test the manifest and the ffmpeg command line."""
        assembler, _, _ = _assembler()
        process = Mock()
        process.returncode  = 0
        process.communicate = AsyncMock( return_value=( b"", b"" ) )
        downloaded = [ ( segment, b"data" ) for segment in _segments( [ 1.0, 2.0 ] ) ]

        with patch( "podcast_studio.agents.audio_assembly.audio_stitcher.asyncio.create_subprocess_exec", AsyncMock( return_value=process ) ) as run:
            output = asyncio.run( assembler.concatenate( downloaded, str( tmp_path ) ) )

        command = list( run.call_args[ 0 ] )
        assert command[ :2 ] == [ "ffmpeg", "-y" ]
        assert command[ command.index( "-f" ) + 1 ] == "concat"
        assert command[ command.index( "-safe" ) + 1 ] == "0"
        assert command[ command.index( "-ar" ) + 1 ] == "44100"
        assert command[ command.index( "-ac" ) + 1 ] == "2"
        assert command[ command.index( "-b:a" ) + 1 ] == "192k"
        assert output == os.path.join( str( tmp_path ), "merged.mp3" )

        manifest = ( tmp_path / "filelist.txt" ).read_text().splitlines()
        assert manifest == [ f"file '{tmp_path / 'chunk-0.mp3'}'", f"file '{tmp_path / 'chunk-1.mp3'}'" ]

    def test_concatenate_nonzero_exit( self, tmp_path ):
        """Test that a failing ffmpeg raises AudioAssemblyError."""
        assembler, _, _ = _assembler()
        process = Mock()
        process.returncode  = 1
        process.communicate = AsyncMock( return_value=( b"", b"Invalid data found" ) )

        with patch( "podcast_studio.agents.audio_assembly.audio_stitcher.asyncio.create_subprocess_exec", AsyncMock( return_value=process ) ):
            with pytest.raises( AudioAssemblyError, match="Invalid data" ):
                asyncio.run( assembler.concatenate( [ ( _segments( [ 1.0 ] )[ 0 ], b"data" ) ], str( tmp_path ) ) )

    def test_concatenate_missing_ffmpeg( self, tmp_path ):
        """Test that a missing ffmpeg binary raises AudioAssemblyError."""
        assembler, _, _ = _assembler()
        with patch( "podcast_studio.agents.audio_assembly.audio_stitcher.asyncio.create_subprocess_exec", AsyncMock( side_effect=FileNotFoundError() ) ):
            with pytest.raises( AudioAssemblyError ):
                asyncio.run( assembler.concatenate( [ ( _segments( [ 1.0 ] )[ 0 ], b"data" ) ], str( tmp_path ) ) )

    def test_merged_filename( self ):
        """Test the merged object name pattern."""
        assembler, _, _ = _assembler()
        assert re.fullmatch( r"merged-podcast-42-\d+-[0-9a-f]{8}\.mp3", assembler.merged_filename( 42 ) )

    def test_to_dict( self ):
        """Test the camelCase response form."""
        merged = MergedAudio( url="u", duration_seconds=10, file_size_bytes=20, total_chunks=2 )
        assert merged.to_dict()[ "mergedUrl" ] == "u"
        assert merged.to_dict()[ "totalChunks" ] == 2


class TestPodcastProducer:
    """Tests for PodcastProducer.produce()."""

    def _producer( self, merged: bool = True, tts_side_effect = None ):
        tts = Mock()
        if tts_side_effect is None:
            async def tts_side_effect( text, **kwargs ):
                return TTSResult( audio_url=f"https://tts.example/{tts.synthesize.await_count}.mp3", text=text )
        tts.synthesize = AsyncMock( side_effect=tts_side_effect )

        assembler = Mock()
        assembler.merge = AsyncMock( return_value=MergedAudio(
            url              = "https://cdn.example/merged.mp3" if merged else "https://tts.example/1.mp3",
            duration_seconds = 20,
            file_size_bytes  = 1000,
            total_chunks     = 2,
            merged           = merged,
        ) )

        podcast_service = Mock()
        podcast_service.create_podcast.return_value = SimpleNamespace( id=5 )
        podcast_service.create_chunk.side_effect    = lambda podcast_id, index, url, **kwargs: { "podcastId": podcast_id, "chunkIndex": index }
        podcast_service.get_podcast.return_value    = SimpleNamespace( id=5, audio_url="https://cdn.example/merged.mp3" )

        producer = PodcastProducer( tts, assembler, podcast_service, config=AudioConfig( max_chunk_size=20 ) )
        return producer, tts, assembler, podcast_service

    def test_produce_flow( self ):
        """Test chunk, TTS, records and merge in order."""
        producer, tts, assembler, podcast_service = self._producer()
        conversation = "Ana: Primeira fala longa\nBeto: Segunda fala longa\nAna: Terceira"

        result = asyncio.run( producer.produce( conversation, "Episódio", "user-1", speaker_genders={ "Ana": "female" } ) )

        assert tts.synthesize.await_count == 3
        first_call = tts.synthesize.await_args_list[ 0 ]
        assert first_call[ 0 ][ 0 ] == "Primeira fala longa"
        assert first_call[ 1 ][ "speaker_map" ] == { "Ana": "female" }
        assert podcast_service.create_chunk.call_count == 3
        assert [ chunk[ "chunkIndex" ] for chunk in result.chunks ] == [ 0, 1, 2 ]

        segments = assembler.merge.await_args[ 0 ][ 0 ]
        assert [ segment.chunk_index for segment in segments ] == [ 0, 1, 2 ]
        assert assembler.merge.await_args[ 0 ][ 1 ] == 5
        podcast_service.update_podcast_audio.assert_not_called()
        assert result.merged_audio.merged is True

    def test_utterances_only_sent_to_tts( self ):
        """Test that speaker labels are stripped from the TTS text."""
        producer, tts, _, _ = self._producer()
        producer.config = AudioConfig( max_chunk_size=2000 )

        asyncio.run( producer.produce( "Ana: Oi\nBeto: Olá", "Episódio", "user-1" ) )

        assert tts.synthesize.await_args[ 0 ][ 0 ] == "Oi\nOlá"

    def test_fallback_updates_record( self ):
        """Test that an unmerged result is written to the podcast record."""
        producer, _, _, podcast_service = self._producer( merged=False )
        asyncio.run( producer.produce( "Ana: Primeira fala longa\nBeto: Segunda fala longa", "Episódio", "user-1" ) )
        podcast_service.update_podcast_audio.assert_called_once_with( 5, "https://tts.example/1.mp3", 1000 )

    def test_tts_failure_aborts( self ):
        """Test that a TTS failure raises a 502 and creates no record."""
        producer, _, assembler, podcast_service = self._producer( tts_side_effect=TTSInputTooLongError( "too long" ) )

        with pytest.raises( TTSError ) as excinfo:
            asyncio.run( producer.produce( "Ana: Oi\nBeto: Olá", "Episódio", "user-1" ) )

        assert excinfo.value.status_code == 502
        podcast_service.create_podcast.assert_not_called()
        assembler.merge.assert_not_called()

    def test_empty_conversation_rejected( self ):
        """Test that empty input raises ValueError."""
        producer, _, _, _ = self._producer()
        with pytest.raises( ValueError ):
            asyncio.run( producer.produce( "   \n  ", "Episódio", "user-1" ) )
