#!/usr/bin/env python3
"""
Unit tests for the podcast repositories and PodcastService.

Every test runs against a fresh in-memory sqlite database.

Run with: pytest -v tests/unit/db/
"""

import json

import pytest

from podcast_studio.rest.db.database import get_db, get_engine_config
from podcast_studio.rest.db.repositories import PodcastRepository, PodcastAudioChunkRepository
from podcast_studio.rest.podcast_models import DEFAULT_COVER_IMAGE_URL
from podcast_studio.rest.podcast_service import PodcastService, can_read, is_owner, DEMO_USER_ID


class TestEngineConfig:

    def test_sqlite_file( self ):
        config = get_engine_config( "sqlite:///./studio.db" )

        assert config[ "connect_args" ] == { "check_same_thread": False }
        assert "poolclass" not in config

    def test_sqlite_memory_shares_one_connection( self ):
        assert "poolclass" in get_engine_config( "sqlite://" )

    def test_server_database( self ):
        assert get_engine_config( "postgresql://u:p@localhost/studio" )[ "pool_pre_ping" ] is True


class TestRepositories:

    def test_create_and_defaults( self, memory_db ):
        """Column defaults fill what the caller leaves out."""
        with get_db() as session:
            podcast = PodcastRepository( session ).create( user_id="u1", title="First" )
            podcast_id = podcast.id

        with get_db() as session:
            podcast = PodcastRepository( session ).get_by_id( podcast_id )

            assert podcast.language == "en"
            assert podcast.cover_image_url == DEFAULT_COVER_IMAGE_URL
            assert podcast.duration == 0
            assert podcast.chunk_count == 0
            assert podcast.created_at is not None

    def test_rollback_on_exception( self, memory_db ):
        with pytest.raises( RuntimeError ):
            with get_db() as session:
                PodcastRepository( session ).create( user_id="u1", title="Lost" )
                raise RuntimeError( "boom" )

        with get_db() as session:
            assert PodcastRepository( session ).count() == 0

    def test_list_for_user_newest_first( self, memory_db ):
        with get_db() as session:
            repo = PodcastRepository( session )
            first  = repo.create( user_id="u1", title="one" ).id
            second = repo.create( user_id="u1", title="two" ).id
            repo.create( user_id="u2", title="other" )

        with get_db() as session:
            ids = [ podcast.id for podcast in PodcastRepository( session ).list_for_user( "u1" ) ]

        assert ids == [ second, first ]

    def test_update_audio( self, memory_db ):
        with get_db() as session:
            podcast_id = PodcastRepository( session ).create( user_id="u1", title="t" ).id

        with get_db() as session:
            updated = PodcastRepository( session ).update_audio( podcast_id, "https://cdn/merged.mp3", 4096 )
            assert updated.audio_url == "https://cdn/merged.mp3"
            assert updated.file_size == 4096

        with get_db() as session:
            assert PodcastRepository( session ).update_audio( 999, "x", 1 ) is None

    def test_chunks_in_index_order_with_encoded_speaker_map( self, memory_db ):
        with get_db() as session:
            podcast_id = PodcastRepository( session ).create( user_id="u1", title="t" ).id
            chunks = PodcastAudioChunkRepository( session )
            chunks.create_chunk( podcast_id, 2, "c.mp3" )
            chunks.create_chunk( podcast_id, 0, "a.mp3", speaker_map={ "Ana": "primary" } )
            chunks.create_chunk( podcast_id, 1, "b.mp3", speaker_map='{"Bia": "secondary"}' )

        with get_db() as session:
            ordered = PodcastAudioChunkRepository( session ).get_for_podcast( podcast_id )

            assert [ chunk.audio_url for chunk in ordered ] == [ "a.mp3", "b.mp3", "c.mp3" ]
            assert json.loads( ordered[ 0 ].speaker_map ) == { "Ana": "primary" }
            assert ordered[ 1 ].speaker_map == '{"Bia": "secondary"}'
            assert ordered[ 2 ].speaker_map is None


class TestPodcastService:

    def test_create_and_get( self, memory_db ):
        service = PodcastService()
        created = service.create_podcast( "u1", title="Episode", author=None, meta={ "voiceAssignment": { "Ana": "primary" } } )

        fetched = service.get_podcast( created.id )
        assert fetched.title == "Episode"
        assert fetched.author is None
        assert fetched.meta == { "voiceAssignment": { "Ana": "primary" } }
        assert service.get_podcast( created.id + 100 ) is None

    def test_wire_names( self, memory_db ):
        """Views dump camelCase with meta published as metadata."""
        podcast = PodcastService().create_podcast( "u1", title="Episode", meta={ "a": 1 } )
        dumped  = podcast.model_dump( by_alias=True, mode="json" )

        assert dumped[ "userId" ] == "u1"
        assert dumped[ "coverImageUrl" ] == DEFAULT_COVER_IMAGE_URL
        assert dumped[ "metadata" ] == { "a": 1 }
        assert "meta" not in dumped

    @pytest.mark.parametrize( "fields", [ { "title": "" }, { "title": "   " }, { } ] )
    def test_title_required( self, memory_db, fields ):
        with pytest.raises( ValueError ):
            PodcastService().create_podcast( "u1", **fields )

    def test_unknown_field_rejected( self, memory_db ):
        with pytest.raises( ValueError ):
            PodcastService().create_podcast( "u1", title="t", user_id="someone-else" )

    def test_detail_sorts_chunks( self, memory_db ):
        service = PodcastService()
        podcast = service.create_podcast( "u1", title="t" )
        service.create_chunk( podcast.id, 1, "b.mp3", duration=4 )
        service.create_chunk( podcast.id, 0, "a.mp3", duration=3, speaker_map={ "Ana": "primary" } )

        detail = service.get_podcast_detail( podcast.id )

        assert [ chunk.chunk_index for chunk in detail.audio_chunks ] == [ 0, 1 ]
        assert detail.audio_chunk_urls == [ "a.mp3", "b.mp3" ]
        assert service.get_podcast_detail( podcast.id + 1 ) is None

    def test_create_chunk_validation( self, memory_db ):
        service = PodcastService()
        podcast = service.create_podcast( "u1", title="t" )

        with pytest.raises( ValueError ):
            service.create_chunk( podcast.id, -1, "a.mp3" )
        with pytest.raises( ValueError ):
            service.create_chunk( podcast.id + 1, 0, "a.mp3" )

    def test_update_audio_and_list( self, memory_db ):
        service = PodcastService()
        podcast = service.create_podcast( "u1", title="t", audio_url="chunk-0.mp3" )

        updated = service.update_podcast_audio( podcast.id, "merged.mp3", 2048 )

        assert updated.audio_url == "merged.mp3"
        assert [ item.audio_url for item in service.list_podcasts( "u1" ) ] == [ "merged.mp3" ]
        assert service.list_podcasts( "u2" ) == [ ]
        assert service.update_podcast_audio( podcast.id + 1, "x", 1 ) is None


class TestAccessRules:

    def test_owner_and_demo_content( self, memory_db ):
        service = PodcastService()
        mine    = service.create_podcast( "u1", title="mine" )
        demo    = service.create_podcast( DEMO_USER_ID, title="demo" )

        assert can_read( mine, "u1" )
        assert not can_read( mine, "u2" )
        assert not can_read( mine, None )
        assert can_read( demo, "u2" )
        assert can_read( demo, None )

        assert is_owner( mine, "u1" )
        assert not is_owner( demo, "u2" )
