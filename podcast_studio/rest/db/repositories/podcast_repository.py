"""
Podcast repositories for CRUD operations on Podcast and PodcastAudioChunk.

Adds owner-scoped listing and ordered chunk retrieval to the base repository.
"""

import json
from typing import Optional, List

from sqlalchemy.orm import Session
from sqlalchemy import desc

from podcast_studio.rest.podcast_models import Podcast, PodcastAudioChunk
from podcast_studio.rest.db.repositories.base import BaseRepository


class PodcastRepository( BaseRepository[Podcast] ):
    """
    Repository for Podcast model.

    Extends BaseRepository with:
        - Owner-scoped listing, newest first
        - Audio reference updates after a merge
    """

    def __init__( self, session: Session ):
        """
        Requires:
            - session: Active SQLAlchemy session (from get_db())

        Example:
            with get_db() as session:
                podcast_repo = PodcastRepository( session )
                podcast = podcast_repo.get_by_id( 1 )
        """
        super().__init__( Podcast, session )

    def list_for_user( self, user_id: str, limit: int = 100, offset: int = 0 ) -> List[Podcast]:
        """
        Get a user's podcasts, newest first.

        Ensures:
            - Only podcasts whose user_id matches are returned
            - Ties on created_at are broken by descending id
        """
        return (
            self.session.query( Podcast )
            .filter( Podcast.user_id == user_id )
            .order_by( desc( Podcast.created_at ), desc( Podcast.id ) )
            .limit( limit )
            .offset( offset )
            .all()
        )

    def update_audio( self, podcast_id: int, audio_url: str, file_size: int ) -> Optional[Podcast]:
        """
        Point a podcast at its merged audio.

        Returns:
            Updated Podcast, or None if not found
        """
        return self.update( podcast_id, audio_url=audio_url, file_size=file_size )


class PodcastAudioChunkRepository( BaseRepository[PodcastAudioChunk] ):
    """Repository for PodcastAudioChunk model."""

    def __init__( self, session: Session ):
        super().__init__( PodcastAudioChunk, session )

    def create_chunk(
        self,
        podcast_id: int,
        chunk_index: int,
        audio_url: str,
        duration: int = 0,
        file_size: int = 0,
        text: Optional[str] = None,
        speaker_map: Optional[dict] = None
    ) -> PodcastAudioChunk:
        """
        Create a chunk record.

        Ensures:
            - speaker_map is stored JSON-encoded
        """
        encoded_map = speaker_map if isinstance( speaker_map, str ) or speaker_map is None else json.dumps( speaker_map )
        return self.create(
            podcast_id  = podcast_id,
            chunk_index = chunk_index,
            audio_url   = audio_url,
            duration    = duration,
            file_size   = file_size,
            text        = text,
            speaker_map = encoded_map
        )

    def get_for_podcast( self, podcast_id: int ) -> List[PodcastAudioChunk]:
        """Chunks of a podcast in chunk_index order."""
        return (
            self.session.query( PodcastAudioChunk )
            .filter( PodcastAudioChunk.podcast_id == podcast_id )
            .order_by( PodcastAudioChunk.chunk_index, PodcastAudioChunk.id )
            .all()
        )
