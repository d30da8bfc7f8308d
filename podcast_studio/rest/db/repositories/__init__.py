"""
Repository layer for podcast persistence.

Usage:
    from podcast_studio.rest.db.repositories import PodcastRepository

    with get_db() as session:
        repo = PodcastRepository( session )
        podcast = repo.get_by_id( podcast_id )
"""

from podcast_studio.rest.db.repositories.base import BaseRepository
from podcast_studio.rest.db.repositories.podcast_repository import PodcastRepository, PodcastAudioChunkRepository

__all__ = [
    "BaseRepository",
    "PodcastRepository",
    "PodcastAudioChunkRepository",
]
