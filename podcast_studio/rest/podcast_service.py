"""
Podcast Record Service.

Wraps the podcast repositories for the routers and the audio assembler.
Every call opens its own session through get_db(), so results are returned
as detached pydantic views rather than ORM objects.
"""

from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from podcast_studio.rest.db.database import get_db
from podcast_studio.rest.db.repositories import PodcastRepository, PodcastAudioChunkRepository
from podcast_studio.rest.podcast_models import Podcast, PodcastAudioChunk, DEFAULT_COVER_IMAGE_URL

DEMO_USER_ID = "demo-user-1"


# =============================================================================
# Views
# =============================================================================

class RecordView( BaseModel ):
    """camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict( alias_generator=to_camel, populate_by_name=True )


class PodcastView( RecordView ):
    id              : int
    user_id         : str
    title           : str
    author          : Optional[str] = None
    description     : Optional[str] = None
    category        : Optional[str] = None
    language        : str = "en"
    audio_url       : Optional[str] = None
    cover_image_url : str = DEFAULT_COVER_IMAGE_URL
    duration        : int = 0
    chunk_count     : int = 0
    file_size       : int = 0
    conversation    : Optional[str] = None
    meta            : Optional[dict] = Field( default=None, serialization_alias="metadata" )
    created_at      : Optional[datetime] = None


class ChunkView( RecordView ):
    id          : int
    podcast_id  : int
    chunk_index : int
    audio_url   : str
    duration    : int = 0
    file_size   : int = 0
    text        : Optional[str] = None
    speaker_map : Optional[str] = None
    created_at  : Optional[datetime] = None


class PodcastDetailView( PodcastView ):
    audio_chunks     : List[ChunkView] = Field( default_factory=list )
    audio_chunk_urls : List[str] = Field( default_factory=list )


def _podcast_view( podcast: Podcast ) -> PodcastView:
    return PodcastView(
        id              = podcast.id,
        user_id         = podcast.user_id,
        title           = podcast.title,
        author          = podcast.author,
        description     = podcast.description,
        category        = podcast.category,
        language        = podcast.language or "en",
        audio_url       = podcast.audio_url,
        cover_image_url = podcast.cover_image_url or DEFAULT_COVER_IMAGE_URL,
        duration        = podcast.duration or 0,
        chunk_count     = podcast.chunk_count or 0,
        file_size       = podcast.file_size or 0,
        conversation    = podcast.conversation,
        meta            = podcast.meta,
        created_at      = podcast.created_at,
    )


def _chunk_view( chunk: PodcastAudioChunk ) -> ChunkView:
    return ChunkView(
        id          = chunk.id,
        podcast_id  = chunk.podcast_id,
        chunk_index = chunk.chunk_index,
        audio_url   = chunk.audio_url,
        duration    = chunk.duration or 0,
        file_size   = chunk.file_size or 0,
        text        = chunk.text,
        speaker_map = chunk.speaker_map,
        created_at  = chunk.created_at,
    )


def can_read( podcast: PodcastView, user_id: Optional[str] ) -> bool:
    """Owners read their podcasts, everyone reads demo content."""
    return podcast.user_id == DEMO_USER_ID or ( user_id is not None and podcast.user_id == user_id )


def is_owner( podcast: PodcastView, user_id: Optional[str] ) -> bool:
    return user_id is not None and podcast.user_id == user_id


# =============================================================================
# Service
# =============================================================================

PODCAST_FIELDS = {
    "title", "author", "description", "category", "language", "audio_url",
    "cover_image_url", "duration", "chunk_count", "file_size", "conversation", "meta",
}


class PodcastService:
    """
    CRUD over podcasts and their audio chunks.

    Requires:
        - The database engine is initialized (init_engine) or the default URL is usable

    Ensures:
        - Every method runs in its own transaction
        - Returned objects are pydantic views, safe to use after the session closes
    """

    def __init__( self, debug: bool = False, verbose: bool = False ):
        self.debug   = debug
        self.verbose = verbose

    def create_podcast( self, user_id: str, **fields ) -> PodcastView:
        """
        Create a podcast owned by user_id.

        Requires:
            - fields["title"] is non-empty

        Raises:
            - ValueError for a missing title or an unknown field
        """
        unknown = set( fields ) - PODCAST_FIELDS
        if unknown:
            raise ValueError( f"Unknown podcast fields: {sorted( unknown )}" )
        if not str( fields.get( "title" ) or "" ).strip():
            raise ValueError( "Podcast title is required" )

        # Let column defaults apply for omitted values
        values = { key: value for key, value in fields.items() if value is not None }

        with get_db() as session:
            podcast = PodcastRepository( session ).create( user_id=user_id, **values )
            view    = _podcast_view( podcast )

        if self.debug: print( f"[PodcastService] Created podcast {view.id} for [{user_id}]: {view.title}" )
        return view

    def get_podcast( self, podcast_id: int ) -> Optional[PodcastView]:
        with get_db() as session:
            podcast = PodcastRepository( session ).get_by_id( podcast_id )
            return _podcast_view( podcast ) if podcast else None

    def get_podcast_detail( self, podcast_id: int ) -> Optional[PodcastDetailView]:
        """
        Podcast plus its chunks sorted by index.

        Ensures:
            - audio_chunk_urls lists chunk URLs in the same order
        """
        with get_db() as session:
            podcast = PodcastRepository( session ).get_by_id( podcast_id )
            if podcast is None:
                return None
            chunks = [ _chunk_view( chunk ) for chunk in PodcastAudioChunkRepository( session ).get_for_podcast( podcast_id ) ]
            view   = _podcast_view( podcast )

        return PodcastDetailView(
            **view.model_dump(),
            audio_chunks     = chunks,
            audio_chunk_urls = [ chunk.audio_url for chunk in chunks ],
        )

    def list_podcasts( self, user_id: str ) -> List[PodcastView]:
        with get_db() as session:
            return [ _podcast_view( podcast ) for podcast in PodcastRepository( session ).list_for_user( user_id ) ]

    def update_podcast_audio( self, podcast_id: int, audio_url: str, file_size: int ) -> Optional[PodcastView]:
        """
        Record the merged audio of a podcast.

        Returns:
            Updated view, or None if the podcast does not exist
        """
        with get_db() as session:
            podcast = PodcastRepository( session ).update_audio( podcast_id, audio_url, file_size )
            view    = _podcast_view( podcast ) if podcast else None

        if self.debug: print( f"[PodcastService] Podcast {podcast_id} audio -> {audio_url} ({file_size} bytes)" )
        return view

    def create_chunk(
        self,
        podcast_id  : int,
        chunk_index : int,
        audio_url   : str,
        duration    : int = 0,
        file_size   : int = 0,
        text        : Optional[str] = None,
        speaker_map = None
    ) -> ChunkView:
        """
        Create a chunk record.

        Raises:
            - ValueError if the podcast does not exist or chunk_index is negative
        """
        if chunk_index < 0:
            raise ValueError( "chunk_index must be non-negative" )

        with get_db() as session:
            if not PodcastRepository( session ).exists( podcast_id ):
                raise ValueError( f"Podcast {podcast_id} not found" )

            chunk = PodcastAudioChunkRepository( session ).create_chunk(
                podcast_id  = podcast_id,
                chunk_index = chunk_index,
                audio_url   = audio_url,
                duration    = duration,
                file_size   = file_size,
                text        = text,
                speaker_map = speaker_map,
            )
            return _chunk_view( chunk )

    def get_chunks( self, podcast_id: int ) -> List[ChunkView]:
        with get_db() as session:
            return [ _chunk_view( chunk ) for chunk in PodcastAudioChunkRepository( session ).get_for_podcast( podcast_id ) ]
