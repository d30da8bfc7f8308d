"""
SQLAlchemy ORM models for podcasts and their generated audio chunks.

Uses SQLAlchemy 2.0 declarative syntax. Portable column types (JSON, Text)
so the same models run on sqlite in development and PostgreSQL in production.
"""

from sqlalchemy import (
    String,
    Integer,
    DateTime,
    ForeignKey,
    Text,
    JSON,
    Index,
    func
)
from sqlalchemy.orm import DeclarativeBase, relationship, Mapped, mapped_column
from datetime import datetime
from typing import Optional, List

DEFAULT_COVER_IMAGE_URL = "/static/images/default_thumb_podcast.png"


class Base( DeclarativeBase ):
    """Base class for all ORM models."""
    pass


class Podcast( Base ):
    """
    A produced podcast.

    Requires:
        - user_id: Owner id (the JWT subject)
        - title: Non-empty title

    Ensures:
        - id is an auto-incremented integer
        - language defaults to "en", cover_image_url to the default thumbnail
        - The "metadata" column is exposed as the meta attribute
        - Deleting a podcast deletes its chunks
    """
    __tablename__ = "podcasts"

    # Primary Key
    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True
    )

    # Ownership
    user_id: Mapped[str] = mapped_column(
        String( 255 ),
        nullable=False,
        index=True
    )

    # Descriptive fields
    title: Mapped[str] = mapped_column(
        String( 500 ),
        nullable=False
    )
    author: Mapped[Optional[str]] = mapped_column(
        String( 255 ),
        nullable=True
    )
    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True
    )
    category: Mapped[Optional[str]] = mapped_column(
        String( 100 ),
        nullable=True
    )
    language: Mapped[str] = mapped_column(
        String( 20 ),
        default="en",
        server_default="en"
    )

    # Audio
    audio_url: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True
    )
    cover_image_url: Mapped[str] = mapped_column(
        Text,
        default=DEFAULT_COVER_IMAGE_URL
    )
    duration: Mapped[int] = mapped_column(
        Integer,
        default=0,
        server_default="0"
    )
    chunk_count: Mapped[int] = mapped_column(
        Integer,
        default=0,
        server_default="0"
    )
    file_size: Mapped[int] = mapped_column(
        Integer,
        default=0,
        server_default="0"
    )

    # Source conversation and free-form metadata
    conversation: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True
    )
    meta: Mapped[Optional[dict]] = mapped_column(
        "metadata",
        JSON,
        nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime( timezone=True ),
        server_default=func.now()
    )

    # Relationships
    audio_chunks: Mapped[List["PodcastAudioChunk"]] = relationship(
        back_populates="podcast",
        cascade="all, delete-orphan",
        order_by="PodcastAudioChunk.chunk_index"
    )

    def __repr__( self ) -> str:
        return f"<Podcast(id={self.id}, title='{self.title}', user_id='{self.user_id}')>"


class PodcastAudioChunk( Base ):
    """
    One generated audio chunk of a podcast.

    Requires:
        - podcast_id: Existing podcast
        - chunk_index: 0-based position in the podcast

    Ensures:
        - speaker_map holds the JSON-encoded voice assignment
    """
    __tablename__ = "podcast_audio_chunks"

    # Primary Key
    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True
    )

    podcast_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey( "podcasts.id", ondelete="CASCADE" ),
        nullable=False
    )
    chunk_index: Mapped[int] = mapped_column(
        Integer,
        nullable=False
    )

    audio_url: Mapped[str] = mapped_column(
        Text,
        nullable=False
    )
    duration: Mapped[int] = mapped_column(
        Integer,
        default=0,
        server_default="0"
    )
    file_size: Mapped[int] = mapped_column(
        Integer,
        default=0,
        server_default="0"
    )
    text: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True
    )
    speaker_map: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime( timezone=True ),
        server_default=func.now()
    )

    # Relationships
    podcast: Mapped["Podcast"] = relationship( back_populates="audio_chunks" )

    __table_args__ = (
        Index( "idx_podcast_audio_chunks_podcast_index", "podcast_id", "chunk_index" ),
    )

    def __repr__( self ) -> str:
        return f"<PodcastAudioChunk(podcast_id={self.podcast_id}, chunk_index={self.chunk_index})>"
