"""
Base repository pattern implementation with common CRUD operations.

Provides generic repository class that can be extended for specific models.
"""

from typing import TypeVar, Generic, Optional, Type, Any
from sqlalchemy.orm import Session
from podcast_studio.rest.podcast_models import Base

ModelType = TypeVar( "ModelType", bound=Base )


class BaseRepository(Generic[ModelType]):
    """
    Base repository providing common CRUD operations for any SQLAlchemy model.

    Requires:
        - model: SQLAlchemy model class (e.g., Podcast, PodcastAudioChunk)
        - session: Active SQLAlchemy session

    Ensures:
        - Common CRUD methods available to all repositories
        - No direct session management (caller handles commit/rollback)
    """

    def __init__( self, model: Type[ModelType], session: Session ):
        self.model = model
        self.session = session

    def get_by_id( self, id: Any ) -> Optional[ModelType]:
        """
        Get entity by primary key.

        Ensures:
            - Returns None if not found, no exception
        """
        return self.session.query( self.model ).filter( self.model.id == id ).first()

    def create( self, **kwargs ) -> ModelType:
        """
        Create new entity.

        Ensures:
            - Entity added to session
            - flush() called to get auto-generated ID
            - Commit NOT called (caller must commit)

        Raises:
            SQLAlchemy exceptions for validation or constraint violations
        """
        entity = self.model( **kwargs )
        self.session.add( entity )
        self.session.flush()  # Get auto-generated ID without committing
        return entity

    def update( self, id: Any, **kwargs ) -> Optional[ModelType]:
        """
        Update entity by ID.

        Ensures:
            - Updates specified attributes only
            - flush() called to propagate changes
            - Returns None if entity not found
        """
        entity = self.get_by_id( id )
        if entity:
            for key, value in kwargs.items():
                if hasattr( entity, key ):
                    setattr( entity, key, value )
            self.session.flush()
        return entity

    def count( self ) -> int:
        return self.session.query( self.model ).count()

    def exists( self, id: Any ) -> bool:
        return self.session.query(
            self.session.query( self.model ).filter( self.model.id == id ).exists()
        ).scalar()
