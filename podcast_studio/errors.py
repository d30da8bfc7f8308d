#!/usr/bin/env python3
"""
Exception taxonomy for Podcast Studio.

Agents and services raise these; the REST routers translate them into
HTTP status codes at the boundary (see rest/routers/*).
"""

from typing import Optional


class PodcastStudioError( Exception ):
    """Base class for every error raised by Podcast Studio."""
    pass


# =============================================================================
# Script generation job slot
# =============================================================================

class JobConflictError( PodcastStudioError ):
    """A generation job is already running and is not stale."""
    pass


class JobNotFoundError( PodcastStudioError ):
    """No job has run yet, or the last job failed without a result."""
    pass


class JobNotReadyError( PodcastStudioError ):
    """The job is still running."""
    pass


class JobOwnershipError( PodcastStudioError ):
    """The requester does not own the current job."""
    pass


class ScriptPipelineError( PodcastStudioError ):
    """
    A pipeline stage failed.

    Attributes:
        stage: Value of the PipelineStage active when the failure happened
    """

    def __init__( self, stage: str, message: str ) -> None:
        super().__init__( message )
        self.stage   = stage
        self.message = message

    def __str__( self ) -> str:
        return f"[{self.stage}] {self.message}"


class SearchError( PodcastStudioError ):
    """The web-search collaborator could not return results."""
    pass


# =============================================================================
# Audio
# =============================================================================

class TTSError( PodcastStudioError ):
    """
    The text-to-speech collaborator failed.

    Attributes:
        status_code: HTTP status the router should answer with
    """

    def __init__( self, status_code: int, message: str ) -> None:
        super().__init__( message )
        self.status_code = status_code
        self.message     = message


class TTSInputTooLongError( TTSError ):
    """Input text exceeds what the TTS service accepts."""

    def __init__( self, message: str, length: Optional[int] = None ) -> None:
        super().__init__( 413, message )
        self.length = length


class AudioAssemblyError( PodcastStudioError ):
    """Audio segments could not be assembled into a podcast."""
    pass


class StorageError( PodcastStudioError ):
    """Object storage rejected an upload or could not be reached."""
    pass
