#!/usr/bin/env python3
"""
State schemas for the Script Pipeline agent.

GenerationJob is the mutable in-memory record the status store guards.
JobSnapshot and ScriptResult are the immutable Pydantic views handed to
callers and serialized by the REST layer.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PipelineStage( Enum ):
    """
    Stages of a script generation job.

    IDLE is both the initial state and the state a failed or reset job returns to.
    """
    IDLE         = "idle"
    INTERPRETING = "interpreting"
    RESEARCHING  = "researching"
    STRATEGIZING = "strategizing"
    WRITING      = "writing"
    EDITING      = "editing"
    COMPLETE     = "complete"


# Progress published when each stage starts and ends
STAGE_PROGRESS = {
    PipelineStage.INTERPRETING : ( 10, 20 ),
    PipelineStage.RESEARCHING  : ( 25, 40 ),
    PipelineStage.STRATEGIZING : ( 45, 60 ),
    PipelineStage.WRITING      : ( 65, 80 ),
    PipelineStage.EDITING      : ( 85, 95 ),
}
SEARCH_DONE_PROGRESS = 30
METADATA_PROGRESS    = 97


# =============================================================================
# Pydantic views
# =============================================================================

class CamelModel( BaseModel ):
    """Base model that serializes to camelCase on the wire."""

    model_config = ConfigDict( alias_generator=to_camel, populate_by_name=True )


class ScriptResult( CamelModel ):
    """Final output of a completed pipeline run."""

    script      : str = Field( description="Cleaned dialogue, one 'Apresentador N: speech' line per turn" )
    title       : str = Field( description="Episode title" )
    description : str = Field( description="Episode description" )
    topic       : str = Field( default="", description="Topic the script was generated from" )


class JobSnapshot( CamelModel ):
    """Point-in-time copy of the job slot, safe to hand across threads."""

    job_id          : Optional[ str ] = None
    in_progress     : bool            = False
    stage           : str             = PipelineStage.IDLE.value
    progress        : int             = 0
    elapsed_seconds : float           = 0.0
    topic           : str             = ""
    owner_id        : Optional[ str ] = Field( default=None, exclude=True )
    message         : Optional[ str ] = None


# =============================================================================
# Mutable job record
# =============================================================================

@dataclass
class GenerationJob:
    """
    The single process-wide generation job.

    Only the status store mutates instances of this class.
    """

    topic         : str
    owner_id      : Optional[ str ]          = None
    job_id        : str                      = field( default_factory=lambda: uuid.uuid4().hex )
    in_progress   : bool                     = False
    stage         : PipelineStage            = PipelineStage.IDLE
    progress      : int                      = 0
    started_at    : Optional[ datetime ]     = None
    finished_at   : Optional[ datetime ]     = None
    error_message : Optional[ str ]          = None
    cached_result : Optional[ ScriptResult ] = None

    def elapsed_seconds( self, now: Optional[ datetime ] = None ) -> float:
        """Seconds since start, frozen at finished_at once the job ends."""
        if self.started_at is None:
            return 0.0
        end = self.finished_at or now or datetime.now()
        return round( ( end - self.started_at ).total_seconds(), 3 )

    def to_snapshot( self, now: Optional[ datetime ] = None ) -> JobSnapshot:
        return JobSnapshot(
            job_id          = self.job_id,
            in_progress     = self.in_progress,
            stage           = self.stage.value,
            progress        = self.progress,
            elapsed_seconds = self.elapsed_seconds( now ),
            topic           = self.topic,
            owner_id        = self.owner_id,
            message         = self.error_message,
        )
