#!/usr/bin/env python3
"""
Generation Status Store: the single-slot job table for script generation.

Design Pattern: Guarded single-entry table
- One job slot per process, keyed by job_id
- Compare-and-swap on in_progress under a threading.Lock
- Owner-based access control at the read boundary
- Writes carrying a stale job_id are dropped, so a cancelled run cannot
  overwrite the job that replaced it
"""

import asyncio
import logging
import threading
from datetime import datetime
from typing import Callable, Optional

from podcast_studio.errors import (
    JobConflictError,
    JobNotFoundError,
    JobNotReadyError,
    JobOwnershipError,
)
from .state import GenerationJob, JobSnapshot, PipelineStage, ScriptResult

logger = logging.getLogger( __name__ )

RESET_MESSAGE = "Job reset"

UPDATABLE_FIELDS = { "stage", "progress", "error_message" }


class GenerationStatusStore:
    """
    Single-entry, lock-guarded store for the current script generation job.

    Requires:
        - job_timeout_seconds > 0

    Ensures:
        - At most one job has in_progress = True
        - A rejected start() leaves the current job untouched
        - Reads by a requester other than the owner are rejected
        - All public methods are safe to call from any thread
    """

    def __init__(
        self,
        job_timeout_seconds : int = 600,
        clock               : Callable[ [], datetime ] = datetime.now,
        debug               : bool = False,
        verbose             : bool = False
    ):
        self.job_timeout_seconds = job_timeout_seconds
        self.clock               = clock
        self.debug               = debug
        self.verbose             = verbose

        self._lock = threading.Lock()
        self._job  : Optional[ GenerationJob ] = None
        self._task : Optional[ asyncio.Task ]  = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start( self, topic: str, owner_id: Optional[ str ] ) -> GenerationJob:
        """
        Claim the job slot for a new topic.

        Requires:
            - topic is a non-empty string

        Ensures:
            - Returns a new job in the INTERPRETING stage at 0% with a fresh job_id
            - A stale running job is cancelled and replaced

        Raises:
            - ValueError if topic is empty
            - JobConflictError if a non-stale job is running
        """
        if not topic or not topic.strip():
            raise ValueError( "Topic is required" )

        with self._lock:

            if self._job is not None and self._job.in_progress:
                if not self._is_stale_locked():
                    raise JobConflictError( f"A script generation job is already in progress (stage: {self._job.stage.value})" )

                logger.warning( f"Replacing stale job {self._job.job_id} started at {self._job.started_at}" )
                self._cancel_task_locked()

            self._job = GenerationJob(
                topic       = topic.strip(),
                owner_id    = owner_id,
                in_progress = True,
                stage       = PipelineStage.INTERPRETING,
                progress    = 0,
                started_at  = self.clock(),
            )
            self._task = None

            if self.debug: print( f"[GenerationStatusStore] Started job {self._job.job_id} for owner [{owner_id}]" )
            return self._copy_locked()

    def update( self, job_id: str, **fields ) -> bool:
        """
        Merge fields into the current job.

        Requires:
            - fields is a subset of stage, progress, error_message

        Ensures:
            - Returns False and changes nothing if job_id is not the current running job

        Raises:
            - ValueError for unknown field names
        """
        unknown = set( fields ) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError( f"Cannot update job fields: {sorted( unknown )}" )

        with self._lock:

            if not self._is_current_locked( job_id ):
                logger.warning( f"Ignoring update for job {job_id}, it is no longer current" )
                return False

            for name, value in fields.items():
                setattr( self._job, name, value )

            if self.debug and self.verbose: print( f"[GenerationStatusStore] {job_id} <- {fields}" )
            return True

    def complete( self, job_id: str, result: ScriptResult ) -> bool:
        """Terminal success: cache the result and release the slot."""
        with self._lock:

            if not self._is_current_locked( job_id ):
                logger.warning( f"Ignoring completion for job {job_id}, it is no longer current" )
                return False

            self._job.stage         = PipelineStage.COMPLETE
            self._job.progress      = 100
            self._job.in_progress   = False
            self._job.finished_at   = self.clock()
            self._job.error_message = None
            self._job.cached_result = result
            self._task              = None
            return True

    def fail( self, job_id: str, message: str ) -> bool:
        """Terminal failure: back to idle with the error message recorded."""
        with self._lock:

            if not self._is_current_locked( job_id ):
                logger.warning( f"Ignoring failure for job {job_id}, it is no longer current: {message}" )
                return False

            self._reset_locked( message )
            return True

    def attach_task( self, job_id: str, task: asyncio.Task ) -> bool:
        """Remember the background task running job_id so it can be cancelled."""
        with self._lock:

            if not self._is_current_locked( job_id ):
                return False

            self._task = task
            return True

    def force_reset( self, requester_id: Optional[ str ], force: bool = False ) -> JobSnapshot:
        """
        Reset the slot to idle, cancelling a running job.

        Requires:
            - A job has run at least once

        Ensures:
            - Anyone may reset a stale job
            - The owner may reset a finished job, or a running one with force=True
            - The attached task is cancelled and later writes from it are ignored

        Raises:
            - JobNotFoundError if no job has ever run
            - JobOwnershipError if the requester is not the owner and the job is not stale
            - JobConflictError if the owner resets a fresh running job without force
        """
        with self._lock:

            if self._job is None:
                raise JobNotFoundError( "No script generation job has been run" )

            stale = self._is_stale_locked()
            owner = requester_id is not None and requester_id == self._job.owner_id

            if not stale and not owner:
                raise JobOwnershipError( "Only the job owner can reset a job that has not timed out" )

            if owner and self._job.in_progress and not stale and not force:
                raise JobConflictError( "Job is still running, pass force=true to cancel it" )

            logger.warning( f"Resetting job {self._job.job_id} (stage: {self._job.stage.value}, stale: {stale}) at the request of [{requester_id}]" )

            self._cancel_task_locked()
            self._reset_locked( RESET_MESSAGE )
            return self._job.to_snapshot( self.clock() )

    # =========================================================================
    # Reads
    # =========================================================================

    def read( self, requester_id: Optional[ str ] = None ) -> JobSnapshot:
        """
        Snapshot of the current job.

        Ensures:
            - Returns an idle snapshot when no job has ever run
            - elapsed_seconds = now - started_at for a running job

        Raises:
            - JobOwnershipError if requester_id differs from the job owner
        """
        with self._lock:

            if self._job is None:
                return JobSnapshot()

            self._check_owner_locked( requester_id )
            return self._job.to_snapshot( self.clock() )

    def result( self, requester_id: Optional[ str ] ) -> ScriptResult:
        """
        The cached script of the last completed job.

        Raises:
            - JobNotFoundError if no job has run, or the last job failed or was reset
            - JobOwnershipError on owner mismatch, whatever the stage
            - JobNotReadyError while the job is running
        """
        with self._lock:

            if self._job is None:
                raise JobNotFoundError( "No script generation job has been run" )

            self._check_owner_locked( requester_id )

            if self._job.in_progress:
                raise JobNotReadyError( f"Script generation in progress (stage: {self._job.stage.value}, {self._job.progress}%)" )

            if self._job.stage == PipelineStage.COMPLETE and self._job.cached_result is not None:
                return self._job.cached_result

            raise JobNotFoundError( self._job.error_message or "No script result available" )

    def is_stale( self ) -> bool:
        """True when a running job has exceeded job_timeout_seconds."""
        with self._lock:
            return self._is_stale_locked()

    def current_job_id( self ) -> Optional[ str ]:
        with self._lock:
            return self._job.job_id if self._job is not None else None

    # =========================================================================
    # Private helpers, caller holds self._lock
    # =========================================================================

    def _is_current_locked( self, job_id: str ) -> bool:
        return self._job is not None and self._job.job_id == job_id and self._job.in_progress

    def _is_stale_locked( self ) -> bool:
        if self._job is None or not self._job.in_progress:
            return False
        return self._job.elapsed_seconds( self.clock() ) > self.job_timeout_seconds

    def _check_owner_locked( self, requester_id: Optional[ str ] ) -> None:
        if requester_id is None:
            return
        if self._job.owner_id is not None and requester_id != self._job.owner_id:
            raise JobOwnershipError( "You do not have permission to access this job" )

    def _reset_locked( self, message: str ) -> None:
        self._job.in_progress   = False
        self._job.stage         = PipelineStage.IDLE
        self._job.progress      = 0
        self._job.error_message = message
        self._job.finished_at   = self.clock()
        self._job.cached_result = None
        self._task              = None

    def _cancel_task_locked( self ) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def _copy_locked( self ) -> GenerationJob:
        job = self._job
        return GenerationJob(
            topic         = job.topic,
            owner_id      = job.owner_id,
            job_id        = job.job_id,
            in_progress   = job.in_progress,
            stage         = job.stage,
            progress      = job.progress,
            started_at    = job.started_at,
            finished_at   = job.finished_at,
            error_message = job.error_message,
            cached_result = job.cached_result,
        )
