#!/usr/bin/env python3
"""
Script Pipeline Agent: turns a free-text topic into a two-host dialogue script.

Design Pattern: Sequential stage pipeline with published progress
- interpret -> research -> strategize -> write -> edit -> metadata
- Each stage's output feeds the next, no branching
- Progress is written to the GenerationStatusStore under the job's id
- Launched as a background asyncio task, bounded by a timeout
- The only in-pipeline retry is the strategy stage falling back from
  Perplexity to the primary provider
"""

import asyncio
import logging
from typing import Optional

from podcast_studio.errors import ScriptPipelineError, SearchError
from .config import ScriptPipelineConfig
from .state import (
    PipelineStage,
    ScriptResult,
    JobSnapshot,
    STAGE_PROGRESS,
    SEARCH_DONE_PROGRESS,
    METADATA_PROGRESS,
)
from .status_store import GenerationStatusStore
from .api_client import ChatClient, create_chat_client, create_strategy_client
from .search_client import SerperSearchClient, format_search_results
from .mock_clients import MockChatClient, MockSearchClient
from .script_cleaner import format_script_result, clean_script_for_tts, extract_metadata
from .prompts import (
    NO_SEARCH_RESULTS_TEXT,
    get_interpreter_prompt,
    get_researcher_prompt,
    get_strategist_prompt,
    get_writer_prompt,
    get_editor_prompt,
    get_metadata_prompt,
)

logger = logging.getLogger( __name__ )


class ScriptPipelineAgent:
    """
    Runs the script generation stages for one job at a time.

    Requires:
        - store is the process-wide GenerationStatusStore
        - API keys are available unless config.dry_run is True or clients are injected

    Ensures:
        - Progress checkpoints 10/20, 25/30/40, 45/60, 65/80, 85/95, 97, 100 are published
        - A remote-call failure resets the job to idle with the error message
          and raises ScriptPipelineError carrying the stage
        - A search failure degrades to NO_SEARCH_RESULTS_TEXT instead of aborting
    """

    def __init__(
        self,
        store           : GenerationStatusStore,
        config          : Optional[ ScriptPipelineConfig ] = None,
        chat_client     : Optional[ ChatClient ] = None,
        strategy_client : Optional[ ChatClient ] = None,
        search_client   = None,
        debug           : bool = False,
        verbose         : bool = False
    ):
        self.store   = store
        self.config  = config or ScriptPipelineConfig()
        self.debug   = debug
        self.verbose = verbose

        # Clients are created lazily so a missing key only fails the stage that needs it
        self._chat_client     = chat_client
        self._strategy_client = strategy_client
        self._search_client   = search_client

        self._stage = PipelineStage.IDLE

        if self.debug:
            mode = "dry run" if self.config.dry_run else self.config.provider
            print( f"[ScriptPipelineAgent] Initialized ({mode}, language: {self.config.output_language})" )

    @property
    def chat_client( self ) -> ChatClient:
        """Lazy initialization of the primary chat client."""
        if self._chat_client is None:
            if self.config.dry_run:
                self._chat_client = MockChatClient( debug=self.debug, verbose=self.verbose )
            else:
                self._chat_client = create_chat_client( self.config, debug=self.debug, verbose=self.verbose )
        return self._chat_client

    @property
    def strategy_client( self ) -> ChatClient:
        """Lazy initialization of the Perplexity strategy client."""
        if self._strategy_client is None:
            if self.config.dry_run:
                self._strategy_client = self.chat_client
            else:
                self._strategy_client = create_strategy_client( self.config, debug=self.debug, verbose=self.verbose )
        return self._strategy_client

    @property
    def search_client( self ):
        """Lazy initialization of the web search client."""
        if self._search_client is None:
            if self.config.dry_run:
                self._search_client = MockSearchClient( debug=self.debug, verbose=self.verbose )
            else:
                self._search_client = SerperSearchClient( debug=self.debug, verbose=self.verbose )
        return self._search_client

    # =========================================================================
    # Job entry points
    # =========================================================================

    def start( self, topic: str, owner_id: Optional[ str ] ) -> JobSnapshot:
        """
        Claim the job slot and launch the pipeline in the background.

        Requires:
            - Called from inside a running event loop

        Ensures:
            - Returns immediately with the new job's snapshot
            - The background task is attached to the store for cancellation

        Raises:
            - ValueError for an empty topic
            - JobConflictError if a job is already running
        """
        job  = self.store.start( topic, owner_id )
        task = asyncio.create_task( self.run_with_timeout( job.job_id, job.topic ) )
        self.store.attach_task( job.job_id, task )

        logger.info( f"Script generation job {job.job_id} started for owner [{owner_id}]: {job.topic}" )
        return self.store.read( owner_id )

    async def run_with_timeout( self, job_id: str, topic: str ) -> Optional[ ScriptResult ]:
        """
        Background wrapper: run() bounded by job_timeout_seconds.

        Ensures:
            - A timeout fails the job with "Script generation timed out after N seconds"
            - Pipeline errors are logged, never raised into the event loop
        """
        timeout = self.config.job_timeout_seconds
        try:
            return await asyncio.wait_for( self.run( job_id, topic ), timeout=timeout )

        except asyncio.TimeoutError:
            message = f"Script generation timed out after {timeout} seconds"
            logger.error( f"Job {job_id} {message} (stage: {self._stage.value})" )
            self.store.fail( job_id, message )

        except ScriptPipelineError as e:
            logger.error( f"Job {job_id} failed: {e}" )

        return None

    async def run( self, job_id: str, topic: str ) -> ScriptResult:
        """
        Execute every stage for job_id.

        Returns:
            ScriptResult: Cleaned script with title, description and topic

        Raises:
            - ScriptPipelineError if any remote call fails
        """
        language = self.config.output_language
        self._stage = PipelineStage.IDLE

        try:
            # Stage 1: interpret
            self._begin( job_id, PipelineStage.INTERPRETING )
            system, user   = get_interpreter_prompt( topic, language )
            interpretation = await self._complete( system, user, self.config.interpret_settings, "interpret" )
            self._end( job_id, PipelineStage.INTERPRETING )

            # Stage 2: research
            self._begin( job_id, PipelineStage.RESEARCHING )
            search_text = await self._search( job_id, topic )
            self.store.update( job_id, progress=SEARCH_DONE_PROGRESS )
            system, user = get_researcher_prompt( topic, interpretation, search_text, language )
            research     = await self._complete( system, user, self.config.research_settings, "research" )
            self._end( job_id, PipelineStage.RESEARCHING )

            # Stage 3: strategize
            self._begin( job_id, PipelineStage.STRATEGIZING )
            system, user = get_strategist_prompt( topic, interpretation, research, language )
            strategy     = await self._strategize( job_id, system, user )
            self._end( job_id, PipelineStage.STRATEGIZING )

            # Stage 4: write
            self._begin( job_id, PipelineStage.WRITING )
            system, user = get_writer_prompt( topic, interpretation, research, strategy, language )
            draft        = await self._complete( system, user, self.config.writing_settings, "writing" )
            self._end( job_id, PipelineStage.WRITING )

            # Stage 5: edit
            self._begin( job_id, PipelineStage.EDITING )
            system, user = get_editor_prompt( draft, language )
            edited       = await self._complete( system, user, self.config.editing_settings, "editing" )
            final_script = format_script_result( edited )
            self._end( job_id, PipelineStage.EDITING )

            # Metadata, stage stays at editing
            self.store.update( job_id, progress=METADATA_PROGRESS )
            system, user = get_metadata_prompt( final_script, language, self.config.metadata_excerpt_len )
            metadata_raw = await self._complete( system, user, self.config.metadata_settings, "metadata", json_output=True )
            metadata     = extract_metadata( metadata_raw, final_script, topic )

            if metadata.tier != "json":
                logger.warning( f"Job {job_id} metadata fell back to the {metadata.tier} tier" )

            result = ScriptResult(
                script      = clean_script_for_tts( final_script ),
                title       = metadata.title,
                description = metadata.description,
                topic       = topic,
            )

        except asyncio.CancelledError:
            logger.warning( f"Job {job_id} cancelled during {self._stage.value}" )
            raise

        except Exception as e:
            message = str( e ) or type( e ).__name__
            logger.error( f"Script generation failed at stage [{self._stage.value}] for job {job_id}: {message}" )
            self.store.fail( job_id, message )
            raise ScriptPipelineError( self._stage.value, message ) from e

        self._stage = PipelineStage.COMPLETE
        self.store.complete( job_id, result )
        logger.info( f"Job {job_id} complete: \"{result.title}\" ({len( result.script )} chars)" )
        if self.debug: print( f"[ScriptPipelineAgent] {self.chat_client.get_cost_summary()}" )

        return result

    def get_state( self ) -> dict:
        """
        Query the agent for external monitoring.

        Returns:
            dict: Current stage and usage summary
        """
        return {
            "stage"    : self._stage.value,
            "provider" : "mock" if self.config.dry_run else self.config.provider,
            "usage"    : self._chat_client.get_cost_summary() if self._chat_client else None,
        }

    # =========================================================================
    # Stage helpers
    # =========================================================================

    def _begin( self, job_id: str, stage: PipelineStage ) -> None:
        self._stage = stage
        self.store.update( job_id, stage=stage, progress=STAGE_PROGRESS[ stage ][ 0 ] )
        if self.debug: print( f"[ScriptPipelineAgent] {job_id[ :8 ]} -> {stage.value}" )

    def _end( self, job_id: str, stage: PipelineStage ) -> None:
        self.store.update( job_id, progress=STAGE_PROGRESS[ stage ][ 1 ] )

    async def _complete( self, system: str, user: str, settings, call_type: str, json_output: bool = False ) -> str:
        response = await self.chat_client.complete(
            system_prompt = system,
            user_prompt   = user,
            temperature   = settings.temperature,
            max_tokens    = settings.max_tokens,
            json_output   = json_output,
            call_type     = call_type,
        )
        return response.content

    async def _search( self, job_id: str, topic: str ) -> str:
        """Web search rendered as text, or the fixed no-results text on failure."""
        try:
            response = await self.search_client.search( topic, self.config.search_max_results )

        except SearchError as e:
            logger.warning( f"Web search failed for job {job_id}, continuing without results: {e}" )
            return NO_SEARCH_RESULTS_TEXT

        formatted = format_search_results( response )
        return formatted if formatted else NO_SEARCH_RESULTS_TEXT

    async def _strategize( self, job_id: str, system: str, user: str ) -> str:
        """
        Strategy stage on Perplexity, retried once on the primary provider.

        Ensures:
            - The primary provider is called exactly once after a strategy failure
        """
        settings = self.config.strategy_settings
        try:
            response = await self.strategy_client.complete(
                system_prompt = system,
                user_prompt   = user,
                temperature   = settings.temperature,
                max_tokens    = settings.max_tokens,
                call_type     = "strategy",
            )
            return response.content

        except asyncio.CancelledError:
            raise

        except Exception as e:
            logger.warning( f"Strategy provider failed for job {job_id} ({e}), falling back to {self.config.provider}" )

        return await self._complete( system, user, settings, "strategy" )


def quick_smoke_test():
    """Quick smoke test for ScriptPipelineAgent in dry-run mode."""
    import podcast_studio.utils.util as du

    du.print_banner( "ScriptPipelineAgent Smoke Test (dry run)", prepend_nl=True )

    try:
        store = GenerationStatusStore( job_timeout_seconds=30 )
        agent = ScriptPipelineAgent( store, config=ScriptPipelineConfig( dry_run=True ), debug=True )

        job    = store.start( "the history of samba", "smoke-test-user" )
        result = asyncio.run( agent.run( job.job_id, job.topic ) )

        print( f"✓ Title: {result.title}" )
        print( f"✓ Script:\n{result.script}" )
        print( f"✓ Final status: {store.read( 'smoke-test-user' ).stage}" )
        print( "\n✓ ScriptPipelineAgent smoke test completed successfully" )

    except Exception as e:
        print( f"\n✗ Smoke test failed: {e}" )
        import traceback
        traceback.print_exc()


if __name__ == "__main__":
    quick_smoke_test()
