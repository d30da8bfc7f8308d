#!/usr/bin/env python3
"""
Mock clients for dry-run mode of the Script Pipeline.

Provide canned responses that simulate the chat and search APIs without
making requests. Used when `script pipeline dry run = True` and by tests.

Usage:
    from .mock_clients import MockChatClient, MockSearchClient

    if dry_run:
        chat_client   = MockChatClient( debug=True )
        search_client = MockSearchClient( debug=True )
"""

import asyncio
import json
from typing import Optional

from podcast_studio.errors import SearchError
from .api_client import ChatClient, APIResponse
from .search_client import SearchResponse, SearchResult


# =============================================================================
# Canned data
# =============================================================================

MOCK_SCRIPT = """TÍTULO: Dry Run: Testando o Pipeline
DESCRIÇÃO: Um episódio simulado para validar o fluxo de geração.
**Apresentador 1:** Oi! Bem-vindo ao nosso episódio de teste. [risos]
**Apresentador 2:** Oi! Hoje a gente testa o modo de simulação.
Apresentador 1: E como funciona isso?
Apresentador 2: Cada etapa devolve uma resposta pronta, sem chamar nenhuma API.
Apresentador 1: Perfeito para testar a interface.
Apresentador 2: Exatamente. Até a próxima!"""

MOCK_RESPONSES = {
    "interpret" : "1. **Main Theme:** Dry run\n2. **Emotional Hooks:** Fast feedback\n3. **Key Subtopics:** stages, progress, results",
    "research"  : "- **Verified Insights:** The dry run exercises every stage.\n- **Source Validation:** canned data",
    "strategy"  : "- **Main Hook:** Watching a pipeline run end to end without cost.",
    "writing"   : MOCK_SCRIPT,
    "editing"   : MOCK_SCRIPT,
    "metadata"  : json.dumps( { "title": "Dry Run: Testando o Pipeline", "description": "Um episódio simulado para validar o fluxo de geração." } ),
}

MOCK_SEARCH_RESULTS = [
    SearchResult( title="Mock result one", link="https://example.com/one", snippet="First canned snippet.", position=1 ),
    SearchResult( title="Mock result two", link="https://example.com/two", snippet="Second canned snippet.", position=2 ),
]


class MockChatClient( ChatClient ):
    """
    Chat client that returns canned responses keyed by call_type.

    Requires:
        - None (no API key needed)

    Ensures:
        - Records every call as a dict in self.calls
        - Raises the configured exception for call types listed in fail_on
    """

    provider_name = "mock"

    def __init__(
        self,
        responses   : Optional[ dict ] = None,
        fail_on     : Optional[ dict ] = None,
        delay       : float = 0.0,
        model       : str = "mock-model",
        debug       : bool = False,
        verbose     : bool = False
    ):
        """
        Args:
            responses: Overrides for MOCK_RESPONSES, keyed by call_type
            fail_on: call_type -> exception instance to raise instead of answering
            delay: Simulated latency per call, in seconds
        """
        super().__init__( model=model, debug=debug, verbose=verbose )
        self.responses = dict( MOCK_RESPONSES )
        self.responses.update( responses or { } )
        self.fail_on   = dict( fail_on or { } )
        self.delay     = delay
        self.calls     = [ ]

    async def complete(
        self,
        system_prompt : str,
        user_prompt   : str,
        temperature   : float = 0.7,
        max_tokens    : Optional[ int ] = None,
        json_output   : bool = False,
        call_type     : str = "completion"
    ) -> APIResponse:
        self.calls.append( {
            "call_type"     : call_type,
            "system_prompt" : system_prompt,
            "user_prompt"   : user_prompt,
            "temperature"   : temperature,
            "max_tokens"    : max_tokens,
            "json_output"   : json_output,
        } )

        if self.debug: print( f"[MockChatClient] {call_type} (call #{len( self.calls )})" )

        if self.delay:
            await asyncio.sleep( self.delay )

        if call_type in self.fail_on:
            raise self.fail_on[ call_type ]

        content = self.responses.get( call_type, f"Mock response for {call_type}" )
        self.cost_estimate.add_usage( self.model, len( user_prompt ) // 4, len( content ) // 4 )

        return APIResponse(
            content       = content,
            model         = self.model,
            input_tokens  = len( user_prompt ) // 4,
            output_tokens = len( content ) // 4,
            stop_reason   = "stop",
        )

    def call_types( self ) -> list:
        return [ call[ "call_type" ] for call in self.calls ]


class MockSearchClient:
    """
    Search client that returns canned results.

    Ensures:
        - Records every query in self.queries
        - Raises SearchError when fail=True
    """

    def __init__( self, results: Optional[ list ] = None, fail: bool = False, debug: bool = False, verbose: bool = False ):
        self.results = list( MOCK_SEARCH_RESULTS if results is None else results )
        self.fail    = fail
        self.debug   = debug
        self.verbose = verbose
        self.queries = [ ]

    async def search( self, query: str, max_results: int = 5 ) -> SearchResponse:
        self.queries.append( ( query, max_results ) )

        if self.debug: print( f"[MockSearchClient] Searching [{query}]" )

        if self.fail:
            raise SearchError( "Mock search failure" )

        return SearchResponse(
            query      = query,
            results    = self.results[ :max_results ],
            answer_box = { "title": "Mock answer", "answer": "Canned answer box." },
        )
