#!/usr/bin/env python3
"""
Serper.dev web-search client for the research stage.

Returns ranked organic results plus the optional answer box and knowledge
graph, and renders them as a plain-text research brief for the LLM.
"""

import re
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

import aiohttp

import podcast_studio.utils.util as du
from podcast_studio.errors import SearchError

logger = logging.getLogger( __name__ )

SERPER_KEY_ENV     = "SERPER_API_KEY"
SERPER_SEARCH_URL  = "https://google.serper.dev/search"
MAX_SERPER_RESULTS = 10

ENGLISH_QUERY_PATTERN = re.compile( r"^[a-zA-Z\s]*$" )


@dataclass
class SearchResult:
    """One organic search hit."""

    title    : str
    link     : str
    snippet  : str
    position : int = 0


@dataclass
class SearchResponse:
    """Ranked results with Serper's optional summary boxes."""

    query           : str
    results         : list = field( default_factory=list )
    answer_box      : Optional[ dict ] = None
    knowledge_graph : Optional[ dict ] = None

    @property
    def is_empty( self ) -> bool:
        return not self.results and not self.answer_box and not self.knowledge_graph


def build_search_query( query: str ) -> str:
    """
    Bias non-English queries toward English sources.

    Ensures:
        - Queries made only of ASCII letters and spaces pass through trimmed
        - Anything else gets " in english" appended
    """
    if ENGLISH_QUERY_PATTERN.match( query ):
        return query.strip()
    return f"{query} in english".strip()


def format_search_results( response: SearchResponse ) -> str:
    """
    Render a SearchResponse as a research brief.

    Sections, each only when present: direct answer, main information, and
    numbered sources with URL and summary.
    """
    formatted = ""

    if response.answer_box:
        box = response.answer_box
        formatted += f"DIRECT ANSWER:\n{box.get( 'title', '' )}\n{box.get( 'answer', '' )}\n\n"

    if response.knowledge_graph:
        graph = response.knowledge_graph
        formatted += f"MAIN INFORMATION:\n{graph.get( 'title', '' )} - {graph.get( 'type', '' )}\n{graph.get( 'description', '' )}\n\n"

    if response.results:
        formatted += "TOP RESULTS:\n\n"
        for i, result in enumerate( response.results, start=1 ):
            formatted += f"Source #{i}: {result.title}\n"
            formatted += f"URL: {result.link}\n"
            formatted += f"Summary: {result.snippet}\n\n"

    return formatted


class SerperSearchClient:
    """
    Async client for the Serper.dev search API.

    Requires:
        - api_key, or SERPER_API_KEY set in the environment, at search time

    Ensures:
        - At most 10 results are requested per call
        - Any transport, HTTP or key problem surfaces as SearchError
    """

    def __init__(
        self,
        api_key   : Optional[ str ] = None,
        url       : str = SERPER_SEARCH_URL,
        timeout   : float = 20.0,
        debug     : bool = False,
        verbose   : bool = False
    ):
        self.api_key = api_key
        self.url     = url
        self.timeout = timeout
        self.debug   = debug
        self.verbose = verbose

    async def search( self, query: str, max_results: int = 5 ) -> SearchResponse:
        """
        Search the web.

        Requires:
            - query is a non-empty string

        Raises:
            - SearchError on a missing key, network failure or non-2xx status
        """
        api_key = self.api_key or du.get_api_key( SERPER_KEY_ENV )
        if not api_key:
            raise SearchError( f"Serper API key not found, set {SERPER_KEY_ENV}" )

        payload = {
            "q"  : build_search_query( query ),
            "gl" : "us",
            "hl" : "en",
            "num": min( max_results, MAX_SERPER_RESULTS ),
        }
        headers = {
            "X-API-KEY"    : api_key,
            "Content-Type" : "application/json",
        }

        if self.debug: print( f"[SerperSearchClient] Searching [{payload[ 'q' ]}] num={payload[ 'num' ]}" )

        try:
            timeout = aiohttp.ClientTimeout( total=self.timeout )
            async with aiohttp.ClientSession( timeout=timeout ) as session:
                async with session.post( self.url, headers=headers, json=payload ) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise SearchError( f"Serper API error: {response.status} {du.truncate_string( error_text, 200 )}" )
                    data = await response.json()

        except ( aiohttp.ClientError, asyncio.TimeoutError ) as e:
            raise SearchError( f"Serper request failed: {e}" ) from e

        results = [
            SearchResult(
                title    = item.get( "title", "" ),
                link     = item.get( "link", "" ),
                snippet  = item.get( "snippet", "" ),
                position = item.get( "position", i + 1 ),
            )
            for i, item in enumerate( data.get( "organic" ) or [ ] )
        ]

        if self.debug: print( f"[SerperSearchClient] {len( results )} results" )

        return SearchResponse(
            query           = query,
            results         = results,
            answer_box      = data.get( "answerBox" ),
            knowledge_graph = data.get( "knowledgeGraph" ),
        )
