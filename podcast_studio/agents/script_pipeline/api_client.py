#!/usr/bin/env python3
"""
Chat-completion clients for the Script Pipeline agent.

Provides async wrappers with a single interface over:
- OpenAI (primary provider)
- Perplexity (OpenAI-compatible endpoint with web-search filters, strategy stage)
- Anthropic (alternate primary provider)

Each client offers complete() and tracks token usage. Calls are made once:
the SDKs' own retries are disabled and errors propagate to the caller, so a
failed call fails the stage that made it.
"""

import asyncio
from typing import Optional, Any
from dataclasses import dataclass, field

from openai import AsyncOpenAI
from anthropic import AsyncAnthropic

import podcast_studio.utils.util as du
from .config import ScriptPipelineConfig


OPENAI_KEY_ENV     = "OPENAI_API_KEY"
ANTHROPIC_KEY_ENV  = "ANTHROPIC_API_KEY"
PERPLEXITY_KEY_ENV = "PERPLEXITY_API_KEY"


@dataclass
class APIResponse:
    """
    Structured response from a chat-completion call.

    Contains the response content, usage data, and model information.
    """
    content       : str
    model         : str
    input_tokens  : int
    output_tokens : int
    stop_reason   : str
    raw_response  : Any = None


@dataclass
class CostEstimate:
    """
    Token usage and approximate cost across calls.

    Prices are USD per million tokens, matched by model-name prefix.
    """
    total_input_tokens  : int   = 0
    total_output_tokens : int   = 0
    total_api_calls     : int   = 0
    estimated_cost_usd  : float = 0.0
    calls_by_model      : dict  = field( default_factory=dict )

    PRICES = {
        "gpt-4o"     : ( 2.50, 10.0 ),
        "claude"     : ( 3.0, 15.0 ),
        "llama-3.1"  : ( 0.20, 0.20 ),
    }

    def add_usage( self, model: str, input_tokens: int, output_tokens: int ):
        """
        Add usage from an API call.

        Args:
            model: Model name used
            input_tokens: Input tokens consumed
            output_tokens: Output tokens generated
        """
        self.total_input_tokens  += input_tokens
        self.total_output_tokens += output_tokens
        self.total_api_calls     += 1
        self.calls_by_model[ model ] = self.calls_by_model.get( model, 0 ) + 1

        input_price, output_price = ( 0.0, 0.0 )
        for prefix, prices in self.PRICES.items():
            if model.startswith( prefix ):
                input_price, output_price = prices
                break

        self.estimated_cost_usd += ( input_tokens * input_price + output_tokens * output_price ) / 1_000_000

    def get_summary( self ) -> str:
        """Get human-readable cost summary."""
        return (
            f"API Calls: {self.total_api_calls} | "
            f"Tokens: {self.total_input_tokens:,} in, {self.total_output_tokens:,} out | "
            f"Est. Cost: ${self.estimated_cost_usd:.4f}"
        )


def strip_json_fences( content: str ) -> str:
    """Remove a surrounding ```json ... ``` markdown block if present."""
    content = content.strip()
    if content.startswith( "```json" ):
        content = content[ 7: ]
    if content.startswith( "```" ):
        content = content[ 3: ]
    if content.endswith( "```" ):
        content = content[ :-3 ]
    return content.strip()


class ChatClient:
    """
    Provider-neutral base for chat-completion clients.

    Subclasses implement _create().

    Ensures:
        - complete() returns an APIResponse and records usage
        - Each complete() call makes exactly one provider request
    """

    provider_name = "base"

    def __init__( self, model: str, debug: bool = False, verbose: bool = False ):
        self.model         = model
        self.debug         = debug
        self.verbose       = verbose
        self.cost_estimate = CostEstimate()

    async def complete(
        self,
        system_prompt : str,
        user_prompt   : str,
        temperature   : float = 0.7,
        max_tokens    : Optional[ int ] = None,
        json_output   : bool = False,
        call_type     : str = "completion"
    ) -> APIResponse:
        """
        Run one chat completion.

        Requires:
            - user_prompt is a non-empty string

        Ensures:
            - Returns the assistant text with usage counts
            - Usage is added to cost_estimate

        Raises:
            - Provider SDK errors, unchanged
        """
        if self.debug:
            print( f"[{type( self ).__name__}] Calling {self.model} for {call_type}" )

        response = await self._create(
            system_prompt = system_prompt,
            user_prompt   = user_prompt,
            temperature   = temperature,
            max_tokens    = max_tokens,
            json_output   = json_output,
        )

        self.cost_estimate.add_usage(
            model         = response.model,
            input_tokens  = response.input_tokens,
            output_tokens = response.output_tokens,
        )

        if self.debug:
            print( f"[{type( self ).__name__}] Response: {response.input_tokens} in, {response.output_tokens} out" )
            if self.verbose: print( f"[{type( self ).__name__}] {du.truncate_string( response.content, 200 )}" )

        return response

    async def _create( self, system_prompt: str, user_prompt: str, temperature: float, max_tokens: Optional[ int ], json_output: bool ) -> APIResponse:
        raise NotImplementedError

    def get_cost_summary( self ) -> str:
        """Get human-readable cost summary."""
        return self.cost_estimate.get_summary()

    async def close( self ):
        """Close the underlying SDK client."""
        client = getattr( self, "_client", None )
        if client is not None and hasattr( client, "close" ):
            await client.close()


class OpenAIChatClient( ChatClient ):
    """
    Async OpenAI chat-completions client.

    Also serves Perplexity, whose API is OpenAI-compatible: pass base_url and
    the search filters as extra_body.

    Requires:
        - api_key, or the named environment variable is set
    """

    provider_name = "openai"

    def __init__(
        self,
        model        : str = "gpt-4o",
        api_key      : Optional[ str ] = None,
        api_key_env  : str = OPENAI_KEY_ENV,
        base_url     : Optional[ str ] = None,
        extra_body   : Optional[ dict ] = None,
        timeout      : float = 120.0,
        provider_name: Optional[ str ] = None,
        **kwargs
    ):
        super().__init__( model=model, **kwargs )

        self.api_key    = api_key or du.get_api_key( api_key_env, required=True )
        self.base_url   = base_url
        self.extra_body = extra_body or { }
        if provider_name: self.provider_name = provider_name

        client_kwargs = { "api_key": self.api_key, "timeout": timeout, "max_retries": 0 }
        if base_url: client_kwargs[ "base_url" ] = base_url
        self._client = AsyncOpenAI( **client_kwargs )

        if self.debug:
            print( f"[OpenAIChatClient] {self.provider_name} model: {self.model} base_url: {base_url or 'default'}" )

    async def _create( self, system_prompt: str, user_prompt: str, temperature: float, max_tokens: Optional[ int ], json_output: bool ) -> APIResponse:

        messages = [ ]
        if system_prompt:
            messages.append( { "role": "system", "content": system_prompt } )
        messages.append( { "role": "user", "content": user_prompt } )

        kwargs = {
            "model"       : self.model,
            "messages"    : messages,
            "temperature" : temperature,
        }
        if max_tokens is not None:
            kwargs[ "max_tokens" ] = max_tokens
        if json_output:
            kwargs[ "response_format" ] = { "type": "json_object" }
        if self.extra_body:
            kwargs[ "extra_body" ] = self.extra_body

        response = await self._client.chat.completions.create( **kwargs )

        choice = response.choices[ 0 ]
        usage  = response.usage

        return APIResponse(
            content       = choice.message.content or "",
            model         = response.model or self.model,
            input_tokens  = usage.prompt_tokens if usage else 0,
            output_tokens = usage.completion_tokens if usage else 0,
            stop_reason   = choice.finish_reason or "",
            raw_response  = response,
        )


class AnthropicChatClient( ChatClient ):
    """
    Async Anthropic messages client.

    Anthropic has no JSON mode; json_output only relies on the prompt asking
    for JSON, and extract_metadata() strips fences before parsing.
    """

    provider_name = "anthropic"

    def __init__(
        self,
        model   : str = "claude-3-5-sonnet-20241022",
        api_key : Optional[ str ] = None,
        timeout : float = 120.0,
        **kwargs
    ):
        super().__init__( model=model, **kwargs )

        self.api_key = api_key or du.get_api_key( ANTHROPIC_KEY_ENV, required=True )
        self._client = AsyncAnthropic( api_key=self.api_key, timeout=timeout, max_retries=0 )

        if self.debug:
            print( f"[AnthropicChatClient] Model: {self.model}" )

    async def _create( self, system_prompt: str, user_prompt: str, temperature: float, max_tokens: Optional[ int ], json_output: bool ) -> APIResponse:

        kwargs = {
            "model"       : self.model,
            "max_tokens"  : max_tokens or 4096,
            "messages"    : [ { "role": "user", "content": user_prompt } ],
            "temperature" : min( temperature, 1.0 ),
        }
        if system_prompt:
            kwargs[ "system" ] = system_prompt

        response = await self._client.messages.create( **kwargs )

        content = ""
        for block in response.content:
            if hasattr( block, "text" ):
                content += block.text

        return APIResponse(
            content       = content,
            model         = self.model,
            input_tokens  = response.usage.input_tokens,
            output_tokens = response.usage.output_tokens,
            stop_reason   = response.stop_reason or "",
            raw_response  = response,
        )


# =============================================================================
# Factories
# =============================================================================

def create_chat_client( config: ScriptPipelineConfig, debug: bool = False, verbose: bool = False ) -> ChatClient:
    """
    Build the primary chat client named by config.provider.

    Raises:
        - ValueError for an unknown provider or a missing API key
    """
    common = {
        "timeout" : config.request_timeout,
        "debug"   : debug,
        "verbose" : verbose,
    }

    if config.provider == "openai":
        return OpenAIChatClient( model=config.openai_model, **common )
    if config.provider == "anthropic":
        return AnthropicChatClient( model=config.anthropic_model, **common )

    raise ValueError( f"Unknown chat provider [{config.provider}], expected 'openai' or 'anthropic'" )


def create_strategy_client( config: ScriptPipelineConfig, debug: bool = False, verbose: bool = False ) -> OpenAIChatClient:
    """
    Build the Perplexity client used by the strategy stage.

    Ensures:
        - Requests carry search_domain_filter and search_recency_filter

    Raises:
        - ValueError if PERPLEXITY_API_KEY is not set
    """
    return OpenAIChatClient(
        model         = config.perplexity_model,
        api_key_env   = PERPLEXITY_KEY_ENV,
        base_url      = config.perplexity_base_url,
        extra_body    = {
            "search_domain_filter"  : list( config.perplexity_domains ),
            "search_recency_filter" : config.perplexity_recency,
        },
        timeout       = config.request_timeout,
        provider_name = "perplexity",
        debug         = debug,
        verbose       = verbose,
    )


def quick_smoke_test():
    """Quick smoke test for the chat clients."""
    du.print_banner( "Chat Client Smoke Test", prepend_nl=True )

    try:
        print( "Testing CostEstimate..." )
        cost = CostEstimate()
        cost.add_usage( "gpt-4o", 1000, 500 )
        cost.add_usage( "llama-3.1-sonar-small-128k-online", 2000, 1000 )
        assert cost.total_api_calls == 2
        print( f"✓ {cost.get_summary()}" )

        print( "Testing strip_json_fences..." )
        assert strip_json_fences( '```json\n{"a": 1}\n```' ) == '{"a": 1}'
        print( "✓ Fences stripped" )

        if du.get_api_key( OPENAI_KEY_ENV ) is None:
            print( f"⚠ {OPENAI_KEY_ENV} not set - skipping live API test" )
            return

        async def live_call():
            client = OpenAIChatClient( debug=True )
            response = await client.complete( "Answer in one word.", "What color is the sky?", temperature=0.0, max_tokens=5 )
            await client.close()
            return response

        response = asyncio.run( live_call() )
        print( f"✓ Live response: {response.content}" )

    except Exception as e:
        print( f"\n✗ Smoke test failed: {e}" )
        import traceback
        traceback.print_exc()


if __name__ == "__main__":
    quick_smoke_test()
