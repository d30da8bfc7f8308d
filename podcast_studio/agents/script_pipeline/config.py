#!/usr/bin/env python3
"""
Configuration for the Script Pipeline agent.

Design decisions:
- gpt-4o as the primary provider for every stage
- Perplexity (OpenAI-compatible, web-grounded) for the strategy stage only
- Per-stage temperatures tuned from creative (writing) to strict (metadata)
- Output language is a setting, prompts themselves are written in English
"""

from dataclasses import dataclass, field
from typing import Literal, Optional


DEFAULT_PERPLEXITY_DOMAINS = [
    "scholar.google.com",
    "wikipedia.org",
    "nytimes.com",
    "bbc.com",
    "cnn.com",
    "forbes.com",
]


@dataclass
class StageSettings:
    """
    Sampling parameters for one pipeline stage.

    Requires:
        - 0.0 <= temperature <= 2.0
        - max_tokens is None or positive
    """

    temperature : float
    max_tokens  : Optional[int] = None

    def __post_init__( self ):
        """Validate parameter ranges."""
        assert 0.0 <= self.temperature <= 2.0, "temperature must be 0.0-2.0"
        assert self.max_tokens is None or self.max_tokens > 0, "max_tokens must be positive"


@dataclass
class ScriptPipelineConfig:
    """
    Configuration for the script pipeline.

    Requires:
        - All numeric values must be positive

    Ensures:
        - Provides sensible defaults for all parameters
        - from_config_manager() overlays INI settings on these defaults
    """

    # === Providers ===
    provider             : Literal[ "openai", "anthropic" ] = "openai"
    openai_model         : str   = "gpt-4o"
    anthropic_model      : str   = "claude-3-5-sonnet-20241022"
    perplexity_model     : str   = "llama-3.1-sonar-small-128k-online"
    perplexity_base_url  : str   = "https://api.perplexity.ai"
    perplexity_domains   : list  = field( default_factory=lambda: list( DEFAULT_PERPLEXITY_DOMAINS ) )
    perplexity_recency   : str   = "month"

    # === Stage sampling ===
    interpret_settings   : StageSettings = field( default_factory=lambda: StageSettings( temperature=0.7 ) )
    research_settings    : StageSettings = field( default_factory=lambda: StageSettings( temperature=0.4 ) )
    strategy_settings    : StageSettings = field( default_factory=lambda: StageSettings( temperature=0.5, max_tokens=2000 ) )
    writing_settings     : StageSettings = field( default_factory=lambda: StageSettings( temperature=0.8, max_tokens=4000 ) )
    editing_settings     : StageSettings = field( default_factory=lambda: StageSettings( temperature=0.4 ) )
    metadata_settings    : StageSettings = field( default_factory=lambda: StageSettings( temperature=0.3 ) )

    # === Content ===
    output_language      : str   = "Brazilian Portuguese"
    search_max_results   : int   = 5
    metadata_excerpt_len : int   = 2000

    # === Execution limits ===
    job_timeout_seconds  : int   = 600
    request_timeout      : float = 120.0

    # === Dry run ===
    dry_run              : bool  = False

    @classmethod
    def from_config_manager( cls, config_mgr ) -> "ScriptPipelineConfig":
        """
        Build a config from ConfigurationManager settings.

        Requires:
            - config_mgr exposes get( key, default, return_type )

        Ensures:
            - Missing keys keep the dataclass defaults
        """
        defaults = cls()
        return cls(
            provider             = config_mgr.get( "script pipeline provider", defaults.provider ),
            openai_model         = config_mgr.get( "llm openai model", defaults.openai_model ),
            anthropic_model      = config_mgr.get( "llm anthropic model", defaults.anthropic_model ),
            perplexity_model     = config_mgr.get( "llm perplexity model", defaults.perplexity_model ),
            perplexity_base_url  = config_mgr.get( "llm perplexity base url", defaults.perplexity_base_url ),
            perplexity_domains   = config_mgr.get( "llm perplexity search domains", defaults.perplexity_domains, return_type="list-string" ),
            perplexity_recency   = config_mgr.get( "llm perplexity recency", defaults.perplexity_recency ),
            output_language      = config_mgr.get( "script pipeline output language", defaults.output_language ),
            search_max_results   = config_mgr.get( "script search max results", defaults.search_max_results, return_type="int" ),
            metadata_excerpt_len = config_mgr.get( "script metadata excerpt length", defaults.metadata_excerpt_len, return_type="int" ),
            job_timeout_seconds  = config_mgr.get( "script job timeout seconds", defaults.job_timeout_seconds, return_type="int" ),
            request_timeout      = config_mgr.get( "llm timeout seconds", defaults.request_timeout, return_type="float" ),
            dry_run              = config_mgr.get( "script pipeline dry run", defaults.dry_run, return_type="boolean" ),
        )

    @property
    def primary_model( self ) -> str:
        return self.anthropic_model if self.provider == "anthropic" else self.openai_model
