#!/usr/bin/env python3
"""
Prompts module for the Script Pipeline agent.

Contains system prompts and prompt builders for the interpret, research,
strategize, write, edit and metadata steps.
"""

from .script_generation import (
    HOST_1_LABEL,
    HOST_2_LABEL,
    TITLE_LABEL,
    DESCRIPTION_LABEL,
    NO_SEARCH_RESULTS_TEXT,
    get_interpreter_prompt,
    get_researcher_prompt,
    get_strategist_prompt,
    get_writer_prompt,
    get_editor_prompt,
    get_metadata_prompt,
)

__all__ = [
    "HOST_1_LABEL",
    "HOST_2_LABEL",
    "TITLE_LABEL",
    "DESCRIPTION_LABEL",
    "NO_SEARCH_RESULTS_TEXT",
    "get_interpreter_prompt",
    "get_researcher_prompt",
    "get_strategist_prompt",
    "get_writer_prompt",
    "get_editor_prompt",
    "get_metadata_prompt",
]
