#!/usr/bin/env python3
"""
Stage prompts for the Script Pipeline agent.

Each get_*_prompt() returns a ( system_prompt, user_prompt ) pair. Prompts are
written in English and instruct the model to answer in the configured output
language. The two hosts are always labeled "Apresentador 1" and "Apresentador 2",
which the cleaning step relies on.
"""

from typing import Tuple

HOST_1_LABEL = "Apresentador 1:"
HOST_2_LABEL = "Apresentador 2:"

TITLE_LABEL       = "TÍTULO:"
DESCRIPTION_LABEL = "DESCRIÇÃO:"

NO_SEARCH_RESULTS_TEXT = "No web search results were available."

PromptPair = Tuple[ str, str ]


# =============================================================================
# System Prompts
# =============================================================================

INTERPRETER_SYSTEM_PROMPT = """You are an expert at interpreting themes for viral content.
Your job is to turn a raw theme into a structured, compelling concept for a podcast.
You understand audience psychology and know how to frame complex topics as simple, engaging narratives.
IMPORTANT: Always answer in {language}, whatever the language of the theme."""

RESEARCHER_SYSTEM_PROMPT = """You are a researcher specialized in fact validation and in spotting viral angles.
You verify claims, prioritize reliable sources and surface current insights that make a theme worth discussing.
IMPORTANT: Always answer in {language}, even when the sources are in another language."""

STRATEGIST_SYSTEM_PROMPT = """You are a content strategist specialized in structuring viral conversations.
You frame discussions, design high-retention narratives and pick the emotional triggers and conversational flow that keep an audience engaged.
IMPORTANT: Always answer in {language}."""

WRITER_SYSTEM_PROMPT = """You are a script writer specialized in natural, engaging podcast dialogue.
Your conversations open with short, casual exchanges and grow into deeper discussion.
They include natural interruptions, speech markers and varied rhythm, balancing humor, curiosity and tension so the result never sounds scripted.
IMPORTANT: Write everything in {language}, with native expressions, whatever the language of your inputs."""

EDITOR_SYSTEM_PROMPT = """You are an editor who optimizes conversational scripts for Text-to-Speech (TTS) systems.
You refine dialogue so it sounds natural when synthesized by AI voices: balanced filler words, long sentences broken into shorter ones, pauses where a real host would hesitate.
IMPORTANT: The text must stay entirely in {language}."""

METADATA_SYSTEM_PROMPT = """You are a podcast metadata specialist. Extract or create a title and a concise description for a podcast script.
Answer only with a JSON object with the fields "title" and "description".
The title must be short and catchy (60 characters at most).
The description must be concise and informative (200 characters at most).
IMPORTANT: Both title and description must be in {language}."""


# =============================================================================
# Prompt builders
# =============================================================================

def get_interpreter_prompt( topic: str, language: str ) -> PromptPair:
    """Stage 1: turn the raw topic into a podcast concept."""
    user = (
        f'Analyze the theme "{topic}" and structure it as the concept for a viral podcast episode. '
        f"Turn it into a well-defined framework, whether it is a single word or a detailed idea.\n\n"
        f'Consider what makes "{topic}" shareable and engaging. Identify emotional hooks, angles with viral potential and conversation starters.\n\n'
        f"Answer in {language} with this structure:\n"
        f'1. **Main Theme:** a clear, compelling title for "{topic}"\n'
        f'2. **Emotional Hooks:** why would people care about "{topic}"? What sparks curiosity?\n'
        f'3. **Key Subtopics:** 3-5 sections that break "{topic}" down\n'
        f'4. **Unexpected Angles:** original approaches that could start a discussion about "{topic}"\n'
        f'5. **Conversation Starters:** striking questions or statements about "{topic}" that grab attention'
    )
    return INTERPRETER_SYSTEM_PROMPT.format( language=language ), user


def get_researcher_prompt( topic: str, interpretation: str, search_results: str, language: str ) -> PromptPair:
    """Stage 2: verify the interpretation against web search results."""
    user = (
        f'Research the theme "{topic}" and verify the insights below using the interpretation and the search results provided.\n\n'
        f"THEME INTERPRETATION:\n{interpretation}\n\n"
        f"SEARCH RESULTS:\n{search_results}\n\n"
        f"Answer in {language}, structured, in no more than 500 words, even if the search results are in English. Include:\n"
        f"- **Verified Insights:** accurate facts, with sources, that support the theme\n"
        f"- **Viral Angles:** recent discussions, cultural relevance or surprising connections\n"
        f"- **Source Validation:** the sources with a one-paragraph summary of each\n"
        f"- **Verified Improvements:** corrections or deeper insights that improve the initial interpretation"
    )
    return RESEARCHER_SYSTEM_PROMPT.format( language=language ), user


def get_strategist_prompt( topic: str, interpretation: str, research: str, language: str ) -> PromptPair:
    """Stage 3: design the engagement strategy."""
    user = (
        f'Develop a viral engagement strategy for "{topic}" based on the research and interpretation provided.\n\n'
        f"THEME INTERPRETATION:\n{interpretation}\n\n"
        f"VALIDATED RESEARCH:\n{research}\n\n"
        f"Answer in {language}. Identify the most compelling angles, emotional triggers and conversational flow to keep the audience engaged. Structure your answer as:\n"
        f"- **Main Hook:** the key idea that grabs attention immediately\n"
        f"- **Psychological Triggers:** which emotions or thought patterns will drive engagement?\n"
        f"- **Engagement Flow:** how should the conversation be structured for maximum retention?\n"
        f"- **Amplification Plan:** controversial, relatable, nostalgic or provocative?\n"
        f"- **Call to Action:** what will make listeners comment, share or discuss?"
    )
    return STRATEGIST_SYSTEM_PROMPT.format( language=language ), user


def get_writer_prompt( topic: str, interpretation: str, research: str, strategy: str, language: str ) -> PromptPair:
    """Stage 4: write the two-host dialogue."""
    user = (
        f'Write an engaging conversational podcast script about "{topic}" based on the material below.\n\n'
        f"THEME INTERPRETATION:\n{interpretation}\n\n"
        f"RESEARCH:\n{research}\n\n"
        f"CONTENT STRATEGY:\n{strategy}\n\n"
        f'Write entirely in {language}. Create a dialogue between two hosts without names, labeled only "Apresentador 1" and "Apresentador 2". The script must:\n\n'
        f"1. Follow a **natural engagement arc**, opening with short casual talk and moving smoothly into the main theme\n"
        f"2. Include **short, fun, quick exchanges** at the start that feel spontaneous\n"
        f"3. Grow into **longer, deeper, analytical answers** as the conversation advances\n"
        f"4. Use **dynamic, varied reactions** of surprise and disbelief\n"
        f"5. Include natural interruptions at surprising moments\n"
        f"6. End on a **memorable, thought-provoking note**\n\n"
        f'IMPORTANT: Do not name the hosts. Use only "{HOST_1_LABEL}" and "{HOST_2_LABEL}". '
        f'Start the script with a "{TITLE_LABEL}" line and a "{DESCRIPTION_LABEL}" line, both in {language}.'
    )
    return WRITER_SYSTEM_PROMPT.format( language=language ), user


def get_editor_prompt( draft: str, language: str ) -> PromptPair:
    """Stage 5: polish the draft for speech synthesis."""
    user = (
        f"Optimize the following podcast script for Text-to-Speech so it sounds natural and realistic when synthesized:\n\n"
        f"{draft}\n\n"
        f"Keep the original content but refine it for maximum conversational realism in {language}:\n\n"
        f"1. Balance speech markers and filler words without overdoing them\n"
        f"2. Break long, complex sentences into shorter ones with natural pauses\n"
        f"3. Use dashes instead of commas for pauses that mirror real speech\n"
        f"4. Vary the tone: some lines excited, others hesitant or contemplative\n"
        f'5. Keep "{HOST_1_LABEL}" and "{HOST_2_LABEL}" as the speaker labels\n'
        f'6. Keep the "{TITLE_LABEL}" and "{DESCRIPTION_LABEL}" lines at the top if they exist\n\n'
        f"The goal is dialogue that sounds like a real conversation when a TTS system reads it."
    )
    return EDITOR_SYSTEM_PROMPT.format( language=language ), user


def get_metadata_prompt( script: str, language: str, excerpt_length: int = 2000 ) -> PromptPair:
    """
    Metadata step: title and description as JSON.

    Ensures:
        - Only the first excerpt_length characters of the script are sent
    """
    user = (
        f"Extract or create a title and a concise description in {language} for the following podcast script:\n\n"
        f"{script[ :excerpt_length ]}...\n\n"
        f'If the script already has {TITLE_LABEL} and {DESCRIPTION_LABEL} lines, extract them. Otherwise create them from the content.\n'
        f'Answer ONLY with a JSON object with the fields "title" and "description".'
    )
    return METADATA_SYSTEM_PROMPT.format( language=language ), user
