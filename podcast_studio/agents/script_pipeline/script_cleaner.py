#!/usr/bin/env python3
"""
Post-processing of generated scripts.

- format_script_result(): normalizes host labels and puts one turn per line
- clean_script_for_tts(): keeps only labeled dialogue, without markup or stage directions
- extract_metadata(): title and description, JSON first, then labeled lines, then a default
"""

import re
import json
import logging
from dataclasses import dataclass

from .api_client import strip_json_fences
from .prompts import HOST_1_LABEL, HOST_2_LABEL

logger = logging.getLogger( __name__ )

METADATA_TIER_JSON    = "json"
METADATA_TIER_REGEX   = "regex"
METADATA_TIER_DEFAULT = "default"

LABEL_VARIANT_PATTERNS = [
    re.compile( r"\bapresentador\s*(\d+)\s*:", re.IGNORECASE ),
    re.compile( r"\bhost\s*(\d+)\s*:", re.IGNORECASE ),
    re.compile( r"\blocutor\s*(\d+)\s*:", re.IGNORECASE ),
]
LABEL_START_PATTERN = re.compile( r"(\bApresentador \d+:)" )
SPEAKER_PATTERN     = re.compile( r"(Apresentador [12]:)\s*(.+)" )
ANNOTATION_PATTERN  = re.compile( r"\[.*?\]" )
WHITESPACE_PATTERN  = re.compile( r"\s+" )

TITLE_PATTERN       = re.compile( r"TÍTULO:\s*(.+?)(\n|$)" )
DESCRIPTION_PATTERN = re.compile( r"DESCRIÇÃO:\s*(.+?)(\n|$)" )


@dataclass
class ScriptMetadata:
    """Title and description plus the fallback tier that produced them."""

    title       : str
    description : str
    tier        : str


def normalize_speaker_labels( script: str ) -> str:
    """Rewrite apresentador/host/locutor N: in any case as 'Apresentador N:'."""
    for pattern in LABEL_VARIANT_PATTERNS:
        script = pattern.sub( lambda match: f"Apresentador {match.group( 1 )}:", script )
    return script


def format_script_result( raw_script: str ) -> str:
    """
    Normalize a generated script.

    Ensures:
        - Every label variant reads 'Apresentador N:'
        - Each label starts a new line
        - Runs of blank lines collapse and the result is trimmed
    """
    formatted = normalize_speaker_labels( raw_script.strip() )
    formatted = LABEL_START_PATTERN.sub( r"\n\1", formatted )
    formatted = re.sub( r"\n\s*\n+", "\n", formatted )
    return formatted.strip()


def clean_script_for_tts( script: str ) -> str:
    """
    Reduce a script to 'Apresentador N: speech' lines.

    Requires:
        - script is a string

    Ensures:
        - Only lines labeled Apresentador 1 or Apresentador 2 survive
        - '**' emphasis and [bracketed] annotations are removed
        - Whitespace inside each line collapses to single spaces
        - If nothing survives, the original script is returned unchanged and a warning is logged
    """
    cleaned_lines = [ ]

    for line in normalize_speaker_labels( script ).split( "\n" ):

        if HOST_1_LABEL not in line and HOST_2_LABEL not in line:
            continue

        match = SPEAKER_PATTERN.search( line.replace( "**", "" ) )
        if not match:
            continue

        speech = ANNOTATION_PATTERN.sub( "", match.group( 2 ) )
        speech = WHITESPACE_PATTERN.sub( " ", speech ).strip()
        if speech:
            cleaned_lines.append( f"{match.group( 1 )} {speech}" )

    if not cleaned_lines:
        logger.warning( "Cleaned script has no labeled dialogue lines, returning it uncleaned" )
        return script

    return "\n".join( cleaned_lines )


def extract_metadata( metadata_response: str, script: str, topic: str ) -> ScriptMetadata:
    """
    Resolve title and description through three tiers.

    Ensures:
        - json: the trimmed response is a {...} JSON object with a non-empty title
        - regex: TÍTULO: / DESCRIÇÃO: lines in the script, when the title line exists
        - default: title 'Podcast about {topic}', description from DESCRIÇÃO: or the topic
    """
    content = strip_json_fences( metadata_response or "" )

    if content.startswith( "{" ) and content.endswith( "}" ):
        try:
            parsed = json.loads( content )
        except json.JSONDecodeError as e:
            logger.warning( f"Metadata response looked like JSON but did not parse: {e}" )
            parsed = None

        if isinstance( parsed, dict ) and str( parsed.get( "title" ) or "" ).strip():
            return ScriptMetadata(
                title       = str( parsed[ "title" ] ).strip(),
                description = str( parsed.get( "description" ) or topic ).strip(),
                tier        = METADATA_TIER_JSON,
            )
    else:
        logger.warning( f"Metadata response is not JSON: {content[ :120 ]!r}" )

    title_match       = TITLE_PATTERN.search( script )
    description_match = DESCRIPTION_PATTERN.search( script )
    description       = description_match.group( 1 ).strip() if description_match else topic

    if title_match:
        return ScriptMetadata( title=title_match.group( 1 ).strip(), description=description, tier=METADATA_TIER_REGEX )

    logger.warning( "No title found in metadata response or script, using the topic" )
    return ScriptMetadata( title=f"Podcast about {topic}", description=description, tier=METADATA_TIER_DEFAULT )
