#!/usr/bin/env python3
"""
Conversation chunker for the Audio Assembly pipeline.

Splits a speaker-tagged conversation ("Name: utterance" per line) into ordered
chunks bounded by a maximum character count, and maps every speaker onto one
of two voice roles.

Design Pattern: Pure functions over small value types
- parse_conversation_lines() turns raw text into ConversationLine objects
- chunk_conversation() groups lines without ever splitting one
- VoiceAssignment is a fixed two-slot map, not a general dictionary
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

DEFAULT_MAX_CHUNK_SIZE = 2000
UNKNOWN_SPEAKER        = "Unknown"

SPEAKER_LINE_PATTERN = re.compile( r"^([^:]+):(.*)$" )


class VoiceRole( Enum ):
    """The only two voices a podcast has."""
    PRIMARY   = "primary"
    SECONDARY = "secondary"


@dataclass
class ConversationLine:
    """One speaker turn."""

    speaker : str
    text    : str

    def to_text( self ) -> str:
        return f"{self.speaker}: {self.text}"


class VoiceAssignment:
    """
    Ordered speaker → VoiceRole map with exactly two role slots.

    The first speaker assigned takes PRIMARY. Every other distinct speaker
    takes SECONDARY, so a third or fourth speaker shares the secondary voice.

    Requires:
        - Speakers are assigned in first-seen order

    Ensures:
        - primary_speaker is the first speaker ever assigned
        - secondary_speaker is the second distinct speaker, or None
        - Iteration order is first-seen order
    """

    def __init__( self ) -> None:
        self._roles             : dict[str, VoiceRole] = { }
        self._primary_speaker   : Optional[str] = None
        self._secondary_speaker : Optional[str] = None

    @classmethod
    def from_lines( cls, lines: list[ConversationLine] ) -> "VoiceAssignment":
        """Build an assignment by walking lines in order."""
        assignment = cls()
        for line in lines:
            assignment.assign( line.speaker )
        return assignment

    def assign( self, speaker: str ) -> VoiceRole:
        """
        Assign a role to a speaker if it has none yet.

        Returns:
            VoiceRole: The speaker's role, new or existing
        """
        if speaker in self._roles:
            return self._roles[ speaker ]

        if self._primary_speaker is None:
            self._primary_speaker = speaker
            role = VoiceRole.PRIMARY
        else:
            if self._secondary_speaker is None:
                self._secondary_speaker = speaker
            role = VoiceRole.SECONDARY

        self._roles[ speaker ] = role
        return role

    def restricted_to( self, speakers: list[str] ) -> "VoiceAssignment":
        """
        Project this assignment onto a subset of speakers, keeping their roles.

        Ensures:
            - Roles come from this assignment, not from first-seen order in the subset
        """
        subset = VoiceAssignment()
        for speaker in self._roles:
            if speaker not in speakers:
                continue
            role = self._roles[ speaker ]
            subset._roles[ speaker ] = role
            if role == VoiceRole.PRIMARY and subset._primary_speaker is None:
                subset._primary_speaker = speaker
            elif role == VoiceRole.SECONDARY and subset._secondary_speaker is None:
                subset._secondary_speaker = speaker
        return subset

    @property
    def primary_speaker( self ) -> Optional[str]:
        return self._primary_speaker

    @property
    def secondary_speaker( self ) -> Optional[str]:
        return self._secondary_speaker

    def role_of( self, speaker: str ) -> Optional[VoiceRole]:
        return self._roles.get( speaker )

    def speakers( self ) -> list[str]:
        return list( self._roles.keys() )

    def to_dict( self ) -> dict[str, str]:
        """Wire form: { speaker: "primary" | "secondary" } in first-seen order."""
        return { speaker: role.value for speaker, role in self._roles.items() }

    def __len__( self ) -> int:
        return len( self._roles )

    def __contains__( self, speaker: str ) -> bool:
        return speaker in self._roles

    def __eq__( self, other: object ) -> bool:
        if not isinstance( other, VoiceAssignment ):
            return NotImplemented
        return list( self._roles.items() ) == list( other._roles.items() )

    def __repr__( self ) -> str:
        return f"VoiceAssignment({self.to_dict()})"


@dataclass
class ConversationChunk:
    """
    A bounded run of consecutive conversation lines.

    index is 0-based and is the only ordering key used for reassembly.
    """

    index            : int
    lines            : list[ConversationLine] = field( default_factory=list )
    voice_assignment : VoiceAssignment        = field( default_factory=VoiceAssignment )

    @property
    def text( self ) -> str:
        return "\n".join( line.to_text() for line in self.lines )

    @property
    def char_count( self ) -> int:
        return sum( len( line.text ) for line in self.lines )

    def utterances( self ) -> list[str]:
        """Speaker-stripped line texts, the form sent to the TTS service."""
        return [ line.text for line in self.lines ]

    def to_dict( self ) -> dict:
        return {
            "index"           : self.index,
            "text"            : self.text,
            "lines"           : [ { "speaker": line.speaker, "text": line.text } for line in self.lines ],
            "voiceAssignment" : self.voice_assignment.to_dict(),
            "charCount"       : self.char_count,
        }


# =============================================================================
# Parsing and chunking
# =============================================================================

def parse_conversation_lines( text: str ) -> list[ConversationLine]:
    """
    Parse raw conversation text into speaker lines.

    Requires:
        - text is a string (may be empty)

    Ensures:
        - Blank lines are dropped
        - "Name: utterance" starts a new line with both parts trimmed
        - A line without a "Name:" prefix continues the previous utterance,
          joined with a single space
        - A leading unlabeled line is attributed to "Unknown"

    Returns:
        list[ConversationLine]: Parsed lines in input order
    """
    lines: list[ConversationLine] = [ ]

    if not text:
        return lines

    for raw_line in text.split( "\n" ):

        stripped = raw_line.strip()
        if not stripped:
            continue

        match = SPEAKER_LINE_PATTERN.match( stripped )
        if match:
            lines.append( ConversationLine( speaker=match.group( 1 ).strip(), text=match.group( 2 ).strip() ) )
        elif lines:
            previous = lines[ -1 ]
            previous.text = f"{previous.text} {stripped}" if previous.text else stripped
        else:
            lines.append( ConversationLine( speaker=UNKNOWN_SPEAKER, text=stripped ) )

    return lines


def chunk_conversation( text: str, max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE ) -> list[ConversationChunk]:
    """
    Split a conversation into ordered chunks no larger than max_chunk_size.

    Requires:
        - max_chunk_size > 0

    Ensures:
        - Empty or whitespace-only input returns []
        - Concatenating every chunk's lines in index order yields the parsed lines
        - A line is never split across chunks
        - char_count <= max_chunk_size unless a chunk holds one over-long line
        - The first speaker of the conversation is PRIMARY in every chunk they appear in

    Raises:
        - ValueError if max_chunk_size is not positive
    """
    if max_chunk_size <= 0:
        raise ValueError( f"max_chunk_size must be positive, got {max_chunk_size}" )

    if not text or not text.strip():
        return [ ]

    lines      = parse_conversation_lines( text )
    assignment = VoiceAssignment.from_lines( lines )

    chunks        : list[ConversationChunk] = [ ]
    current_lines : list[ConversationLine]  = [ ]
    current_size  = 0

    def close_chunk() -> None:
        speakers = [ line.speaker for line in current_lines ]
        chunks.append( ConversationChunk(
            index            = len( chunks ),
            lines            = list( current_lines ),
            voice_assignment = assignment.restricted_to( speakers )
        ) )

    for line in lines:

        line_size = len( line.text )

        if current_lines and current_size + line_size > max_chunk_size:
            close_chunk()
            current_lines = [ ]
            current_size  = 0

        current_lines.append( line )
        current_size += line_size

    if current_lines:
        close_chunk()

    return chunks


def quick_smoke_test():
    """Quick smoke test for the conversation chunker."""
    import podcast_studio.utils.util as du

    du.print_banner( "Conversation Chunker Smoke Test", prepend_nl=True )

    try:
        conversation = "Ana: Oi!\nBeto: Oi, como vai?\nAna: Bem, e você?"
        chunks = chunk_conversation( conversation )
        print( f"✓ {len( chunks )} chunk(s), voices {chunks[ 0 ].voice_assignment.to_dict()}" )

        long_conversation = "\n".join( f"{'Ana' if i % 2 == 0 else 'Beto'}: {'x' * 290}" for i in range( 10 ) )
        chunks = chunk_conversation( long_conversation, max_chunk_size=2000 )
        print( f"✓ {len( chunks )} chunks with sizes {[ chunk.char_count for chunk in chunks ]}" )

        print( "\n✓ Chunker smoke test completed successfully" )

    except Exception as e:
        print( f"\n✗ Smoke test failed: {e}" )
        import traceback
        traceback.print_exc()


if __name__ == "__main__":
    quick_smoke_test()
