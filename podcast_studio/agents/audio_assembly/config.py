#!/usr/bin/env python3
"""
Configuration for the Audio Assembly agent.

Design decisions:
- The HTTP TTS proxy accepts at most ~1900 characters of markup safely,
  longer text is truncated at a line or word boundary
- Anything over 10000 characters is rejected outright
- Chunks default to 2000 characters, one TTS request per chunk
- ffmpeg re-encodes merged audio at 44.1kHz stereo, 192kbps
"""

from dataclasses import dataclass


@dataclass
class AudioConfig:
    """
    Configuration for chunking, TTS and merging.

    Requires:
        - All numeric values must be positive

    Ensures:
        - Provides sensible defaults for all parameters
        - from_config_manager() overlays INI settings on these defaults
    """

    # === Remote TTS proxy ===
    tts_api_url             : str   = "https://flask-api-955132768795.us-central1.run.app/api/tts/generate-audio"
    tts_timeout_seconds     : float = 120.0
    max_safe_tts_length     : int   = 1900
    max_tts_input_length    : int   = 10000
    default_author_name     : str   = "Podcast Studio"

    # === Chunking ===
    max_chunk_size          : int   = 2000

    # === Merge ===
    ffmpeg_path             : str   = "ffmpeg"
    download_timeout        : float = 60.0
    sample_rate             : int   = 44100
    channels                : int   = 2
    audio_bitrate           : str   = "192k"

    # === Storage ===
    max_upload_bytes        : int   = 10 * 1024 * 1024
    audio_bucket            : str   = "podcast_audio"
    merged_bucket           : str   = "merged_podcasts"

    # === Google Cloud TTS (Portuguese voices) ===
    google_max_segment_len  : int   = 400
    google_pause_ms         : int   = 500
    google_silence_ms       : int   = 300
    google_language_code    : str   = "pt-BR"

    def __post_init__( self ):
        """Validate parameter ranges."""
        assert self.max_safe_tts_length > 0, "max_safe_tts_length must be positive"
        assert self.max_tts_input_length >= self.max_safe_tts_length, "max_tts_input_length must cover max_safe_tts_length"
        assert self.max_chunk_size > 0, "max_chunk_size must be positive"
        assert self.max_upload_bytes > 0, "max_upload_bytes must be positive"

    @classmethod
    def from_config_manager( cls, config_mgr ) -> "AudioConfig":
        """
        Build a config from ConfigurationManager settings.

        Ensures:
            - Missing keys keep the dataclass defaults
        """
        defaults = cls()
        return cls(
            tts_api_url            = config_mgr.get( "tts api url", defaults.tts_api_url ),
            tts_timeout_seconds    = config_mgr.get( "tts timeout seconds", defaults.tts_timeout_seconds, return_type="float" ),
            max_safe_tts_length    = config_mgr.get( "tts max safe length", defaults.max_safe_tts_length, return_type="int" ),
            max_tts_input_length   = config_mgr.get( "tts max input length", defaults.max_tts_input_length, return_type="int" ),
            default_author_name    = config_mgr.get( "tts default author name", defaults.default_author_name ),
            max_chunk_size         = config_mgr.get( "audio max chunk size", defaults.max_chunk_size, return_type="int" ),
            ffmpeg_path            = config_mgr.get( "audio ffmpeg path", defaults.ffmpeg_path ),
            download_timeout       = config_mgr.get( "audio download timeout seconds", defaults.download_timeout, return_type="float" ),
            max_upload_bytes       = config_mgr.get( "audio max upload bytes", defaults.max_upload_bytes, return_type="int" ),
            audio_bucket           = config_mgr.get( "storage bucket audio", defaults.audio_bucket ),
            merged_bucket          = config_mgr.get( "storage bucket merged", defaults.merged_bucket ),
            google_max_segment_len = config_mgr.get( "audio google max segment length", defaults.google_max_segment_len, return_type="int" ),
            google_pause_ms        = config_mgr.get( "audio google pause ms", defaults.google_pause_ms, return_type="int" ),
            google_silence_ms      = config_mgr.get( "audio google silence ms", defaults.google_silence_ms, return_type="int" ),
            google_language_code   = config_mgr.get( "audio google language code", defaults.google_language_code ),
        )
