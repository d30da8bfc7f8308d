"""
Podcast Studio: turns topics and conversations into multi-speaker podcast audio.
"""

__version__ = "0.1.0"
