"""
SpeechHub - multi-provider text-to-speech with usage-based cost tracking.
"""

__version__ = "1.0.0"
