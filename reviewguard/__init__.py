"""reviewguard — moderation pipeline for user-submitted broker reviews."""

__version__ = "0.1.0"
