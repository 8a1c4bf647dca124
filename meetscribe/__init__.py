"""Meeting recorder with cloud transcription, summaries and Notion publishing."""

__version__ = "0.1.0"
