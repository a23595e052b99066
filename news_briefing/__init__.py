"""
News Briefing - ingestion pipeline for workflow-generated news briefings.

This package calls an external workflow engine (blocking or streaming),
unwraps its inconsistently shaped output, and returns a normalized,
classified and ranked list of news items.

Main entry points are `run_pipeline` and the CLI via `news-briefing fetch`.

Example:
    $ news-briefing fetch --endpoint api.example.com --mode streaming
"""

__all__ = ["__version__", "run_pipeline", "process_outputs", "NewsItem", "IngestResult"]
__version__ = "0.1.0"

from .runner import process_outputs, run_pipeline
from .types import IngestResult, NewsItem
