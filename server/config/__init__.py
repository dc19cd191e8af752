"""
Web Search Server Configuration Module
Manages settings and logging for the search orchestrator
"""

from .settings import settings, get_settings, WebSearchSettings
from .logging_config import setup_logging

__all__ = ["settings", "get_settings", "WebSearchSettings", "setup_logging"]
