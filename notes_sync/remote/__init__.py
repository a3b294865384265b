"""
Remote sources.

Remote sources are consumed only by the sync mediator, page by page.
"""

from .base import RemoteSource, validate_page_request
from .http import HttpNoteSource, HttpSourceConfig
from .simulated import SimulatedNoteApi

__all__ = [
    "RemoteSource",
    "validate_page_request",
    "SimulatedNoteApi",
    "HttpNoteSource",
    "HttpSourceConfig",
]
