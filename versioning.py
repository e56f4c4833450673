"""Centralised version and naming information.

Single source of truth for the application name and version; the settings
store, the HTTP User-Agent and the command line all import from here.
"""
from __future__ import annotations


APP_NAME: str = "PrefetchViewer"
APP_EXE_NAME: str = "prefetch-viewer"
APP_VERSION: str = "0.3.0"
APP_DESCRIPTION: str = "PrefetchViewer - walk back and forth through a remote image stream with a bounded in-memory prefetch cache."


__all__ = [
    "APP_NAME",
    "APP_EXE_NAME",
    "APP_VERSION",
    "APP_DESCRIPTION",
]
