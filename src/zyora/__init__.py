"""
Zyora virtual try-on client: app state, local persistence and backend access.
"""
from .config import load_config
from .store import AppStore

__all__ = ["load_config", "AppStore"]
