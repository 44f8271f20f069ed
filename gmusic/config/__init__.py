"""Configuration and session handling for gmusic"""

from .settings import Settings, get_settings, reload_settings
from .session import SessionHandle

__all__ = ['Settings', 'get_settings', 'reload_settings', 'SessionHandle']
