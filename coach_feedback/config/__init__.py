"""
Configuration management for coach feedback system.
"""
from .config_manager import ConfigManager, ConfigurationError, Letterhead

__all__ = ['ConfigManager', 'ConfigurationError', 'Letterhead']
