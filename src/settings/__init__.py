"""
Dashboard settings
YAML defaults overlaid with environment overrides
"""

from .loader import DEFAULT_PATH, load_settings, load_yaml, merge_env_overrides

__all__ = [
    'DEFAULT_PATH',
    'load_settings',
    'load_yaml',
    'merge_env_overrides',
]
