"""
Config module - Defaults and the validated options of a harvesting run.
"""

from .settings import (
    BRANCH_URLS,
    CROM_API_URL,
    DEFAULT_SETTINGS,
    OUTPUT_FORMATS,
    USER_AGENT,
)
from .options import ListPagesOptions, TXM_FIELDS

__all__ = [
    'BRANCH_URLS',
    'CROM_API_URL',
    'DEFAULT_SETTINGS',
    'OUTPUT_FORMATS',
    'USER_AGENT',
    'ListPagesOptions',
    'TXM_FIELDS',
]
