"""
Search and transformation over text.

Provides sed-style ``s/pattern/replacement/flags`` substitution.
"""

from textcore.core.search.sed import (
    SedCommand,
    SedCommandParser,
    SedPreview,
)

__all__ = [
    'SedCommand',
    'SedCommandParser',
    'SedPreview',
]
