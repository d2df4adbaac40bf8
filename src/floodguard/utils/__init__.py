"""
Utility modules for FloodGuard.

Provides:
- logging: Logging setup with secret filtering
- text: String similarity, keyword extraction and link detection
"""

from floodguard.utils.logging import get_logger, setup_logging, set_debug
from floodguard.utils.text import contains_link, extract_keywords, levenshtein, similarity

__all__ = [
    "get_logger",
    "setup_logging",
    "set_debug",
    "contains_link",
    "extract_keywords",
    "levenshtein",
    "similarity",
]
