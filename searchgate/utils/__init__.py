"""Utilities package - Flat structure (no nested directories)"""

# Hash utilities
from .hash_utils import hash_string, generate_cache_key, generate_rate_key, normalize_query_text

# URL utilities
from .url_utils import identity_key, is_http_url, is_tracking_param

__all__ = [
    "hash_string",
    "generate_cache_key",
    "generate_rate_key",
    "normalize_query_text",
    "identity_key",
    "is_http_url",
    "is_tracking_param",
]
