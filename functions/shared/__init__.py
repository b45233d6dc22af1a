# Shared utilities package
from .background import BackgroundTasks
from .errors import APIError, RateLimitError, UpstreamError
from .kv_store import KVStore
from .response_utils import error_response, success_response

__all__ = [
    "BackgroundTasks",
    "KVStore",
    "APIError",
    "RateLimitError",
    "UpstreamError",
    "error_response",
    "success_response",
]
