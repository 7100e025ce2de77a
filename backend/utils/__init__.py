from .logger import setup_logging, get_logger, refresh_logger, api_logger
from .retry import RetryConfig, RetryableClient
from .parsing import safe_float, safe_int, split_list

__all__ = [
    # Logger
    "setup_logging",
    "get_logger",
    "refresh_logger",
    "api_logger",

    # Retry
    "RetryConfig",
    "RetryableClient",

    # Parsing
    "safe_float",
    "safe_int",
    "split_list",
]
