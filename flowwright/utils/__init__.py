from flowwright.utils.log import setup_logging
from flowwright.utils.retry import DEFAULT_RETRYABLE, RetryOptions, with_retry

__all__ = ["DEFAULT_RETRYABLE", "RetryOptions", "setup_logging", "with_retry"]
