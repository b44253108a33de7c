"""Retry decisions for failed job attempts.

Errors are classified by case-insensitive substring match against their
message, so existing policy files that list raw text such as ``"429"`` or
``"rate_limit"`` keep working. The delay between attempts is fixed.
"""

from __future__ import annotations

from gib.schemas.models import RetryPolicy


def error_message(error: BaseException | str) -> str:
    """Text an error is matched against (the class name when the message is empty)."""
    if isinstance(error, str):
        return error
    return str(error) or type(error).__name__


def should_retry(error: BaseException | str, attempt_index: int, policy: RetryPolicy) -> bool:
    """True iff another attempt is allowed and the error matches a retryable pattern.

    ``attempt_index`` is 0-based: the first failed attempt is index 0.
    """
    if attempt_index >= policy.max_retries:
        return False
    message = error_message(error).lower()
    return any(pattern.lower() in message for pattern in policy.patterns)


def retry_delay_seconds(policy: RetryPolicy) -> float:
    return policy.retry_delay_ms / 1000
