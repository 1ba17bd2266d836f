r"""Retry package: policy, predicates, body lifecycle and the retry
transports.

Public API:
    - RetryPolicy: Configuration for retry behavior
    - default_retry_if: Default retry predicate
    - RetryTransport: Synchronous retry transport
    - AsyncRetryTransport: Asynchronous retry transport
    - with_body_supplier: Attach a per-attempt body supplier to a request
"""

from __future__ import annotations

__all__ = [
    "AsyncRetryTransport",
    "BodySupplier",
    "RetryPolicy",
    "RetryPredicate",
    "RetryTransport",
    "default_retry_if",
    "is_replayable",
    "is_retryable_status",
    "with_body_supplier",
]

from retrychain.retry.body import BodySupplier, is_replayable, with_body_supplier
from retrychain.retry.executor import RetryTransport
from retrychain.retry.executor_async import AsyncRetryTransport
from retrychain.retry.policy import RetryPolicy
from retrychain.retry.predicate import RetryPredicate, default_retry_if, is_retryable_status
