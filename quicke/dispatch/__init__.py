"""Request dispatch layer.

Fans one prompt out to several model providers with:
  - Bounded concurrency (work-conserving slot refill)
  - Retries with exponential backoff and head-of-line requeue
  - Failure classification (retryable vs. terminal)
  - Per-model aggregation that never fails the whole batch
"""
