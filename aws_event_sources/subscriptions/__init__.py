"""External subscription management."""

from .sns import SNSSubscriptionManager, SubscriptionState

__all__ = ["SNSSubscriptionManager", "SubscriptionState"]
