"""Input validation package."""

from subtracker.validation.validator import InvalidInputDataError, SubscriptionValidator

__all__ = ["InvalidInputDataError", "SubscriptionValidator"]
