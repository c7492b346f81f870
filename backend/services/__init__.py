"""Business logic services."""

from .throttle import (
    RequestThrottle,
    ThrottleMiddleware,
    get_throttle,
    set_throttle,
)

__all__ = [
    "RequestThrottle",
    "ThrottleMiddleware",
    "get_throttle",
    "set_throttle",
]
