"""
Order lifecycle errors

These are raised before any state mutation and surfaced to the caller.
"""


class OrderLifecycleError(Exception):
    """Base exception for rejected order operations"""
    pass


class ValidationError(OrderLifecycleError):
    """Bad input shape or range"""
    pass


class DuplicateOrderError(ValidationError):
    """Order number already taken"""
    pass


class InvalidStateError(OrderLifecycleError):
    """Order is not in the state the transition requires"""
    pass


class InvalidStatusError(OrderLifecycleError):
    """Status value outside the allowed set"""
    pass


class NotFoundError(OrderLifecycleError):
    """Unknown order id"""
    pass
