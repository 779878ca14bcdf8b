"""
Custom exceptions for Digital Counsel.

Provides specific exception types for better error handling and debugging.
"""

from __future__ import annotations


class DigitalCounselError(Exception):
    """Base exception for all Digital Counsel errors."""

    pass


class GenerationError(DigitalCounselError):
    """Raised when a content-generation call fails.

    Always recoverable: the same round can be resubmitted.
    """

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")


class LLMResponseError(GenerationError):
    """Raised when the LLM returns an empty or malformed response."""

    pass


class ValidationError(DigitalCounselError):
    """Raised when a local precondition fails. Never reaches the network."""

    pass


class RoundInProgressError(ValidationError):
    """Raised when an action arrives while a generation call is outstanding."""

    def __init__(self) -> None:
        super().__init__("A response is still being generated for this round.")


class StageTransitionError(DigitalCounselError):
    """Raised when a lifecycle transition is not allowed from the current stage."""

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Cannot move from {current} to {target}")


class NegotiationError(DigitalCounselError):
    """Raised when a negotiation action has no pending proposal to act on."""

    pass


class UnknownLegalAreaError(DigitalCounselError):
    """Raised when a requested legal area is not configured."""

    def __init__(self, area: str) -> None:
        self.area = area
        super().__init__(f"Legal area not found: {area}")


class PlayerMemoryError(DigitalCounselError):
    """Base exception for player memory errors."""

    pass


class DatabaseError(PlayerMemoryError):
    """Raised when database operations fail."""

    pass


class WebSocketError(DigitalCounselError):
    """Base exception for WebSocket communication errors."""

    pass


class InvalidMessageError(WebSocketError):
    """Raised when receiving an invalid message format."""

    def __init__(self, message: str, reason: str) -> None:
        self.original_message = message
        self.reason = reason
        super().__init__(f"Invalid message: {reason}")
