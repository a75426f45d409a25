"""Error taxonomy shared by the services and the HTTP layer.

Every error carries the HTTP status it maps to; the Flask error handler
registered in ``create_app`` turns it into ``{"error": ...}`` JSON.
"""

from typing import Any, Dict, Optional


class GameError(Exception):
    status_code = 400

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.reason = reason

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {'error': self.message}
        if self.reason:
            payload['reason'] = self.reason
        return payload


class ValidationError(GameError):
    """Malformed or missing input. Never retried."""


class NotFoundError(GameError):
    status_code = 404


class StateError(GameError):
    """The operation is not valid for the current state of the record."""


class InsufficientResourceError(GameError):
    def __init__(self, message: str, available: int, required: int, reason: Optional[str] = None):
        super().__init__(message, reason)
        self.available = available
        self.required = required

    @property
    def shortfall(self) -> int:
        return self.required - self.available

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload['available'] = self.available
        payload['shortfall'] = self.shortfall
        return payload


class StoreError(GameError):
    status_code = 500


class AuthError(StateError):
    NOT_FOUND = 'not_found'
    EXPIRED = 'expired'
    WRONG_VARIANT = 'wrong_variant'
    UNVERIFIED = 'unverified'

    def __init__(self, reason: str):
        message = 'Signature verification failed' if reason == self.UNVERIFIED else 'Invalid or expired nonce'
        super().__init__(message, reason)


class SessionNotFound(NotFoundError):
    def __init__(self, reason: str = 'not_found'):
        super().__init__('Invalid session', reason)


class SessionNotAlive(StateError):
    def __init__(self):
        super().__init__('Session not alive', 'not_alive')


class UserNotFound(NotFoundError):
    def __init__(self):
        super().__init__('User not found')


class InsufficientPoints(InsufficientResourceError):
    def __init__(self, available: int, required: int):
        super().__init__(f'Insufficient saved points ({available})', available, required, 'insufficient_points')


class InsufficientBalance(InsufficientResourceError):
    def __init__(self, available: int, required: int):
        super().__init__('Insufficient balance', available, required, 'insufficient_balance')


class BelowMinimum(ValidationError):
    def __init__(self, minimum: int):
        super().__init__(f'Minimum withdrawal is {minimum} HAY', 'below_minimum')
        self.minimum = minimum


class ConflictError(StoreError):
    """Another writer committed a newer version of a row first."""
    status_code = 409

    def __init__(self, message: str = 'Concurrent update; please retry'):
        super().__init__(message, 'conflict')
