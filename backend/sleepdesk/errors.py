"""Domain exceptions shared by the store, services and routes.

Authorization outcomes are never raised; they travel as ``Decision`` values.
Everything here maps onto an HTTP status in the app-wide error handler.
"""
from __future__ import annotations
from typing import Optional


class DomainError(Exception):
    status = 500
    title = 'Internal Server Error'


class StoreUnavailable(DomainError):
    status = 503
    title = 'Service Unavailable'

    def __init__(self, message: str, collection: Optional[str] = None):
        super().__init__(message)
        self.collection = collection


class NotFound(DomainError):
    status = 404
    title = 'Not Found'

    def __init__(self, collection: str, record_id):
        super().__init__(f'{collection} {record_id} not found')
        self.collection = collection
        self.record_id = record_id


class ValidationError(DomainError):
    status = 400
    title = 'Bad Request'


class Conflict(DomainError):
    status = 409
    title = 'Conflict'


class InvalidTransition(Conflict):
    def __init__(self, current: str, target: str, field_name: str = 'status'):
        super().__init__(f'Invalid {field_name} transition {current} -> {target}')
        self.current = current
        self.target = target


class RetryLimitExceeded(Conflict):
    def __init__(self, webhook_id: str, attempts: int, max_attempts: int):
        super().__init__(f'Webhook {webhook_id} reached {attempts} attempts (max {max_attempts})')
        self.webhook_id = webhook_id
        self.attempts = attempts
        self.max_attempts = max_attempts


__all__ = [
    'DomainError', 'StoreUnavailable', 'NotFound', 'ValidationError', 'Conflict',
    'InvalidTransition', 'RetryLimitExceeded',
]
