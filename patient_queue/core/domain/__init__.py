"""
Domain Layer - shared DDD building blocks.
"""

from patient_queue.core.domain.exceptions import (
    DomainException,
    EntityNotFoundException,
    IntegrationException,
    ValidationException,
)

__all__ = [
    "DomainException",
    "ValidationException",
    "EntityNotFoundException",
    "IntegrationException",
]
