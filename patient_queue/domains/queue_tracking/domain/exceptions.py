"""Queue tracking domain exceptions."""

from typing import Any

from patient_queue.core.domain.exceptions import DomainException, IntegrationException


class FetchError(IntegrationException):
    """The clinical data store could not be read (network, timeout, non-2xx, open circuit)."""

    def __init__(self, message: str, original_error: Exception | None = None, service: str = "fhir"):
        super().__init__(service, message, original_error, code="FETCH_ERROR")


class MalformedDataError(DomainException):
    """A resource from the store is missing required fields or has unparsable values."""

    def __init__(self, message: str, resource_type: str | None = None, resource_id: Any = None):
        self.resource_type = resource_type
        self.resource_id = resource_id
        details: dict[str, Any] = {}
        if resource_type:
            details["resource_type"] = resource_type
        if resource_id is not None:
            details["resource_id"] = str(resource_id)
        super().__init__(message, "MALFORMED_DATA", details)
