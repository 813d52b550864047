# ============================================================================
# SCOPE: INFRASTRUCTURE LAYER (Queue Tracking)
# Description: FHIR resource and Bundle parser.
# ============================================================================
"""FHIR Resource Parser.

Turns FHIR JSON (Appointment, Encounter, searchset and batch-response
Bundles) into domain references.
Single responsibility: response interpretation.
"""

import logging
from datetime import datetime
from typing import Any

from ....application.ports import ExternalResponse
from ....domain.entities import AppointmentRef, EncounterRef
from ....domain.exceptions import MalformedDataError
from ....domain.value_objects import AppointmentStatus, EncounterStatus

logger = logging.getLogger(__name__)

PRACTITIONER_PREFIX = "Practitioner/"
APPOINTMENT_PREFIX = "Appointment/"


def parse_instant(value: Any) -> datetime:
    """Parse a FHIR ``instant``/``dateTime`` string.

    Raises:
        ValueError: If the value is not an ISO-8601 timestamp with a UTC offset.
            Date-only values and local times without an offset are rejected.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Not a timestamp: {value!r}")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None or parsed.utcoffset() is None:
        raise ValueError(f"Timestamp without UTC offset: {value!r}")
    return parsed


def _reference_id(reference: Any, prefix: str) -> str | None:
    if isinstance(reference, str) and reference.startswith(prefix):
        return reference[len(prefix):] or None
    return None


class FHIRResourceParser:
    """Parses FHIR resources into queue tracking references."""

    def parse_appointment(self, resource: dict[str, Any]) -> AppointmentRef:
        """Build an AppointmentRef from an Appointment resource.

        Raises:
            MalformedDataError: If id, status or start is missing or unparsable.
        """
        appointment_id = resource.get("id")
        if not appointment_id:
            raise MalformedDataError("Appointment without id", "Appointment")

        try:
            status = AppointmentStatus(resource.get("status"))
        except ValueError as e:
            raise MalformedDataError(
                f"Unknown appointment status {resource.get('status')!r}", "Appointment", appointment_id
            ) from e

        try:
            start = parse_instant(resource.get("start"))
        except ValueError as e:
            raise MalformedDataError("Appointment start missing or unparsable", "Appointment", appointment_id) from e

        end: datetime | None = None
        if resource.get("end") is not None:
            try:
                end = parse_instant(resource.get("end"))
            except ValueError:
                logger.warning(f"Ignoring unparsable end on Appointment/{appointment_id}: {resource.get('end')!r}")

        return AppointmentRef(
            id=str(appointment_id),
            start=start,
            status=status,
            end=end,
            practitioner_id=self._practitioner_id(resource),
        )

    def parse_encounter(self, resource: dict[str, Any]) -> EncounterRef:
        """Build an EncounterRef from an Encounter resource."""
        appointment_id = None
        for reference in resource.get("appointment") or []:
            appointment_id = _reference_id((reference or {}).get("reference"), APPOINTMENT_PREFIX)
            if appointment_id:
                break

        return EncounterRef(
            status=EncounterStatus(resource.get("status")),
            appointment_id=appointment_id,
            id=resource.get("id"),
        )

    def parse_roster(self, resources: list[dict[str, Any]]) -> list[AppointmentRef]:
        """Parse a list of Appointment resources, skipping malformed ones."""
        roster: list[AppointmentRef] = []
        for resource in resources:
            try:
                roster.append(self.parse_appointment(resource))
            except MalformedDataError as e:
                logger.warning(f"Skipping malformed appointment in roster: {e.message}")
        return roster

    def bundle_resources(self, bundle: dict[str, Any] | None, resource_type: str) -> list[dict[str, Any]]:
        """Resources of ``resource_type`` in a searchset Bundle (included resources are skipped)."""
        if not bundle:
            return []
        resources = []
        for entry in bundle.get("entry") or []:
            resource = (entry or {}).get("resource")
            if isinstance(resource, dict) and resource.get("resourceType") == resource_type:
                resources.append(resource)
        return resources

    def next_link(self, bundle: dict[str, Any] | None) -> str | None:
        """URL of the next searchset page, if any."""
        for link in (bundle or {}).get("link") or []:
            if link.get("relation") == "next" and link.get("url"):
                return link["url"]
        return None

    def batch_entries(self, bundle: dict[str, Any] | None) -> list[ExternalResponse]:
        """Split a ``batch-response`` Bundle into one ExternalResponse per entry, in request order."""
        results: list[ExternalResponse] = []
        for entry in (bundle or {}).get("entry") or []:
            response = (entry or {}).get("response") or {}
            status_code = self._entry_status(response.get("status"))
            if status_code is not None and 200 <= status_code < 300:
                results.append(ExternalResponse.ok(entry.get("resource"), status_code=status_code))
            else:
                results.append(
                    ExternalResponse.error(
                        "BATCH_ENTRY_FAILED",
                        f"Batch entry failed with status {response.get('status')!r}",
                        status_code=status_code,
                    )
                )
        return results

    @staticmethod
    def _entry_status(status: Any) -> int | None:
        # e.g. "200 OK", "404 Not Found"
        if not status:
            return None
        try:
            return int(str(status).split()[0])
        except ValueError:
            return None

    @staticmethod
    def _practitioner_id(resource: dict[str, Any]) -> str | None:
        for participant in resource.get("participant") or []:
            actor = (participant or {}).get("actor") or {}
            practitioner_id = _reference_id(actor.get("reference"), PRACTITIONER_PREFIX)
            if practitioner_id:
                return practitioner_id
        return None
