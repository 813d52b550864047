# ============================================================================
# SCOPE: INFRASTRUCTURE LAYER (Queue Tracking)
# Description: IRosterFetcher adapter over the FHIR API.
# ============================================================================
"""FHIR Roster Fetcher.

Reads a practitioner's day roster and the target appointment's encounter,
either in one batch Bundle or as two separate searches. Pure I/O: no retry,
no estimation logic.
"""

import logging
from datetime import date, tzinfo
from typing import Any

import pytz

from ..application.ports import ExternalResponse, RosterSnapshot
from ..domain.entities import AppointmentRef, EncounterRef
from ..domain.exceptions import FetchError
from .external.fhir import BundleBuilder, FHIRClient, FHIRResourceParser
from .external.fhir.resilience import ValidationError, validate_resource_id

logger = logging.getLogger(__name__)


class FHIRRosterFetcher:
    """Implements IRosterFetcher against a FHIR R4 server."""

    def __init__(
        self,
        client: FHIRClient,
        timezone: tzinfo | None = None,
        use_batch: bool = True,
        page_size: int = 100,
        max_pages: int = 10,
        builder: BundleBuilder | None = None,
        parser: FHIRResourceParser | None = None,
    ):
        """Initialize fetcher.

        Args:
            client: FHIR client used for every request.
            timezone: Timezone in which ``day`` is interpreted.
            use_batch: Send roster and encounter searches as one batch Bundle.
            page_size: ``_count`` for the appointment search.
            max_pages: Upper bound on searchset pages followed.
        """
        self._client = client
        self._tz = timezone or pytz.timezone("Australia/Brisbane")
        self._use_batch = use_batch
        self._page_size = page_size
        self._max_pages = max_pages
        self._builder = builder or BundleBuilder()
        self._parser = parser or FHIRResourceParser()

    async def fetch_roster(
        self,
        practitioner_id: str,
        day: date,
        target_appointment_id: str,
    ) -> RosterSnapshot:
        try:
            practitioner_id = validate_resource_id(practitioner_id, "practitioner_id")
            target_appointment_id = validate_resource_id(target_appointment_id, "appointment_id")
        except ValidationError as e:
            raise FetchError(e.message, e) from e

        roster_url = self._builder.roster_search(practitioner_id, day, self._tz, self._page_size)
        encounter_url = self._builder.encounter_search(target_appointment_id)

        if self._use_batch:
            roster_page, encounter_result = await self._fetch_batch(roster_url, encounter_url)
        else:
            roster_page = self._require(await self._client.search(roster_url), "appointment search")
            encounter_result = await self._client.search(encounter_url)

        resources = await self._collect_pages(roster_page)
        appointments = self._parser.parse_roster(resources)
        encounter = self._pick_encounter(encounter_result, target_appointment_id)

        logger.debug(
            f"Fetched roster for Practitioner/{practitioner_id} on {day.isoformat()}: "
            f"{len(appointments)} appointments, encounter={encounter.status.value if encounter else None}"
        )
        return RosterSnapshot(appointments=tuple(appointments), encounter=encounter)

    async def get_appointment(self, appointment_id: str) -> AppointmentRef | None:
        result = await self._client.read("Appointment", appointment_id)
        if result.is_not_found:
            return None
        resource = self._require(result, f"Appointment/{appointment_id}")
        return self._parser.parse_appointment(resource)

    async def close(self) -> None:
        await self._client.close()

    async def _fetch_batch(
        self,
        roster_url: str,
        encounter_url: str,
    ) -> tuple[dict[str, Any], ExternalResponse]:
        result = await self._client.batch([encounter_url, roster_url])
        bundle = self._require(result, "batch request")

        entries = self._parser.batch_entries(bundle)
        if len(entries) != 2:
            raise FetchError(f"Batch response has {len(entries)} entries, expected 2")

        encounter_result, roster_result = entries
        return self._require(roster_result, "appointment search"), encounter_result

    async def _collect_pages(self, first_page: dict[str, Any]) -> list[dict[str, Any]]:
        resources = self._parser.bundle_resources(first_page, "Appointment")
        next_url = self._parser.next_link(first_page)
        pages = 1

        while next_url and pages < self._max_pages:
            page = self._require(await self._client.get_page(next_url), "appointment search page")
            resources.extend(self._parser.bundle_resources(page, "Appointment"))
            next_url = self._parser.next_link(page)
            pages += 1

        if next_url:
            logger.warning(f"Roster truncated after {pages} pages; increase FHIR_MAX_PAGES or FHIR_PAGE_SIZE")

        return resources

    def _pick_encounter(self, result: ExternalResponse, appointment_id: str) -> EncounterRef | None:
        if result.is_not_found:
            return None

        resources = self._parser.bundle_resources(self._require(result, "encounter search"), "Encounter")
        if not resources:
            return None

        encounters = [self._parser.parse_encounter(resource) for resource in resources]
        for encounter in encounters:
            if encounter.appointment_id == appointment_id:
                return encounter
        return encounters[0]

    @staticmethod
    def _require(result: ExternalResponse, what: str) -> dict[str, Any]:
        if not result.success:
            raise FetchError(f"{what} failed: {result.error_code} {result.error_message}")
        data = result.get_dict()
        if not data:
            raise FetchError(f"{what} returned an empty body")
        return data
