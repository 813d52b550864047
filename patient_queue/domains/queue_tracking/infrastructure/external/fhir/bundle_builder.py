# ============================================================================
# SCOPE: INFRASTRUCTURE LAYER (Queue Tracking)
# Description: FHIR search URL and batch Bundle builder.
# ============================================================================
"""FHIR Request Builder.

Builds relative search URLs and ``batch`` Bundles.
Single responsibility: request construction.
"""

from datetime import date, datetime, time, tzinfo
from typing import Any
from urllib.parse import quote, urlencode

from ....domain.entities import to_local


class BundleBuilder:
    """Builds FHIR search URLs and batch Bundles."""

    def search_url(self, resource_type: str, params: list[tuple[str, Any]]) -> str:
        """Build a relative search URL such as ``Appointment?practitioner=1&date=ge...``.

        Params are a list of pairs so that repeated keys (``date=ge..&date=le..``)
        keep their order.
        """
        if not params:
            return resource_type
        return f"{resource_type}?{urlencode([(k, str(v)) for k, v in params], quote_via=quote, safe=':/')}"

    def build_batch(self, urls: list[str]) -> dict[str, Any]:
        """Build a ``batch`` Bundle of GET requests.

        Args:
            urls: Relative request URLs, one entry each.

        Returns:
            Bundle resource as a dict, ready to POST to the base URL.
        """
        return {
            "resourceType": "Bundle",
            "type": "batch",
            "entry": [{"request": {"method": "GET", "url": url}} for url in urls],
        }

    def day_bounds(self, day: date, tz: tzinfo) -> tuple[str, str]:
        """ISO-8601 start and end of ``day`` in ``tz``, both inclusive."""
        start = to_local(datetime.combine(day, time.min), tz)
        end = to_local(datetime.combine(day, time.max), tz)
        return start.isoformat(), end.isoformat()

    def roster_search(
        self,
        practitioner_id: str,
        day: date,
        tz: tzinfo,
        page_size: int,
    ) -> str:
        """Search for every appointment of a practitioner on one local day."""
        start, end = self.day_bounds(day, tz)
        return self.search_url(
            "Appointment",
            [
                ("practitioner", practitioner_id),
                ("date", f"ge{start}"),
                ("date", f"le{end}"),
                ("_sort", "date"),
                ("_count", page_size),
            ],
        )

    def encounter_search(self, appointment_id: str) -> str:
        """Search for the encounter linked to an appointment."""
        return self.search_url("Encounter", [("appointment", f"Appointment/{appointment_id}")])
