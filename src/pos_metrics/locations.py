"""Location lookup table for a run.

``LocationDirectory`` is built once from the store (plus the configured
location ids) and passed to whatever needs location names or timezones, so
no module has to reach back into the store for them.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import select
from sqlalchemy.engine import Engine

from pos_metrics.store.schema import locations

logger = logging.getLogger(__name__)


def is_known_timezone(name: str) -> bool:
    """True when ``name`` is an IANA zone the zone database can load."""
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


@dataclass(frozen=True)
class Location:
    guid: str
    name: str = ""
    location_name: str = ""
    timezone: str = ""

    @property
    def display_name(self) -> str:
        """Location name, else restaurant name, else the first 8 characters of the guid."""
        return self.location_name or self.name or self.guid[:8]


class LocationDirectory:
    """Guid-indexed locations with name and timezone lookups.

    Args:
        known: Locations with stored metadata.
        configured: Location guids the run is configured for, in order.
        default_timezone: Timezone for locations without one stored.

    Examples:
        >>> d = LocationDirectory(
        ...     [Location("abc123456", name="Bistro", location_name="Downtown")], ["xyz", "abc123456"])
        >>> d.name("abc123456")
        'Downtown'
        >>> d.resolve("downtown")
        'abc123456'

    """

    def __init__(
        self,
        known: Iterable[Location] = (),
        configured: Sequence[str] = (),
        default_timezone: str = "America/New_York",
    ) -> None:
        self._by_guid: dict[str, Location] = {loc.guid: loc for loc in known}
        self.configured = list(configured)
        self.default_timezone = default_timezone

    @classmethod
    def load(
        cls,
        engine: Engine,
        configured: Sequence[str] = (),
        default_timezone: str = "America/New_York",
    ) -> LocationDirectory:
        """Build a directory from the ``locations`` table."""
        with engine.connect() as conn:
            rows = conn.execute(
                select(locations.c.guid, locations.c.name, locations.c.location_name, locations.c.timezone)
            ).all()
        known = [
            Location(r.guid, r.name or "", r.location_name or "", r.timezone or "") for r in rows
        ]
        return cls(known, configured, default_timezone)

    def add(self, location: Location) -> None:
        """Register or replace a location (after a config refresh)."""
        self._by_guid[location.guid] = location

    def get(self, guid: str) -> Location | None:
        return self._by_guid.get(guid)

    def name(self, guid: str) -> str:
        loc = self._by_guid.get(guid)
        return loc.display_name if loc else guid[:8]

    def timezone(self, guid: str) -> str:
        """Stored timezone of a location; the default when missing or unknown."""
        loc = self._by_guid.get(guid)
        tz = loc.timezone if loc else ""
        if tz and not is_known_timezone(tz):
            logger.warning("Unknown timezone %r for %s; using %s", tz, guid, self.default_timezone)
            return self.default_timezone
        return tz or self.default_timezone

    def resolve(self, identifier: str | None) -> str | None:
        """Resolve a guid or (partial, case-insensitive) name to a location guid.

        Falls back to the first configured location; ``None`` when no location
        is configured.
        """
        if not self.configured:
            return None
        if not identifier:
            return self.configured[0]

        needle = identifier.strip().lower()
        for guid in self.configured:
            if guid.lower() == needle:
                return guid
        for loc in self._by_guid.values():
            name = (loc.location_name or loc.name).lower()
            if name and (needle in name or name in needle):
                return loc.guid
        logger.debug("No location matches %r; using %s", identifier, self.configured[0])
        return self.configured[0]

    def __iter__(self) -> Iterator[Location]:
        return iter(self._by_guid.values())

    def __len__(self) -> int:
        return len(self._by_guid)
