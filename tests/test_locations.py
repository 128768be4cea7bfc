"""Tests for the location lookup table."""

from pos_metrics.locations import Location, LocationDirectory, is_known_timezone
from pos_metrics.store import schema as t


def directory():
    return LocationDirectory(
        [
            Location("guid-downtown-1", name="Bistro", location_name="Downtown", timezone="America/Chicago"),
            Location("guid-airport-2", name="Bistro Airport"),
        ],
        ["guid-downtown-1", "guid-airport-2"],
    )


def test_resolve_by_guid_name_or_default():
    d = directory()
    assert d.resolve("GUID-AIRPORT-2") == "guid-airport-2"
    assert d.resolve("downtown") == "guid-downtown-1"
    assert d.resolve("airport") == "guid-airport-2"
    assert d.resolve("nowhere") == "guid-downtown-1"
    assert d.resolve(None) == "guid-downtown-1"


def test_resolve_without_configured_locations():
    assert LocationDirectory([Location("x")]).resolve("x") is None


def test_names_and_timezones():
    d = directory()
    assert d.name("guid-downtown-1") == "Downtown"
    assert d.name("guid-airport-2") == "Bistro Airport"
    assert d.name("unknown-guid") == "unknown-"
    assert d.timezone("guid-downtown-1") == "America/Chicago"
    assert d.timezone("guid-airport-2") == "America/New_York"


def test_load_from_store(engine):
    with engine.begin() as conn:
        conn.execute(t.locations.insert().values(guid="g1", name="Bistro", timezone="America/Denver"))
    d = LocationDirectory.load(engine, ["g1"], "UTC")
    assert len(d) == 1
    assert d.timezone("g1") == "America/Denver"
    assert d.timezone("g2") == "UTC"
    d.add(Location("g1", "Bistro", "Uptown", "America/Denver"))
    assert d.name("g1") == "Uptown"


def test_unknown_timezone_falls_back_to_default():
    d = LocationDirectory([Location("g1", timezone="Not/AZone"), Location("g2", timezone="../etc")], ["g1"], "UTC")
    assert d.timezone("g1") == "UTC"
    assert d.timezone("g2") == "UTC"
    assert is_known_timezone("Europe/Paris")
    assert not is_known_timezone("Not/AZone")
