import asyncio

import pytest

from conftest import candidate
from dispatchquote.models.location import InvalidTransitionError, Location, LocationKind, ResolutionState, Stop
from dispatchquote.repositories.base import GeocodingError, ReverseGeocodingError
from dispatchquote.services.location import LocationResolver, RequestTokens, ResolutionSession


@pytest.fixture
def resolver(maps_adapter, settings):
    return LocationResolver(maps_adapter, settings)


@pytest.mark.asyncio
async def test_coordinate_input_skips_network(resolver, maps_adapter):
    result = await resolver.resolve("https://www.google.com/maps/@33.8938,35.5018,15z")

    assert result.is_ok
    location = result.value
    assert (location.lat, location.lng) == (33.8938, 35.5018)
    assert location.address == "33.893800, 35.501800"
    assert location.place_id == "GPS"
    assert location.original_link == "https://www.google.com/maps/@33.8938,35.5018,15z"
    assert maps_adapter.calls == []


@pytest.mark.asyncio
async def test_restricted_geocode_wins_first(resolver, maps_adapter):
    maps_adapter.restricted["Hamra"] = [candidate(33.896, 35.482, "Hamra, Beirut", "hamra-id")]
    maps_adapter.unrestricted["Hamra"] = [candidate(1.0, 1.0, "Elsewhere")]

    result = await resolver.resolve("  Hamra ", LocationKind.DESTINATION)

    assert result.is_ok
    assert result.value.address == "Hamra, Beirut"
    assert result.value.place_id == "hamra-id"
    assert result.value.source_text == "  Hamra "
    assert result.value.original_link == "https://www.google.com/maps/search/?api=1&query=Hamra"
    assert maps_adapter.calls == [("geocode", "Hamra", "LB")]


@pytest.mark.asyncio
async def test_falls_back_to_place_search_with_region_bias(resolver, maps_adapter):
    maps_adapter.places["ABC Verdun"] = [
        {"name": "ABC Verdun", "geometry": {"location": {"lat": 33.88, "lng": 35.48}}}
    ]

    result = await resolver.resolve("ABC Verdun")

    assert result.is_ok
    assert result.value.address == "ABC Verdun"
    assert result.value.place_id == "GEOCODED_STOP"
    assert maps_adapter.calls == [
        ("geocode", "ABC Verdun", "LB"),
        ("place_search", "ABC Verdun", (33.8938, 35.5018, 30000)),
    ]


@pytest.mark.asyncio
async def test_falls_back_to_unrestricted_geocode(resolver, maps_adapter):
    maps_adapter.restricted["Larnaca"] = GeocodingError("quota")
    maps_adapter.places["Larnaca"] = [{"geometry": {"location": {"lat": "nan", "lng": 33.6}}}]
    maps_adapter.unrestricted["Larnaca"] = [candidate(34.92, 33.62, "Larnaca, Cyprus")]

    result = await resolver.resolve("Larnaca")

    assert result.is_ok
    assert result.value.address == "Larnaca, Cyprus"
    assert [call[0] for call in maps_adapter.calls] == ["geocode", "place_search", "geocode"]


@pytest.mark.asyncio
async def test_all_fallbacks_exhausted_names_input(resolver, maps_adapter):
    result = await resolver.resolve("nowhere street")

    assert not result.is_ok
    assert result.error.kind == "resolution_failed"
    assert result.error.text == "nowhere street"
    assert "nowhere street" in result.error.message
    assert len(maps_adapter.calls) == 3


@pytest.mark.asyncio
async def test_blank_input_fails_without_network(resolver, maps_adapter):
    result = await resolver.resolve("   ")

    assert result.error.kind == "resolution_failed"
    assert maps_adapter.calls == []


@pytest.mark.asyncio
async def test_reverse_uses_first_candidate(resolver, maps_adapter):
    maps_adapter.reverse = [candidate(33.9, 35.5, "Gemmayzeh, Beirut", "gem-id")]

    location = await resolver.reverse(33.9, 35.5)

    assert location.address == "Gemmayzeh, Beirut"
    assert location.place_id == "gem-id"


@pytest.mark.asyncio
async def test_reverse_falls_back_to_coordinates(resolver, maps_adapter):
    maps_adapter.reverse = ReverseGeocodingError("denied")

    location = await resolver.reverse(33.8938, 35.5018)

    assert location.address == "33.893800, 35.501800"
    assert location.place_id == "GPS"


def test_request_tokens_latest_wins():
    tokens = RequestTokens()
    first = tokens.issue("pickup")
    second = tokens.issue("pickup")
    other = tokens.issue("destination")

    assert not tokens.is_current("pickup", first)
    assert tokens.is_current("pickup", second)
    assert tokens.is_current("destination", other)


@pytest.mark.asyncio
async def test_stale_response_never_overwrites_newer_request(resolver, maps_adapter):
    maps_adapter.restricted["Old Place"] = [candidate(33.1, 35.1, "Old Place")]
    maps_adapter.restricted["New Place"] = [candidate(33.2, 35.2, "New Place")]
    maps_adapter.gates = {"Old Place": asyncio.Event(), "New Place": asyncio.Event()}
    session = ResolutionSession(resolver)

    older = asyncio.create_task(session.resolve_field(LocationKind.PICKUP, "Old Place"))
    await asyncio.sleep(0)
    newer = asyncio.create_task(session.resolve_field(LocationKind.PICKUP, "New Place"))
    await asyncio.sleep(0)

    maps_adapter.gates["New Place"].set()
    newer_result = await newer
    maps_adapter.gates["Old Place"].set()
    older_result = await older

    assert newer_result.is_ok
    assert older_result is None
    assert session.locations["pickup"].address == "New Place"


@pytest.mark.asyncio
async def test_map_click_reverse_geocode_follows_token_rule(resolver, maps_adapter):
    session = ResolutionSession(resolver)
    maps_adapter.reverse = [candidate(33.9, 35.5, "Pinned spot", "pin-id")]

    location = await session.resolve_coordinate("destination", 33.9, 35.5)

    assert location.address == "Pinned spot"
    assert session.locations["destination"] is location


def test_stop_state_transitions():
    stop = Stop(text="hamra")
    assert stop.state == ResolutionState.UNRESOLVED

    stop.begin()
    assert stop.state == ResolutionState.PENDING

    stop.succeed(Location(lat=33.89, lng=35.48, source_text="hamra", address="Hamra, Beirut"))
    assert stop.state == ResolutionState.RESOLVED
    assert stop.text == "Hamra, Beirut"

    stop.edit("HAMRA, beirut ")
    assert stop.state == ResolutionState.RESOLVED

    stop.edit("Verdun")
    assert stop.state == ResolutionState.STALE

    stop.begin()
    stop.fail()
    assert stop.state == ResolutionState.UNRESOLVED
    assert stop.location is None


def test_stop_rejects_out_of_order_transition():
    stop = Stop(text="hamra")

    with pytest.raises(InvalidTransitionError):
        stop.succeed(Location(lat=33.89, lng=35.48, source_text="hamra"))


@pytest.mark.asyncio
async def test_resolve_stops_is_sequential_and_stops_at_first_failure(resolver, maps_adapter):
    maps_adapter.restricted["first"] = [candidate(33.1, 35.1, "First Stop")]
    maps_adapter.restricted["third"] = [candidate(33.3, 35.3, "Third Stop")]
    session = ResolutionSession(resolver)
    session.add_stop("first")
    session.add_stop("  ")
    session.add_stop("second")
    session.add_stop("third")

    result = await session.resolve_stops()

    assert not result.is_ok
    assert result.error.text == "second"
    assert result.error.stop_index == 2
    assert session.stops[0].state == ResolutionState.RESOLVED
    assert session.stops[2].state == ResolutionState.UNRESOLVED
    assert session.stops[3].state == ResolutionState.UNRESOLVED
    assert all(call[1] != "third" for call in maps_adapter.calls)


@pytest.mark.asyncio
async def test_edit_while_pending_discards_in_flight_result(resolver, maps_adapter):
    maps_adapter.restricted["slow"] = [candidate(33.1, 35.1, "Slow Stop")]
    maps_adapter.gates = {"slow": asyncio.Event()}
    session = ResolutionSession(resolver)
    session.add_stop("slow")

    task = asyncio.create_task(session.resolve_stop(0))
    await asyncio.sleep(0)
    session.edit_stop(0, "something else")
    maps_adapter.gates["slow"].set()

    assert await task is None
    assert session.stops[0].state == ResolutionState.UNRESOLVED
    assert session.stops[0].text == "something else"


@pytest.mark.asyncio
async def test_resolve_stops_failure_names_stop_index(resolver, maps_adapter):
    maps_adapter.restricted["Hamra"] = [candidate(33.896, 35.482, "Hamra, Beirut")]
    session = ResolutionSession(resolver)
    session.add_stop("Hamra")
    session.add_stop("Nowhere")

    result = await session.resolve_stops()

    assert result.error.kind == "resolution_failed"
    assert result.error.stop_index == 1
    assert result.error.text == "Nowhere"
    assert session.stops[0].state == ResolutionState.RESOLVED
