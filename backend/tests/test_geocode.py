"""Tests for reverse geocoding and place-name reduction."""

import httpx
import pytest

from cinevault.media.geocode import GeocodeResolver, format_location_name


class TestFormatLocationName:

    def test_city_state_country(self):
        payload = {"address": {"city": "San Francisco", "state": "California", "country": "USA"}}
        assert format_location_name(payload) == "San Francisco, California, USA"

    def test_only_first_locality_and_city_level_field(self):
        payload = {
            "address": {
                "neighbourhood": "Mission District",
                "suburb": "Eastern Neighborhoods",
                "village": "Ignored",
                "city": "San Francisco",
                "town": "Ignored Town",
                "county": "San Francisco County",
                "state": "California",
                "country": "United States",
            }
        }
        assert format_location_name(payload) == (
            "Mission District, San Francisco, California, United States"
        )

    def test_fallbacks_within_each_group(self):
        payload = {"address": {"village": "Hallstatt", "county": "Gmunden", "country": "Austria"}}
        assert format_location_name(payload) == "Hallstatt, Gmunden, Austria"

    def test_display_name_when_no_address(self):
        payload = {"display_name": "Null Island, Atlantic Ocean"}
        assert format_location_name(payload) == "Null Island, Atlantic Ocean"

    def test_display_name_when_address_has_no_known_parts(self):
        payload = {"address": {"postcode": "94103"}, "display_name": "94103, USA"}
        assert format_location_name(payload) == "94103, USA"

    def test_nothing_usable(self):
        assert format_location_name({}) is None
        assert format_location_name({"error": "Unable to geocode"}) is None


def _resolver(handler) -> GeocodeResolver:
    return GeocodeResolver(
        base_url="https://geocoder.test",
        user_agent="CineVault-Test/1.0",
        timeout=1.0,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_resolve_sends_coordinates_and_user_agent():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"address": {"town": "Sausalito", "country": "USA"}})

    name = await _resolver(handler).resolve(37.8591, -122.4853)

    assert name == "Sausalito, USA"
    request = seen[0]
    assert request.url.path == "/reverse"
    assert request.url.params["lat"] == "37.8591"
    assert request.url.params["lon"] == "-122.4853"
    assert request.url.params["format"] == "json"
    assert request.url.params["zoom"] == "14"
    assert request.headers["User-Agent"] == "CineVault-Test/1.0"


@pytest.mark.asyncio
async def test_resolve_returns_none_on_http_error():
    resolver = _resolver(lambda request: httpx.Response(503, text="busy"))

    assert await resolver.resolve(1.0, 2.0) is None


@pytest.mark.asyncio
async def test_resolve_returns_none_on_malformed_body():
    resolver = _resolver(lambda request: httpx.Response(200, text="<html>oops</html>"))

    assert await resolver.resolve(1.0, 2.0) is None


@pytest.mark.asyncio
async def test_resolve_returns_none_on_non_object_body():
    resolver = _resolver(lambda request: httpx.Response(200, json=["not", "an", "object"]))

    assert await resolver.resolve(1.0, 2.0) is None


@pytest.mark.asyncio
async def test_resolve_returns_none_on_network_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    assert await _resolver(handler).resolve(1.0, 2.0) is None


@pytest.mark.asyncio
async def test_resolve_returns_none_on_timeout():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    assert await _resolver(handler).resolve(1.0, 2.0) is None
