from unittest.mock import MagicMock

import pytest

from config import Configuration
from services.google_places import GooglePlacesClient, PlacesError, parse_place


def _raw(**overrides):
    raw = {
        "id": "ChIJ123",
        "displayName": {"text": "大衆酒場 みなと"},
        "formattedAddress": "大阪府堺市1-2-3",
        "location": {"latitude": 34.45, "longitude": 135.45},
        "currentOpeningHours": {
            "openNow": True,
            "periods": [
                {"open": {"day": 6, "hour": 23, "minute": 0}, "close": {"day": 0, "hour": 1, "minute": 0}},
                {"open": {"day": 1, "hour": 17, "minute": 0}},
            ],
        },
        "types": ["izakaya_restaurant", "restaurant"],
        "rating": 4.2,
        "reviews": [{"text": {"text": "唐揚げが旨い"}}, {"text": {}}],
        "servesBeer": True,
        "photos": [{"name": "places/ChIJ123/photos/abc"}],
    }
    raw.update(overrides)
    return raw


def _response(payload, status=200):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = status < 400
    resp.json.return_value = payload
    resp.text = str(payload)
    return resp


def test_parse_place_maps_fields():
    c = parse_place(_raw())
    assert c.id == "ChIJ123"
    assert c.name == "大衆酒場 みなと"
    assert (c.lat, c.lng) == (34.45, 135.45)
    assert c.open_now is True
    assert c.periods[0].close_day == 0 and c.periods[0].close_hour == 1
    assert not c.periods[1].has_close
    assert c.types == ("izakaya_restaurant", "restaurant", "serves_beer")
    assert c.reviews == ("唐揚げが旨い",)
    assert c.rating == 4.2
    assert c.photo_name == "places/ChIJ123/photos/abc"
    assert c.maps_uri.startswith("https://www.google.com/maps/search/")


def test_parse_place_tolerates_missing_fields():
    assert parse_place({"displayName": {"text": "no id"}}) is None
    c = parse_place({"id": "x", "location": {"latitude": "bad"}})
    assert c.name == "Unknown"
    assert not c.has_coordinates
    assert c.open_now is None
    assert c.rating is None


def test_search_posts_text_query_and_parses(cfg):
    client = GooglePlacesClient(cfg)
    client.session = MagicMock()
    client.session.request.return_value = _response({"places": [_raw(), {"displayName": {}}]})

    results = client.search((34.45, 135.45), "居酒屋", 1500)

    assert [c.id for c in results] == ["ChIJ123"]
    method, url = client.session.request.call_args.args
    body = client.session.request.call_args.kwargs["json"]
    assert method == "POST"
    assert url.endswith("/v1/places:searchText")
    assert body["textQuery"] == "居酒屋"
    assert body["openNow"] is True
    assert body["locationBias"]["circle"]["radius"] == 1500.0


def test_client_error_raises_without_retry(cfg):
    client = GooglePlacesClient(cfg)
    client.session = MagicMock()
    client.session.request.return_value = _response({"error": "bad"}, status=400)
    with pytest.raises(PlacesError):
        client.search((0.0, 0.0), "x", 100)
    assert client.session.request.call_count == 1


def test_geocode_caches_results():
    client = GooglePlacesClient(Configuration(google_maps_api_key="k"))
    client.session = MagicMock()
    client.session.request.return_value = _response(
        {
            "status": "OK",
            "results": [{"formatted_address": "日本、大阪府堺市", "geometry": {"location": {"lat": 34.5, "lng": 135.4}}}],
        }
    )

    first = client.geocode("堺市")
    second = client.geocode(" 堺市 ")

    assert (first.lat, first.lng, first.name) == (34.5, 135.4, "日本、大阪府堺市")
    assert second == first
    assert client.session.request.call_count == 1


def test_geocode_zero_results():
    client = GooglePlacesClient(Configuration(google_maps_api_key="k"))
    client.session = MagicMock()
    client.session.request.return_value = _response({"status": "ZERO_RESULTS", "results": []})
    assert client.geocode("どこでもない場所") is None
    assert client.geocode("どこでもない場所") is None
    assert client.session.request.call_count == 1
