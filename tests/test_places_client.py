import json
import threading
from pathlib import Path

from placefinder import config
from placefinder.http import HttpClient, RequestMetrics
from placefinder.models import Budget, Location, PlaceCandidate
from placefinder.places_client import (
    PlacesClient,
    batch_types,
    build_nearby_search_body,
    merge_details,
    parse_place,
    parse_places_response,
)

FIXTURES = Path(__file__).parent / "fixtures"
CENTER = Location(14.5509, 121.0503)


def load_fixture(name):
    return json.loads((FIXTURES / name).read_text(encoding="utf-8"))


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code
        self.headers = {}

    def json(self):
        return self._payload


class RecordingSession:
    """Answers nearby searches per requested type list and details per place id."""

    def __init__(self, search_payloads=None, detail_payloads=None):
        self.search_payloads = search_payloads or {}
        self.detail_payloads = detail_payloads or {}
        self.bodies = []
        self.headers = []
        self.get_urls = []
        self._lock = threading.Lock()

    def post(self, url, data=None, headers=None, timeout=None):
        body = json.loads(data)
        with self._lock:
            self.bodies.append(body)
            self.headers.append(headers)
        key = tuple(body.get("includedTypes", []))
        return FakeResponse(self.search_payloads.get(key, {"places": []}))

    def get(self, url, params=None, headers=None, timeout=None):
        with self._lock:
            self.get_urls.append(url)
        place_id = url.rsplit("/", 1)[-1]
        if place_id not in self.detail_payloads:
            return FakeResponse({}, status_code=404)
        return FakeResponse(self.detail_payloads[place_id])


def make_client(session):
    http_client = HttpClient(api_key="dummy", timeout=1)
    http_client.session = session
    return PlacesClient(http_client, metrics=RequestMetrics(), sleep=lambda _s: None)


def test_parse_places_response_normalizes_fields():
    parsed = parse_places_response(load_fixture("places_search_nearby.json"))
    assert [p.id for p in parsed] == ["ChIJ-cafe-1", "ChIJ-bar-2", "ChIJ-diner-3"]

    cafe = parsed[0]
    assert cafe.name == "Kape Kanto"
    assert cafe.address == "5th Ave, Taguig, Metro Manila"
    assert cafe.price_level == 1
    assert cafe.budget is Budget.P
    assert cafe.review_count == 312
    assert cafe.coordinates == Location(14.5512, 121.0489)
    assert cafe.opening_periods[0].open_minute == 7 * 60
    assert cafe.opening_periods[0].close_minute == 15 * 60 + 30

    bar = parsed[1]
    assert bar.price_level == 3
    assert bar.opening_periods[0].close_day == 6

    diner = parsed[2]
    assert diner.rating is None
    assert diner.review_count == 0
    assert diner.price_level is None
    assert diner.opening_periods[0].always_open


def test_parse_tolerates_malformed_payloads():
    assert parse_places_response(None) == []
    assert parse_places_response({"places": "nope"}) == []
    assert parse_places_response({"places": [None, 3, {"id": ""}]}) == []
    place = parse_place({"id": "p1", "location": {"latitude": 200, "longitude": 0}, "rating": "bad"})
    assert place.coordinates is None
    assert place.rating is None
    assert place.name == "p1"


def test_nearby_body_shape(monkeypatch):
    monkeypatch.setattr(config, "PLACES_NEARBY_BODY_EXTRA", {"rankPreference": "DISTANCE"})
    body = build_nearby_search_body(CENTER, 1500, ["cafe", "bar"])
    assert body["locationRestriction"]["circle"] == {
        "center": {"latitude": 14.5509, "longitude": 121.0503},
        "radius": 1500.0,
    }
    assert body["includedTypes"] == ["cafe", "bar"]
    assert body["maxResultCount"] == 20
    assert body["rankPreference"] == "DISTANCE"


def test_batch_types_groups_of_five_without_duplicates():
    types = ["a", "b", "a", "c", "d", "e", "f", "g"]
    assert list(batch_types(types, 5)) == [["a", "b", "c", "d", "e"], ["f", "g"]]


def test_search_fans_out_batches_and_dedupes_in_order(monkeypatch):
    monkeypatch.setattr(config, "PLACES_TYPES_PER_REQUEST", 2)
    session = RecordingSession(
        search_payloads={
            ("cafe", "bakery"): {"places": [{"id": "p1"}, {"id": "p2"}]},
            ("bar",): {"places": [{"id": "p2"}, {"id": "p3"}]},
        }
    )
    client = make_client(session)
    results = client.search(["cafe", "bakery", "bar"], 1000, CENTER)

    assert [p.id for p in results] == ["p1", "p2", "p3"]
    assert sorted(tuple(b["includedTypes"]) for b in session.bodies) == [("bar",), ("cafe", "bakery")]
    assert all(h["X-Goog-FieldMask"] == config.PLACES_FIELD_MASK_SEARCH for h in session.headers)
    assert all(h["X-Goog-Api-Key"] == "dummy" for h in session.headers)
    assert client.metrics.network_search == 2


def test_enrich_merges_details_and_keeps_failed_lookups():
    session = RecordingSession(
        detail_payloads={
            "p1": {
                "id": "p1",
                "displayName": {"text": "Place One"},
                "websiteUri": "https://one.example",
                "internationalPhoneNumber": "+63 2 555 0101",
                "photos": [{"name": "places/p1/photos/x"}],
                "priceLevel": "PRICE_LEVEL_MODERATE",
            }
        }
    )
    client = make_client(session)
    base = [
        PlaceCandidate(id="p1", name="Place One", types=("cafe",), score=88.0),
        PlaceCandidate(id="p2", name="Place Two"),
    ]
    enriched = client.enrich(base)

    assert enriched[0].website == "https://one.example"
    assert enriched[0].phone == "+63 2 555 0101"
    assert enriched[0].photos == ("places/p1/photos/x",)
    assert enriched[0].budget is Budget.PP
    assert enriched[0].types == ("cafe",)
    assert enriched[0].score == 88.0
    assert enriched[1] == base[1]
    assert client.metrics.network_details == 1 + 2


def test_merge_details_keeps_base_values_for_missing_fields():
    base = PlaceCandidate(id="p", name="P", rating=4.0, review_count=10, address="here")
    merged = merge_details(base, PlaceCandidate(id="p", name="P", rating=4.5))
    assert merged.rating == 4.5
    assert merged.review_count == 10
    assert merged.address == "here"


def test_count_places_uses_minimal_field_mask():
    session = RecordingSession(search_payloads={("park",): {"places": [{"id": "a"}, {"id": "b"}]}})
    client = make_client(session)
    assert client.count_places(CENTER, 1000, "park") == 2
    assert session.headers[0]["X-Goog-FieldMask"] == config.PLACES_FIELD_MASK_COUNT
    assert client.count_places(CENTER, 1000, "zoo") == 0
