"""Integration tests for floor loading, search and multi-floor routing endpoints."""

from __future__ import annotations

import json

from fastapi.testclient import TestClient

from wayfinder.api import STATE, create_app
from wayfinder.config import Settings


def test_upload_search_and_route_between_rooms(campus_geojson) -> None:
    """POST /floors, then look up rooms by name and route between them."""
    client = TestClient(create_app(Settings()))

    upload_res = client.post("/floors", json={"floors": campus_geojson})
    assert upload_res.status_code == 200
    body = upload_res.json()
    assert body["version"] == 1
    assert [f["floor"] for f in body["floors"]] == ["0", "1"]
    assert body["stair_count"] == 1
    assert body["failures"] == []

    library = client.get("/features/search", params={"q": "library"}).json()["results"][0]
    lab = client.get("/features/search", params={"q": "lab 101"}).json()["results"][0]

    route_res = client.post(
        "/route/features",
        json={"start_feature_id": library["id"], "goal_feature_id": lab["id"]},
    )
    assert route_res.status_code == 200
    route = route_res.json()

    assert route["ok"] is True
    assert [segment["floor"] for segment in route["segments"]] == ["0", "1"]
    assert len(route["transitions"]) == 1
    assert route["transitions"][0]["from_floor"] == "0"
    assert route["transitions"][0]["to_floor"] == "1"
    assert route["instructions"] == ["Take Main Stairs to Second Floor"]
    assert route["summary"] == "Route from Ground Floor to Second Floor via Main Stairs."
    assert route["warnings"] == []

    health = client.get("/health").json()
    assert health["snapshot_version"] == 1
    assert health["floors"] == ["0", "1"]


def test_reload_from_directory_reports_partial_failures(tmp_path, campus_geojson) -> None:
    """A missing floor file is reported and surfaces as a route warning."""
    (tmp_path / "Level0.json").write_text(json.dumps(campus_geojson["0"]), encoding="utf-8")
    (tmp_path / "Level1.json").write_text(json.dumps(campus_geojson["1"]), encoding="utf-8")
    client = TestClient(create_app(Settings(data_dir=tmp_path)))

    reload_res = client.post("/floors/reload")
    assert reload_res.status_code == 200
    assert [f["floor"] for f in reload_res.json()["failures"]] == ["2"]

    route_res = client.post(
        "/route",
        json={
            "start": {"lat": 8.0650, "lon": 123.7560},
            "start_floor": "0",
            "goal": {"lat": 8.0652, "lon": 123.7562},
            "goal_floor": "1",
        },
    )
    assert route_res.status_code == 200
    warnings = route_res.json()["warnings"]
    assert [(w["kind"], w["floor"]) for w in warnings] == [("GeometryLoadFailure", "2")]


def test_failed_upload_keeps_previous_snapshot(campus_geojson) -> None:
    client = TestClient(create_app(Settings()))
    client.post("/floors", json={"floors": campus_geojson})

    res = client.post("/floors", json={"floors": {"0": {"type": "nonsense"}}})

    assert res.status_code == 400
    assert STATE.holder.current().version == 1
    assert client.get("/floors").json()["version"] == 1


def test_disconnected_route_returns_404(line) -> None:
    client = TestClient(create_app(Settings()))
    floors = {
        "0": {"type": "FeatureCollection", "features": [line([(0.0, 0.0), (0.0, 0.001)], indoor="corridor", level="0")]},
        "1": {"type": "FeatureCollection", "features": [line([(0.0, 0.0), (0.0, 0.001)], indoor="corridor", level="1")]},
    }
    assert client.post("/floors", json={"floors": floors}).status_code == 200

    res = client.post(
        "/route",
        json={"start": {"lat": 0.0, "lon": 0.0}, "start_floor": "0", "goal": {"lat": 0.001, "lon": 0.0}, "goal_floor": "1"},
    )

    assert res.status_code == 404
    assert res.json()["detail"].startswith("Disconnected")


def test_search_floor_filter_and_short_query(campus_geojson) -> None:
    client = TestClient(create_app(Settings()))
    client.post("/floors", json={"floors": campus_geojson})

    short = client.get("/features/search", params={"q": "l"}).json()
    on_floor_one = client.get("/features/search", params={"q": "stairs", "floor": "1"}).json()

    assert short == {"query": "l", "results": []}
    assert [hit["floor"] for hit in on_floor_one["results"]] == ["1"]


def test_reload_with_nan_coordinate_still_loads_every_floor(tmp_path, campus_geojson, line) -> None:
    """A NaN in one floor file skips that feature instead of failing the reload."""
    floor1 = dict(campus_geojson["1"])
    floor1["features"] = [
        *campus_geojson["1"]["features"],
        line([(123.7562, 8.0650), (float("nan"), 8.0653)], indoor="corridor", level="1"),
    ]
    (tmp_path / "Level0.json").write_text(json.dumps(campus_geojson["0"]), encoding="utf-8")
    (tmp_path / "Level1.json").write_text(json.dumps(floor1), encoding="utf-8")
    client = TestClient(create_app(Settings(data_dir=tmp_path, floors=["0", "1"])))

    res = client.post("/floors/reload")

    assert res.status_code == 200
    body = res.json()
    assert [f["floor"] for f in body["floors"]] == ["0", "1"]
    assert [f["feature_count"] for f in body["floors"]] == [4, 3]
    assert body["failures"] == []
