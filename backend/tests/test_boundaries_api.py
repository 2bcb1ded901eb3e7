"""API endpoint tests for the department and municipality endpoints.

This module exercises the FastAPI application end to end with the GDAL
command-line tools and the remote object store faked out:
    - repeated department requests are served from the cache,
    - DELETE /api/cache forces a fresh load,
    - municipalities missing locally are downloaded into a temporary file
      that no longer exists once the response is sent,
    - unknown departments return 404 with ``{"error": ...}``,
    - materialization and transport failures return 500 and are not cached,
    - every other failure is still answered with a JSON body.

Settings are injected by monkeypatching config.get_settings, and the
feature cache lives on the application created for each test.
"""

from __future__ import annotations

import json
import pathlib
from collections.abc import Callable
from typing import Any

import pytest
from fastapi import testclient

from census_api import main
from census_api.core import config
from census_api.services import boundaries, remote
from census_api.utils import gdal_helpers

REMOTE_TEMPLATE = "https://bucket.example.com/DPTO_CCDGO_{code}.gpkg"


class FakeGdal:
    """Fake run_command serving one feature per dataset path."""

    def __init__(self) -> None:
        self.opened: list[pathlib.Path] = []
        self.existed: list[bool] = []
        self.fail_reads = False

    def __call__(
        self, command: Any, workdir: pathlib.Path | None = None
    ) -> str:
        args = [str(part) for part in command]
        path = pathlib.Path(args[4])
        if args[0] == "ogrinfo":
            self.opened.append(path)
            self.existed.append(path.exists())
            return json.dumps({"layers": [{"name": path.stem}]})
        if self.fail_reads:
            raise gdal_helpers.CommandError("ERROR 1: failed to read feature")
        return json.dumps(
            {
                "type": "FeatureCollection",
                "features": [
                    {
                        "type": "Feature",
                        "properties": {"layer": args[5], "size": 1},
                        "geometry": {
                            "type": "Polygon",
                            "coordinates": [
                                [[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 0.0]]
                            ],
                        },
                    }
                ],
            }
        )


class FakeResponse:
    """Minimal streaming response for requests.get."""

    def __init__(self, status_code: int = 200, body: bytes = b"") -> None:
        self.status_code = status_code
        self.body = body

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def iter_content(self, chunk_size: int = 1) -> Any:
        yield self.body

    def __enter__(self) -> FakeResponse:
        return self

    def __exit__(self, *args: Any) -> None:
        return None


def _settings(tmp_path: pathlib.Path, **overrides: Any) -> config.Settings:
    data_dir = tmp_path / "data"
    data_dir.mkdir(exist_ok=True)
    values: dict[str, Any] = {
        "data_dir": data_dir,
        "temp_dir": tmp_path / "tmp",
        "remote_url_template": REMOTE_TEMPLATE,
        "allow_origins": ["*"],
    }
    values.update(overrides)
    settings = config.Settings(**values)
    settings.ensure_directories()
    return settings


def _client(
    monkeypatch: pytest.MonkeyPatch,
    settings: config.Settings,
    gdal: Callable[..., str],
) -> testclient.TestClient:
    monkeypatch.setattr(config, "get_settings", lambda: settings)
    monkeypatch.setattr(gdal_helpers, "run_command", gdal)
    return testclient.TestClient(main.create_app())


def test_departments_served_from_cache(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: pathlib.Path,
) -> None:
    """Two requests within the TTL open the dataset once."""
    settings = _settings(tmp_path)
    settings.department_path.write_bytes(b"gpkg")
    gdal = FakeGdal()
    client = _client(monkeypatch, settings, gdal)

    first = client.get("/api/departments")
    second = client.get("/api/departments")

    assert first.status_code == 200
    assert first.json()["type"] == "FeatureCollection"
    assert first.json()["features"][0]["properties"]["layer"] == "department"
    assert second.content == first.content
    assert gdal.opened == [settings.department_path]


def test_clear_cache_triggers_reload(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: pathlib.Path,
) -> None:
    """DELETE /api/cache makes the next request load again."""
    settings = _settings(tmp_path)
    settings.department_path.write_bytes(b"gpkg")
    (settings.data_dir / "DPTO_CCDGO_05.gpkg").write_bytes(b"gpkg")
    gdal = FakeGdal()
    client = _client(monkeypatch, settings, gdal)

    client.get("/api/departments")
    client.get("/api/municipalities/05")
    assert len(gdal.opened) == 2

    cleared = client.delete("/api/cache")
    assert cleared.status_code == 200
    assert cleared.json() == {"message": "Cache cleared"}

    assert client.get("/api/departments").status_code == 200
    assert len(gdal.opened) == 3
    assert client.get("/api/departments").status_code == 200
    assert len(gdal.opened) == 3
    assert client.get("/api/municipalities/05").status_code == 200
    assert len(gdal.opened) == 4


def test_departments_missing_returns_404(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: pathlib.Path,
) -> None:
    settings = _settings(tmp_path)
    client = _client(monkeypatch, settings, FakeGdal())

    response = client.get("/api/departments")

    assert response.status_code == 404
    assert response.json()["error"] == "Departments data not found"


def test_municipalities_from_local_file(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: pathlib.Path,
) -> None:
    settings = _settings(tmp_path)
    local = settings.data_dir / "DPTO_CCDGO_05.gpkg"
    local.write_bytes(b"gpkg")
    gdal = FakeGdal()

    def no_network(url: str, **kwargs: Any) -> FakeResponse:
        raise AssertionError("remote must not be used")

    monkeypatch.setattr(remote.requests, "get", no_network)
    client = _client(monkeypatch, settings, gdal)

    response = client.get("/api/municipalities/05")

    assert response.status_code == 200
    assert len(response.json()["features"]) == 1
    assert gdal.opened == [local]


def test_municipalities_downloaded_to_temp_file(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: pathlib.Path,
) -> None:
    """Remote datasets are parsed from a temp file removed afterwards."""
    settings = _settings(tmp_path)
    gdal = FakeGdal()
    urls: list[str] = []

    def fake_get(url: str, **kwargs: Any) -> FakeResponse:
        urls.append(url)
        return FakeResponse(200, b"remote-gpkg")

    monkeypatch.setattr(remote.requests, "get", fake_get)
    client = _client(monkeypatch, settings, gdal)

    response = client.get("/api/municipalities/05")

    assert response.status_code == 200
    assert len(response.json()["features"]) > 0
    assert urls == ["https://bucket.example.com/DPTO_CCDGO_05.gpkg"]
    assert len(gdal.opened) == 1
    temp_path = gdal.opened[0]
    assert gdal.existed == [True]
    assert temp_path.parent == settings.temp_dir
    assert not temp_path.exists()

    cached = client.get("/api/municipalities/05")
    assert cached.content == response.content
    assert urls == ["https://bucket.example.com/DPTO_CCDGO_05.gpkg"]


def test_municipalities_not_found(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: pathlib.Path,
) -> None:
    """No local file and no remote object returns 404."""
    settings = _settings(tmp_path)
    monkeypatch.setattr(
        remote.requests, "get", lambda url, **kw: FakeResponse(404)
    )
    client = _client(monkeypatch, settings, FakeGdal())

    response = client.get("/api/municipalities/99")

    assert response.status_code == 404
    assert response.json()["error"] == "Municipality data not found"
    assert list(settings.temp_dir.iterdir()) == []


def test_municipalities_not_found_without_remote(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: pathlib.Path,
) -> None:
    settings = _settings(tmp_path, remote_url_template=None)
    client = _client(monkeypatch, settings, FakeGdal())

    response = client.get("/api/municipalities/99")

    assert response.status_code == 404
    assert response.json()["error"] == "Municipality data not found"


def test_municipalities_invalid_code(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: pathlib.Path,
) -> None:
    settings = _settings(tmp_path)
    client = _client(monkeypatch, settings, FakeGdal())

    response = client.get("/api/municipalities/abc")

    assert response.status_code == 404
    body = response.json()
    assert body["error"] == "Municipality data not found"
    assert "Invalid department code" in body["details"]


def test_remote_unavailable_returns_500(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: pathlib.Path,
) -> None:
    settings = _settings(tmp_path)
    monkeypatch.setattr(
        remote.requests, "get", lambda url, **kw: FakeResponse(503)
    )
    client = _client(monkeypatch, settings, FakeGdal())

    response = client.get("/api/municipalities/05")

    assert response.status_code == 500
    assert response.json()["error"] == "Remote dataset unavailable"
    assert "503" in response.json()["details"]


def test_read_failure_returns_500_and_is_not_cached(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: pathlib.Path,
) -> None:
    """A failed load is reported and retried on the next request."""
    settings = _settings(tmp_path)
    settings.department_path.write_bytes(b"gpkg")
    gdal = FakeGdal()
    gdal.fail_reads = True
    client = _client(monkeypatch, settings, gdal)

    failed = client.get("/api/departments")
    assert failed.status_code == 500
    assert failed.json()["error"] == "Failed to read dataset layer"
    assert "failed to read feature" in failed.json()["details"]

    gdal.fail_reads = False
    recovered = client.get("/api/departments")
    assert recovered.status_code == 200
    assert len(gdal.opened) == 2


def test_unusable_temp_dir_returns_json_500(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: pathlib.Path,
) -> None:
    """A temp directory that cannot be created is a JSON error."""
    blocker = tmp_path / "blocker"
    blocker.write_bytes(b"")
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    settings = config.Settings(
        data_dir=data_dir,
        temp_dir=blocker / "sub",
        remote_url_template=REMOTE_TEMPLATE,
    )
    monkeypatch.setattr(
        remote.requests, "get", lambda url, **kw: FakeResponse(200, b"gpkg")
    )
    client = _client(monkeypatch, settings, FakeGdal())

    response = client.get("/api/municipalities/05")

    assert response.status_code == 500
    assert response.headers["content-type"] == "application/json"
    assert response.json()["error"] == "Remote dataset unavailable"
    assert "Cannot stage download" in response.json()["details"]


def test_undecodable_gdal_output_returns_json_500(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: pathlib.Path,
) -> None:
    """GDAL output that is not UTF-8 fails as a dataset error."""
    settings = _settings(tmp_path)
    settings.department_path.write_bytes(b"gpkg")
    monkeypatch.setattr(config, "get_settings", lambda: settings)

    def fake_run(*args: Any, **kwargs: Any) -> None:
        raise UnicodeDecodeError("utf-8", b"\xe9", 0, 1, "invalid byte")

    monkeypatch.setattr(gdal_helpers.subprocess, "run", fake_run)
    client = testclient.TestClient(main.create_app())

    response = client.get("/api/departments")

    assert response.status_code == 500
    assert response.json()["error"] == "Failed to open dataset"
    assert "not UTF-8" in response.json()["details"]


def test_non_object_ogrinfo_output_returns_json_500(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: pathlib.Path,
) -> None:
    settings = _settings(tmp_path)
    settings.department_path.write_bytes(b"gpkg")
    client = _client(
        monkeypatch, settings, lambda command, workdir=None: "[]"
    )

    response = client.get("/api/departments")

    assert response.status_code == 500
    assert response.json()["error"] == "Failed to open dataset"


def test_unexpected_failure_returns_json_500(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: pathlib.Path,
) -> None:
    """Failures outside the boundary error types still answer in JSON."""
    settings = _settings(tmp_path)
    monkeypatch.setattr(config, "get_settings", lambda: settings)

    def broken(settings: config.Settings) -> Any:
        raise ValueError("unexpected")

    monkeypatch.setattr(boundaries, "load_departments", broken)
    client = testclient.TestClient(
        main.create_app(), raise_server_exceptions=False
    )

    response = client.get("/api/departments")

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


def test_clear_cache_during_load_forces_reload(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: pathlib.Path,
) -> None:
    """A load that overlaps DELETE /api/cache is not kept."""
    settings = _settings(tmp_path)
    settings.department_path.write_bytes(b"gpkg")
    gdal = FakeGdal()
    client = _client(monkeypatch, settings, gdal)
    cache = client.app.state.feature_cache  # type: ignore[attr-defined]

    def clearing_gdal(
        command: Any, workdir: pathlib.Path | None = None
    ) -> str:
        if len(gdal.opened) == 0:
            cache.invalidate_all()
        return gdal(command, workdir)

    monkeypatch.setattr(gdal_helpers, "run_command", clearing_gdal)

    assert client.get("/api/departments").status_code == 200
    assert client.get("/api/departments").status_code == 200
    assert client.get("/api/departments").status_code == 200
    assert len(gdal.opened) == 2
