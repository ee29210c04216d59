from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from directory_harvester.errors import PersistenceError
from directory_harvester.server import create_app

BASE = "https://www.businesslist.com.ng/location/lagos"


@pytest.fixture
def client(harvester_config, outputs_dir, build_harvester) -> TestClient:
    app = create_app(harvester_config, outputs_dir, orchestrator_factory=build_harvester)
    return TestClient(app)


def test_index_lists_endpoints(client) -> None:
    response = client.get("/")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "running"
    assert set(body["endpoints"]) == {"scrape", "scrapeCategory", "download"}


def test_missing_parameters_rejected_before_fetching(client, site) -> None:
    response = client.post("/scrape", json={"baseUrl": BASE, "endPage": 2})
    assert response.status_code == 400
    assert response.json()["error"] == "Missing parameters"
    assert site.call_count == 0


def test_invalid_range_rejected(client, site) -> None:
    response = client.post("/scrape", json={"baseUrl": BASE, "startPage": 3, "endPage": 1})
    assert response.status_code == 400
    assert response.json() == {
        "error": "Invalid page range",
        "details": "Page numbers must be positive and startPage ≤ endPage",
    }
    assert site.call_count == 0


def test_unparseable_base_url_rejected(client, site) -> None:
    response = client.post("/scrape", json={"baseUrl": "http://[::1", "startPage": 1, "endPage": 1})
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid baseUrl"
    assert site.call_count == 0


def test_non_json_body_is_a_bad_request(client) -> None:
    response = client.post("/scrape", content="not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400


def test_successful_scrape(client, site, listing) -> None:
    site.page(f"{BASE}/1", listing("Acme", "1 Broad St"), listing("Beta", "2 Broad St"))

    response = client.post("/scrape", json={"baseUrl": BASE, "startPage": 1, "endPage": 1})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert [item["name"] for item in body["businesses"]] == ["Acme", "Beta"]
    assert body["stats"]["newBusinessesScraped"] == 2
    assert body["stats"]["totalBusinessesSaved"] == 2
    assert body["downloadLink"] == "/download/businesses.csv"

    download = client.get(body["downloadLink"])
    assert download.status_code == 200
    assert download.text.splitlines()[0].startswith("Business Name,Address,Phone Number")
    assert "Acme" in download.text


def test_category_scrape(client, site, listing) -> None:
    site.page(
        "https://www.businesslist.com.ng/category/hotels/1/city:lagos",
        listing("Eko Hotel", "Victoria Island"),
    )
    response = client.post(
        "/scrape-category",
        json={
            "baseUrl": "https://www.businesslist.com.ng/category/hotels/city:lagos",
            "startPage": 1,
            "endPage": 1,
        },
    )
    assert response.status_code == 200
    body = response.json()
    assert body["stats"]["category"] == "hotels"
    assert body["downloadLink"] == "/download/category_hotels.csv"


def test_empty_result_is_a_server_error(client) -> None:
    response = client.post("/scrape", json={"baseUrl": BASE, "startPage": 1, "endPage": 1})
    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "No businesses were scraped. All attempts failed."
    assert body["details"]["errors"][0]["page"] == 1
    assert "proxy" in body["solution"]


def test_write_failure_is_reported(harvester_config, outputs_dir, build_harvester, site, listing) -> None:
    site.page(f"{BASE}/1", listing("Acme", "1 Broad St"))

    def factory():
        harvester = build_harvester()

        def failing_persist(identifier, existing, new):
            raise PersistenceError(identifier, outputs_dir / "x.csv", "write", "disk full")

        harvester.store.merge_and_persist = failing_persist
        return harvester

    client = TestClient(create_app(harvester_config, outputs_dir, orchestrator_factory=factory))
    response = client.post("/scrape", json={"baseUrl": BASE, "startPage": 1, "endPage": 1})

    assert response.status_code == 500
    assert response.json()["error"] == "Failed to save dataset"


def test_download_unknown_file(client) -> None:
    response = client.get("/download/missing.csv")
    assert response.status_code == 404
    assert response.json() == {"error": "File not found"}


def test_download_rejects_traversal(client, tmp_path) -> None:
    (tmp_path / "secret.csv").write_text("x", encoding="utf-8")
    response = client.get("/download/..%2Fsecret.csv")
    assert response.status_code == 404
