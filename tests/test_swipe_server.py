import threading

import pytest
import requests

import pawfectmatch.swipe.server as swipe
from pawfectmatch.errors import AuthError, UpstreamError
from pawfectmatch.models import Candidate, Page, PetEnvironment, PetPhoto, Tristate
from pawfectmatch.swipe.registry import SessionRegistry


def _pets(*ids, photos=True):
    return tuple(
        Candidate(
            id=i,
            name=f"Pet {i}",
            photos=(PetPhoto(medium=f"{i}.jpg"),) if photos else (),
            environment=PetEnvironment(children=Tristate.YES),
        )
        for i in ids
    )


class DummyTokenCache:
    def __init__(self, error=None):
        self.error = error

    def get_token(self):
        if self.error:
            raise self.error
        return "tok"


class DummyClient:
    def __init__(self, pages=None, pets=None, error=None):
        self.pages = pages or {}
        self.pets = pets or {}
        self.error = error
        self.calls = []
        self.token_cache = DummyTokenCache()

    def fetch_page(self, page_number, page_size, remote_params):
        self.calls.append((page_number, page_size, dict(remote_params)))
        if self.error:
            raise self.error
        items = self.pages.get(page_number, ())
        return Page(
            items=tuple(items),
            current_page=page_number,
            total_pages=len(self.pages),
            total_count=sum(len(v) for v in self.pages.values()),
        )

    def fetch_pet(self, pet_id):
        if pet_id not in self.pets:
            raise UpstreamError(404, "Not Found")
        return self.pets[pet_id]


def test_pets_response_applies_remote_and_local_filters():
    items = _pets(*range(1, 13)) + _pets(*range(13, 21), photos=False)
    client = DummyClient(pages={1: items})

    status, body = swipe.pets_response(
        client,
        {
            "type": ["dog"],
            "hasPhotos": ["true"],
            "location": ["Los Angeles"],
            "distance": ["20"],
            "limit": ["20"],
        },
    )

    assert status == 200
    assert body["count"] == 12
    assert len(body["items"]) == 12
    assert body["total_count"] == 20
    assert client.calls == [(1, 20, {"type": "dog"})]


def test_pets_response_clamps_limit_and_page():
    client = DummyClient(pages={1: _pets(1)})
    status, _ = swipe.pets_response(client, {"page": ["0"], "limit": ["5000"]})
    assert status == 200
    assert client.calls[0][:2] == (1, 100)


def test_pets_response_rejects_non_integer_paging():
    status, body = swipe.pets_response(DummyClient(), {"page": ["two"]})
    assert status == 400
    assert "error" in body


@pytest.mark.parametrize(
    "error", [UpstreamError(503, "secret upstream detail"), AuthError("bad key")]
)
def test_pets_response_hides_failure_details(error):
    status, body = swipe.pets_response(DummyClient(error=error), {})
    assert status == 500
    assert body == {"error": "failed to load pets"}


def test_pet_detail_response_maps_not_found():
    client = DummyClient(pets={1: _pets(1)[0]})
    assert swipe.pet_detail_response(client, 1)[1]["item"]["id"] == 1
    status, body = swipe.pet_detail_response(client, 2)
    assert status == 404
    assert body == {"error": "pet not found"}


@pytest.fixture
def live_server():
    client = DummyClient(
        pages={1: _pets(1, 2), 2: _pets(3)},
        pets={99: Candidate(id=99, name="Detail")},
    )
    server = swipe.PawfectMatchServer(("127.0.0.1", 0), client, SessionRegistry(client))
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    host, port = server.server_address[:2]
    try:
        yield f"http://{host}:{port}", client
    finally:
        server.shutdown()
        server.server_close()


def test_swipe_flow_over_http(live_server, monkeypatch):
    monkeypatch.setenv("PAWFECTMATCH_SESSION_SECRET", "unit-test-secret")
    base_url, client = live_server
    http = requests.Session()

    first = http.get(f"{base_url}/api/session/next", timeout=5)
    assert first.status_code == 200
    assert "pawfectmatch_session" in first.headers["Set-Cookie"]
    assert first.json()["item"]["id"] == 1

    decided = http.post(
        f"{base_url}/api/session/decide", json={"id": 1, "decision": "accept"}, timeout=5
    )
    assert decided.json()["decided"] == 1
    assert decided.json()["item"]["id"] == 2

    wrong = http.post(
        f"{base_url}/api/session/decide", json={"id": 1, "decision": "accept"}, timeout=5
    )
    assert wrong.status_code == 400

    http.post(f"{base_url}/api/favorites", json={"id": 99}, timeout=5)
    favorites = http.get(f"{base_url}/api/favorites", timeout=5).json()
    assert [item["id"] for item in favorites["items"]] == [1, 99]

    removed = http.delete(f"{base_url}/api/favorites/99", timeout=5).json()
    assert removed == {"ok": True, "removed": True}

    filtered = http.post(
        f"{base_url}/api/session/filter", json={"type": "dog", "goodWithKids": True}, timeout=5
    ).json()
    assert filtered["item"]["id"] == 1
    assert filtered["status"]["cursor"] == 0
    assert filtered["status"]["favorites"] == 1
    assert client.calls[-1] == (1, 20, {"type": "dog"})


def test_unknown_path_and_bad_json(live_server):
    base_url, _ = live_server
    assert requests.get(f"{base_url}/nope", timeout=5).status_code == 404
    bad = requests.post(
        f"{base_url}/api/session/filter",
        data=b"{not json",
        headers={"Content-Type": "application/json"},
        timeout=5,
    )
    assert bad.status_code == 400
    assert bad.json() == {"error": "invalid json"}


def test_health_endpoint(live_server):
    base_url, _ = live_server
    response = requests.get(f"{base_url}/api/health", timeout=5)
    assert response.json() == {"ok": True}


def test_session_load_failure_is_opaque_and_recovers(monkeypatch):
    monkeypatch.setenv("PAWFECTMATCH_SESSION_SECRET", "unit-test-secret")
    client = DummyClient(pages={1: _pets(1, 2)}, error=UpstreamError(503, "secret detail"))
    server = swipe.PawfectMatchServer(("127.0.0.1", 0), client, SessionRegistry(client))
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    host, port = server.server_address[:2]
    base_url = f"http://{host}:{port}"
    http = requests.Session()
    try:
        failed = http.get(f"{base_url}/api/session/next", timeout=5)
        assert failed.status_code == 502
        assert failed.json() == {"error": "Failed to load pets. Please try again."}
        assert "secret detail" not in failed.text
        assert "503" not in failed.text

        client.error = None
        recovered = http.get(f"{base_url}/api/session/next", timeout=5)
        assert recovered.status_code == 200
        assert recovered.json()["item"]["id"] == 1
        assert [call[0] for call in client.calls] == [1, 1]
    finally:
        server.shutdown()
        server.server_close()
