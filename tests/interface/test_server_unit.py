import time
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from lexicard.consts import VERSION
from lexicard.domain.errors import ImportFailure
from lexicard.infrastructure.repositories import InMemoryRepository
from lexicard.server import app, get_clock, get_repo

client = TestClient(app)

ROWS = [
    {"term": "till", "translation": "直到"},
    {"term": "Till", "translation": "直到"},
    {"term": "till", "translation": "收银台"},
    {"term": "yacht", "translation": "游艇", "phonetic": "/jɒt/"},
    {"term": "Word", "translation": "释义"},
]


@pytest.fixture
def repo(mock_home, monkeypatch, clock):
    monkeypatch.setenv("LEXICARD_BACKEND", "memory")
    memory = InMemoryRepository()
    app.dependency_overrides[get_repo] = lambda: memory
    app.dependency_overrides[get_clock] = lambda: clock
    yield memory
    app.dependency_overrides.clear()


def _import(rows=ROWS, label="8.28"):
    return client.post("/import", json={"batch_label": label, "rows": rows})


def _start(**body):
    response = client.post("/sessions", json=body)
    assert response.status_code == 200
    return response.json()


def test_health_check():
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == VERSION


def test_get_version():
    response = client.get("/version")
    assert response.status_code == 200
    assert response.json() == {"version": VERSION}


def test_import_endpoint(repo):
    response = _import()

    assert response.status_code == 200
    data = response.json()
    assert data["batch_label"] == "8.28"
    assert (data["new_count"], data["updated_count"], data["conflict_count"], data["skipped_count"]) == (
        3,
        1,
        1,
        1,
    )
    assert len(data["preview"]) == 4
    assert len(repo.list_review_states()) == 3


def test_import_endpoint_rejects_malformed_body(repo):
    response = client.post("/import", json={"rows": []})
    assert response.status_code == 422


@patch("lexicard.application.importer.ImportService.import_rows")
def test_import_failure_is_500(mock_import, repo):
    mock_import.side_effect = ImportFailure("8.28", "disk full")

    response = _import()

    assert response.status_code == 500
    assert "disk full" in response.json()["detail"]


def test_session_lifecycle(repo):
    _import()
    session = _start(size=10, seed=5)
    session_id = session["session_id"]

    assert len(session["items"]) == 3
    current = session["current"]
    assert current["card_id"] == session["items"][0]["card_id"]

    # Grading before reveal is refused and records nothing
    response = client.post(f"/sessions/{session_id}/grade", json={"grade": "good", "latency": 2.0})
    assert response.status_code == 409
    assert repo.get_review_state(current["card_id"]).reps == 0

    revealed = client.post(f"/sessions/{session_id}/reveal")
    assert revealed.status_code == 200
    assert revealed.json()["card_id"] == current["card_id"]

    graded = client.post(f"/sessions/{session_id}/grade", json={"grade": "good", "latency": 2.0})
    assert graded.status_code == 200
    body = graded.json()
    assert body["correct"] is True
    assert body["interval"] == 1
    assert body["summary"] == {"attempted": 1, "correct": 1, "accuracy": 100, "remaining": 2}
    assert repo.get_review_state(current["card_id"]).reps == 1

    state = client.get(f"/sessions/{session_id}").json()
    assert len(state["items"]) == 2

    abandoned = client.delete(f"/sessions/{session_id}")
    assert abandoned.status_code == 200
    assert abandoned.json()["attempted"] == 1
    assert client.get(f"/sessions/{session_id}").status_code == 404


def test_again_keeps_item_in_session(repo):
    _import()
    session = _start(size=10, seed=5)
    session_id = session["session_id"]
    first = session["current"]["card_id"]

    client.post(f"/sessions/{session_id}/reveal")
    body = client.post(f"/sessions/{session_id}/grade", json={"grade": "again"}).json()

    assert body["correct"] is False
    ids = [i["card_id"] for i in client.get(f"/sessions/{session_id}").json()["items"]]
    assert ids[-1] == first
    assert len(ids) == 3


def test_preferred_mode(repo):
    _import()
    session = _start(preferred_mode="ipa", seed=1)
    modes = {i["term"]: i["mode"] for i in session["items"]}
    assert modes["yacht"] == "ipa"


def test_empty_session(repo):
    session = _start()
    assert session["items"] == []
    assert session["current"] is None


def test_unknown_session_is_404(repo):
    assert client.get("/sessions/nope").status_code == 404
    assert client.post("/sessions/nope/reveal").status_code == 404


def test_invalid_grade_is_422(repo):
    _import()
    session_id = _start()["session_id"]
    client.post(f"/sessions/{session_id}/reveal")
    response = client.post(f"/sessions/{session_id}/grade", json={"grade": "perfect"})
    assert response.status_code == 422


def test_stats_endpoint(repo):
    _import()
    session_id = _start(seed=2)["session_id"]
    client.post(f"/sessions/{session_id}/reveal")
    client.post(f"/sessions/{session_id}/grade", json={"grade": "hard", "latency": 4.0})

    data = client.get("/stats").json()

    assert [w["days"] for w in data["windows"]] == [7, 30, 90]
    assert data["windows"][0]["attempts"] == 1
    assert data["windows"][0]["accuracy"] == 100
    assert len(data["trend"]) == 7
    assert data["trend"][-1]["day"] == "2026-03-14"
    # the graded card moved to tomorrow
    assert data["trend"][-1]["due"] == 2


def test_second_grade_after_one_reveal_is_409(repo, now):
    _import()
    session = _start(size=10, seed=5)
    session_id = session["session_id"]
    ids = [i["card_id"] for i in session["items"]]

    client.post(f"/sessions/{session_id}/reveal")
    first = client.post(f"/sessions/{session_id}/grade", json={"grade": "good"})
    second = client.post(f"/sessions/{session_id}/grade", json={"grade": "good"})

    assert first.status_code == 200
    assert second.status_code == 409
    remaining = [i["card_id"] for i in client.get(f"/sessions/{session_id}").json()["items"]]
    assert remaining == ids[1:]
    assert len(repo.log_entries_since(now - timedelta(days=1))) == 1


def test_concurrent_grades_count_once(repo, now):
    def slow_clock():
        time.sleep(0.2)
        return now

    app.dependency_overrides[get_clock] = lambda: slow_clock
    _import()
    session_id = _start(size=10, seed=5)["session_id"]

    client.post(f"/sessions/{session_id}/reveal")
    with ThreadPoolExecutor(max_workers=2) as pool:
        responses = list(
            pool.map(
                lambda _: client.post(f"/sessions/{session_id}/grade", json={"grade": "good"}),
                range(2),
            )
        )

    assert sorted(r.status_code for r in responses) == [200, 409]
    assert len(repo.log_entries_since(now - timedelta(days=1))) == 1
    assert len(client.get(f"/sessions/{session_id}").json()["items"]) == 2


def test_finished_session_is_released(repo):
    _import(rows=[{"term": "rival", "translation": "对手"}])
    session_id = _start()["session_id"]

    client.post(f"/sessions/{session_id}/reveal")
    graded = client.post(f"/sessions/{session_id}/grade", json={"grade": "easy"})

    assert graded.status_code == 200
    assert graded.json()["summary"]["remaining"] == 0
    assert session_id not in app.state.sessions
    assert client.get(f"/sessions/{session_id}").status_code == 404


def test_again_on_last_item_keeps_session(repo):
    _import(rows=[{"term": "rival", "translation": "对手"}])
    session_id = _start()["session_id"]

    client.post(f"/sessions/{session_id}/reveal")
    client.post(f"/sessions/{session_id}/grade", json={"grade": "again"})

    assert client.get(f"/sessions/{session_id}").status_code == 200


def test_empty_session_is_not_kept(repo):
    session_id = _start()["session_id"]
    assert client.get(f"/sessions/{session_id}").status_code == 404
