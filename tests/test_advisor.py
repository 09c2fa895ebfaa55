from typing import Any

import pytest
import requests

from sparkpath.core.advisor import AdvisorClient, AdvisorError


class FakeResponse:
    """
    Minimal stand-in for requests.Response.
    """

    def __init__(self, status_code: int = 200, body: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._body = body
        self.text = text

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if self._body is None:
            raise ValueError("No JSON object could be decoded")
        return self._body


class FakeSession:
    """
    Records outgoing requests and replays a canned response or error.
    """

    def __init__(self, response: FakeResponse | None = None, error: Exception | None = None) -> None:
        self.response = response or FakeResponse(body={})
        self.error = error
        self.requests: list[tuple[str, str, Any, Any]] = []

    def post(self, url: str, json: Any = None, timeout: Any = None) -> FakeResponse:
        self.requests.append(("POST", url, json, timeout))
        if self.error is not None:
            raise self.error
        return self.response

    def get(self, url: str, timeout: Any = None) -> FakeResponse:
        self.requests.append(("GET", url, None, timeout))
        if self.error is not None:
            raise self.error
        return self.response


def _client(session: FakeSession) -> AdvisorClient:
    return AdvisorClient(
        base_url="http://advisor.test/", timeout=7.5, session=session  # type: ignore[arg-type]
    )


def test_client_defaults_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """
    Base URL and timeout come from the environment when not given.
    """
    monkeypatch.setenv("PYTHON_SERVER_URL", "http://ai.internal:9000/")
    monkeypatch.setenv("ADVISOR_REQUEST_TIMEOUT", "30")
    client = AdvisorClient()
    assert client.base_url == "http://ai.internal:9000"
    assert client.timeout == 30.0


def test_generate_roadmap_posts_form_data() -> None:
    session = FakeSession(FakeResponse(body={"phases": []}))
    client = _client(session)

    assert client.generate_roadmap({"industry": "fintech"}) == {"phases": []}
    method, url, body, timeout = session.requests[0]
    assert (method, url) == ("POST", "http://advisor.test/api/roadmap")
    assert body == {"formData": {"industry": "fintech"}}
    assert timeout == 7.5


def test_failure_prediction_uses_wire_names() -> None:
    session = FakeSession(FakeResponse(body={"failureProbability": 0.3}))
    client = _client(session)

    client.failure_prediction("fintech", 5000, 3, "large", "IN")

    _, url, body, _ = session.requests[0]
    assert url.endswith("/api/failure-prediction")
    assert body == {
        "industry": "fintech",
        "budget": 5000,
        "teamSize": 3,
        "marketSize": "large",
        "country": "IN",
    }


def test_checklist_item_details_merges_item_id() -> None:
    session = FakeSession(FakeResponse(body={"steps": []}))
    client = _client(session)

    client.checklist_item_details("gst-registration", {"country": "IN", "region": "KA"})

    _, url, body, _ = session.requests[0]
    assert url.endswith("/api/checklist/details")
    assert body == {"itemId": "gst-registration", "country": "IN", "region": "KA"}


def test_mentor_reply_sends_history() -> None:
    session = FakeSession(FakeResponse(body={"response": "hi"}))
    client = _client(session)
    history = [{"role": "user", "content": "hello"}]

    client.mentor_reply("next?", history, {"industry": "edtech"})

    _, url, body, _ = session.requests[0]
    assert url.endswith("/api/mentor")
    assert body == {
        "message": "next?",
        "history": history,
        "formData": {"industry": "edtech"},
    }


def test_error_status_raises() -> None:
    session = FakeSession(FakeResponse(status_code=502, text="bad gateway"))
    client = _client(session)

    with pytest.raises(AdvisorError, match="status 502"):
        client.swot_analysis({"name": "Acme"})


def test_connection_error_raises() -> None:
    session = FakeSession(error=requests.ConnectionError("refused"))
    client = _client(session)

    with pytest.raises(AdvisorError, match="refused"):
        client.legal_checklist({"country": "IN", "region": "KA"})


def test_non_json_body_raises() -> None:
    session = FakeSession(FakeResponse(status_code=200, body=None, text="<html>"))
    client = _client(session)

    with pytest.raises(AdvisorError, match="non-JSON"):
        client.task_guidance("Register company", {"industry": "fintech"})


def test_is_alive() -> None:
    session = FakeSession(FakeResponse(status_code=200, text="ok"))
    client = _client(session)
    assert client.is_alive() is True
    assert session.requests[0][:2] == ("GET", "http://advisor.test/api")

    assert _client(FakeSession(FakeResponse(status_code=503))).is_alive() is False
    assert _client(FakeSession(error=requests.Timeout("slow"))).is_alive() is False
