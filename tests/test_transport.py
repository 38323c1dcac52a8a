from __future__ import annotations

from typing import Any, Dict, List

import pytest
import requests

from client.transport import SheetTransport, TransportError

URL = "https://script.google.com/macros/s/AKfy-test/exec"


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._body = body
        self.text = text

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> Any:
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class FakeSession:
    def __init__(self, response: Any = None) -> None:
        self.headers: Dict[str, str] = {}
        self.response = response
        self.calls: List[Dict[str, Any]] = []

    def _answer(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        if isinstance(self.response, Exception):
            raise self.response
        return self.response

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._answer("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._answer("POST", url, **kwargs)

    def close(self) -> None:
        pass


def test_fetch_state_returns_object() -> None:
    session = FakeSession(FakeResponse(body={"Employees": [{"employeeId": "E1"}]}))
    transport = SheetTransport(timeout=7, session=session)

    assert transport.fetch_state(URL) == {"Employees": [{"employeeId": "E1"}]}
    assert session.calls[0]["timeout"] == 7
    assert session.headers["Content-Type"] == "application/json"


@pytest.mark.parametrize("response", [
    FakeResponse(status_code=500, text="boom"),
    FakeResponse(body=ValueError("Expecting value")),
    FakeResponse(body=[1, 2, 3]),
    requests.ConnectionError("unreachable"),
    requests.Timeout("slow"),
])
def test_fetch_state_errors(response: Any) -> None:
    transport = SheetTransport(session=FakeSession(response))
    with pytest.raises(TransportError):
        transport.fetch_state(URL)


def test_push_state_ignores_response_status() -> None:
    session = FakeSession(FakeResponse(status_code=302, text="Moved"))
    transport = SheetTransport(session=session)
    payload = {"full_sync": True, "data": {}}

    transport.push_state(URL, payload)
    assert session.calls[0]["method"] == "POST"
    assert session.calls[0]["json"] == payload


def test_push_state_network_error() -> None:
    transport = SheetTransport(session=FakeSession(requests.ConnectionError("reset")))
    with pytest.raises(TransportError):
        transport.push_state(URL, {"full_sync": True, "data": {}})
