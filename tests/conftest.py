from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Ensure the repository root is importable when running pytest from any CWD.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from client.sync_service import SyncService  # noqa: E402
from client.transport import TransportError  # noqa: E402
from shared.db_helpers import MemoryEntityStore  # noqa: E402
from shared.models import ENDPOINT_FIELD, SyncConfig  # noqa: E402

ENDPOINT = "https://script.google.com/macros/s/AKfy-test/exec"


class FixedClock:
    """Revision clock returning a preset stamp"""

    def __init__(self, start: int = 1000) -> None:
        self.current = start

    def now(self) -> int:
        return self.current

    def set(self, stamp: int) -> None:
        self.current = stamp

    def observe(self, revision: int) -> None:
        pass


class FakeTransport:
    """In-memory stand-in for the spreadsheet endpoint (POST replaces GET state)"""

    def __init__(self, state: Optional[Dict[str, Any]] = None) -> None:
        self.state: Dict[str, Any] = state if state is not None else {}
        self.fetch_error: Optional[Exception] = None
        self.push_error: Optional[Exception] = None
        self.fetches: List[str] = []
        self.pushes: List[Dict[str, Any]] = []
        self.timeout = 10

    def fetch_state(self, url: str) -> Dict[str, Any]:
        self.fetches.append(url)
        if self.fetch_error:
            raise self.fetch_error
        return {k: [dict(r) if isinstance(r, dict) else r for r in v] if isinstance(v, list) else v
                for k, v in self.state.items()}

    def push_state(self, url: str, payload: Dict[str, Any]) -> None:
        if self.push_error:
            raise self.push_error
        self.pushes.append(payload)
        self.state = {k: [dict(r) for r in v] for k, v in payload["data"].items()}


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def store(clock: FixedClock) -> MemoryEntityStore:
    return MemoryEntityStore(clock=clock)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


def make_service(store: MemoryEntityStore, transport: FakeTransport, endpoint: Optional[str] = ENDPOINT) -> SyncService:
    if endpoint is not None:
        company = store.get_company()
        company[ENDPOINT_FIELD] = endpoint
        store.update_company(company)
    return SyncService(store=store, transport=transport, config=SyncConfig(device_id="test", timezone="UTC"))


@pytest.fixture
def service(store: MemoryEntityStore, transport: FakeTransport) -> SyncService:
    return make_service(store, transport)


__all__ = ["ENDPOINT", "FakeTransport", "FixedClock", "TransportError", "make_service"]
