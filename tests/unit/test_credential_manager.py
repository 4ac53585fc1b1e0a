import threading
import time
from typing import Optional

import pytest

from photo_share_upload.config import ConfigManager
from photo_share_upload.core import (
    CallbackTokenSupplier,
    CredentialManager,
    StaticTokenSupplier,
    TokenStore,
)
from photo_share_upload.models import Credential
from photo_share_upload.utils.errors import AuthUnavailableError


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class CountingSupplier:
    def __init__(self, clock: FakeClock, gate: Optional[threading.Event] = None) -> None:
        self.clock = clock
        self.gate = gate
        self.calls = 0
        self._lock = threading.Lock()

    def request_fresh_token(self) -> Optional[Credential]:
        with self._lock:
            self.calls += 1
            number = self.calls
        if self.gate is not None:
            self.gate.wait(5)
        return Credential(token=f"token-{number}", issued_at=self.clock())


class FailingSupplier:
    def __init__(self) -> None:
        self.calls = 0

    def request_fresh_token(self) -> Optional[Credential]:
        self.calls += 1
        raise RuntimeError("host app unavailable")


def _wait_until_idle(manager: CredentialManager) -> None:
    deadline = time.monotonic() + 5
    while manager.refresh_pending() and time.monotonic() < deadline:
        time.sleep(0.01)


def _build_manager(supplier, clock: FakeClock) -> tuple[CredentialManager, TokenStore]:
    store = TokenStore(clock=clock)
    manager = CredentialManager(store, supplier, ConfigManager(), clock=clock)
    return manager, store


def test_fresh_credential_returned_without_refresh() -> None:
    clock = FakeClock()
    supplier = CountingSupplier(clock)
    manager, store = _build_manager(supplier, clock)
    store.replace(Credential(token="fresh", issued_at=clock.now - 10))

    credential = manager.get_usable_credential()

    assert credential.token == "fresh"
    assert manager.refresh_requests == 0
    assert supplier.calls == 0
    manager.shutdown()


def test_stale_credential_returned_while_refreshing() -> None:
    clock = FakeClock()
    supplier = CountingSupplier(clock)
    manager, store = _build_manager(supplier, clock)
    store.replace(Credential(token="stale", issued_at=clock.now - 301))

    credential = manager.get_usable_credential()

    assert credential.token == "stale"
    _wait_until_idle(manager)
    assert store.current().token == "token-1"
    assert manager.get_usable_credential().token == "token-1"
    manager.shutdown()


def test_missing_credential_returns_none_and_requests_refresh() -> None:
    clock = FakeClock()
    gate = threading.Event()
    supplier = CountingSupplier(clock, gate=gate)
    manager, store = _build_manager(supplier, clock)

    assert manager.get_usable_credential() is None
    assert manager.refresh_pending()

    gate.set()
    assert manager.wait_for_credential(timeout=5).token == "token-1"
    manager.shutdown()


def test_concurrent_requests_share_one_refresh() -> None:
    clock = FakeClock()
    gate = threading.Event()
    supplier = CountingSupplier(clock, gate=gate)
    manager, store = _build_manager(supplier, clock)
    store.replace(Credential(token="stale", issued_at=clock.now - 600))
    results: list[Optional[Credential]] = []
    results_lock = threading.Lock()

    def worker() -> None:
        credential = manager.get_usable_credential()
        with results_lock:
            results.append(credential)

    threads = [threading.Thread(target=worker) for _ in range(10)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert manager.refresh_requests == 1
    assert [credential.token for credential in results] == ["stale"] * 10

    gate.set()
    _wait_until_idle(manager)
    assert supplier.calls == 1
    manager.shutdown()


def test_new_refresh_allowed_after_previous_completes() -> None:
    clock = FakeClock()
    supplier = CountingSupplier(clock)
    manager, store = _build_manager(supplier, clock)

    manager.request_refresh().result(timeout=5)
    clock.now += 400
    manager.request_refresh().result(timeout=5)

    assert supplier.calls == 2
    assert store.current().token == "token-2"
    manager.shutdown()


def test_force_refresh_replaces_rejected_credential() -> None:
    clock = FakeClock()
    supplier = CountingSupplier(clock)
    manager, store = _build_manager(supplier, clock)
    store.replace(Credential(token="rejected", issued_at=clock.now - 5))

    credential = manager.force_refresh(rejected=store.current())

    assert credential.token == "token-1"
    assert supplier.calls == 1
    manager.shutdown()


def test_supplier_failure_keeps_previous_credential() -> None:
    clock = FakeClock()
    supplier = FailingSupplier()
    manager, store = _build_manager(supplier, clock)
    store.replace(Credential(token="stale", issued_at=clock.now - 400))

    assert manager.get_usable_credential().token == "stale"
    assert manager.request_refresh().result(timeout=5) is None
    assert store.current().token == "stale"
    manager.shutdown()


def test_deliver_ignores_older_credential() -> None:
    clock = FakeClock()
    manager, store = _build_manager(CountingSupplier(clock), clock)

    assert manager.deliver(Credential(token="pushed", issued_at=clock.now))
    assert not manager.deliver(Credential(token="older", issued_at=clock.now - 60))
    assert manager.get_usable_credential().token == "pushed"
    manager.shutdown()


def test_on_app_resume_refreshes_only_stale_credential() -> None:
    clock = FakeClock()
    supplier = CountingSupplier(clock)
    manager, store = _build_manager(supplier, clock)
    store.replace(Credential(token="fresh", issued_at=clock.now))

    manager.on_app_resume()
    assert manager.refresh_requests == 0

    clock.now += 500
    manager.on_app_resume()
    _wait_until_idle(manager)
    assert manager.refresh_requests == 1
    assert store.current().token == "token-1"
    manager.shutdown()


def test_static_supplier_issues_new_credentials() -> None:
    clock = FakeClock(50.0)
    supplier = StaticTokenSupplier("static-token", clock=clock)

    credential = supplier.request_fresh_token()

    assert credential.token == "static-token"
    assert credential.issued_at == 50.0
    assert credential.expires_at is None


def test_require_usable_credential_raises_without_credential() -> None:
    clock = FakeClock()
    gate = threading.Event()
    manager, _ = _build_manager(CountingSupplier(clock, gate=gate), clock)

    with pytest.raises(AuthUnavailableError) as excinfo:
        manager.require_usable_credential()
    assert excinfo.value.reason == "auth_unavailable"

    gate.set()
    manager.shutdown()


def test_deliver_token_parses_expiry() -> None:
    clock = FakeClock()
    manager, store = _build_manager(CountingSupplier(clock), clock)

    assert manager.deliver_token("not-a-jwt")
    assert store.current().token == "not-a-jwt"
    assert store.current().issued_at == clock.now
    manager.shutdown()


def test_callback_supplier_wraps_host_function() -> None:
    clock = FakeClock(75.0)
    tokens = iter(["host-token", None])
    supplier = CallbackTokenSupplier(lambda: next(tokens), clock=clock)

    credential = supplier.request_fresh_token()

    assert credential == Credential(token="host-token", issued_at=75.0)
    assert supplier.request_fresh_token() is None
