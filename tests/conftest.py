from __future__ import annotations

import logging
import os

import pytest

from conclave_sdk.config import ClientConfig
from conclave_sdk.utils.bytes import to_hex

from tests.fakes import CONTRACT, FakeLedger, FakeWorkerService


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep CONCLAVE_* variables from the developer's shell out of tests."""
    for key in list(os.environ):
        if key.startswith("CONCLAVE_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def caplog_debug(caplog: pytest.LogCaptureFixture) -> pytest.LogCaptureFixture:
    caplog.set_level(logging.DEBUG, logger="conclave_sdk")
    return caplog


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger([0, 1, 2])


@pytest.fixture
def service(ledger: FakeLedger) -> FakeWorkerService:
    return FakeWorkerService(ledger)


@pytest.fixture
def config(service: FakeWorkerService) -> ClientConfig:
    return ClientConfig(
        contract_address=CONTRACT,
        worker_signing_key=to_hex(service.signing_pub),
        poll_interval=0.0,
        poll_max_attempts=10,
        max_retries=2,
        backoff_base=0.0,
        backoff_max=0.0,
    )
