import json
import os
import stat

import pytest
import typer
from typer.testing import CliRunner

from conclave_sdk import cli
from conclave_sdk.client import ConclaveClient
from conclave_sdk.config import ClientConfig
from conclave_sdk.version import __version__
from tests.fakes import SENDER

runner = CliRunner()


def test_version():
    result = runner.invoke(cli.app, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_grains():
    result = runner.invoke(cli.app, ["grains", "1.5"])
    assert result.exit_code == 0
    assert result.output.strip() == "150000000"


def test_env_reflects_flags():
    result = runner.invoke(cli.app, ["--ledger", "http://ledger.test:1", "env"])
    assert result.exit_code == 0
    assert "http://ledger.test:1" in result.output


def test_main_returns_exit_codes(capsys):
    assert cli.main(["grains", "2"]) == 0
    assert cli.main(["grains", "lots"]) == 1
    assert "error:" in capsys.readouterr().err


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("24:uint256", (24, "uint256")),
        ("0x10:uint", (16, "uint256")),
        ("-3:int8", (-3, "int8")),
        ("true:bool", (True, "bool")),
        ("0xdead:bytes2", (b"\xde\xad", "bytes2")),
        ("a:b:string", ("a:b", "string")),
    ],
)
def test_parse_arg(raw, expected):
    assert cli.parse_arg(raw) == expected


@pytest.mark.parametrize("raw", ["24", "maybe:bool"])
def test_parse_arg_rejects(raw):
    with pytest.raises(typer.BadParameter):
        cli.parse_arg(raw)


@pytest.fixture
def offline_client(monkeypatch, config, ledger, service):
    def _factory(cfg):
        merged = ClientConfig.with_overrides(config, ledger_url=cfg.ledger_url)
        return ConclaveClient(merged, ledger=ledger, worker=service.worker_client())

    monkeypatch.setattr(cli, "ConclaveClient", _factory)
    return ledger


def test_compute_and_wait(offline_client):
    result = runner.invoke(
        cli.app,
        [
            "compute", "add(uint256,uint256)",
            "--arg", "24:uint256", "--arg", "67:uint256",
            "--sender", SENDER, "--gas-limit", "100000", "--gas-price", "0.00000001", "--wait",
        ],
    )
    assert result.exit_code == 0, result.output
    assert "SUCCESS" in result.output
    assert "0x" + "00" * 31 + "5b" in result.output  # 91
    assert offline_client.submitted[0].gas_price == 1


def test_compute_without_wait_needs_a_key_file(offline_client):
    result = runner.invoke(
        cli.app,
        ["compute", "add(uint256,uint256)", "--arg", "1:uint256", "--arg", "2:uint256", "--sender", SENDER],
    )
    assert result.exit_code != 0
    assert offline_client.submitted == []


def test_compute_then_result_from_key_file(offline_client, tmp_path):
    key_file = tmp_path / "task.key.json"
    submitted = runner.invoke(
        cli.app,
        [
            "compute", "add(uint256,uint256)",
            "--arg", "1:uint256", "--arg", "2:uint256",
            "--sender", SENDER, "--key-out", str(key_file),
        ],
    )
    assert submitted.exit_code == 0, submitted.output
    task_id = offline_client.submitted[0].task_id
    assert task_id in submitted.output
    assert offline_client.reads == 0
    keys = json.loads(key_file.read_text())
    assert keys["taskId"] == task_id
    if os.name == "posix":
        assert stat.S_IMODE(key_file.stat().st_mode) == 0o600

    fetched = runner.invoke(cli.app, ["result", task_id, "--key-file", str(key_file), "--wait"])
    assert fetched.exit_code == 0, fetched.output
    assert "SUCCESS" in fetched.output
    assert "0x" + "00" * 31 + "03" in fetched.output


def test_result_rejects_key_file_of_another_task(offline_client, tmp_path):
    key_file = tmp_path / "other.key.json"
    key_file.write_text(
        json.dumps({"taskId": "0x" + "cd" * 32, "userPrivateKey": "0x01", "workerEncryptionKey": "0x02"})
    )
    result = runner.invoke(cli.app, ["result", "0x" + "ab" * 32, "--key-file", str(key_file)])
    assert result.exit_code != 0
    assert offline_client.reads == 0


def test_status(offline_client):
    result = runner.invoke(cli.app, ["status", "0x" + "ab" * 32])
    assert result.exit_code == 0, result.output
    assert "RECORD_CREATED" in result.output
