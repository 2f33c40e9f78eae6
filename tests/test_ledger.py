import pytest

from conclave_sdk.errors import (InconsistentStateError, JsonRpcCode,
                                 NotFoundError, RpcError, SubmissionError,
                                 TransportError)
from conclave_sdk.ledger import Ledger, RpcLedger
from conclave_sdk.types import EthStatus, StatusCodes, TaskDescriptor
from tests.fakes import CONTRACT, SENDER, TASK_ID, FakeLedger, JsonRpcStub, RpcFault


def _descriptor() -> TaskDescriptor:
    return TaskDescriptor(
        task_id=TASK_ID,
        encrypted_fn=b"\x01" * 40,
        encrypted_args=b"\x02" * 92,
        gas_limit=100_000,
        gas_price=1,
        sender=SENDER,
        user_pub_key=b"\x04" + b"\x05" * 64,
        contract_address=CONTRACT,
    )


def test_fake_and_rpc_ledgers_satisfy_protocol():
    assert isinstance(FakeLedger(), Ledger)
    assert isinstance(RpcLedger(JsonRpcStub().client()), Ledger)


@pytest.mark.asyncio
async def test_submit_sends_descriptor_and_returns_task_id():
    stub = JsonRpcStub({"task.createRecord": lambda p: {"taskId": p["descriptor"]["taskId"], "blockNumber": 9}})
    ledger = RpcLedger(stub.client())
    assert await ledger.submit(_descriptor()) == TASK_ID
    method, params = stub.calls[0]
    assert method == "task.createRecord"
    assert params["descriptor"]["gasLimit"] == 100_000
    assert params["descriptor"]["encryptedFn"] == "0x" + "01" * 40


@pytest.mark.asyncio
async def test_submit_is_never_retried():
    stub = JsonRpcStub({"task.createRecord": {"taskId": TASK_ID}}, fail_first=1)
    ledger = RpcLedger(stub.client(max_retries=5))
    with pytest.raises(TransportError) as ei:
        await ledger.submit(_descriptor())
    assert ei.value.attempts == 1
    assert ei.value.http_status == 503
    assert stub.methods() == ["task.createRecord"]


@pytest.mark.asyncio
@pytest.mark.parametrize("code", [JsonRpcCode.TX_REVERTED, JsonRpcCode.OUT_OF_GAS, JsonRpcCode.TX_REJECTED])
async def test_submit_rejections(code):
    def _reject(params):
        raise RpcFault(int(code), "execution reverted", {"gasUsed": 1})

    ledger = RpcLedger(JsonRpcStub({"task.createRecord": _reject}).client())
    with pytest.raises(SubmissionError) as ei:
        await ledger.submit(_descriptor())
    assert ei.value.code == code
    assert ei.value.task_id == TASK_ID
    assert ei.value.receipt == {"gasUsed": 1}


@pytest.mark.asyncio
async def test_submit_without_task_id():
    ledger = RpcLedger(JsonRpcStub({"task.createRecord": {"blockNumber": 1}}).client())
    with pytest.raises(SubmissionError, match="taskId"):
        await ledger.submit(_descriptor())


@pytest.mark.asyncio
async def test_read_record_retries_transient_failures():
    stub = JsonRpcStub({"task.getRecord": {"ethStatus": 1, "blockNumber": 12}}, fail_first=2)
    record = await RpcLedger(stub.client(max_retries=2)).read_record(TASK_ID)
    assert record.eth_status is EthStatus.IN_PROGRESS
    assert record.block_number == 12
    assert len(stub.calls) == 3


@pytest.mark.asyncio
async def test_read_record_gives_up_after_retries():
    stub = JsonRpcStub({"task.getRecord": {"ethStatus": 1}}, fail_first=10, fail_status=502)
    with pytest.raises(TransportError) as ei:
        await RpcLedger(stub.client(max_retries=2)).read_record(TASK_ID)
    assert ei.value.attempts == 3
    assert ei.value.http_status == 502


@pytest.mark.asyncio
async def test_read_record_not_found():
    ledger = RpcLedger(JsonRpcStub({"task.getRecord": None}).client())
    with pytest.raises(NotFoundError):
        await ledger.read_record(TASK_ID)

    def _missing(params):
        raise RpcFault(int(JsonRpcCode.NOT_FOUND), "no such task")

    ledger = RpcLedger(JsonRpcStub({"task.getRecord": _missing}).client())
    with pytest.raises(NotFoundError) as ei:
        await ledger.read_record(TASK_ID)
    assert ei.value.task_id == TASK_ID


@pytest.mark.asyncio
async def test_custom_status_numbering():
    codes = StatusCodes({"RECEIPT_VERIFIED": 5, "FAILED": 4})
    ledger = RpcLedger(JsonRpcStub({"task.getRecord": {"ethStatus": 4}}).client(), status_codes=codes)
    assert (await ledger.read_record(TASK_ID)).eth_status is EthStatus.FAILED


@pytest.mark.asyncio
async def test_unknown_status_code():
    ledger = RpcLedger(JsonRpcStub({"task.getRecord": {"ethStatus": 9}}).client())
    with pytest.raises(InconsistentStateError):
        await ledger.read_record(TASK_ID)


@pytest.mark.asyncio
async def test_nonce():
    stub = JsonRpcStub({"task.getUserNonce": lambda p: 4 if p["sender"] == SENDER else 0})
    assert await RpcLedger(stub.client()).get_task_nonce(SENDER) == 4

    bad = RpcLedger(JsonRpcStub({"task.getUserNonce": "four"}).client())
    with pytest.raises(RpcError):
        await bad.get_task_nonce(SENDER)
