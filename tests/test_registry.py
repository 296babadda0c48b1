import json
import logging
import threading

import httpx
import pytest

from settlement.config import PayoutConfig
from settlement.registry import PayoutRegistry, RegistryState

RECIPIENT = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
DESTINATION = f"test.receiver.eth.31337.EURC.{RECIPIENT}.abc123"
TREASURY = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
TX_HASH = "0x" + "cd" * 32


def make_config():
    return PayoutConfig(
        rpc_url="http://anvil.test:8545",
        treasury_address=TREASURY,
        operator_private_key="ac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80",
        expected_chain_id=31337,
    )


def node_transport(calls, *, send_response=None, refuse=False):
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        calls.append(body["method"])
        if refuse:
            raise httpx.ConnectError("connection refused", request=request)
        if body["method"] == "eth_sendTransaction":
            payload = send_response or {"result": TX_HASH}
        else:
            payload = {"result": "0x1"}
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], **payload})

    return httpx.MockTransport(handler)


def make_registry(calls, **kwargs) -> PayoutRegistry:
    return PayoutRegistry(http_client=httpx.AsyncClient(transport=node_transport(calls, **kwargs)))


def test_registry_starts_uninitialized():
    registry = PayoutRegistry()

    assert registry.state is RegistryState.UNINITIALIZED
    assert registry.service is None


def test_initialize_without_config_disables():
    registry = PayoutRegistry()

    assert registry.initialize(None) is True
    assert registry.state is RegistryState.DISABLED
    assert registry.service is None


def test_initialize_is_one_time():
    registry = make_registry([])

    assert registry.initialize(make_config()) is True
    service = registry.service
    assert registry.state is RegistryState.READY

    assert registry.initialize(None) is False
    assert registry.initialize(make_config()) is False
    assert registry.state is RegistryState.READY
    assert registry.service is service


def test_disabled_registry_stays_disabled():
    registry = PayoutRegistry()
    registry.initialize(None)

    assert registry.initialize(make_config()) is False
    assert registry.state is RegistryState.DISABLED


def test_concurrent_initialize_transitions_once():
    registry = make_registry([])
    results = []
    barrier = threading.Barrier(8)

    def attempt():
        barrier.wait()
        results.append(registry.initialize(make_config()))

    threads = [threading.Thread(target=attempt) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count(True) == 1
    assert registry.state is RegistryState.READY


def test_initialize_from_env_with_partial_config_disables(monkeypatch):
    monkeypatch.setenv("ETHEREUM_RPC_URL", "http://anvil.test:8545")
    monkeypatch.setenv("TREASURY_ADDRESS", TREASURY)
    registry = PayoutRegistry()

    assert registry.initialize_from_env() is True
    assert registry.state is RegistryState.DISABLED


def test_initialize_from_env_with_invalid_chain_id_disables(monkeypatch):
    monkeypatch.setenv("ETHEREUM_RPC_URL", "http://anvil.test:8545")
    monkeypatch.setenv("TREASURY_ADDRESS", TREASURY)
    monkeypatch.setenv("OPERATOR_PRIVATE_KEY", "ac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80")
    monkeypatch.setenv("CHAIN_ID", "anvil")
    registry = PayoutRegistry()

    registry.initialize_from_env()

    assert registry.state is RegistryState.DISABLED


def test_initialize_from_env_ready(monkeypatch):
    monkeypatch.setenv("ETHEREUM_RPC_URL", "http://anvil.test:8545")
    monkeypatch.setenv("TREASURY_ADDRESS", TREASURY)
    monkeypatch.setenv("OPERATOR_PRIVATE_KEY", "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80")
    monkeypatch.setenv("CHAIN_ID", "31337")
    registry = make_registry([])

    assert registry.initialize_from_env() is True
    assert registry.state is RegistryState.READY
    assert registry.service.config.expected_chain_id == 31337
    assert registry.service.operator_address == "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


@pytest.mark.anyio("asyncio")
async def test_maybe_execute_payout_submits(caplog):
    calls = []
    registry = make_registry(calls)
    registry.initialize(make_config())

    with caplog.at_level(logging.INFO, logger="settlement.registry"):
        result = await registry.maybe_execute_payout(DESTINATION, 100, 1)

    assert result is None
    assert calls.count("eth_sendTransaction") == 1
    assert f"tx={TX_HASH}" in caplog.text
    await registry.aclose()


@pytest.mark.anyio("asyncio")
async def test_non_payout_destination_is_ignored():
    calls = []
    registry = make_registry(calls)
    registry.initialize(make_config())

    await registry.maybe_execute_payout("test.receiver.user.abc123", 100, 1)

    assert calls == []
    await registry.aclose()


@pytest.mark.anyio("asyncio")
async def test_uninitialized_and_disabled_registries_do_nothing():
    calls = []
    uninitialized = make_registry(calls)
    disabled = make_registry(calls)
    disabled.initialize(None)

    await uninitialized.maybe_execute_payout(DESTINATION, 100, 1)
    await disabled.maybe_execute_payout(DESTINATION, 100, 1)

    assert calls == []


@pytest.mark.anyio("asyncio")
async def test_failures_are_logged_and_swallowed(caplog):
    calls = []
    registry = make_registry(calls, refuse=True)
    registry.initialize(make_config())

    with caplog.at_level(logging.WARNING, logger="settlement.registry"):
        await registry.maybe_execute_payout(DESTINATION, 100, 1)

    assert "Ethereum payout failed" in caplog.text
    assert "eth_sendTransaction" not in calls
    await registry.aclose()


@pytest.mark.anyio("asyncio")
async def test_malformed_payout_destination_is_swallowed(caplog):
    calls = []
    registry = make_registry(calls)
    registry.initialize(make_config())

    with caplog.at_level(logging.WARNING, logger="settlement.registry"):
        await registry.maybe_execute_payout("a.eth.b", 100, 1)

    assert calls == []
    assert "Failed to parse Ethereum destination" in caplog.text
    await registry.aclose()


@pytest.mark.anyio("asyncio")
async def test_contract_revert_counts_as_processed(caplog):
    calls = []
    registry = make_registry(
        calls,
        send_response={"error": {"message": "execution reverted: already processed"}},
    )
    registry.initialize(make_config())

    with caplog.at_level(logging.INFO):
        await registry.maybe_execute_payout(DESTINATION, 100, 1)

    assert "tx=already_processed" in caplog.text
    assert "Ethereum payout failed" not in caplog.text
    await registry.aclose()
