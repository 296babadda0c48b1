import sys
from pathlib import Path

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

PAYOUT_ENV = (
    "ETHEREUM_RPC_URL",
    "TREASURY_ADDRESS",
    "OPERATOR_PRIVATE_KEY",
    "CHAIN_ID",
    "PAYOUT_GAS_LIMIT",
    "PAYOUT_RPC_TIMEOUT_SECONDS",
    "PAYOUT_STRICT_CHAIN_ID",
)


@pytest.fixture(autouse=True)
def clean_payout_env(monkeypatch, tmp_path):
    for name in PAYOUT_ENV:
        monkeypatch.delenv(name, raising=False)
    # keep a developer's .env out of the settings under test
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def anyio_backend():
    return "asyncio"
