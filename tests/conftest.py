import pytest
from fastapi.testclient import TestClient

from stampgate.config import GatewayConfig
from stampgate.errors import LedgerError
from stampgate.ledger import InMemoryLedgerClient
from stampgate.main import create_app

DOC_HASH = "0x" + "11" * 32
ENTITY = "0x" + "22" * 32
CONTRACT = "0x" + "12" * 20


class FailingLedgerClient(InMemoryLedgerClient):
    """Ledger double whose every call fails the way an unreachable node does."""

    def __init__(self, message: str = "insufficient funds for gas * price + value"):
        super().__init__()
        self.message = message

    def _fail(self, name):
        self.calls.append(name)
        raise LedgerError(self.message)

    def estimate_write_cost(self, *args):
        self._fail("estimate_write_cost")

    def submit_write(self, *args):
        self._fail("submit_write")

    def exists(self, fingerprint):
        self._fail("exists")

    def get_record(self, fingerprint):
        self._fail("get_record")

    def latest_block_number(self):
        self._fail("latest_block_number")


def make_config(**overrides) -> GatewayConfig:
    settings = {
        "rpc_url": "http://ledger.test:8545",
        "contract_address": CONTRACT,
        "network": "polygon",
    }
    settings.update(overrides)
    return GatewayConfig(**settings)


@pytest.fixture
def ledger():
    return InMemoryLedgerClient()


@pytest.fixture
def make_client(ledger):
    def _make(ledger_client=None, **overrides):
        app = create_app(make_config(**overrides), ledger_client or ledger)
        return TestClient(app)
    return _make


@pytest.fixture
def client(make_client):
    return make_client()


def stamp_body(document_hash=DOC_HASH, entity=ENTITY, doc_type=1, state=0):
    return {"documentHash": document_hash, "entity": entity, "docType": doc_type, "state": state}
