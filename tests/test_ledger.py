"""
Ledger client tests.

The web3 client is driven through a mocked Web3 instance; no node is
contacted.
"""

import json
import os
import tempfile
import unittest
from unittest import mock

from eth_account import Account
from tenacity import wait_none
from web3 import Web3

from stampgate.config import GatewayConfig
from stampgate.errors import LedgerError
from stampgate.ledger import (
    STAMP_REGISTRY_ABI,
    InMemoryLedgerClient,
    StampRecord,
    Web3LedgerClient,
    build_ledger_client,
    load_abi,
)

DOC_HASH = "0x" + "11" * 32
ENTITY = "0x" + "22" * 32
CONTRACT = "0x" + "12" * 20
TEST_KEY = "0x" + "4c" * 32


class Web3ClientTestCase(unittest.TestCase):

    def setUp(self):
        self.w3 = mock.MagicMock()
        self.contract = self.w3.eth.contract.return_value
        self.client = Web3LedgerClient(
            rpc_url="http://ledger.test",
            contract_address=CONTRACT,
            private_key=TEST_KEY,
            read_wait=wait_none(),
            web3=self.w3,
        )

    def _client(self, **kwargs):
        settings = dict(rpc_url="http://ledger.test", contract_address=CONTRACT,
                        private_key=TEST_KEY, read_wait=wait_none(), web3=self.w3)
        settings.update(kwargs)
        return Web3LedgerClient(**settings)


class TestWeb3Binding(Web3ClientTestCase):

    def test_contract_bound_with_checksum_address(self):
        _, kwargs = self.w3.eth.contract.call_args
        self.assertEqual(kwargs["address"], Web3.to_checksum_address(CONTRACT))
        self.assertEqual(kwargs["abi"], STAMP_REGISTRY_ABI)

    def test_signing_address(self):
        self.assertEqual(self.client.address, Account.from_key(TEST_KEY).address)


class TestWeb3Writes(Web3ClientTestCase):

    def test_estimate(self):
        self.contract.functions.stamp.return_value.estimate_gas.return_value = 48211
        self.assertEqual(self.client.estimate_write_cost(DOC_HASH, ENTITY, 1, 0), 48211)
        self.contract.functions.stamp.assert_called_with(
            bytes.fromhex("11" * 32), bytes.fromhex("22" * 32), 1, 0)
        self.contract.functions.stamp.return_value.estimate_gas.assert_called_with(
            {"from": self.client.address})

    def test_estimate_failure(self):
        self.contract.functions.stamp.return_value.estimate_gas.side_effect = ValueError("execution reverted")
        with self.assertRaises(LedgerError) as ctx:
            self.client.estimate_write_cost(DOC_HASH, ENTITY, 1, 0)
        self.assertEqual(ctx.exception.detail, "execution reverted")

    def test_submit_signs_and_sends(self):
        self.w3.eth.get_transaction_count.return_value = 7
        self.w3.eth.chain_id = 137
        self.contract.functions.stamp.return_value.build_transaction.return_value = {
            "to": Web3.to_checksum_address(CONTRACT),
            "value": 0,
            "gas": 60000,
            "gasPrice": 30 * 10 ** 9,
            "nonce": 7,
            "chainId": 137,
            "data": "0x1234",
        }
        self.w3.eth.send_raw_transaction.return_value = b"\xaa" * 32

        tx_hash = self.client.submit_write(DOC_HASH, ENTITY, 1, 0, 60000)

        self.assertEqual(tx_hash, "0x" + "aa" * 32)
        self.contract.functions.stamp.return_value.build_transaction.assert_called_once_with({
            "from": self.client.address,
            "nonce": 7,
            "gas": 60000,
            "chainId": 137,
        })
        self.w3.eth.get_transaction_count.assert_called_once_with(self.client.address, "pending")
        self.w3.eth.send_raw_transaction.assert_called_once()

    def test_submit_failure_not_retried(self):
        self.w3.eth.get_transaction_count.return_value = 0
        self.w3.eth.chain_id = 137
        self.contract.functions.stamp.return_value.build_transaction.side_effect = ValueError(
            "insufficient funds for gas * price + value")
        client = self._client(read_retries=5)
        with self.assertRaises(LedgerError) as ctx:
            client.submit_write(DOC_HASH, ENTITY, 1, 0, 60000)
        self.assertIn("insufficient funds", ctx.exception.detail)
        self.assertEqual(self.contract.functions.stamp.return_value.build_transaction.call_count, 1)
        self.w3.eth.send_raw_transaction.assert_not_called()

    def test_writes_need_a_key(self):
        client = self._client(private_key="")
        with self.assertRaises(LedgerError) as ctx:
            client.estimate_write_cost(DOC_HASH, ENTITY, 1, 0)
        self.assertEqual(ctx.exception.detail, "PRIVATE_KEY is not configured")
        with self.assertRaises(LedgerError):
            client.submit_write(DOC_HASH, ENTITY, 1, 0, 1)


class TestWeb3Reads(Web3ClientTestCase):

    def test_exists(self):
        self.contract.functions.exists.return_value.call.return_value = True
        self.assertIs(self.client.exists(DOC_HASH), True)
        self.contract.functions.exists.assert_called_with(bytes.fromhex("11" * 32))

    def test_get_record_maps_tuple(self):
        owner = Web3.to_checksum_address("0x" + "ab" * 20)
        self.contract.functions.getRecord.return_value.call.return_value = (
            owner, 1700000000, 61234567, b"\x22" * 32, 3, 1)
        record = self.client.get_record(DOC_HASH)
        self.assertEqual(record, StampRecord(owner, 1700000000, 61234567, ENTITY, 3, 1))

    def test_malformed_response(self):
        self.contract.functions.getRecord.return_value.call.return_value = (1, 2)
        with self.assertRaises(LedgerError):
            self.client.get_record(DOC_HASH)

    def test_latest_block_number(self):
        self.w3.eth.block_number = 61234567
        self.assertEqual(self.client.latest_block_number(), 61234567)

    def test_reads_not_retried_by_default(self):
        self.contract.functions.exists.return_value.call.side_effect = [ConnectionError("node down"), True]
        with self.assertRaises(LedgerError) as ctx:
            self.client.exists(DOC_HASH)
        self.assertEqual(ctx.exception.detail, "node down")
        self.assertEqual(self.contract.functions.exists.return_value.call.call_count, 1)

    def test_reads_retried_when_configured(self):
        call = self.contract.functions.exists.return_value.call
        call.side_effect = [ConnectionError("node down"), TimeoutError(), True]
        client = self._client(read_retries=2)
        self.assertTrue(client.exists(DOC_HASH))
        self.assertEqual(call.call_count, 3)

    def test_retries_are_bounded(self):
        call = self.contract.functions.exists.return_value.call
        call.side_effect = ConnectionError("node down")
        client = self._client(read_retries=2)
        with self.assertRaises(LedgerError):
            client.exists(DOC_HASH)
        self.assertEqual(call.call_count, 3)


class TestMissingConfiguration(unittest.TestCase):

    def test_no_rpc(self):
        client = Web3LedgerClient(rpc_url="", contract_address=CONTRACT)
        with self.assertRaises(LedgerError) as ctx:
            client.exists(DOC_HASH)
        self.assertEqual(ctx.exception.detail, "RPC_URL is not configured")
        with self.assertRaises(LedgerError):
            client.latest_block_number()

    def test_no_contract(self):
        client = Web3LedgerClient(rpc_url="http://ledger.test", web3=mock.MagicMock())
        with self.assertRaises(LedgerError) as ctx:
            client.get_record(DOC_HASH)
        self.assertEqual(ctx.exception.detail, "CONTRACT_ADDRESS is not configured")


class TestInvalidConfiguration(unittest.TestCase):

    def test_bad_contract_address_reported_on_use(self):
        client = Web3LedgerClient(rpc_url="http://ledger.test", contract_address="0x1234",
                                  private_key=TEST_KEY, web3=mock.MagicMock())
        with self.assertRaises(LedgerError) as ctx:
            client.exists(DOC_HASH)
        self.assertTrue(ctx.exception.detail.startswith("CONTRACT_ADDRESS is invalid"))
        with self.assertRaises(LedgerError):
            client.estimate_write_cost(DOC_HASH, ENTITY, 1, 0)

    def test_bad_private_key_reported_on_use(self):
        client = Web3LedgerClient(rpc_url="http://ledger.test", contract_address=CONTRACT,
                                  private_key="nothex", web3=mock.MagicMock())
        with self.assertRaises(LedgerError) as ctx:
            client.estimate_write_cost(DOC_HASH, ENTITY, 1, 0)
        self.assertEqual(ctx.exception.detail, "PRIVATE_KEY is invalid")
        with self.assertRaises(LedgerError):
            client.submit_write(DOC_HASH, ENTITY, 1, 0, 60000)
        self.assertIsNone(client.address)

    def test_abi_without_stamp_function(self):
        read_only_abi = [e for e in STAMP_REGISTRY_ABI if e["name"] != "stamp"]
        client = Web3LedgerClient(rpc_url="http://ledger.test", contract_address=CONTRACT,
                                  private_key=TEST_KEY, abi=read_only_abi, web3=Web3())
        with self.assertRaises(LedgerError):
            client.estimate_write_cost(DOC_HASH, ENTITY, 1, 0)
        with self.assertRaises(LedgerError):
            client.submit_write(DOC_HASH, ENTITY, 1, 0, 60000)


class TestInMemoryLedger(unittest.TestCase):

    def test_zero_record_for_unknown(self):
        ledger = InMemoryLedgerClient()
        record = ledger.get_record(DOC_HASH)
        self.assertEqual(record.timestamp, 0)
        self.assertEqual(record.block_number, 0)
        self.assertFalse(ledger.exists(DOC_HASH))

    def test_underfunded_budget_runs_out_of_gas(self):
        ledger = InMemoryLedgerClient(gas_estimate=1000)
        with self.assertRaises(LedgerError):
            ledger.submit_write(DOC_HASH, ENTITY, 1, 0, 999)
        self.assertFalse(ledger.exists(DOC_HASH))

    def test_clock_and_blocks(self):
        ledger = InMemoryLedgerClient(clock=lambda: 1700000000.9)
        ledger.submit_write(DOC_HASH, ENTITY, 1, 0, 10 ** 6)
        record = ledger.get_record(DOC_HASH)
        self.assertEqual(record.timestamp, 1700000000)
        self.assertEqual(record.block_number, ledger.latest_block_number())


class TestBuildLedgerClient(unittest.TestCase):

    def test_dev_network(self):
        client = build_ledger_client(GatewayConfig(network="dev"))
        self.assertIsInstance(client, InMemoryLedgerClient)

    def test_web3_client(self):
        config = GatewayConfig(rpc_url="http://127.0.0.1:8545", contract_address=CONTRACT)
        self.assertIsInstance(build_ledger_client(config), Web3LedgerClient)

    def test_abi_override(self):
        with tempfile.TemporaryDirectory() as d:
            path = os.path.join(d, "StampRegistry.json")
            with open(path, "w", encoding="utf-8") as f:
                json.dump({"contractName": "StampRegistry", "abi": STAMP_REGISTRY_ABI}, f)
            self.assertEqual(load_abi(path), STAMP_REGISTRY_ABI)
            config = GatewayConfig(rpc_url="http://127.0.0.1:8545", contract_address=CONTRACT,
                                   contract_abi_path=path)
            self.assertIsInstance(build_ledger_client(config), Web3LedgerClient)


if __name__ == "__main__":
    unittest.main()
