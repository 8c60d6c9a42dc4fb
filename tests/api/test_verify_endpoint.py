"""
HTTP tests for /verifyOwnership with collaborators replaced through dependency overrides.
"""
import unittest
from unittest.mock import MagicMock

import httpx
from fastapi.testclient import TestClient

from app.api.deps import get_settings, get_verification_service
from app.core.config import Settings
from app.main import app
from app.services.chain.reader import ChainReader
from app.services.payments.facilitator import FacilitatorClient
from app.services.replay.store import InMemoryReplayStore
from app.services.verification.service import VerificationService

from log_builders import CONTRACT, WALLET, transfer_batch_log, transfer_single_log

PAY_TO = "0x5555555555555555555555555555555555555555"
TX_HASH = "0x" + "7a" * 32


def _settings(**kwargs) -> Settings:
    values = {
        "rpc_url": "https://rpc.test",
        "contract_address": CONTRACT,
        "pay_to": PAY_TO,
        "x402_api": "https://facilitator.test/check",
        "x402_api_key": "key",
        "public_url": "https://api.genge.test",
    }
    values.update(kwargs)
    return Settings(**values)


class VerifyEndpointTestCase(unittest.TestCase):
    def setUp(self):
        self.settings = _settings()
        self.replay_store = InMemoryReplayStore()
        self.payments = MagicMock()
        self.payments.check_payment.return_value = False
        self.chain = MagicMock()
        self.chain.get_balance.return_value = 0
        self.chain.verify_transfer.return_value = False
        self.service = VerificationService(self.replay_store, self.payments, self.chain)
        app.dependency_overrides[get_settings] = lambda: self.settings
        app.dependency_overrides[get_verification_service] = lambda: self.service
        self.client = TestClient(app, raise_server_exceptions=False)

    def tearDown(self):
        app.dependency_overrides.clear()

    def post(self, body=None, **kwargs):
        if body is None:
            body = {"wallet": WALLET, "tokenId": 42, "txHash": TX_HASH}
        return self.client.post("/verifyOwnership", json=body, **kwargs)

    def assert_no_collaborator_called(self):
        self.payments.check_payment.assert_not_called()
        self.chain.get_balance.assert_not_called()
        self.chain.verify_transfer.assert_not_called()


class TestClientErrors(VerifyEndpointTestCase):
    def test_missing_fields_400_without_collaborators(self):
        full = {"wallet": WALLET, "tokenId": 42, "txHash": TX_HASH}
        for field in full:
            body = {k: v for k, v in full.items() if k != field}
            resp = self.post(body)
            self.assertEqual(resp.status_code, 400, field)
            self.assertEqual(resp.json(), {"error": "Missing wallet, tokenId or txHash"})
        resp = self.post({"wallet": "", "tokenId": 42, "txHash": TX_HASH})
        self.assertEqual(resp.status_code, 400)
        self.assert_no_collaborator_called()

    def test_token_id_zero_is_present(self):
        self.chain.get_balance.return_value = 1
        resp = self.post({"wallet": WALLET, "tokenId": 0, "txHash": TX_HASH})
        self.assertEqual(resp.status_code, 200)

    def test_invalid_token_id_400(self):
        resp = self.post({"wallet": WALLET, "tokenId": "-3", "txHash": TX_HASH})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"error": "Invalid tokenId"})
        self.assert_no_collaborator_called()

    def test_bad_json_400(self):
        resp = self.client.post(
            "/verifyOwnership",
            content=b'{"wallet": ',
            headers={"Content-Type": "application/json"},
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.text, "Bad JSON Format")
        self.assert_no_collaborator_called()

    def test_bom_prefixed_json_is_accepted(self):
        self.payments.check_payment.return_value = True
        raw = "\ufeff" + '  {"wallet": "%s", "tokenId": "42", "txHash": "%s"} ' % (WALLET, TX_HASH)
        resp = self.client.post(
            "/verifyOwnership",
            content=raw.encode("utf-8"),
            headers={"Content-Type": "application/json; charset=utf-8"},
        )
        self.assertEqual(resp.status_code, 200)

    def test_non_json_content_type_is_empty_body(self):
        resp = self.client.post(
            "/verifyOwnership",
            content=b"wallet=x",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"error": "Missing wallet, tokenId or txHash"})


class TestVerificationOutcomes(VerifyEndpointTestCase):
    def test_payment_only_200(self):
        self.payments.check_payment.return_value = True
        resp = self.post()
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data["x402Version"], 1)
        self.assertEqual(data["payer"], WALLET)
        accepts = data["accepts"]
        self.assertEqual(len(accepts), 1)
        self.assertEqual(accepts[0]["payTo"], PAY_TO)
        self.assertEqual(accepts[0]["resource"], "https://api.genge.test/verifyOwnership")
        self.assertEqual(accepts[0]["maxAmountRequired"], "2")
        self.assertEqual(accepts[0]["asset"], "USDC")
        self.assertEqual(
            accepts[0]["outputSchema"]["output"],
            {
                "success": True,
                "wallet": WALLET,
                "tokenId": 42,
                "verified": True,
                "message": "Ownership and payment verified",
            },
        )
        self.assertIsInstance(accepts[0]["outputSchema"]["output"]["tokenId"], int)

    def test_hex_token_id_echoed_as_number(self):
        self.payments.check_payment.return_value = True
        resp = self.post({"wallet": WALLET, "tokenId": "0x2a", "txHash": TX_HASH})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["accepts"][0]["outputSchema"]["output"]["tokenId"], 42)
        self.payments.check_payment.assert_called_once_with(TX_HASH, WALLET, 42)

    def test_balance_only_200(self):
        self.chain.get_balance.return_value = 1
        self.assertEqual(self.post().status_code, 200)

    def test_transfer_only_200(self):
        self.payments.check_payment.side_effect = RuntimeError("facilitator down")
        self.chain.get_balance.side_effect = RuntimeError("rpc down")
        self.chain.verify_transfer.return_value = True
        self.assertEqual(self.post().status_code, 200)

    def test_no_evidence_402_with_flags(self):
        resp = self.post()
        self.assertEqual(resp.status_code, 402)
        self.assertEqual(
            resp.json(),
            {
                "error": "Verification failed",
                "paymentOk": False,
                "ownsNFT": False,
                "transferVerified": False,
            },
        )
        self.assertFalse(self.replay_store.exists(TX_HASH))

    def test_success_then_replay(self):
        self.payments.check_payment.return_value = True
        self.assertEqual(self.post().status_code, 200)
        resp = self.post()
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"error": "Transaction already used"})
        self.assertEqual(self.payments.check_payment.call_count, 1)

    def test_used_hash_rejected_even_with_evidence(self):
        self.replay_store.insert(TX_HASH)
        self.chain.get_balance.return_value = 5
        for _ in range(2):
            resp = self.post()
            self.assertEqual(resp.status_code, 400)
        self.assert_no_collaborator_called()

    def test_transaction_id_alias(self):
        self.payments.check_payment.return_value = True
        resp = self.post({"wallet": WALLET, "tokenId": 42, "transactionId": TX_HASH})
        self.assertEqual(resp.status_code, 200)


class TestServerErrors(VerifyEndpointTestCase):
    def test_misconfigured_500_without_collaborators(self):
        self.settings = _settings(pay_to="", rpc_url="")
        resp = self.post()
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"error": "Server misconfigured"})
        self.assert_no_collaborator_called()

    def test_unhandled_error_500(self):
        broken = MagicMock()
        broken.exists.side_effect = RuntimeError("store exploded")
        self.service = VerificationService(broken, self.payments, self.chain)
        resp = self.post()
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"error": "Server error"})


class TestDescriptor(VerifyEndpointTestCase):
    def test_get_returns_402_descriptor(self):
        resp = self.client.get("/verifyOwnership")
        self.assertEqual(resp.status_code, 402)
        data = resp.json()
        self.assertEqual(data["payer"], "0x0000000000000000000000000000000000000000")
        entry = data["accepts"][0]
        self.assertEqual(entry["scheme"], "exact")
        self.assertEqual(entry["network"], "base")
        self.assertEqual(entry["extra"]["homepage"], "https://api.genge.test")
        self.assertIn("txHash", entry["outputSchema"]["input"]["bodyFields"])

    def test_base_url_from_host_header(self):
        self.settings = _settings(public_url="")
        resp = self.client.get("/verifyOwnership", headers={"Host": "example.org"})
        self.assertEqual(resp.json()["accepts"][0]["resource"], "https://example.org/verifyOwnership")

    def test_root_health(self):
        self.assertEqual(self.client.get("/").json(), {"ok": True})
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})

    def test_request_id_echoed(self):
        resp = self.client.get("/health", headers={"X-Request-Id": "abc123"})
        self.assertEqual(resp.headers["X-Request-Id"], "abc123")


class TestEndToEnd(unittest.TestCase):
    """Real FacilitatorClient, ChainReader and VerificationService; only HTTP and RPC are faked."""

    def setUp(self):
        def facilitator(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": False})

        self.payments = FacilitatorClient(
            "https://facilitator.test/check",
            "key",
            client=httpx.Client(transport=httpx.MockTransport(facilitator)),
        )
        self.w3 = MagicMock()
        self.w3.eth.get_transaction.return_value = {"to": CONTRACT}
        self.reader = ChainReader(self.w3, CONTRACT)
        self.reader.contract = MagicMock()
        self.reader.contract.functions.balanceOf.return_value.call.side_effect = RuntimeError("no balanceOf")
        self.reader.contract.functions.ownerOf.return_value.call.side_effect = RuntimeError("no ownerOf")
        self.replay_store = InMemoryReplayStore()
        service = VerificationService(self.replay_store, self.payments, self.reader)
        settings = _settings()
        app.dependency_overrides[get_settings] = lambda: settings
        app.dependency_overrides[get_verification_service] = lambda: service
        self.client = TestClient(app, raise_server_exceptions=False)

    def tearDown(self):
        app.dependency_overrides.clear()

    def test_single_transfer_to_lowercase_wallet_then_replay(self):
        self.w3.eth.get_transaction_receipt.return_value = {
            "status": 1,
            "logs": [transfer_single_log(WALLET.lower(), 42, 1)],
        }
        body = {"wallet": WALLET, "tokenId": 42, "txHash": TX_HASH}
        resp = self.client.post("/verifyOwnership", json=body)
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()["accepts"][0]["outputSchema"]["output"]["verified"])

        resp = self.client.post("/verifyOwnership", json=body)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"error": "Transaction already used"})

    def test_batch_transfer_verifies(self):
        self.w3.eth.get_transaction_receipt.return_value = {
            "status": 1,
            "logs": [transfer_batch_log(WALLET, [7, 42], [0, 3])],
        }
        resp = self.client.post("/verifyOwnership", json={"wallet": WALLET, "tokenId": "42", "txHash": TX_HASH})
        self.assertEqual(resp.status_code, 200)

    def test_nothing_matches_402(self):
        self.w3.eth.get_transaction_receipt.return_value = {"status": 1, "logs": []}
        resp = self.client.post("/verifyOwnership", json={"wallet": WALLET, "tokenId": 42, "txHash": TX_HASH})
        self.assertEqual(resp.status_code, 402)
        self.assertEqual(resp.json()["transferVerified"], False)
        self.assertFalse(self.replay_store.exists(TX_HASH))
