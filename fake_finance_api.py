"""In-memory stand-in for the finance REST API, served through httpx.MockTransport."""
import json

import httpx

from finview.backend.services.bank_accounts import BankAccountsController
from finview.core.api_client import FinanceAPIClient


class FakeFinanceAPI:
    """In-memory stand-in for the finance REST API, served through httpx.MockTransport."""

    def __init__(self, accounts=None, transactions=None):
        self.accounts = {acc["id"]: acc for acc in (accounts or [])}
        self.transactions = transactions or {}
        self.calls = []
        self.fail = {}
        self.gate = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append((request.method, request.url.path))
        key = (request.method, request.url.path)
        if key in self.fail:
            status, body = self.fail[key]
            return httpx.Response(status, json=body)

        parts = request.url.path.strip("/").split("/")[1:]
        if parts == ["bank-accounts"] and request.method == "GET":
            return httpx.Response(200, json=list(self.accounts.values()))
        if parts == ["bank-accounts"] and request.method == "POST":
            body = json.loads(request.content)
            body["id"] = max(self.accounts, default=0) + 1
            self.accounts[body["id"]] = body
            return httpx.Response(201, json=body)

        account_id = int(parts[1])
        if account_id not in self.accounts:
            return httpx.Response(404, json={"error": "Bank account not found"})
        if len(parts) == 2 and request.method == "PUT":
            body = json.loads(request.content)
            self.accounts[account_id].update(body)
            return httpx.Response(200, json=self.accounts[account_id])
        if len(parts) == 2 and request.method == "DELETE":
            del self.accounts[account_id]
            return httpx.Response(200, json={"message": "Bank account deleted successfully"})
        if parts[2] == "balance" and request.method == "PUT":
            self.accounts[account_id]["balance"] = json.loads(request.content)["balance"]
            return httpx.Response(200, json=self.accounts[account_id])
        if parts[2] == "transactions" and request.method == "GET":
            return httpx.Response(200, json=self.transactions.get(account_id, []))
        if parts[2] == "transactions" and request.method == "POST":
            body = json.loads(request.content)
            return httpx.Response(201, json=self.post_transaction(account_id, body))
        return httpx.Response(405)

    def post_transaction(self, account_id, body):
        acc = self.accounts[account_id]
        delta = body["amount"] if body["type"] == "credit" else -body["amount"]
        acc["balance"] = acc["balance"] + delta
        tx = {"id": 100 + len(self.calls), "bank_account_id": account_id, **body}
        return {"transaction": tx, "balance": acc["balance"]}

    async def async_handler(self, request: httpx.Request) -> httpx.Response:
        if self.gate is not None and request.method == "POST":
            await self.gate.wait()
        return self.handler(request)

    def controller(self):
        client = FinanceAPIClient("http://finance.test/api", token="t", transport=httpx.MockTransport(self.async_handler))
        return BankAccountsController(client, page_size=50, default_currency="SAR")

    def count(self, method, suffix):
        return sum(1 for m, path in self.calls if m == method and path.endswith(suffix))


def raw_account(id_, balance=100, currency="SAR"):
    return {"id": id_, "account_name": f"Account {id_}", "bank_name": "SNB", "account_type": "Checking",
            "account_number": "1234", "balance": balance, "currency": currency, "is_active": True}
