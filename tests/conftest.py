"""Shared fixtures: an isolated local database and an in-memory Supabase."""
import itertools
import json
from datetime import datetime, timedelta
from decimal import Decimal

import httpx
import pytest

from balance.adapters import StaticRateProvider
from balance.config import settings
from balance.models.transaction import TransactionCreate
from balance.services import currency as currency_module
from balance.services.backup import BackupService
from balance.services.currency import CurrencyService
from balance.services.hosted import HostedBackend
from balance.storage import store as store_module
from balance.storage.local import LocalStorage
from balance.storage.store import TransactionStore

SUPABASE_URL = "https://project.supabase.test"
ANON_KEY = "anon-key"


@pytest.fixture(autouse=True)
def isolated_state(tmp_path, monkeypatch):
    """Point the global store at a temporary database and use static rates."""
    monkeypatch.setattr(settings, "database_path", str(tmp_path / "balance.db"))
    store_module.reset_store()
    monkeypatch.setattr(
        currency_module,
        "_currency_service",
        CurrencyService(provider=StaticRateProvider()),
    )
    from balance import main
    main.duplicate_guard.clear()
    yield
    store_module.reset_store()


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(str(tmp_path / "slots.db"))


@pytest.fixture
def backup_service(storage):
    return BackupService(storage, max_backups=10)


@pytest.fixture
def store(storage, backup_service):
    return TransactionStore(storage, backup_service)


def make_transaction(**overrides) -> TransactionCreate:
    data = {
        "type": "expense",
        "amount": Decimal("45.99"),
        "currency": "EUR",
        "category": "groceries",
        "description": "Weekly shop",
        "date": "2024-01-15",
    }
    data.update(overrides)
    return TransactionCreate(**data)


@pytest.fixture
def tx():
    return make_transaction


class FakeSupabase:
    """Just enough GoTrue and PostgREST behaviour to drive HostedBackend."""

    def __init__(self):
        self.users = {}
        self.tokens = {}
        self.tables = {"profiles": [], "transactions": [], "backups": []}
        self.requests = []
        self._ids = itertools.count(1)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.startswith("/auth/v1/"):
            return self._auth(request, path[len("/auth/v1/"):])
        if path.startswith("/rest/v1/"):
            return self._rest(request, path[len("/rest/v1/"):])
        return httpx.Response(404, json={"message": "Not found"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def add_user(self, email: str, password: str, username: str = None) -> dict:
        n = next(self._ids)
        user = {"id": f"user-{n}", "email": email, "user_metadata": {"username": username} if username else {}}
        self.users[email] = {**user, "password": password}
        token = f"token-{n}"
        self.tokens[token] = user
        return {"access_token": token, "refresh_token": f"refresh-{n}", "user": user}

    def token_for(self, email: str) -> str:
        user_id = self.users[email]["id"]
        return next(t for t, u in self.tokens.items() if u["id"] == user_id)

    def _body(self, request: httpx.Request):
        return json.loads(request.content) if request.content else None

    def _auth(self, request: httpx.Request, endpoint: str) -> httpx.Response:
        body = self._body(request) or {}
        if endpoint == "signup":
            if body["email"] in self.users:
                return httpx.Response(400, json={"msg": "User already registered"})
            username = (body.get("data") or {}).get("username")
            return httpx.Response(200, json=self.add_user(body["email"], body["password"], username))

        if endpoint == "token":
            user = self.users.get(body.get("email"))
            if user is None or user["password"] != body.get("password"):
                return httpx.Response(
                    400,
                    json={"error": "invalid_grant", "error_description": "Invalid login credentials"},
                )
            return httpx.Response(200, json={
                "access_token": self.token_for(user["email"]),
                "refresh_token": "refresh",
                "user": {k: v for k, v in user.items() if k != "password"},
            })

        token = request.headers.get("authorization", "").split(" ", 1)[-1]
        if endpoint == "user":
            if token not in self.tokens:
                return httpx.Response(401, json={"msg": "invalid JWT"})
            return httpx.Response(200, json=self.tokens[token])
        if endpoint == "logout":
            return httpx.Response(204)
        if endpoint == "recover":
            return httpx.Response(200, json={})
        return httpx.Response(404, json={"msg": "Not found"})

    def _matching(self, table: str, params: httpx.QueryParams) -> list:
        rows = self.tables[table]
        for key, value in params.multi_items():
            if key in ("select", "order", "limit", "offset"):
                continue
            if value.startswith("eq."):
                rows = [r for r in rows if str(r.get(key)) == value[3:]]
        return rows

    def _rest(self, request: httpx.Request, table: str) -> httpx.Response:
        params = request.url.params
        method = request.method

        if method == "GET":
            rows = list(self._matching(table, params))
            if "order" in params:
                column, _, direction = params["order"].partition(".")
                rows.sort(key=lambda r: r.get(column), reverse=(direction == "desc"))
            offset = int(params.get("offset", 0))
            if "limit" in params:
                rows = rows[offset:offset + int(params["limit"])]
            select = params.get("select", "*")
            if select != "*":
                columns = select.split(",")
                rows = [{c: r.get(c) for c in columns} for r in rows]
            return httpx.Response(200, json=rows)

        if method == "POST":
            body = self._body(request)
            items = body if isinstance(body, list) else [body]
            inserted = []
            for item in items:
                n = next(self._ids)
                row = dict(item)
                row.setdefault("id", f"{table}-{n}")
                if table == "transactions":
                    created = datetime(2024, 1, 1) + timedelta(seconds=n)
                    row.setdefault("created_at", created.isoformat())
                self.tables[table].append(row)
                inserted.append(row)
            return httpx.Response(201, json=inserted)

        if method == "PATCH":
            body = self._body(request)
            rows = self._matching(table, params)
            for row in rows:
                row.update(body)
            return httpx.Response(200, json=rows)

        if method == "DELETE":
            doomed = {id(r) for r in self._matching(table, params)}
            self.tables[table] = [r for r in self.tables[table] if id(r) not in doomed]
            return httpx.Response(204)

        return httpx.Response(405, json={"message": "Method not allowed"})


@pytest.fixture
def supabase():
    return FakeSupabase()


@pytest.fixture
def hosted(supabase):
    """Unauthenticated client talking to the fake project."""
    return HostedBackend(SUPABASE_URL, ANON_KEY, transport=supabase.transport())


@pytest.fixture
def signed_in(supabase, hosted):
    """Client bound to a freshly registered user."""
    session = supabase.add_user("ana@example.com", "secret123", username="ana")
    return hosted.for_token(session["access_token"])
