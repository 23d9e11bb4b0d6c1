"""Hosted backend client: Supabase auth (GoTrue) and tables (PostgREST) over HTTP."""
import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from balance.config import settings
from balance.errors import AuthError, HostedBackendError, InvalidTransactionError
from balance.models.backup import BACKUP_VERSION, BackupSnapshot, ExportDocument, HostedBackup
from balance.models.profile import AuthSession, AuthUser, Profile, ProfileUpdate
from balance.models.transaction import (
    Transaction,
    TransactionCreate,
    TransactionUpdate,
    other_description_error,
)
from balance.services.backup import parse_export_document
from balance.utils.timestamp import now_ms

logger = logging.getLogger(__name__)

TRANSACTION_FIELDS = ("type", "amount", "currency", "category", "description", "date")
INVALID_LOGIN = "Invalid username or password"


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        for key in ("msg", "message", "error_description", "error"):
            if data.get(key):
                return str(data[key])
    return f"HTTP {response.status_code}"


def transaction_row(transaction, user_id: str) -> Dict[str, Any]:
    """Row payload for the `transactions` table."""
    data = transaction.model_dump(mode="json")
    row = {field: data[field] for field in TRANSACTION_FIELDS}
    row["user_id"] = user_id
    return row


class HostedBackend:
    """
    Thin client for one Supabase project.

    Table calls run as the signed-in user when the client is bound to a
    session (see `for_token`), otherwise with the anon key.
    """

    def __init__(
        self,
        url: str = None,
        anon_key: str = None,
        access_token: Optional[str] = None,
        user: Optional[AuthUser] = None,
        timeout: float = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.url = (url if url is not None else settings.supabase_url).rstrip("/")
        self.anon_key = anon_key if anon_key is not None else settings.supabase_anon_key
        self.access_token = access_token
        self.user = user
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.url and self.anon_key)

    def _headers(self, token: Optional[str] = None, prefer: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {token or self.access_token or self.anon_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Any = None,
        token: Optional[str] = None,
        prefer: Optional[str] = None,
        error_cls=HostedBackendError,
    ) -> Any:
        if not self.configured:
            raise HostedBackendError("Hosted backend is not configured")

        content = json.dumps(payload, default=str) if payload is not None else None
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                r = client.request(
                    method,
                    f"{self.url}{path}",
                    params=params,
                    content=content,
                    headers=self._headers(token, prefer),
                )
        except httpx.HTTPError as e:
            logger.warning("Hosted backend request %s %s failed: %s", method, path, e)
            raise HostedBackendError(f"Hosted backend unreachable: {e}") from e

        if r.status_code >= 400:
            message = _error_message(r)
            logger.warning("Hosted backend %s %s returned %s: %s", method, path, r.status_code, message)
            raise error_cls(message)

        if not r.content:
            return None
        return json.loads(r.text, parse_float=Decimal)

    # Auth

    def _require_user(self) -> str:
        if self.user is None:
            raise AuthError("User not authenticated")
        return self.user.id

    def bind(self, access_token: Optional[str], user: AuthUser) -> "HostedBackend":
        """A copy of this client acting as `user`."""
        return HostedBackend(
            self.url,
            self.anon_key,
            access_token=access_token,
            user=user,
            timeout=self.timeout,
            transport=self.transport,
        )

    def for_token(self, access_token: str) -> "HostedBackend":
        """A client bound to the user owning `access_token`."""
        return self.bind(access_token, self.get_user(access_token))

    def sign_up(self, email: str, password: str, username: Optional[str] = None) -> AuthSession:
        """Register a user and create their profile."""
        metadata = {"username": username} if username else {}
        data = self._request(
            "POST",
            "/auth/v1/signup",
            payload={"email": email, "password": password, "data": metadata},
            error_cls=AuthError,
        )
        session = self._session_from(data)
        self.bind(session.access_token, session.user).create_profile(session.user.id, email, username)
        logger.info("Signed up user %s", session.user.id)
        return session

    def sign_in(self, email_or_username: str, password: str) -> AuthSession:
        """
        Sign in with an email or a username.

        A value without "@" is looked up in `profiles` to find the email.
        """
        email = email_or_username
        if "@" not in email_or_username:
            rows = self._request(
                "GET",
                "/rest/v1/profiles",
                params={"select": "email", "username": f"eq.{email_or_username}", "limit": 1},
            )
            if not rows:
                raise AuthError(INVALID_LOGIN)
            email = rows[0]["email"]

        data = self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            payload={"email": email, "password": password},
            error_cls=AuthError,
        )
        session = self._session_from(data)
        logger.info("Signed in user %s", session.user.id)
        return session

    @staticmethod
    def _session_from(data: Any) -> AuthSession:
        if not isinstance(data, dict):
            raise AuthError("Unexpected response from auth service")
        user = data.get("user") or data
        try:
            return AuthSession(
                access_token=data.get("access_token"),
                refresh_token=data.get("refresh_token"),
                user=AuthUser.model_validate(user),
            )
        except ValidationError as e:
            raise AuthError("Unexpected response from auth service") from e

    def sign_out(self, access_token: str) -> None:
        self._request("POST", "/auth/v1/logout", token=access_token, error_cls=AuthError)

    def get_user(self, access_token: str) -> AuthUser:
        data = self._request("GET", "/auth/v1/user", token=access_token, error_cls=AuthError)
        try:
            return AuthUser.model_validate(data)
        except ValidationError as e:
            raise AuthError("Unexpected response from auth service") from e

    def reset_password(self, email: str, redirect_to: Optional[str] = None) -> None:
        params = {"redirect_to": redirect_to} if redirect_to else None
        self._request(
            "POST",
            "/auth/v1/recover",
            params=params,
            payload={"email": email},
            error_cls=AuthError,
        )

    # Profiles

    def create_profile(self, user_id: str, email: str, username: Optional[str] = None) -> Profile:
        profile = Profile(id=user_id, email=email, username=username)
        rows = self._request(
            "POST",
            "/rest/v1/profiles",
            payload=profile.model_dump(mode="json", exclude_none=True),
            prefer="return=representation",
        )
        return Profile.model_validate(rows[0]) if rows else profile

    def get_profile(self, user_id: Optional[str] = None) -> Optional[Profile]:
        user_id = user_id or self._require_user()
        rows = self._request("GET", "/rest/v1/profiles", params={"select": "*", "id": f"eq.{user_id}"})
        return Profile.model_validate(rows[0]) if rows else None

    def update_profile(self, updates: ProfileUpdate, user_id: Optional[str] = None) -> Optional[Profile]:
        user_id = user_id or self._require_user()
        payload = updates.model_dump(mode="json", exclude_unset=True, exclude_none=True)
        payload["updated_at"] = datetime.now(timezone.utc).isoformat()
        rows = self._request(
            "PATCH",
            "/rest/v1/profiles",
            params={"id": f"eq.{user_id}"},
            payload=payload,
            prefer="return=representation",
        )
        return Profile.model_validate(rows[0]) if rows else None

    # Tables, as raw rows

    def select_rows(self, table: str, **filters) -> List[Dict[str, Any]]:
        params = {"select": "*", "user_id": f"eq.{self._require_user()}"}
        params.update({k: v for k, v in filters.items() if v is not None})
        return self._request("GET", f"/rest/v1/{table}", params=params) or []

    def insert_rows(self, table: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not rows:
            return []
        return self._request(
            "POST",
            f"/rest/v1/{table}",
            payload=rows,
            prefer="return=representation",
        ) or []

    def delete_rows(self, table: str, **filters) -> None:
        params = {"user_id": f"eq.{self._require_user()}"}
        params.update(filters)
        self._request("DELETE", f"/rest/v1/{table}", params=params)

    def _single(self, table: str, row_id: str) -> Dict[str, Any]:
        rows = self.select_rows(table, id=f"eq.{row_id}")
        if not rows:
            raise HostedBackendError(f"No {table} row {row_id}")
        return rows[0]

    # Transactions

    def add_transaction(self, data: TransactionCreate) -> Transaction:
        rows = self.insert_rows("transactions", [transaction_row(data, self._require_user())])
        if not rows:
            raise HostedBackendError("Insert returned no row")
        return Transaction.model_validate(rows[0])

    def update_transaction(self, transaction_id: str, changes: TransactionUpdate) -> Transaction:
        payload = changes.model_dump(mode="json", exclude_unset=True, exclude_none=True)
        if "category" in payload or "description" in payload:
            current = self._single("transactions", transaction_id)
            merged = {**current, **payload}
            error = other_description_error(merged.get("category"), merged.get("description"))
            if error:
                raise InvalidTransactionError(error)
        payload["updated_at"] = datetime.now(timezone.utc).isoformat()
        rows = self._request(
            "PATCH",
            "/rest/v1/transactions",
            params={"id": f"eq.{transaction_id}", "user_id": f"eq.{self._require_user()}"},
            payload=payload,
            prefer="return=representation",
        )
        if not rows:
            raise HostedBackendError(f"Transaction {transaction_id} not found")
        return Transaction.model_validate(rows[0])

    def delete_transaction(self, transaction_id: str) -> None:
        self.delete_rows("transactions", id=f"eq.{transaction_id}")

    def get_all_transactions(self) -> List[Transaction]:
        """All of the user's transactions, newest date first."""
        rows = self.select_rows("transactions", order="date.desc")
        return [Transaction.model_validate(row) for row in rows]

    # Backups

    def create_backup(self, transactions: List[Transaction], description: Optional[str] = None) -> HostedBackup:
        row = {
            "user_id": self._require_user(),
            "transactions": [t.model_dump(mode="json") for t in transactions],
            "timestamp": now_ms(),
            "version": BACKUP_VERSION,
            "description": description or "Automatic backup",
        }
        rows = self.insert_rows("backups", [row])
        if not rows:
            raise HostedBackendError("Insert returned no row")
        return HostedBackup.model_validate(rows[0])

    def get_backups(self) -> List[HostedBackup]:
        rows = self.select_rows("backups", order="timestamp.desc")
        return [HostedBackup.model_validate(row) for row in rows]

    def restore_from_backup(self, backup_id: str) -> int:
        """
        Replace all of the user's transactions with a backup's contents.

        Returns:
            Number of transactions restored
        """
        backup = HostedBackup.model_validate(self._single("backups", backup_id))
        self.delete_rows("transactions")
        self.migrate_from_local(backup.transactions)
        logger.info("Restored hosted backup %s: %s transactions", backup_id, len(backup.transactions))
        return len(backup.transactions)

    def migrate_from_local(self, transactions: List[Transaction]) -> int:
        """Bulk insert local transactions. Empty input is a no-op."""
        if not transactions:
            return 0
        user_id = self._require_user()
        self.insert_rows("transactions", [transaction_row(t, user_id) for t in transactions])
        logger.info("Migrated %s transactions for user %s", len(transactions), user_id)
        return len(transactions)

    # Export / import

    def export_data(self) -> str:
        transactions = self.get_all_transactions()
        backups = self.get_backups()
        document = ExportDocument(
            transactions=transactions,
            backups=[
                BackupSnapshot(
                    transactions=b.transactions,
                    timestamp=b.timestamp,
                    version=b.version,
                    description=b.description,
                )
                for b in backups
            ],
            export_date=datetime.now(timezone.utc).isoformat(),
            version=BACKUP_VERSION,
            total_transactions=len(transactions),
        )
        return json.dumps(document.model_dump(mode="json", by_alias=True, exclude_none=True), indent=2)

    def import_data(self, json_data: str) -> int:
        """
        Replace the user's transactions and backups with an export document.

        The document is validated before anything is deleted.

        Raises:
            InvalidImportError: If the document is malformed
        """
        transactions, backups = parse_export_document(json_data)
        user_id = self._require_user()

        self.delete_rows("transactions")
        self.delete_rows("backups")
        self.migrate_from_local(transactions)
        self.insert_rows("backups", [
            {
                "user_id": user_id,
                "transactions": [t.model_dump(mode="json") for t in b.transactions],
                "timestamp": b.timestamp,
                "version": b.version,
                "description": b.description,
            }
            for b in backups
        ])
        logger.info("Imported %s transactions and %s backups", len(transactions), len(backups))
        return len(transactions)
