"""FastAPI main application."""
import logging
from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, Response

from balance import __version__
from balance.config import settings
from balance.errors import AuthError, BalanceError
from balance.models.backup import (
    BackupInfo,
    BackupListItem,
    CloudBackupInfo,
    CreateBackupRequest,
    OperationResponse,
    RecoveryResult,
    RestoreRequest,
    VerificationResult,
)
from balance.models.categories import categories_for, format_category_name, is_known_category
from balance.models.profile import (
    AuthSession,
    BackupModeSetting,
    Profile,
    ProfileUpdate,
    ResetPasswordRequest,
    SignInRequest,
    SignUpRequest,
)
from balance.models.summary import (
    CategoryTotal,
    ConversionResult,
    ConvertedCategoryTotal,
    ConvertedTransaction,
    FinancialSummary,
    TotalsByType,
)
from balance.models.transaction import Transaction, TransactionCreate, TransactionType, TransactionUpdate
from balance.services.analytics import ANALYSIS_TYPES, AnalyticsService
from balance.services.backup import BackupService, parse_export_document
from balance.services.cloud_backup import CloudBackupService
from balance.services.currency import get_currency_service
from balance.services.duplicates import DuplicateGuard, remove_duplicates
from balance.services.hosted import HostedBackend
from balance.services.scheduler import AutoBackupScheduler
from balance.services.sync import migrate_on_first_sign_in, pull_from_hosted
from balance.storage.store import get_store
from balance.utils.periods import DEFAULT_PERIOD

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

scheduler: Optional[AutoBackupScheduler] = None
duplicate_guard = DuplicateGuard()


@asynccontextmanager
async def lifespan(app: FastAPI):
    global scheduler
    scheduler = AutoBackupScheduler(get_store(), interval=settings.auto_backup_interval_seconds)
    await scheduler.sync_with_mode()
    yield
    await scheduler.stop()


app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)


@app.exception_handler(BalanceError)
async def balance_error_handler(request: Request, exc: BalanceError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def get_analytics() -> AnalyticsService:
    return AnalyticsService(get_currency_service())


def get_backend() -> HostedBackend:
    return HostedBackend()


def get_user_backend(
    authorization: Optional[str] = Header(None),
    backend: HostedBackend = Depends(get_backend),
) -> HostedBackend:
    """Hosted client acting as the caller, from an `Authorization: Bearer` header."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise AuthError("User not authenticated")
    return backend.for_token(authorization.split(" ", 1)[1].strip())


def _confirmation_required(action: str, replaced: int):
    raise HTTPException(
        status_code=409,
        detail=(
            f"{action} will replace your {replaced} current transactions. "
            "Send confirm=true to proceed."
        ),
    )


def _attachment(content: str) -> Response:
    filename = BackupService.download_filename()
    return Response(
        content=content,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


async def _read_import_payload(request: Request) -> str:
    """Import documents arrive either as a JSON body or as an uploaded file."""
    if request.headers.get("content-type", "").startswith("multipart/form-data"):
        form = await request.form()
        upload = form.get("file")
        if upload is None or isinstance(upload, str):
            raise HTTPException(status_code=400, detail="No file uploaded")
        content = await upload.read()
    else:
        content = await request.body()

    try:
        return content.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="Import file must be UTF-8 JSON")


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": settings.app_name, "version": __version__}


@app.get("/health")
async def health():
    store = get_store()
    return {
        "status": "ok",
        "transactions": len(store.transactions),
        "backup_mode": store.backup_mode,
        "auto_backup_running": bool(scheduler and scheduler.running),
    }


# Transactions

@app.get("/transactions", response_model=List[Transaction])
def list_transactions(
    type: Optional[TransactionType] = Query(None),
    category: Optional[str] = Query(None),
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
):
    """List transactions, optionally filtered by type, category and date range."""
    store = get_store()
    transactions = store.get_transactions_by_date_range(start or date.min, end or date.max)
    if type:
        transactions = [t for t in transactions if t.type == type]
    if category:
        transactions = [t for t in transactions if t.category == category]
    return transactions


@app.post("/transactions", response_model=Transaction, status_code=201)
def create_transaction(
    data: TransactionCreate,
    intentional: bool = Query(False, description="Keep an identical recent transaction"),
):
    """Add a transaction. Accidental duplicates are rejected with 409."""
    store = get_store()
    if not is_known_category(data.category):
        logger.info("Transaction uses custom category %s", data.category)
    with duplicate_guard.guard(data, intentional=intentional):
        return store.add_transaction(data)


@app.get("/transactions/search", response_model=List[Transaction])
def search_transactions(q: str = Query(..., description="Text to find in description or category")):
    return get_store().search_transactions(q)


@app.post("/transactions/dedupe", response_model=OperationResponse)
def dedupe_transactions():
    """Remove all but the first of each group of identical transactions."""
    store = get_store()
    kept = remove_duplicates(store.transactions)
    removed = len(store.transactions) - len(kept)
    if removed:
        store.replace_transactions(kept)
        store.create_backup("After duplicate cleanup")
    return OperationResponse(message=f"Removed {removed} duplicate transactions", transaction_count=len(kept))


@app.get("/transactions/{transaction_id}", response_model=Transaction)
def get_transaction(transaction_id: str):
    return get_store().get_transaction(transaction_id)


@app.patch("/transactions/{transaction_id}", response_model=Transaction)
def update_transaction(transaction_id: str, changes: TransactionUpdate):
    return get_store().update_transaction(transaction_id, changes)


@app.delete("/transactions/{transaction_id}", response_model=OperationResponse)
def delete_transaction(transaction_id: str):
    store = get_store()
    store.delete_transaction(transaction_id)
    return OperationResponse(message="Transaction deleted", transaction_count=len(store.transactions))


# Summaries

@app.get("/summary", response_model=FinancialSummary)
def financial_summary():
    return get_store().get_financial_summary()


@app.get("/categories/totals", response_model=List[CategoryTotal])
def category_totals():
    return get_store().get_category_totals()


@app.get("/categories")
def list_categories(type: TransactionType = Query("expense")):
    """Category tags for a transaction type, grouped, with display names."""
    return {
        "type": type,
        "groups": {
            group: [{"value": tag, "label": format_category_name(tag)} for tag in tags]
            for group, tags in categories_for(type).items()
        },
    }


# Analytics

@app.get("/analytics/totals", response_model=TotalsByType)
def analytics_totals(
    base_currency: str = Query(None),
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    analytics: AnalyticsService = Depends(get_analytics),
):
    return analytics.totals_by_type(
        get_store().transactions,
        base_currency or settings.default_base_currency,
        start=start,
        end=end,
    )


@app.get("/analytics/categories", response_model=List[ConvertedCategoryTotal])
def analytics_category_totals(
    base_currency: str = Query(None),
    type: Optional[TransactionType] = Query(None),
    analytics: AnalyticsService = Depends(get_analytics),
):
    return analytics.totals_by_category(
        get_store().transactions,
        base_currency or settings.default_base_currency,
        type=type,
    )


def _check_kind(kind: str):
    if kind not in ANALYSIS_TYPES:
        raise HTTPException(
            status_code=404,
            detail=f"Unknown analysis '{kind}'. Use one of: {', '.join(ANALYSIS_TYPES)}",
        )


@app.get("/analytics/{kind}")
def analytics_period(
    kind: str,
    period: str = Query(DEFAULT_PERIOD),
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    base_currency: str = Query(None),
    analytics: AnalyticsService = Depends(get_analytics),
):
    """Spending, income or investment analysis for a period."""
    _check_kind(kind)
    return analytics.analyze(
        get_store().transactions,
        kind,
        base_currency or settings.default_base_currency,
        period=period,
        custom_start=start,
        custom_end=end,
    )


@app.get("/analytics/{kind}/categories/{category}", response_model=List[ConvertedTransaction])
def analytics_category_transactions(
    kind: str,
    category: str,
    period: str = Query(DEFAULT_PERIOD),
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    base_currency: str = Query(None),
    analytics: AnalyticsService = Depends(get_analytics),
):
    _check_kind(kind)
    return analytics.category_transactions(
        get_store().transactions,
        kind,
        category,
        base_currency or settings.default_base_currency,
        period=period,
        custom_start=start,
        custom_end=end,
    )


# Currency

@app.get("/currency/convert", response_model=ConversionResult)
def convert_currency(
    amount: Decimal = Query(..., ge=0),
    from_currency: str = Query(..., alias="from"),
    to_currency: str = Query(..., alias="to"),
):
    currency = get_currency_service()
    rate = currency.get_exchange_rate(from_currency, to_currency)
    return ConversionResult(
        amount=amount,
        from_currency=from_currency.upper(),
        to_currency=to_currency.upper(),
        rate=float(rate),
        converted_amount=currency.convert_amount(amount, from_currency, to_currency),
        symbol=currency.currency_symbol(to_currency),
    )


@app.get("/currency/supported")
def supported_currencies():
    currency = get_currency_service()
    return [
        {"code": code, "symbol": currency.currency_symbol(code)}
        for code in currency.supported_currencies()
    ]


# Local backups

@app.get("/backups", response_model=List[BackupListItem])
def list_backups():
    backups = get_store().backup_service.get_backups()
    return [BackupListItem.from_snapshot(i, b) for i, b in enumerate(backups)]


@app.post("/backups", response_model=BackupListItem, status_code=201)
def create_backup(body: Optional[CreateBackupRequest] = None):
    body = body or CreateBackupRequest()
    snapshot = get_store().create_backup(body.description)
    if snapshot is None:
        raise HTTPException(status_code=500, detail="Backup could not be created")
    return BackupListItem.from_snapshot(0, snapshot)


@app.delete("/backups", response_model=OperationResponse)
def clear_backups():
    get_store().backup_service.clear_backups()
    return OperationResponse(message="All backups cleared")


@app.get("/backups/info", response_model=BackupInfo)
def backup_info():
    return get_store().get_backup_info()


@app.post("/backups/{index}/restore", response_model=OperationResponse)
def restore_backup(index: int, body: Optional[RestoreRequest] = None):
    """Replace current transactions with a snapshot. Requires `confirm: true`."""
    body = body or RestoreRequest()
    store = get_store()
    backups = store.backup_service.get_backups()
    if not 0 <= index < len(backups):
        raise HTTPException(status_code=404, detail="Invalid backup index")
    if not body.confirm:
        _confirmation_required(f"Restoring backup {index}", len(store.transactions))

    restored = store.restore_from_backup(index)
    if not restored:
        return OperationResponse(
            message="Backup holds no transactions, nothing was restored",
            transaction_count=len(store.transactions),
        )
    return OperationResponse(message="Backup restored", transaction_count=len(restored))


@app.get("/export")
def export_data(include_backups: bool = Query(False)):
    return _attachment(get_store().export_data(include_backups=include_backups))


@app.post("/import", response_model=OperationResponse)
async def import_data(request: Request, confirm: bool = Query(False)):
    """
    Replace transactions with an export document.

    Accepts the document as a JSON body or as an uploaded `file`. When
    transactions would be replaced, `confirm=true` is required.
    """
    raw = await _read_import_payload(request)
    return await run_in_threadpool(_import_local, raw, confirm)


def _import_local(raw: str, confirm: bool) -> OperationResponse:
    parse_export_document(raw)

    store = get_store()
    if store.transactions and not confirm:
        _confirmation_required("Importing", len(store.transactions))

    imported = store.import_data(raw)
    return OperationResponse(message="Data imported", transaction_count=len(imported))


# Settings

@app.get("/settings/backup-mode", response_model=BackupModeSetting)
def get_backup_mode():
    return BackupModeSetting(backup_mode=get_store().backup_mode)


@app.put("/settings/backup-mode", response_model=BackupModeSetting)
async def set_backup_mode(setting: BackupModeSetting):
    store = get_store()
    await run_in_threadpool(store.set_backup_mode, setting.backup_mode)
    if scheduler is not None:
        await scheduler.sync_with_mode()
    return BackupModeSetting(backup_mode=store.backup_mode)


# Hosted account

@app.post("/cloud/auth/signup", response_model=AuthSession, status_code=201)
def cloud_sign_up(body: SignUpRequest, backend: HostedBackend = Depends(get_backend)):
    return backend.sign_up(body.email, body.password, body.username)


@app.post("/cloud/auth/signin", response_model=AuthSession)
def cloud_sign_in(body: SignInRequest, backend: HostedBackend = Depends(get_backend)):
    """Sign in; on the first sign-in local transactions move to an empty account."""
    session = backend.sign_in(body.email_or_username, body.password)
    if session.access_token:
        bound = backend.bind(session.access_token, session.user)
        session.migrated_transactions = migrate_on_first_sign_in(bound, get_store())
    return session


@app.post("/cloud/auth/signout", response_model=OperationResponse)
def cloud_sign_out(
    authorization: Optional[str] = Header(None),
    backend: HostedBackend = Depends(get_backend),
):
    if not authorization or not authorization.lower().startswith("bearer "):
        raise AuthError("User not authenticated")
    backend.sign_out(authorization.split(" ", 1)[1].strip())
    return OperationResponse(message="Signed out")


@app.post("/cloud/auth/reset-password", response_model=OperationResponse)
def cloud_reset_password(body: ResetPasswordRequest, backend: HostedBackend = Depends(get_backend)):
    backend.reset_password(body.email, body.redirect_to)
    return OperationResponse(message="Password reset email sent")


@app.get("/cloud/profile", response_model=Profile)
def cloud_get_profile(backend: HostedBackend = Depends(get_user_backend)):
    profile = backend.get_profile()
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@app.patch("/cloud/profile", response_model=Profile)
def cloud_update_profile(updates: ProfileUpdate, backend: HostedBackend = Depends(get_user_backend)):
    profile = backend.update_profile(updates)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@app.get("/cloud/transactions", response_model=List[Transaction])
def cloud_list_transactions(backend: HostedBackend = Depends(get_user_backend)):
    return backend.get_all_transactions()


@app.post("/cloud/transactions", response_model=Transaction, status_code=201)
def cloud_add_transaction(
    data: TransactionCreate,
    intentional: bool = Query(False),
    backend: HostedBackend = Depends(get_user_backend),
):
    with duplicate_guard.guard(data, intentional=intentional):
        return backend.add_transaction(data)


@app.patch("/cloud/transactions/{transaction_id}", response_model=Transaction)
def cloud_update_transaction(
    transaction_id: str,
    changes: TransactionUpdate,
    backend: HostedBackend = Depends(get_user_backend),
):
    return backend.update_transaction(transaction_id, changes)


@app.delete("/cloud/transactions/{transaction_id}", response_model=OperationResponse)
def cloud_delete_transaction(transaction_id: str, backend: HostedBackend = Depends(get_user_backend)):
    backend.delete_transaction(transaction_id)
    return OperationResponse(message="Transaction deleted")


@app.post("/cloud/sync", response_model=OperationResponse)
def cloud_sync(backend: HostedBackend = Depends(get_user_backend)):
    """Replace local transactions with the hosted ones."""
    count = pull_from_hosted(backend, get_store())
    return OperationResponse(message="Synced from hosted account", transaction_count=count)


@app.post("/cloud/migrate", response_model=OperationResponse)
def cloud_migrate(backend: HostedBackend = Depends(get_user_backend)):
    """Copy local transactions to the hosted account."""
    count = backend.migrate_from_local(get_store().transactions)
    return OperationResponse(message="Migrated local transactions", transaction_count=count)


@app.get("/cloud/backups", response_model=List[CloudBackupInfo])
def cloud_list_backups(backend: HostedBackend = Depends(get_user_backend)):
    return CloudBackupService(backend).list_backups()


@app.post("/cloud/backups", response_model=CloudBackupInfo, status_code=201)
def cloud_create_backup(
    body: Optional[CreateBackupRequest] = None,
    backend: HostedBackend = Depends(get_user_backend),
):
    body = body or CreateBackupRequest()
    info = CloudBackupService(backend).create_backup(body.description)
    if info is None:
        raise HTTPException(status_code=502, detail="Backup could not be created")
    return info


@app.post("/cloud/backups/{backup_id}/restore", response_model=RecoveryResult)
def cloud_restore_backup(
    backup_id: str,
    body: Optional[RestoreRequest] = None,
    backend: HostedBackend = Depends(get_user_backend),
):
    """Restore a hosted backup. Requires `confirm: true`."""
    body = body or RestoreRequest()
    if not body.confirm:
        current = len(backend.get_all_transactions())
        _confirmation_required(f"Restoring backup {backup_id}", current)

    result = CloudBackupService(backend).restore_from_backup(
        backup_id,
        merge_mode=body.merge_mode,
        create_backup_before=body.create_backup_before,
    )
    if not result.success:
        raise HTTPException(status_code=502, detail=result.message)
    return result


@app.post("/cloud/backups/{backup_id}/verify", response_model=VerificationResult)
def cloud_verify_backup(backup_id: str, backend: HostedBackend = Depends(get_user_backend)):
    return CloudBackupService(backend).verify_backup(backup_id)


@app.get("/cloud/export")
def cloud_export(backend: HostedBackend = Depends(get_user_backend)):
    return _attachment(backend.export_data())


@app.post("/cloud/import", response_model=OperationResponse)
async def cloud_import(
    request: Request,
    confirm: bool = Query(False),
    backend: HostedBackend = Depends(get_user_backend),
):
    """Replace hosted transactions and backups with an export document. Requires `confirm=true`."""
    raw = await _read_import_payload(request)
    return await run_in_threadpool(_import_hosted, backend, raw, confirm)


def _import_hosted(backend: HostedBackend, raw: str, confirm: bool) -> OperationResponse:
    parse_export_document(raw)
    if not confirm:
        _confirmation_required("Importing", len(backend.get_all_transactions()))
    count = backend.import_data(raw)
    return OperationResponse(message="Data imported", transaction_count=count)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
