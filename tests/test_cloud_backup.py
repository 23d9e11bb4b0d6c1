"""Tests for comprehensive hosted backups."""
import hashlib
from decimal import Decimal

import pytest

from balance.models.transaction import TransactionCreate
from balance.services import cloud_backup
from balance.services.cloud_backup import CloudBackupService, serialize_rows


def _seed(backend, count, **overrides):
    for n in range(count):
        data = dict(type="expense", amount=Decimal("10") + n, currency="EUR",
                    category="groceries", description=f"Item {n}", date=f"2024-01-{n + 1:02d}")
        data.update(overrides)
        backend.add_transaction(TransactionCreate(**data))


@pytest.fixture
def service(signed_in):
    return CloudBackupService(signed_in)


def test_create_backup_metadata(supabase, signed_in, service):
    _seed(signed_in, 3)

    info = service.create_backup()

    assert info.transaction_count == 3
    assert (info.date_range.start, info.date_range.end) == ("2024-01-01", "2024-01-03")
    row = supabase.tables["backups"][0]
    assert row["version"] == "2.0"
    assert row["description"] == "Automatic backup - 3 transactions"
    data = serialize_rows(service.fetch_all_rows())
    assert info.checksum == hashlib.sha256(data.encode("utf-8")).hexdigest()
    assert info.size == len(data.encode("utf-8"))


def test_fetch_pages_through_all_rows(monkeypatch, signed_in, service):
    monkeypatch.setattr(cloud_backup, "PAGE_SIZE", 2)
    _seed(signed_in, 5)

    rows = service.fetch_all_rows()

    assert [r["description"] for r in rows] == [f"Item {n}" for n in range(5)]


def test_backup_refuses_to_run_concurrently(service):
    assert cloud_backup._backup_lock.acquire(blocking=False)
    try:
        assert service.create_backup() is None
    finally:
        cloud_backup._backup_lock.release()


def test_restore_replace(supabase, signed_in, service):
    _seed(signed_in, 2)
    info = service.create_backup()
    _seed(signed_in, 1, description="After backup")

    result = service.restore_from_backup(info.id, merge_mode="replace")

    assert result.success
    assert result.transactions_restored == 2
    assert sorted(t.description for t in signed_in.get_all_transactions()) == ["Item 0", "Item 1"]


def test_restore_merge_skips_existing(supabase, signed_in, service):
    _seed(signed_in, 2)
    info = service.create_backup()
    # Same content under a new id, plus one row that is gone.
    first_id = supabase.tables["transactions"][0]["id"]
    signed_in.delete_transaction(first_id)
    _seed(signed_in, 1)

    result = service.restore_from_backup(info.id, merge_mode="merge")

    assert result.success
    assert result.conflicts_resolved == 2
    assert result.transactions_restored == 0
    assert len(supabase.tables["transactions"]) == 2


def test_restore_merge_inserts_missing(supabase, signed_in, service):
    _seed(signed_in, 3)
    info = service.create_backup()
    doomed = supabase.tables["transactions"][2]["id"]
    signed_in.delete_transaction(doomed)

    result = service.restore_from_backup(info.id, merge_mode="merge-newer")

    assert result.transactions_restored == 1
    assert result.conflicts_resolved == 2
    assert doomed in {row["id"] for row in supabase.tables["transactions"]}


def test_restore_inserts_in_batches(monkeypatch, supabase, signed_in, service):
    monkeypatch.setattr(cloud_backup, "INSERT_BATCH_SIZE", 2)
    _seed(signed_in, 5)
    info = service.create_backup()
    supabase.requests.clear()

    service.restore_from_backup(info.id)

    inserts = [r for r in supabase.requests if r.method == "POST" and r.url.path == "/rest/v1/transactions"]
    assert len(inserts) == 3
    assert len(supabase.tables["transactions"]) == 5


def test_restore_can_back_up_first(supabase, signed_in, service):
    _seed(signed_in, 1)
    info = service.create_backup()

    service.restore_from_backup(info.id, create_backup_before=True)

    assert [b["description"] for b in supabase.tables["backups"]][-1] == "Pre-restore backup"


def test_restore_missing_backup(service):
    result = service.restore_from_backup("backups-404")
    assert not result.success
    assert "Backup not found" in result.message


def test_list_backups(signed_in, service):
    _seed(signed_in, 2)
    service.create_backup("one")

    backups = service.list_backups()

    assert len(backups) == 1
    assert backups[0].transaction_count == 2
    assert len(backups[0].checksum) == 64


def test_verify_backup(supabase, signed_in, service):
    _seed(signed_in, 2)
    good = service.create_backup()
    assert service.verify_backup(good.id).valid

    empty = service.create_backup()
    supabase.tables["backups"][-1]["transactions"] = []
    result = service.verify_backup(empty.id)
    assert not result.valid
    assert result.message == "Backup contains no transactions"

    supabase.tables["backups"][-1]["transactions"] = [{"id": "x", "type": "expense"}]
    assert service.verify_backup(empty.id).message == "1 transactions missing required fields"

    assert not service.verify_backup("backups-404").valid


def test_merge_matches_amounts_written_at_another_scale(supabase, signed_in, service):
    _seed(signed_in, 1, amount=Decimal("100"))
    info = service.create_backup()
    supabase.tables["transactions"][0]["id"] = "renumbered"
    supabase.tables["backups"][-1]["transactions"][0]["amount"] = "100.00"

    result = service.restore_from_backup(info.id, merge_mode="merge")

    assert result.conflicts_resolved == 1
    assert result.transactions_restored == 0
    assert len(supabase.tables["transactions"]) == 1
