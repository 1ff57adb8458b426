import re
import uuid
from datetime import datetime, timedelta

import pytest
from sqlalchemy import update
from sqlalchemy.dialects import postgresql

from app.errors import ValidationError
from app.models import Mapper, Transaction, TransactionType
from app.services import ledger_service
from app.utils.timezone import start_of_week
from conftest import ADMIN_API_KEY, auth_headers, rows

# Wednesday 13:00 in Lagos
NOW = datetime(2026, 10, 14, 12, 0)


def _add_transactions(db, mapper, entries):
    """Insert ledger rows and bump total_earnings the way awards do."""

    async def _insert(session):
        earned = 0.0
        for amount, tx_type, status, created_at in entries:
            session.add(Transaction(
                mapper_id=mapper.id,
                amount=amount,
                type=tx_type,
                status=status,
                description="seeded",
                created_at=created_at,
                updated_at=created_at,
            ))
            if tx_type != TransactionType.WITHDRAWAL.value:
                earned += amount
        row = await session.get(Mapper, mapper.id)
        row.total_earnings += earned

    db(_insert)


def test_earnings_summary(db, mapper):
    last_week = start_of_week(NOW) - timedelta(days=1)
    _add_transactions(db, mapper, [
        (5, "EVENT_REPORT", "COMPLETED", NOW - timedelta(hours=1)),
        (3, "EVENT_REPORT", "COMPLETED", NOW - timedelta(hours=2)),
        (-10, "WITHDRAWAL", "PENDING", NOW - timedelta(minutes=30)),
        (20, "MAPPING", "COMPLETED", last_week),
    ])

    async def _summary(session):
        row = await session.get(Mapper, mapper.id)
        return await ledger_service.earnings_summary(session, row, now=NOW)

    summary = db(_summary)
    assert summary["daily"]["amount"] == 8
    assert summary["daily"]["amountNGN"] == 800
    assert summary["weekly"]["amount"] == 8
    assert summary["total"]["amount"] == 28
    assert summary["total"]["balance"] == 28 - 10
    assert summary["total"]["paid"] == 0
    assert len(summary["recentTransactions"]) == 4


def test_award_rejects_non_positive_and_withdrawals(db, mapper):
    with pytest.raises(ValidationError):
        db(lambda s: ledger_service.award(s, mapper.id, 0, TransactionType.BONUS, "x"))
    with pytest.raises(ValidationError):
        db(lambda s: ledger_service.award(s, mapper.id, 5, TransactionType.WITHDRAWAL, "x"))


def test_withdrawal_reference_format():
    reference = ledger_service.withdrawal_reference(now_ms=1_760_000_000_000)
    assert re.fullmatch(r"WD-1760000000000-[0-9a-z]{9}", reference)


def test_earnings_endpoint(client, mapper, db):
    _add_transactions(db, mapper, [(12, "BONUS", "COMPLETED", datetime.utcnow())])

    r = client.get("/api/mappers/earnings", headers=auth_headers(mapper))
    assert r.status_code == 200
    earnings = r.json()["earnings"]
    assert earnings["total"]["amount"] == 12
    assert earnings["total"]["balance"] == 12
    assert earnings["recentTransactions"][0]["type"] == "BONUS"


def test_earnings_requires_mapper(client, user):
    assert client.get("/api/mappers/earnings").status_code == 401
    assert client.get("/api/mappers/earnings", headers=auth_headers(user)).status_code == 403


def test_withdrawal(client, mapper, db):
    _add_transactions(db, mapper, [(30, "MAPPING", "COMPLETED", datetime.utcnow())])

    r = client.post(
        "/api/mappers/withdraw",
        json={"amount": 10, "bankAccount": "0123456789", "bankName": "GTBank"},
        headers=auth_headers(mapper),
    )
    assert r.status_code == 200
    body = r.json()
    assert body["message"] == "Withdrawal of 10 tokens (NGN 1,000.00) initiated successfully"
    tx = body["transaction"]
    assert tx["amount"] == -10
    assert tx["type"] == "WITHDRAWAL"
    assert tx["status"] == "PENDING"
    assert re.fullmatch(r"WD-\d+-[0-9a-z]{9}", tx["reference"])

    refreshed = db(lambda s: s.get(Mapper, mapper.id))
    assert refreshed.bank_account == "0123456789"
    assert refreshed.bank_name == "GTBank"

    # The pending withdrawal already counts against the balance
    r = client.post(
        "/api/mappers/withdraw",
        json={"amount": 25, "bankAccount": "0123456789"},
        headers=auth_headers(mapper),
    )
    assert r.status_code == 400
    assert "Available: 20.00" in r.json()["error"]


@pytest.mark.parametrize("payload", [
    {"amount": 0, "bankAccount": "0123456789"},
    {"amount": -5, "bankAccount": "0123456789"},
    {"amount": 5},
])
def test_withdrawal_validation(client, mapper, db, payload):
    _add_transactions(db, mapper, [(30, "MAPPING", "COMPLETED", datetime.utcnow())])
    r = client.post("/api/mappers/withdraw", json=payload, headers=auth_headers(mapper))
    assert r.status_code == 400


def test_admin_settles_withdrawal(client, mapper, db):
    _add_transactions(db, mapper, [(30, "MAPPING", "COMPLETED", datetime.utcnow())])
    tx = client.post(
        "/api/mappers/withdraw",
        json={"amount": 10, "bankAccount": "0123456789"},
        headers=auth_headers(mapper),
    ).json()["transaction"]

    headers = {"X-Admin-API-Key": ADMIN_API_KEY}
    r = client.patch(f"/api/admin/transactions/{tx['id']}/status", json={"status": "COMPLETED"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "COMPLETED"

    r = client.patch(f"/api/admin/transactions/{tx['id']}/status", json={"status": "FAILED"}, headers=headers)
    assert r.status_code == 409

    earnings = client.get("/api/mappers/earnings", headers=auth_headers(mapper)).json()["earnings"]
    assert earnings["total"]["paid"] == 10
    assert earnings["total"]["balance"] == 20


def test_transactions_listing(client, mapper, db):
    now = datetime.utcnow()
    _add_transactions(db, mapper, [
        (5, "EVENT_REPORT", "COMPLETED", now - timedelta(minutes=2)),
        (7, "MAPPING", "COMPLETED", now - timedelta(minutes=1)),
    ])

    r = client.get("/api/mappers/transactions", params={"type": "MAPPING"}, headers=auth_headers(mapper))
    body = r.json()
    assert body["pagination"]["total"] == 1
    assert body["transactions"][0]["amount"] == 7

    r = client.get("/api/mappers/transactions", headers=auth_headers(mapper))
    assert [t["amount"] for t in r.json()["transactions"]] == [7, 5]
    assert len(rows(db, Transaction)) == 2


def test_withdrawal_locks_mapper_row():
    sql = str(ledger_service.lock_mapper_query(uuid.uuid4()).compile(dialect=postgresql.dialect()))
    assert sql.rstrip().endswith("FOR UPDATE")


def test_withdrawal_checks_committed_earnings(db, mapper):
    _add_transactions(db, mapper, [(30, "MAPPING", "COMPLETED", datetime.utcnow())])

    async def _withdraw(session):
        stale = await session.get(Mapper, mapper.id)
        assert stale.total_earnings == 30
        # Another request spends the earnings between the load and the withdrawal
        await session.execute(
            update(Mapper)
            .where(Mapper.id == mapper.id)
            .values(total_earnings=5)
            .execution_options(synchronize_session=False)
        )
        with pytest.raises(ValidationError, match="Available: 5.00"):
            await ledger_service.request_withdrawal(session, stale, 20, "0123456789")

    db(_withdraw)
