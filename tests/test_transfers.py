"""
Tests for transfers between accounts.

These tests verify the most critical properties of the ledger:
  - Atomicity: a transfer either moves money on both sides or on neither
  - Conservation: the two balances move by -amount and +amount
  - Both legs share the transfer's reference code
  - Validation runs before any write (amount, existence, status, funds)
  - Cancellation only applies to pending transfers
"""

import re
import uuid
from datetime import date

import pytest
from sqlalchemy import select, func

from bankledger.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    GenerationExhaustedError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidStateTransitionError,
    TransferNotFoundError,
)
from bankledger.models.account import AccountStatus
from bankledger.models.balance_history import BalanceHistory, ChangeType
from bankledger.models.transaction import Transaction, TransactionType
from bankledger.models.transfer import Transfer, TransferStatus
from bankledger.services import transfer_service

REFERENCE_CODE_RE = re.compile(r"^[A-Z0-9]{4}-[A-Z0-9]{4}-[A-Z0-9]{4}$")


async def _count(db, model):
    result = await db.execute(select(func.count()).select_from(model))
    return result.scalar()


class TestExecuteTransfer:
    """Successful transfers through the service layer."""

    async def test_rent_payment(self, db_session, make_account):
        """500.00 -> 300.00 and 50.00 -> 250.00 for a 200.00 transfer."""
        source = await make_account(balance_cents=50000, name="Checking")
        dest = await make_account(balance_cents=5000, name="Landlord")

        transfer, debit_txn, credit_txn = await transfer_service.execute_transfer(
            db_session, source.id, dest.id, 20000, description="Rent"
        )

        assert source.balance_cents == 30000
        assert dest.balance_cents == 25000

        assert transfer.status == TransferStatus.COMPLETED
        assert transfer.date == date.today()
        assert transfer.amount_cents == 20000

        assert debit_txn.account_id == source.id
        assert debit_txn.amount_cents == -20000
        assert debit_txn.type == TransactionType.DEBIT
        assert credit_txn.account_id == dest.id
        assert credit_txn.amount_cents == 20000
        assert credit_txn.type == TransactionType.CREDIT

        assert debit_txn.reference == credit_txn.reference == transfer.reference_code
        assert debit_txn.category == credit_txn.category == "Transfer"
        assert debit_txn.description == f"Transfer to {dest.account_number}"
        assert credit_txn.description == f"Transfer from {source.account_number}"

    async def test_history_rows_reference_transfer(self, db_session, make_account):
        source = await make_account(balance_cents=50000)
        dest = await make_account(balance_cents=5000)

        transfer, _, _ = await transfer_service.execute_transfer(
            db_session, source.id, dest.id, 20000
        )

        result = await db_session.execute(
            select(BalanceHistory).where(BalanceHistory.change_type == ChangeType.TRANSFER)
        )
        rows = {row.account_id: row for row in result.scalars().all()}
        assert set(rows) == {source.id, dest.id}
        assert rows[source.id].change_amount_cents == -20000
        assert rows[source.id].balance_cents == 30000
        assert rows[dest.id].change_amount_cents == 20000
        assert rows[dest.id].balance_cents == 25000
        assert all(row.reference_id == str(transfer.id) for row in rows.values())

    async def test_conservation(self, db_session, make_account):
        """The sum of balances is unchanged by any sequence of transfers."""
        a = await make_account(balance_cents=10000)
        b = await make_account(balance_cents=2500)
        c = await make_account(balance_cents=0)

        await transfer_service.execute_transfer(db_session, a.id, b.id, 3333)
        await transfer_service.execute_transfer(db_session, b.id, c.id, 5000)
        await transfer_service.execute_transfer(db_session, c.id, a.id, 1)

        assert a.balance_cents + b.balance_cents + c.balance_cents == 12500
        assert (a.balance_cents, b.balance_cents, c.balance_cents) == (6668, 833, 4999)

    async def test_exact_balance_is_allowed(self, db_session, make_account):
        source = await make_account(balance_cents=1234)
        dest = await make_account()

        await transfer_service.execute_transfer(db_session, source.id, dest.id, 1234)

        assert source.balance_cents == 0
        assert dest.balance_cents == 1234

    async def test_reference_code_format(self, db_session, make_account):
        source = await make_account(balance_cents=1000)
        dest = await make_account()

        transfer, _, _ = await transfer_service.execute_transfer(
            db_session, source.id, dest.id, 100
        )

        assert REFERENCE_CODE_RE.match(transfer.reference_code)

    def test_generated_codes_match_format(self):
        for _ in range(50):
            assert REFERENCE_CODE_RE.match(transfer_service.generate_reference_code())


class TestTransferValidation:
    """Rejected transfers leave no trace."""

    async def _assert_nothing_written(self, db_session):
        assert await _count(db_session, Transfer) == 0
        assert await _count(db_session, Transaction) == 0
        transfer_rows = await db_session.execute(
            select(func.count()).select_from(BalanceHistory)
            .where(BalanceHistory.change_type == ChangeType.TRANSFER)
        )
        assert transfer_rows.scalar() == 0

    async def test_insufficient_funds(self, db_session, make_account):
        source = await make_account(balance_cents=10000)
        dest = await make_account(balance_cents=0)

        with pytest.raises(InsufficientFundsError) as exc_info:
            await transfer_service.execute_transfer(db_session, source.id, dest.id, 15000)

        assert exc_info.value.requested_cents == 15000
        assert exc_info.value.available_cents == 10000
        assert source.balance_cents == 10000
        assert dest.balance_cents == 0
        await self._assert_nothing_written(db_session)

    @pytest.mark.parametrize("amount", [0, -500])
    async def test_non_positive_amount(self, db_session, make_account, amount):
        source = await make_account(balance_cents=10000)
        dest = await make_account()

        with pytest.raises(InvalidAmountError):
            await transfer_service.execute_transfer(db_session, source.id, dest.id, amount)

        await self._assert_nothing_written(db_session)

    async def test_missing_source(self, db_session, make_account):
        dest = await make_account()

        with pytest.raises(AccountNotFoundError) as exc_info:
            await transfer_service.execute_transfer(db_session, uuid.uuid4(), dest.id, 100)

        assert exc_info.value.side == "source"
        await self._assert_nothing_written(db_session)

    async def test_missing_destination(self, db_session, make_account):
        source = await make_account(balance_cents=1000)

        with pytest.raises(AccountNotFoundError) as exc_info:
            await transfer_service.execute_transfer(db_session, source.id, uuid.uuid4(), 100)

        assert exc_info.value.side == "destination"
        assert source.balance_cents == 1000
        await self._assert_nothing_written(db_session)

    async def test_inactive_source(self, db_session, make_account):
        source = await make_account(balance_cents=1000, status=AccountStatus.INACTIVE)
        dest = await make_account()

        with pytest.raises(AccountInactiveError) as exc_info:
            await transfer_service.execute_transfer(db_session, source.id, dest.id, 100)

        assert exc_info.value.side == "source"
        await self._assert_nothing_written(db_session)

    async def test_inactive_destination(self, db_session, make_account):
        source = await make_account(balance_cents=1000)
        dest = await make_account(status=AccountStatus.CLOSED)

        with pytest.raises(AccountInactiveError) as exc_info:
            await transfer_service.execute_transfer(db_session, source.id, dest.id, 100)

        assert exc_info.value.side == "destination"
        assert source.balance_cents == 1000
        await self._assert_nothing_written(db_session)

    async def test_credit_account_cannot_overdraw(self, db_session, make_account):
        """Credit accounts follow the same flat balance rule."""
        from bankledger.models.account import AccountType

        source = await make_account(balance_cents=0, account_type=AccountType.CREDIT)
        dest = await make_account()

        with pytest.raises(InsufficientFundsError):
            await transfer_service.execute_transfer(db_session, source.id, dest.id, 100)


class TestTransferStatus:
    """Cancellation and administrative status overwrites."""

    async def _pending_transfer(self, db_session, source, dest):
        transfer = Transfer(
            from_account_id=source.id,
            to_account_id=dest.id,
            amount_cents=500,
            date=date.today(),
            status=TransferStatus.PENDING,
            reference_code=transfer_service.generate_reference_code(),
        )
        db_session.add(transfer)
        await db_session.flush()
        return transfer

    async def test_cancel_pending(self, db_session, make_account):
        source = await make_account(balance_cents=1000)
        dest = await make_account()
        transfer = await self._pending_transfer(db_session, source, dest)

        cancelled = await transfer_service.cancel_transfer(db_session, transfer.id)

        assert cancelled.status == TransferStatus.CANCELLED
        assert source.balance_cents == 1000
        assert dest.balance_cents == 0

    async def test_cancel_completed_is_rejected(self, db_session, make_account):
        source = await make_account(balance_cents=1000)
        dest = await make_account()
        transfer, _, _ = await transfer_service.execute_transfer(
            db_session, source.id, dest.id, 400
        )

        with pytest.raises(InvalidStateTransitionError):
            await transfer_service.cancel_transfer(db_session, transfer.id)

        assert transfer.status == TransferStatus.COMPLETED

    async def test_cancel_unknown(self, db_session):
        with pytest.raises(TransferNotFoundError):
            await transfer_service.cancel_transfer(db_session, uuid.uuid4())

    async def test_update_status_does_not_reverse(self, db_session, make_account):
        """Overwriting a completed transfer's status leaves balances alone."""
        source = await make_account(balance_cents=1000)
        dest = await make_account()
        transfer, _, _ = await transfer_service.execute_transfer(
            db_session, source.id, dest.id, 400
        )

        updated = await transfer_service.update_transfer_status(
            db_session, transfer.id, TransferStatus.FAILED
        )

        assert updated.status == TransferStatus.FAILED
        assert source.balance_cents == 600
        assert dest.balance_cents == 400
        assert await _count(db_session, Transaction) == 2


class TestTransferLookups:
    """Read paths."""

    async def test_lookup_by_reference_is_case_insensitive(self, db_session, make_account):
        source = await make_account(balance_cents=1000)
        dest = await make_account()
        transfer, _, _ = await transfer_service.execute_transfer(
            db_session, source.id, dest.id, 100
        )

        found = await transfer_service.get_transfer_by_reference(
            db_session, transfer.reference_code.lower()
        )
        assert found.id == transfer.id

    async def test_lookup_unknown_reference(self, db_session):
        with pytest.raises(TransferNotFoundError):
            await transfer_service.get_transfer_by_reference(db_session, "AAAA-BBBB-CCCC")

    async def test_account_transfers_both_directions(self, db_session, make_account):
        a = await make_account(balance_cents=1000)
        b = await make_account(balance_cents=1000)
        c = await make_account(balance_cents=1000)

        await transfer_service.execute_transfer(db_session, a.id, b.id, 100)
        await transfer_service.execute_transfer(db_session, b.id, a.id, 50)
        await transfer_service.execute_transfer(db_session, b.id, c.id, 25)

        assert len(await transfer_service.get_account_transfers(db_session, a.id)) == 2
        assert len(await transfer_service.get_account_transfers(db_session, b.id)) == 3
        assert len(await transfer_service.get_account_transfers(db_session, c.id)) == 1

    async def test_account_transfers_unknown_account(self, db_session):
        with pytest.raises(AccountNotFoundError):
            await transfer_service.get_account_transfers(db_session, uuid.uuid4())


class TestTransferEndpoints:
    """HTTP surface for transfers, including rollback of rejected requests."""

    async def test_successful_transfer(self, client, api_account):
        source = await api_account(balance_cents=50000)
        dest = await api_account(balance_cents=5000)

        response = await client.post("/transfers", json={
            "from_account_id": source["id"],
            "to_account_id": dest["id"],
            "amount_cents": 20000,
            "description": "Rent",
        })

        assert response.status_code == 201
        data = response.json()
        assert REFERENCE_CODE_RE.match(data["reference_code"])
        assert data["transfer"]["status"] == "completed"
        assert data["transfer"]["amount_cents"] == 20000

        src_balance = (await client.get(f"/accounts/{source['id']}/balance")).json()
        dst_balance = (await client.get(f"/accounts/{dest['id']}/balance")).json()
        assert src_balance["balance_cents"] == 30000
        assert dst_balance["balance_cents"] == 25000
        assert src_balance["match"] and dst_balance["match"]

        by_ref = await client.get(f"/transfers/reference/{data['reference_code']}")
        assert by_ref.status_code == 200
        assert by_ref.json()["id"] == data["transfer_id"]

        listed = await client.get(f"/accounts/{source['id']}/transfers")
        assert [t["id"] for t in listed.json()] == [data["transfer_id"]]

    async def test_insufficient_funds_response(self, client, api_account):
        source = await api_account(balance_cents=10000)
        dest = await api_account()

        response = await client.post("/transfers", json={
            "from_account_id": source["id"],
            "to_account_id": dest["id"],
            "amount_cents": 15000,
        })

        assert response.status_code == 422
        body = response.json()
        assert body["error_type"] == "insufficient_funds"

        src_balance = (await client.get(f"/accounts/{source['id']}/balance")).json()
        assert src_balance["balance_cents"] == 10000
        assert (await client.get("/transfers")).json() == []

    async def test_inactive_account_response(self, client, api_account):
        source = await api_account(balance_cents=1000, status="inactive")
        dest = await api_account()

        response = await client.post("/transfers", json={
            "from_account_id": source["id"],
            "to_account_id": dest["id"],
            "amount_cents": 100,
        })

        assert response.status_code == 409
        assert response.json()["error_type"] == "account_inactive"

    async def test_same_account_rejected(self, client, api_account):
        account = await api_account(balance_cents=1000)

        response = await client.post("/transfers", json={
            "from_account_id": account["id"],
            "to_account_id": account["id"],
            "amount_cents": 100,
        })

        assert response.status_code == 422

    async def test_zero_amount_rejected(self, client, api_account):
        source = await api_account(balance_cents=1000)
        dest = await api_account()

        response = await client.post("/transfers", json={
            "from_account_id": source["id"],
            "to_account_id": dest["id"],
            "amount_cents": 0,
        })

        assert response.status_code == 422

    async def test_cancel_completed_returns_409(self, client, api_account):
        source = await api_account(balance_cents=1000)
        dest = await api_account()
        transfer = (await client.post("/transfers", json={
            "from_account_id": source["id"],
            "to_account_id": dest["id"],
            "amount_cents": 100,
        })).json()

        response = await client.post(f"/transfers/{transfer['transfer_id']}/cancel")

        assert response.status_code == 409
        assert response.json()["error_type"] == "invalid_state_transition"

    async def test_status_overwrite_and_filter(self, client, api_account):
        source = await api_account(balance_cents=1000)
        dest = await api_account()
        transfer = (await client.post("/transfers", json={
            "from_account_id": source["id"],
            "to_account_id": dest["id"],
            "amount_cents": 100,
        })).json()

        response = await client.patch(
            f"/transfers/{transfer['transfer_id']}/status", json={"status": "failed"}
        )
        assert response.status_code == 200
        assert response.json()["status"] == "failed"

        failed = await client.get("/transfers", params={"status": "failed"})
        completed = await client.get("/transfers", params={"status": "completed"})
        assert len(failed.json()) == 1
        assert completed.json() == []


class TestReferenceCodeExhaustion:
    """The reference-code loop gives up after MAX_GENERATION_ATTEMPTS collisions."""

    FIXED_CODE = "AAAA-BBBB-CCCC"

    async def test_exhaustion_raises_and_writes_nothing(
        self, db_session, make_account, monkeypatch
    ):
        source = await make_account(balance_cents=1000)
        dest = await make_account()
        monkeypatch.setattr(transfer_service, "generate_reference_code", lambda: self.FIXED_CODE)

        first, _, _ = await transfer_service.execute_transfer(db_session, source.id, dest.id, 100)
        assert first.reference_code == self.FIXED_CODE

        with pytest.raises(GenerationExhaustedError) as exc_info:
            await transfer_service.execute_transfer(db_session, source.id, dest.id, 100)

        assert exc_info.value.attempts == 10
        assert source.balance_cents == 900
        assert dest.balance_cents == 100
        assert await _count(db_session, Transfer) == 1
        assert await _count(db_session, Transaction) == 2

    async def test_exhaustion_returns_503(self, client, api_account, monkeypatch):
        source = await api_account(balance_cents=1000)
        dest = await api_account()
        monkeypatch.setattr(transfer_service, "generate_reference_code", lambda: self.FIXED_CODE)
        payload = {
            "from_account_id": source["id"],
            "to_account_id": dest["id"],
            "amount_cents": 100,
        }

        assert (await client.post("/transfers", json=payload)).status_code == 201
        response = await client.post("/transfers", json=payload)

        assert response.status_code == 503
        assert response.json()["error_type"] == "generation_exhausted"

        balance = (await client.get(f"/accounts/{source['id']}/balance")).json()
        assert balance["balance_cents"] == 900
        assert balance["match"] is True
        assert len((await client.get("/transfers")).json()) == 1
