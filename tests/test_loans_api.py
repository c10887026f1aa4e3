"""Loan service and API tests — requests, decisions, activation, repayments,
schedules, portfolio summary and access control.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest

from payzenix.common.audit import ActorRef
from payzenix.common.constants import EmployeeStatus, LoanStatus, LoanType, UserRole
from payzenix.common.exceptions import InvalidLoanOperation
from payzenix.loans.schemas import LoanCreate
from payzenix.loans.service import LoanService
from tests.conftest import _insert_employee, auth_headers_for

LOANS = "/api/v1/loans"


# ── Helpers ─────────────────────────────────────────────────────────


async def _request(client, headers, principal="10000", tenure=12, **extra) -> dict:
    resp = await client.post(
        LOANS,
        json={"loan_type": "personal", "principal": principal, "tenure": tenure, **extra},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _activated(client, auth_headers, hr_headers, **kw) -> dict:
    loan = await _request(client, auth_headers, **kw)
    resp = await client.put(f"{LOANS}/{loan['id']}/approve", json={}, headers=hr_headers)
    assert resp.status_code == 200, resp.text
    resp = await client.post(
        f"{LOANS}/{loan['id']}/activate", json={"start_date": "2025-01-01"}, headers=hr_headers,
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


# ═════════════════════════════════════════════════════════════════════
# 1. SERVICE LAYER
# ═════════════════════════════════════════════════════════════════════


async def test_create_loan_for_inactive_employee_rejected(db):
    inactive = await _insert_employee(db, status=EmployeeStatus.inactive)
    data = LoanCreate(principal=Decimal("5000"), tenure=5)
    with pytest.raises(InvalidLoanOperation):
        await LoanService.create_loan(db, data, inactive["id"])


async def test_service_flow_keeps_balance(db, test_employee, hr_user):
    approver = ActorRef(id=hr_user["id"], name="HR Manager")
    loan = await LoanService.create_loan(
        db, LoanCreate(loan_type=LoanType.advance, principal=Decimal("3000"), tenure=3),
        test_employee["id"],
    )
    await LoanService.approve_loan(db, loan.id, approver)
    await LoanService.activate_loan(db, loan.id, approver)

    for _ in range(3):
        loan = await LoanService.apply_payment(db, loan.id, approver)
        assert loan.paid_amount + loan.remaining_amount == loan.principal

    assert loan.status == LoanStatus.completed
    assert len(loan.schedule) == 3


# ═════════════════════════════════════════════════════════════════════
# 2. API: request & decision
# ═════════════════════════════════════════════════════════════════════


async def test_request_loan(client, db, auth_headers, test_employee):
    await db.commit()
    loan = await _request(client, auth_headers, reason="Medical")

    assert loan["status"] == "pending"
    assert loan["employee_id"] == str(test_employee["id"])
    assert Decimal(loan["emi_amount"]) == Decimal("834")
    assert Decimal(loan["remaining_amount"]) == Decimal("10000")
    assert Decimal(loan["progress_percent"]) == 0
    assert loan["remaining_installments"] == 12
    assert loan["reason"] == "Medical"


async def test_request_loan_invalid_tenure(client, db, auth_headers):
    await db.commit()
    resp = await client.post(
        LOANS,
        json={"loan_type": "personal", "principal": "10000", "tenure": 0},
        headers=auth_headers,
    )
    assert resp.status_code == 422
    body = resp.json()
    assert body["type"].endswith("/invalid-loan-parameters")
    assert "tenure" in body["errors"]


@pytest.mark.parametrize("path", ["", "/quote"])
async def test_rate_finer_than_stored_scale_rejected(client, db, auth_headers, path):
    await db.commit()
    resp = await client.post(
        f"{LOANS}{path}",
        json={"loan_type": "personal", "principal": "10000", "interest_rate": "12.345",
              "tenure": 12},
        headers=auth_headers,
    )
    assert resp.status_code == 422
    assert resp.json()["type"].endswith("/validation-error")

    resp = await client.get(f"{LOANS}/my-loans", headers=auth_headers)
    assert resp.json()["data"] == []


async def test_hr_requests_on_behalf_by_code(client, db, hr_headers, test_employee):
    await db.commit()
    loan = await _request(client, hr_headers, employee=test_employee["employee_code"])
    assert loan["employee_id"] == str(test_employee["id"])


async def test_employee_cannot_request_for_someone_else(client, db, auth_headers, hr_user):
    await db.commit()
    resp = await client.post(
        LOANS,
        json={"employee": str(hr_user["id"]), "principal": "1000", "tenure": 2},
        headers=auth_headers,
    )
    assert resp.status_code == 403


async def test_employee_cannot_approve(client, db, auth_headers):
    await db.commit()
    loan = await _request(client, auth_headers)
    resp = await client.put(f"{LOANS}/{loan['id']}/approve", headers=auth_headers)
    assert resp.status_code == 403


async def test_approve_records_approver(client, db, auth_headers, hr_headers, hr_user):
    await db.commit()
    loan = await _request(client, auth_headers)
    resp = await client.put(
        f"{LOANS}/{loan['id']}/approve", json={"remarks": "Approved"}, headers=hr_headers,
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "approved"
    assert body["approved_by"] == str(hr_user["id"])
    assert body["remarks"] == "Approved"


async def test_hr_cannot_decide_own_loan(client, db, hr_headers, test_employee):
    await db.commit()
    loan = await _request(client, hr_headers)

    for action in ("approve", "reject"):
        resp = await client.put(f"{LOANS}/{loan['id']}/{action}", json={}, headers=hr_headers)
        assert resp.status_code == 403

    other_hr = auth_headers_for(test_employee["id"], UserRole.hr)
    resp = await client.put(f"{LOANS}/{loan['id']}/approve", json={}, headers=other_hr)
    assert resp.status_code == 200
    assert resp.json()["status"] == "approved"


async def test_second_decision_is_conflict(client, db, auth_headers, hr_headers):
    await db.commit()
    loan = await _request(client, auth_headers)
    await client.put(f"{LOANS}/{loan['id']}/reject", json={}, headers=hr_headers)

    resp = await client.put(f"{LOANS}/{loan['id']}/approve", json={}, headers=hr_headers)
    assert resp.status_code == 409
    assert resp.json()["type"].endswith("/loan-already-decided")


# ═════════════════════════════════════════════════════════════════════
# 3. API: activation & repayment
# ═════════════════════════════════════════════════════════════════════


async def test_payment_on_pending_loan_is_conflict(client, db, auth_headers, hr_headers):
    await db.commit()
    loan = await _request(client, auth_headers)
    resp = await client.post(f"{LOANS}/{loan['id']}/payments", json={}, headers=hr_headers)
    assert resp.status_code == 409
    assert resp.json()["type"].endswith("/invalid-loan-operation")


async def test_repay_to_completion(client, db, auth_headers, hr_headers):
    await db.commit()
    loan = await _activated(client, auth_headers, hr_headers)
    assert loan["status"] == "active"

    resp = await client.get(f"{LOANS}/{loan['id']}/schedule", headers=auth_headers)
    assert resp.status_code == 200
    schedule = resp.json()
    assert len(schedule["entries"]) == 12
    assert schedule["entries"][0]["due_date"] == "2025-02-01"
    assert Decimal(schedule["entries"][-1]["emi"]) == Decimal("826")

    for _ in range(12):
        resp = await client.post(f"{LOANS}/{loan['id']}/payments", json={}, headers=hr_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert Decimal(body["paid_amount"]) + Decimal(body["remaining_amount"]) == Decimal("10000")

    assert body["status"] == "completed"
    assert Decimal(body["progress_percent"]) == Decimal("100")
    assert body["remaining_installments"] == 0

    resp = await client.post(f"{LOANS}/{loan['id']}/payments", json={}, headers=hr_headers)
    assert resp.status_code == 409


async def test_overpayment_rejected(client, db, auth_headers, hr_headers):
    await db.commit()
    loan = await _activated(client, auth_headers, hr_headers)
    resp = await client.post(
        f"{LOANS}/{loan['id']}/payments", json={"amount": "20000"}, headers=hr_headers,
    )
    assert resp.status_code == 409


async def test_prepayment(client, db, auth_headers, hr_headers):
    await db.commit()
    loan = await _activated(client, auth_headers, hr_headers)
    resp = await client.post(
        f"{LOANS}/{loan['id']}/payments", json={"amount": "4000"}, headers=hr_headers,
    )
    assert resp.status_code == 200
    body = resp.json()
    assert Decimal(body["remaining_amount"]) == Decimal("6000")
    assert body["installments_paid"] == 0
    assert Decimal(body["progress_percent"]) == Decimal("40")


async def test_activate_pending_loan_is_conflict(client, db, auth_headers, hr_headers):
    await db.commit()
    loan = await _request(client, auth_headers)
    resp = await client.post(f"{LOANS}/{loan['id']}/activate", json={}, headers=hr_headers)
    assert resp.status_code == 409


# ═════════════════════════════════════════════════════════════════════
# 4. API: quote, listings, summary, deletion
# ═════════════════════════════════════════════════════════════════════


async def test_quote(client, db, auth_headers):
    await db.commit()
    resp = await client.post(
        f"{LOANS}/quote",
        json={"principal": "100000", "interest_rate": "12", "tenure": 12},
        headers=auth_headers,
    )
    assert resp.status_code == 200
    body = resp.json()
    assert Decimal(body["emi_amount"]) == Decimal("8885")
    assert len(body["entries"]) == 12
    assert Decimal(body["total_payable"]) == Decimal("100000") + Decimal(body["total_interest"])


async def test_pending_loan_schedule_is_projected(client, db, auth_headers):
    await db.commit()
    loan = await _request(client, auth_headers, principal="5", tenure=4)
    resp = await client.get(f"{LOANS}/{loan['id']}/schedule", headers=auth_headers)
    assert resp.status_code == 200
    assert [Decimal(e["emi"]) for e in resp.json()["entries"]] == [
        Decimal("2"), Decimal("2"), Decimal("1"),
    ]


async def test_my_loans_and_privacy(client, db, auth_headers, hr_headers, hr_user):
    other = await _insert_employee(db)
    await db.commit()
    mine = await _request(client, auth_headers)
    theirs = await _request(client, auth_headers_for(other["id"]))

    resp = await client.get(f"{LOANS}/my-loans", headers=auth_headers)
    assert [loan["id"] for loan in resp.json()["data"]] == [mine["id"]]

    resp = await client.get(f"{LOANS}/{theirs['id']}", headers=auth_headers)
    assert resp.status_code == 403

    resp = await client.get(f"{LOANS}/{theirs['id']}", headers=hr_headers)
    assert resp.status_code == 200


async def test_list_loans_filter_by_status(client, db, auth_headers, hr_headers):
    await db.commit()
    first = await _request(client, auth_headers)
    await _request(client, auth_headers)
    await client.put(f"{LOANS}/{first['id']}/approve", json={}, headers=hr_headers)

    resp = await client.get(LOANS, params={"status": "pending"}, headers=hr_headers)
    assert resp.status_code == 200
    assert resp.json()["total"] == 1


async def test_portfolio_summary(client, db, auth_headers, hr_headers):
    await db.commit()
    active = await _activated(client, auth_headers, hr_headers)
    await client.post(f"{LOANS}/{active['id']}/payments", json={}, headers=hr_headers)
    await _request(client, auth_headers, principal="2000", tenure=2)

    resp = await client.get(f"{LOANS}/summary", headers=hr_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["total_loans"] == 2
    assert body["active_count"] == 1
    assert body["pending_count"] == 1
    assert Decimal(body["total_disbursed"]) == Decimal("10000")
    assert Decimal(body["total_recovered"]) == Decimal("834")
    assert Decimal(body["outstanding"]) == Decimal("9166")


async def test_delete_restricted_by_status(client, db, auth_headers, hr_headers):
    await db.commit()
    pending = await _request(client, auth_headers)
    resp = await client.delete(f"{LOANS}/{pending['id']}", headers=hr_headers)
    assert resp.status_code == 204

    active = await _activated(client, auth_headers, hr_headers)
    resp = await client.delete(f"{LOANS}/{active['id']}", headers=hr_headers)
    assert resp.status_code == 409


async def test_unknown_loan_is_not_found(client, db, hr_headers):
    await db.commit()
    resp = await client.get(f"{LOANS}/{uuid.uuid4()}", headers=hr_headers)
    assert resp.status_code == 404
