from datetime import date
from decimal import Decimal
from typing import Dict, List
from uuid import UUID

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fee_engine.core.models import FeeAuditLog, StudentFeeLineItem, StudentFeeStructure


async def _batch_structure(client, headers, batch_id, session_id, items) -> dict:
    response = await client.post(
        "/api/v1/fees/batch-structure",
        json={
            "batch_id": str(batch_id),
            "session_id": str(session_id),
            "name": "Grade 5 fees",
            "line_items": [{"fee_component_id": str(cid), "amount": amount} for cid, amount in items],
        },
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


async def _student_structure(client, headers, student_id, session_id, items) -> dict:
    response = await client.post(
        "/api/v1/fees/student-structure",
        json={
            "student_id": str(student_id),
            "session_id": str(session_id),
            "line_items": [{"fee_component_id": str(cid), "amount": amount} for cid, amount in items],
        },
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


async def _three_way_schedule(client, headers, structure_id) -> List[dict]:
    template = await client.post(
        "/api/v1/fees/emi-templates",
        json={"name": "Three installments", "installment_count": 3},
        headers=headers,
    )
    assert template.status_code == 201, template.text
    response = await client.post(
        "/api/v1/fees/installments/generate",
        json={
            "student_fee_structure_id": structure_id,
            "emi_template_id": template.json()["id"],
            "start_date": date(2099, 4, 1).isoformat(),
        },
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["installments"]


# --- Batch Fee Structure ---
@pytest.mark.asyncio
async def test_create_batch_structure(
    client: AsyncClient,
    headers: Dict[str, str],
    batch_id: UUID,
    session_id: UUID,
    component_ids: Dict[str, UUID],
) -> None:
    data = await _batch_structure(
        client, headers, batch_id, session_id,
        [(component_ids["tuition"], "20000"), (component_ids["transport"], "6000")],
    )
    assert data["total_amount"] == "26000.00"
    assert data["batch_name"] == "Grade 5 A"
    assert data["session_name"] == "2026-27"
    assert [li["fee_component_name"] for li in data["line_items"]] == ["Tuition", "Transport"]

    response = await client.get(
        f"/api/v1/fees/batch-structure/{batch_id}", params={"session_id": str(session_id)}, headers=headers
    )
    assert response.status_code == 200
    assert response.json()["id"] == data["id"]

    listed = await client.get("/api/v1/fees/batch-structure", headers=headers)
    assert [s["id"] for s in listed.json()] == [data["id"]]


@pytest.mark.asyncio
async def test_duplicate_batch_session_structure_conflicts(
    client: AsyncClient,
    headers: Dict[str, str],
    batch_id: UUID,
    session_id: UUID,
    component_ids: Dict[str, UUID],
) -> None:
    items = [(component_ids["tuition"], "20000")]
    await _batch_structure(client, headers, batch_id, session_id, items)
    response = await client.post(
        "/api/v1/fees/batch-structure",
        json={
            "batch_id": str(batch_id),
            "session_id": str(session_id),
            "name": "Again",
            "line_items": [{"fee_component_id": str(component_ids["lab"]), "amount": "10"}],
        },
        headers=headers,
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_batch_structure_input_validation(
    client: AsyncClient,
    headers: Dict[str, str],
    batch_id: UUID,
    session_id: UUID,
    component_ids: Dict[str, UUID],
) -> None:
    base = {"batch_id": str(batch_id), "session_id": str(session_id), "name": "Fees"}
    tuition = str(component_ids["tuition"])

    response = await client.post(
        "/api/v1/fees/batch-structure",
        json={**base, "line_items": [{"fee_component_id": tuition, "amount": "0"}]},
        headers=headers,
    )
    assert response.status_code == 422

    response = await client.post(
        "/api/v1/fees/batch-structure",
        json={
            **base,
            "line_items": [
                {"fee_component_id": tuition, "amount": "100"},
                {"fee_component_id": tuition, "amount": "200"},
            ],
        },
        headers=headers,
    )
    assert response.status_code == 400

    await client.patch(f"/api/v1/fee-components/{component_ids['lab']}", json={"is_active": False}, headers=headers)
    response = await client.post(
        "/api/v1/fees/batch-structure",
        json={**base, "line_items": [{"fee_component_id": str(component_ids["lab"]), "amount": "100"}]},
        headers=headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_apply_batch_structure_is_idempotent(
    client: AsyncClient,
    headers: Dict[str, str],
    batch_id: UUID,
    session_id: UUID,
    student_ids: List[UUID],
    inactive_student_id: UUID,
    component_ids: Dict[str, UUID],
) -> None:
    bfs = await _batch_structure(
        client, headers, batch_id, session_id,
        [(component_ids["tuition"], "20000"), (component_ids["transport"], "6000")],
    )

    response = await client.post(f"/api/v1/fees/batch-structure/{bfs['id']}/apply", json={}, headers=headers)
    assert response.status_code == 200
    assert response.json() == {"applied": 3, "skipped": 0, "errors": [], "orphaned": []}

    response = await client.post(f"/api/v1/fees/batch-structure/{bfs['id']}/apply", headers=headers)
    assert response.json() == {"applied": 0, "skipped": 3, "errors": [], "orphaned": []}

    structure = await client.get(
        f"/api/v1/fees/student-structure/{student_ids[1]}", params={"session_id": str(session_id)}, headers=headers
    )
    data = structure.json()
    assert data["source"] == "batch_default"
    assert data["batch_fee_structure_id"] == bfs["id"]
    assert data["gross_amount"] == "26000.00"
    assert data["net_amount"] == "26000.00"
    assert data["pending_amount"] == "26000.00"

    inactive = await client.get(
        f"/api/v1/fees/student-structure/{inactive_student_id}",
        params={"session_id": str(session_id)},
        headers=headers,
    )
    assert inactive.status_code == 404


@pytest.mark.asyncio
async def test_apply_overwrite_respreads_installments_and_reports_orphans(
    client: AsyncClient,
    headers: Dict[str, str],
    db_session: AsyncSession,
    batch_id: UUID,
    session_id: UUID,
    student_ids: List[UUID],
    component_ids: Dict[str, UUID],
) -> None:
    bfs = await _batch_structure(
        client, headers, batch_id, session_id,
        [(component_ids["tuition"], "20000"), (component_ids["transport"], "6000")],
    )
    await client.post(f"/api/v1/fees/batch-structure/{bfs['id']}/apply", headers=headers)
    first = (
        await client.get(
            f"/api/v1/fees/student-structure/{student_ids[0]}", params={"session_id": str(session_id)}, headers=headers
        )
    ).json()
    installments = await _three_way_schedule(client, headers, first["id"])
    assert [i["amount"] for i in installments] == ["8580.00", "8580.00", "8840.00"]

    response = await client.patch(
        f"/api/v1/fees/batch-structure/{bfs['id']}",
        json={
            "line_items": [
                {"fee_component_id": str(component_ids["tuition"]), "amount": "20000"},
                {"fee_component_id": str(component_ids["transport"]), "amount": "7000"},
            ]
        },
        headers=headers,
    )
    assert response.json()["total_amount"] == "27000.00"

    response = await client.post(
        f"/api/v1/fees/batch-structure/{bfs['id']}/apply", json={"overwrite_existing": True}, headers=headers
    )
    result = response.json()
    assert result["applied"] == 3
    assert result["errors"] == []
    assert result["orphaned"] == [
        {
            "student_id": str(student_ids[0]),
            "student_fee_structure_id": first["id"],
            "installment_count": 3,
            "paid_amount": "0.00",
        }
    ]

    schedule = (await client.get(f"/api/v1/fees/installments/{student_ids[0]}", headers=headers)).json()
    amounts = [i["amount"] for i in schedule["sessions"][0]["installments"]]
    assert amounts == ["8910.00", "8910.00", "9180.00"]
    assert schedule["sessions"][0]["net_amount"] == "27000.00"

    events = (
        await db_session.execute(
            select(FeeAuditLog.action_type).where(FeeAuditLog.reference_id == UUID(first["id"]))
        )
    ).scalars().all()
    assert "ORPHANED" in events


@pytest.mark.asyncio
async def test_apply_isolates_per_student_failures(
    client: AsyncClient,
    headers: Dict[str, str],
    batch_id: UUID,
    session_id: UUID,
    student_ids: List[UUID],
    component_ids: Dict[str, UUID],
) -> None:
    bfs = await _batch_structure(
        client, headers, batch_id, session_id,
        [(component_ids["tuition"], "20000"), (component_ids["transport"], "6000")],
    )
    await client.post(f"/api/v1/fees/batch-structure/{bfs['id']}/apply", headers=headers)
    first = (
        await client.get(
            f"/api/v1/fees/student-structure/{student_ids[0]}", params={"session_id": str(session_id)}, headers=headers
        )
    ).json()
    installments = await _three_way_schedule(client, headers, first["id"])
    paid = await client.post(
        f"/api/v1/fees/installments/{installments[0]['id']}/payment",
        json={"amount": "8580.00", "payment_mode": "cash"},
        headers=headers,
    )
    assert paid.status_code == 201

    # new net (1000) is below what the first student has already paid
    await client.patch(
        f"/api/v1/fees/batch-structure/{bfs['id']}",
        json={"line_items": [{"fee_component_id": str(component_ids["tuition"]), "amount": "1000"}]},
        headers=headers,
    )
    response = await client.post(
        f"/api/v1/fees/batch-structure/{bfs['id']}/apply", json={"overwrite_existing": True}, headers=headers
    )
    result = response.json()
    assert result["applied"] == 2
    assert [e["student_id"] for e in result["errors"]] == [str(student_ids[0])]

    untouched = (
        await client.get(f"/api/v1/fees/student-structure/id/{first['id']}", headers=headers)
    ).json()
    assert untouched["net_amount"] == "26000.00"
    assert len(untouched["line_items"]) == 2

    for sid in student_ids[1:]:
        other = (
            await client.get(
                f"/api/v1/fees/student-structure/{sid}", params={"session_id": str(session_id)}, headers=headers
            )
        ).json()
        assert other["net_amount"] == "1000.00"


@pytest.mark.asyncio
async def test_delete_batch_structure_keeps_student_copies(
    client: AsyncClient,
    headers: Dict[str, str],
    db_session: AsyncSession,
    batch_id: UUID,
    session_id: UUID,
    student_ids: List[UUID],
    component_ids: Dict[str, UUID],
) -> None:
    bfs = await _batch_structure(client, headers, batch_id, session_id, [(component_ids["tuition"], "500")])
    await client.post(f"/api/v1/fees/batch-structure/{bfs['id']}/apply", headers=headers)

    response = await client.delete(f"/api/v1/fees/batch-structure/{bfs['id']}", headers=headers)
    assert response.status_code == 204

    rows = (
        await db_session.execute(
            select(StudentFeeStructure.batch_fee_structure_id, StudentFeeStructure.net_amount)
        )
    ).all()
    assert len(rows) == 3
    assert all(row[0] is None for row in rows)


# --- Student Fee Structure ---
@pytest.mark.asyncio
async def test_custom_structure_with_waiver(
    client: AsyncClient,
    headers: Dict[str, str],
    session_id: UUID,
    student_ids: List[UUID],
    component_ids: Dict[str, UUID],
) -> None:
    response = await client.post(
        "/api/v1/fees/student-structure",
        json={
            "student_id": str(student_ids[0]),
            "session_id": str(session_id),
            "line_items": [
                {"fee_component_id": str(component_ids["tuition"]), "amount": "20000"},
                {
                    "fee_component_id": str(component_ids["transport"]),
                    "amount": "6000",
                    "waived": True,
                    "waiver_reason": "Staff ward",
                },
            ],
            "remarks": "Mid-year admission",
        },
        headers=headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["source"] == "custom"
    assert data["gross_amount"] == "26000.00"
    assert data["waived_amount"] == "6000.00"
    assert data["net_amount"] == "20000.00"
    transport = data["line_items"][1]
    assert transport["original_amount"] == "6000.00"
    assert transport["adjusted_amount"] == "0.00"
    assert transport["waiver_reason"] == "Staff ward"

    by_id = await client.get(f"/api/v1/fees/student-structure/id/{data['id']}", headers=headers)
    assert by_id.json()["net_amount"] == "20000.00"

    duplicate = await client.post(
        "/api/v1/fees/student-structure",
        json={
            "student_id": str(student_ids[0]),
            "session_id": str(session_id),
            "line_items": [{"fee_component_id": str(component_ids["lab"]), "amount": "100"}],
        },
        headers=headers,
    )
    assert duplicate.status_code == 409


@pytest.mark.asyncio
async def test_custom_structure_line_items_are_stored(
    client: AsyncClient,
    headers: Dict[str, str],
    db_session: AsyncSession,
    session_id: UUID,
    student_ids: List[UUID],
    component_ids: Dict[str, UUID],
) -> None:
    data = await _student_structure(
        client,
        headers,
        student_ids[0],
        session_id,
        [(component_ids["tuition"], "12000"), (component_ids["lab"], "1500.50")],
    )
    assert [li["original_amount"] for li in data["line_items"]] == ["12000.00", "1500.50"]

    rows = (
        await db_session.execute(
            select(StudentFeeLineItem)
            .where(StudentFeeLineItem.student_fee_structure_id == UUID(data["id"]))
            .order_by(StudentFeeLineItem.position)
        )
    ).scalars().all()
    assert [row.fee_component_id for row in rows] == [component_ids["tuition"], component_ids["lab"]]
    assert rows[0].original_amount == Decimal("12000")
    assert rows[1].adjusted_amount == Decimal("1500.50")
    assert not any(row.waived for row in rows)


@pytest.mark.asyncio
async def test_waived_item_without_reason_is_rejected(
    client: AsyncClient,
    headers: Dict[str, str],
    session_id: UUID,
    student_ids: List[UUID],
    component_ids: Dict[str, UUID],
) -> None:
    response = await client.post(
        "/api/v1/fees/student-structure",
        json={
            "student_id": str(student_ids[0]),
            "session_id": str(session_id),
            "line_items": [{"fee_component_id": str(component_ids["tuition"]), "amount": "100", "waived": True}],
        },
        headers=headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_structure_from_batch_with_waiver(
    client: AsyncClient,
    headers: Dict[str, str],
    batch_id: UUID,
    session_id: UUID,
    student_ids: List[UUID],
    component_ids: Dict[str, UUID],
) -> None:
    bfs = await _batch_structure(
        client, headers, batch_id, session_id,
        [(component_ids["tuition"], "20000"), (component_ids["transport"], "6000")],
    )
    response = await client.post(
        "/api/v1/fees/student-structure",
        json={
            "student_id": str(student_ids[2]),
            "session_id": str(session_id),
            "batch_fee_structure_id": bfs["id"],
            "waivers": [{"fee_component_id": str(component_ids["transport"]), "waiver_reason": "Walks to school"}],
        },
        headers=headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["source"] == "batch_default"
    assert data["net_amount"] == "20000.00"

    # line items and a template at once is ambiguous
    response = await client.post(
        "/api/v1/fees/student-structure",
        json={
            "student_id": str(student_ids[1]),
            "session_id": str(session_id),
            "batch_fee_structure_id": bfs["id"],
            "line_items": [{"fee_component_id": str(component_ids["lab"]), "amount": "10"}],
        },
        headers=headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_custom_discount_larger_than_gross(
    client: AsyncClient,
    headers: Dict[str, str],
    session_id: UUID,
    student_ids: List[UUID],
    component_ids: Dict[str, UUID],
) -> None:
    structure = await _student_structure(
        client, headers, student_ids[0], session_id, [(component_ids["tuition"], "4000")]
    )
    response = await client.put(
        f"/api/v1/fees/student-structure/{structure['id']}/custom-discount",
        json={"type": "fixed_amount", "value": "5000", "remarks": "Hardship"},
        headers=headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["net_amount"] == "0.00"
    discount = data["custom_discount"]
    assert discount["type"] == "fixed_amount"
    assert Decimal(discount["value"]) == Decimal("5000")
    assert discount["amount"] == "4000.00"
    assert discount["remarks"] == "Hardship"

    response = await client.delete(
        f"/api/v1/fees/student-structure/{structure['id']}/custom-discount", headers=headers
    )
    assert response.json()["custom_discount"] is None
    assert response.json()["net_amount"] == "4000.00"


@pytest.mark.asyncio
async def test_custom_percentage_over_100_is_rejected(
    client: AsyncClient,
    headers: Dict[str, str],
    session_id: UUID,
    student_ids: List[UUID],
    component_ids: Dict[str, UUID],
) -> None:
    structure = await _student_structure(
        client, headers, student_ids[0], session_id, [(component_ids["tuition"], "4000")]
    )
    response = await client.put(
        f"/api/v1/fees/student-structure/{structure['id']}/custom-discount",
        json={"type": "percentage", "value": "150"},
        headers=headers,
    )
    assert response.status_code == 400
    response = await client.put(
        f"/api/v1/fees/student-structure/{structure['id']}/custom-discount",
        json={"type": "percentage", "value": "33.333"},
        headers=headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_custom_discount_respreads_open_installments(
    client: AsyncClient,
    headers: Dict[str, str],
    session_id: UUID,
    student_ids: List[UUID],
    component_ids: Dict[str, UUID],
) -> None:
    structure = await _student_structure(
        client, headers, student_ids[0], session_id, [(component_ids["tuition"], "10000")]
    )
    installments = await _three_way_schedule(client, headers, structure["id"])
    await client.post(
        f"/api/v1/fees/installments/{installments[0]['id']}/payment",
        json={"amount": "3300", "payment_mode": "upi", "transaction_ref": "UPI-1"},
        headers=headers,
    )

    response = await client.put(
        f"/api/v1/fees/student-structure/{structure['id']}/custom-discount",
        json={"type": "fixed_amount", "value": "1000"},
        headers=headers,
    )
    data = response.json()
    assert data["net_amount"] == "9000.00"
    assert data["pending_amount"] == "5700.00"

    schedule = (await client.get(f"/api/v1/fees/installments/{student_ids[0]}", headers=headers)).json()
    amounts = [i["amount"] for i in schedule["sessions"][0]["installments"]]
    assert amounts == ["3300.00", "2807.46", "2892.54"]


@pytest.mark.asyncio
async def test_student_fee_summary(
    client: AsyncClient,
    headers: Dict[str, str],
    session_id: UUID,
    student_ids: List[UUID],
    component_ids: Dict[str, UUID],
) -> None:
    structure = await _student_structure(
        client, headers, student_ids[0], session_id, [(component_ids["tuition"], "10000")]
    )
    installments = await _three_way_schedule(client, headers, structure["id"])
    await client.post(
        f"/api/v1/fees/installments/{installments[0]['id']}/payment",
        json={"amount": "3300", "payment_mode": "cash"},
        headers=headers,
    )

    response = await client.get(f"/api/v1/fees/student-structure/summary/{student_ids[0]}", headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["student"]["full_name"] == "Asha Rao"
    summary = data["fee_structures"][0]
    assert summary["session"]["name"] == "2026-27"
    assert summary["net_amount"] == "10000.00"
    assert summary["total_paid"] == "3300.00"
    assert summary["pending_amount"] == "6700.00"
    assert summary["total_installments"] == 3
    assert summary["paid_installments"] == 1
    assert summary["next_due"]["installment_number"] == 2
    assert summary["next_due"]["amount"] == "3300.00"


@pytest.mark.asyncio
async def test_structures_are_tenant_scoped(
    client: AsyncClient,
    headers: Dict[str, str],
    make_headers,
    other_tenant_id: UUID,
    session_id: UUID,
    student_ids: List[UUID],
    component_ids: Dict[str, UUID],
) -> None:
    structure = await _student_structure(
        client, headers, student_ids[0], session_id, [(component_ids["tuition"], "1000")]
    )
    other = make_headers(other_tenant_id)
    response = await client.get(f"/api/v1/fees/student-structure/id/{structure['id']}", headers=other)
    assert response.status_code == 404
    response = await client.put(
        f"/api/v1/fees/student-structure/{structure['id']}/custom-discount",
        json={"type": "fixed_amount", "value": "100"},
        headers=other,
    )
    assert response.status_code == 404
