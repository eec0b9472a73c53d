from decimal import Decimal
from typing import Dict, List
from uuid import UUID

import pytest
from httpx import AsyncClient


async def _scholarship(client, headers, **overrides) -> dict:
    body = {"name": "Merit 25", "type": "percentage", "basis": "merit", "value": "25"}
    body.update(overrides)
    response = await client.post("/api/v1/scholarships", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def _structure(client, headers, student_id, session_id, component_id, amount="20000") -> str:
    response = await client.post(
        "/api/v1/fees/student-structure",
        json={
            "student_id": str(student_id),
            "session_id": str(session_id),
            "line_items": [{"fee_component_id": str(component_id), "amount": amount}],
        },
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["id"]


async def _assign(client, headers, student_id, scholarship_id, session_id):
    return await client.post(
        "/api/v1/scholarships/assign",
        json={
            "student_id": str(student_id),
            "scholarship_id": scholarship_id,
            "session_id": str(session_id),
            "remarks": "Topped the district exam",
        },
        headers=headers,
    )


# --- Catalog ---
@pytest.mark.asyncio
async def test_create_and_list_scholarships(client: AsyncClient, headers: Dict[str, str]) -> None:
    created = await _scholarship(client, headers)
    assert created["type"] == "percentage"
    assert created["basis"] == "merit"
    assert created["is_active"] is True

    await _scholarship(client, headers, name="Sibling", type="fixed_amount", basis="sibling", value="1500")
    listed = (await client.get("/api/v1/scholarships", headers=headers)).json()
    assert [s["name"] for s in listed] == ["Merit 25", "Sibling"]

    response = await client.post(
        "/api/v1/scholarships", json={"name": "Merit 25", "type": "percentage", "value": "10"}, headers=headers
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_scholarship_value_domain(client: AsyncClient, headers: Dict[str, str]) -> None:
    response = await client.post(
        "/api/v1/scholarships", json={"name": "Too much", "type": "percentage", "value": "150"}, headers=headers
    )
    assert response.status_code == 400
    response = await client.post(
        "/api/v1/scholarships",
        json={"name": "Capped flat", "type": "fixed_amount", "value": "500", "max_amount": "400"},
        headers=headers,
    )
    assert response.status_code == 400
    response = await client.post(
        "/api/v1/scholarships", json={"name": "Nothing", "type": "percentage", "value": "0"}, headers=headers
    )
    assert response.status_code == 422

    response = await client.post(
        "/api/v1/scholarships", json={"name": "Odd", "type": "percentage", "value": "12.345"}, headers=headers
    )
    assert response.status_code == 400
    scholarship = await _scholarship(client, headers)
    response = await client.patch(
        f"/api/v1/scholarships/{scholarship['id']}", json={"value": "7.125"}, headers=headers
    )
    assert response.status_code == 400
    stored = (await client.get(f"/api/v1/scholarships/{scholarship['id']}", headers=headers)).json()
    assert Decimal(stored["value"]) == Decimal("25")


@pytest.mark.asyncio
async def test_deactivated_scholarship_is_hidden_and_unassignable(
    client: AsyncClient,
    headers: Dict[str, str],
    session_id: UUID,
    student_ids: List[UUID],
    component_ids: Dict[str, UUID],
) -> None:
    scholarship = await _scholarship(client, headers)
    response = await client.delete(f"/api/v1/scholarships/{scholarship['id']}", headers=headers)
    assert response.status_code == 200
    assert response.json()["is_active"] is False
    assert (await client.get("/api/v1/scholarships", headers=headers)).json() == []

    await _structure(client, headers, student_ids[0], session_id, component_ids["tuition"])
    response = await _assign(client, headers, student_ids[0], scholarship["id"], session_id)
    assert response.status_code == 400


# --- Assignment ---
@pytest.mark.asyncio
async def test_assign_scholarship_reduces_net(
    client: AsyncClient,
    headers: Dict[str, str],
    session_id: UUID,
    student_ids: List[UUID],
    component_ids: Dict[str, UUID],
) -> None:
    structure_id = await _structure(client, headers, student_ids[0], session_id, component_ids["tuition"])
    scholarship = await _scholarship(client, headers)

    response = await _assign(client, headers, student_ids[0], scholarship["id"], session_id)
    assert response.status_code == 201
    data = response.json()
    assert data["discount_amount"] == "5000.00"
    assert data["scholarship_name"] == "Merit 25"

    structure = (await client.get(f"/api/v1/fees/student-structure/id/{structure_id}", headers=headers)).json()
    assert structure["scholarship_amount"] == "5000.00"
    assert structure["net_amount"] == "15000.00"
    assert structure["pending_amount"] == "15000.00"

    response = await _assign(client, headers, student_ids[0], scholarship["id"], session_id)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_assign_requires_existing_structure(
    client: AsyncClient,
    headers: Dict[str, str],
    session_id: UUID,
    student_ids: List[UUID],
) -> None:
    scholarship = await _scholarship(client, headers)
    response = await _assign(client, headers, student_ids[1], scholarship["id"], session_id)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_percentage_scholarship_respects_cap(
    client: AsyncClient,
    headers: Dict[str, str],
    session_id: UUID,
    student_ids: List[UUID],
    component_ids: Dict[str, UUID],
) -> None:
    structure_id = await _structure(client, headers, student_ids[0], session_id, component_ids["tuition"])
    scholarship = await _scholarship(client, headers, name="Half, capped", value="50", max_amount="3000")

    response = await _assign(client, headers, student_ids[0], scholarship["id"], session_id)
    assert response.json()["discount_amount"] == "3000.00"
    structure = (await client.get(f"/api/v1/fees/student-structure/id/{structure_id}", headers=headers)).json()
    assert structure["net_amount"] == "17000.00"


@pytest.mark.asyncio
async def test_assigned_discount_is_a_snapshot(
    client: AsyncClient,
    headers: Dict[str, str],
    session_id: UUID,
    student_ids: List[UUID],
    component_ids: Dict[str, UUID],
) -> None:
    await _structure(client, headers, student_ids[0], session_id, component_ids["tuition"])
    scholarship = await _scholarship(client, headers)
    await _assign(client, headers, student_ids[0], scholarship["id"], session_id)

    response = await client.patch(
        f"/api/v1/scholarships/{scholarship['id']}", json={"value": "50"}, headers=headers
    )
    assert response.status_code == 200

    assigned = (await client.get(f"/api/v1/scholarships/student/{student_ids[0]}", headers=headers)).json()
    assert [a["discount_amount"] for a in assigned] == ["5000.00"]


@pytest.mark.asyncio
async def test_remove_assignment_restores_net(
    client: AsyncClient,
    headers: Dict[str, str],
    session_id: UUID,
    student_ids: List[UUID],
    component_ids: Dict[str, UUID],
) -> None:
    structure_id = await _structure(client, headers, student_ids[0], session_id, component_ids["tuition"])
    scholarship = await _scholarship(client, headers)
    assignment = (await _assign(client, headers, student_ids[0], scholarship["id"], session_id)).json()

    response = await client.delete(f"/api/v1/scholarships/student/{assignment['id']}", headers=headers)
    assert response.status_code == 204

    structure = (await client.get(f"/api/v1/fees/student-structure/id/{structure_id}", headers=headers)).json()
    assert structure["scholarship_amount"] == "0.00"
    assert structure["net_amount"] == "20000.00"
    assert (await client.get(f"/api/v1/scholarships/student/{student_ids[0]}", headers=headers)).json() == []


@pytest.mark.asyncio
async def test_scholarships_need_their_own_permission(
    client: AsyncClient, make_headers, tenant_id: UUID
) -> None:
    fees_only = make_headers(tenant_id, permissions={"fees": {"create": True, "read": True}})
    response = await client.post(
        "/api/v1/scholarships", json={"name": "Merit", "type": "percentage", "value": "10"}, headers=fees_only
    )
    assert response.status_code == 403
