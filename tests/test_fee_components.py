from typing import Dict
from uuid import UUID

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_create_and_list_fee_components(client: AsyncClient, headers: Dict[str, str]) -> None:
    response = await client.post(
        "/api/v1/fee-components",
        json={"name": "Tuition", "type": "tuition", "description": "Annual tuition"},
        headers=headers,
    )
    assert response.status_code == 201
    data = response.json()
    UUID(data["id"])
    assert data["type"] == "tuition"
    assert data["is_active"] is True

    await client.post("/api/v1/fee-components", json={"name": "Bus", "type": "transport"}, headers=headers)

    response = await client.get("/api/v1/fee-components", headers=headers)
    assert response.status_code == 200
    assert [c["name"] for c in response.json()] == ["Bus", "Tuition"]

    response = await client.get("/api/v1/fee-components", params={"type": "transport"}, headers=headers)
    assert [c["name"] for c in response.json()] == ["Bus"]


@pytest.mark.asyncio
async def test_duplicate_name_conflicts(client: AsyncClient, headers: Dict[str, str]) -> None:
    payload = {"name": "Lab", "type": "lab"}
    assert (await client.post("/api/v1/fee-components", json=payload, headers=headers)).status_code == 201
    response = await client.post("/api/v1/fee-components", json=payload, headers=headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_unknown_type_is_rejected(client: AsyncClient, headers: Dict[str, str]) -> None:
    response = await client.post(
        "/api/v1/fee-components", json={"name": "Canteen", "type": "canteen"}, headers=headers
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_update_and_deactivate(
    client: AsyncClient, headers: Dict[str, str], component_ids: Dict[str, UUID]
) -> None:
    cid = component_ids["lab"]
    response = await client.patch(
        f"/api/v1/fee-components/{cid}", json={"name": "Science Lab", "is_active": False}, headers=headers
    )
    assert response.status_code == 200
    assert response.json()["name"] == "Science Lab"

    listed = (await client.get("/api/v1/fee-components", headers=headers)).json()
    assert "Science Lab" not in [c["name"] for c in listed]
    listed = (await client.get("/api/v1/fee-components", params={"active_only": False}, headers=headers)).json()
    assert "Science Lab" in [c["name"] for c in listed]


@pytest.mark.asyncio
async def test_delete_unreferenced_component_is_hard(
    client: AsyncClient, headers: Dict[str, str], component_ids: Dict[str, UUID]
) -> None:
    cid = component_ids["lab"]
    response = await client.delete(f"/api/v1/fee-components/{cid}", headers=headers)
    assert response.status_code == 200
    assert response.json() == {"id": str(cid), "deleted": True, "deactivated": False}
    assert (await client.get(f"/api/v1/fee-components/{cid}", headers=headers)).status_code == 404


@pytest.mark.asyncio
async def test_delete_referenced_component_only_deactivates(
    client: AsyncClient,
    headers: Dict[str, str],
    component_ids: Dict[str, UUID],
    student_ids,
    session_id: UUID,
) -> None:
    cid = component_ids["tuition"]
    response = await client.post(
        "/api/v1/fees/student-structure",
        json={
            "student_id": str(student_ids[0]),
            "session_id": str(session_id),
            "line_items": [{"fee_component_id": str(cid), "amount": "1000"}],
        },
        headers=headers,
    )
    assert response.status_code == 201

    response = await client.delete(f"/api/v1/fee-components/{cid}", headers=headers)
    assert response.json()["deactivated"] is True
    fetched = await client.get(f"/api/v1/fee-components/{cid}", headers=headers)
    assert fetched.status_code == 200
    assert fetched.json()["is_active"] is False


@pytest.mark.asyncio
async def test_components_are_tenant_scoped(
    client: AsyncClient,
    make_headers,
    other_tenant_id: UUID,
    component_ids: Dict[str, UUID],
) -> None:
    other = make_headers(other_tenant_id)
    response = await client.get(f"/api/v1/fee-components/{component_ids['tuition']}", headers=other)
    assert response.status_code == 404
    assert (await client.get("/api/v1/fee-components", headers=other)).json() == []


@pytest.mark.asyncio
async def test_permissions_are_enforced(client: AsyncClient, make_headers, tenant_id: UUID) -> None:
    read_only = make_headers(tenant_id, permissions={"fees": {"read": True}})
    response = await client.post(
        "/api/v1/fee-components", json={"name": "Exam", "type": "exam"}, headers=read_only
    )
    assert response.status_code == 403
    assert (await client.get("/api/v1/fee-components", headers=read_only)).status_code == 200

    platform = make_headers(tenant_id, role="PLATFORM_ADMIN", permissions={})
    response = await client.post(
        "/api/v1/fee-components", json={"name": "Exam", "type": "exam"}, headers=platform
    )
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_missing_or_bad_token(client: AsyncClient) -> None:
    assert (await client.get("/api/v1/fee-components")).status_code == 401
    response = await client.get("/api/v1/fee-components", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401
