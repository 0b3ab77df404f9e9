from typing import Dict

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

BASE = "/api/v1/academic-years"


async def _create(client: AsyncClient, headers: Dict, **overrides) -> Dict:
    payload = {"start_date": "2025-06-01", "end_date": "2026-03-31"}
    payload.update(overrides)
    response = await client.post(BASE, json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def test_requires_token(client: AsyncClient) -> None:
    response = await client.get(BASE)
    assert response.status_code == 401


async def test_rejects_bad_token(client: AsyncClient) -> None:
    response = await client.get(BASE, headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


async def test_teacher_cannot_create(client: AsyncClient, teacher_headers: Dict) -> None:
    response = await client.post(
        BASE, json={"start_date": "2025-06-01", "end_date": "2026-03-31"}, headers=teacher_headers
    )
    assert response.status_code == 403
    assert response.json()["detail"] == "Insufficient permissions"


async def test_create_defaults_name_and_is_idempotent(client: AsyncClient, admin_headers: Dict) -> None:
    first = await _create(client, admin_headers)
    assert first["name"] == "2025-2026"
    assert first["is_active"] is True
    assert first["is_current"] is False

    again = await _create(client, admin_headers, name="2025-2026")
    assert again["id"] == first["id"]


async def test_create_validates_dates(client: AsyncClient, admin_headers: Dict) -> None:
    response = await client.post(
        BASE, json={"start_date": "2026-03-31", "end_date": "2025-06-01"}, headers=admin_headers
    )
    assert response.status_code == 400


async def test_overlapping_range_conflicts(client: AsyncClient, admin_headers: Dict) -> None:
    await _create(client, admin_headers)
    response = await client.post(
        BASE,
        json={"name": "Overlap", "start_date": "2026-01-01", "end_date": "2026-12-31"},
        headers=admin_headers,
    )
    assert response.status_code == 409
    assert response.json()["detail"] == "Date range overlaps"


async def test_set_current_moves_flag(client: AsyncClient, admin_headers: Dict, teacher_headers: Dict) -> None:
    y1 = await _create(client, admin_headers, start_date="2024-06-01", end_date="2025-03-31", set_as_current=True)
    y2 = await _create(client, admin_headers)

    current = await client.get(f"{BASE}/current", headers=teacher_headers)
    assert current.json()["id"] == y1["id"]

    response = await client.post(f"{BASE}/{y2['id']}/set-current", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["is_current"] is True

    listed = (await client.get(BASE, headers=teacher_headers)).json()
    flags = {y["id"]: y["is_current"] for y in listed}
    assert flags == {y1["id"]: False, y2["id"]: True}
    # newest first
    assert [y["id"] for y in listed] == [y2["id"], y1["id"]]


async def test_current_falls_back_to_latest_active(client: AsyncClient, admin_headers: Dict) -> None:
    await _create(client, admin_headers, start_date="2023-06-01", end_date="2024-03-31")
    latest = await _create(client, admin_headers, start_date="2024-06-01", end_date="2025-03-31")

    response = await client.get(f"{BASE}/current", headers=admin_headers)
    assert response.json()["id"] == latest["id"]


async def test_current_is_null_without_years(client: AsyncClient, admin_headers: Dict) -> None:
    response = await client.get(f"{BASE}/current", headers=admin_headers)
    assert response.status_code == 200
    assert response.json() is None


async def test_current_year_cannot_be_deactivated_or_deleted(client: AsyncClient, admin_headers: Dict) -> None:
    y = await _create(client, admin_headers, set_as_current=True)

    response = await client.post(f"{BASE}/{y['id']}/deactivate", headers=admin_headers)
    assert response.status_code == 400
    response = await client.delete(f"{BASE}/{y['id']}", headers=admin_headers)
    assert response.status_code == 400


async def test_set_current_rejects_inactive_year(client: AsyncClient, admin_headers: Dict) -> None:
    y = await _create(client, admin_headers, is_active=False)
    response = await client.post(f"{BASE}/{y['id']}/set-current", headers=admin_headers)
    assert response.status_code == 400

    response = await client.post(f"{BASE}/{y['id']}/activate", headers=admin_headers)
    assert response.json()["is_active"] is True


async def test_delete_is_soft(client: AsyncClient, admin_headers: Dict) -> None:
    y = await _create(client, admin_headers)
    response = await client.delete(f"{BASE}/{y['id']}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["is_active"] is False

    active_only = await client.get(BASE, params={"include_inactive": False}, headers=admin_headers)
    assert active_only.json() == []
    everything = await client.get(BASE, headers=admin_headers)
    assert len(everything.json()) == 1


async def test_update_with_etag(client: AsyncClient, admin_headers: Dict) -> None:
    y = await _create(client, admin_headers)

    got = await client.get(f"{BASE}/{y['id']}", headers=admin_headers)
    etag = got.headers["ETag"]

    stale = await client.put(
        f"{BASE}/{y['id']}", json={"order": 4}, headers={**admin_headers, "If-Match": "12345"}
    )
    assert stale.status_code == 412

    response = await client.put(
        f"{BASE}/{y['id']}", json={"order": 4}, headers={**admin_headers, "If-Match": etag}
    )
    assert response.status_code == 200
    assert response.json()["order"] == 4
    assert "ETag" in response.headers


async def test_unknown_year_is_404(client: AsyncClient, admin_headers: Dict) -> None:
    response = await client.get(f"{BASE}/00000000-0000-0000-0000-000000000000", headers=admin_headers)
    assert response.status_code == 404


async def test_changes_are_audited(client: AsyncClient, admin_headers: Dict, db_session: AsyncSession) -> None:
    y = await _create(client, admin_headers)
    await client.post(f"{BASE}/{y['id']}/set-current", headers=admin_headers)

    response = await client.get(
        "/api/v1/audit-logs", params={"entity_type": "AcademicYear", "entity_id": y["id"]}, headers=admin_headers
    )
    assert response.status_code == 200
    assert {entry["action"] for entry in response.json()} == {"create", "set-current"}
