from typing import Dict
from uuid import uuid4

from httpx import AsyncClient

BASE = "/api/v1/students"


def _placement(school: Dict, class_key: str = "c9", section: str = "a", year: str = "y1") -> Dict:
    class_name = "9" if class_key == "c9" else "10"
    return {
        "class_id": str(school[class_key].id),
        "section_id": str(school["sections"][(class_name, section)].id),
        "academic_year_id": str(school[year].id),
    }


async def _create(client: AsyncClient, headers: Dict, school: Dict, email: str, **placement) -> Dict:
    payload = {"name": "Asha Rao", "email": email, "password": "Password123"}
    payload.update(_placement(school, **placement))
    response = await client.post(BASE, json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def test_create_places_student(client: AsyncClient, admin_headers: Dict, school: Dict) -> None:
    data = await _create(client, admin_headers, school, "asha@school.edu")
    assert data["roll_number"] == "9-A-001"
    assert data["unique_id"].startswith("STU-")
    assert "password" not in data and "password_hash" not in data

    history = await client.get(f"{BASE}/{data['id']}/enrollments", headers=admin_headers)
    assert [e["roll_number"] for e in history.json()] == ["9-A-001"]


async def test_create_rejects_partial_placement(client: AsyncClient, admin_headers: Dict, school: Dict) -> None:
    response = await client.post(
        BASE,
        json={
            "name": "Half",
            "email": "half@school.edu",
            "password": "Password123",
            "class_id": str(school["c9"].id),
        },
        headers=admin_headers,
    )
    assert response.status_code == 400


async def test_duplicate_email_conflicts(client: AsyncClient, admin_headers: Dict, school: Dict) -> None:
    await _create(client, admin_headers, school, "dup@school.edu")
    payload = {"name": "Other", "email": "DUP@school.edu", "password": "Password123"}
    response = await client.post(BASE, json=payload, headers=admin_headers)
    assert response.status_code == 409


async def test_teacher_reads_but_cannot_promote(
    client: AsyncClient, admin_headers: Dict, teacher_headers: Dict, school: Dict
) -> None:
    s = await _create(client, admin_headers, school, "t@school.edu")

    assert (await client.get(f"{BASE}/{s['id']}", headers=teacher_headers)).status_code == 200
    response = await client.put(
        f"{BASE}/promote/{s['id']}", json=_placement(school, "c10", "a", "y2"), headers=teacher_headers
    )
    assert response.status_code == 403


async def test_student_role_cannot_list(client: AsyncClient, student_headers: Dict) -> None:
    assert (await client.get(BASE, headers=student_headers)).status_code == 403


async def test_promote_and_view_by_year(client: AsyncClient, admin_headers: Dict, school: Dict) -> None:
    s = await _create(client, admin_headers, school, "p@school.edu")

    response = await client.put(
        f"{BASE}/promote/{s['id']}", json=_placement(school, "c10", "b", "y2"), headers=admin_headers
    )
    assert response.status_code == 200, response.text
    promoted = response.json()
    assert promoted["class_id"] == str(school["c10"].id)
    assert promoted["roll_number"] == "9-A-001"

    last_year = await client.get(
        f"{BASE}/{s['id']}", params={"academic_year_id": str(school["y1"].id)}, headers=admin_headers
    )
    assert last_year.json()["class_id"] == str(school["c9"].id)

    history = (await client.get(f"{BASE}/{s['id']}/enrollments", headers=admin_headers)).json()
    assert [e["academic_year_id"] for e in history] == [str(school["y1"].id), str(school["y2"].id)]

    by_year = await client.get(BASE, params={"academic_year_id": str(school["y2"].id)}, headers=admin_headers)
    assert [row["id"] for row in by_year.json()] == [s["id"]]


async def test_promote_wrong_year_is_400(client: AsyncClient, admin_headers: Dict, school: Dict) -> None:
    s = await _create(client, admin_headers, school, "w@school.edu")
    response = await client.put(
        f"{BASE}/promote/{s['id']}", json=_placement(school, "c10", "a", "y1"), headers=admin_headers
    )
    assert response.status_code == 400


async def test_get_missing_year_placement_is_404(client: AsyncClient, admin_headers: Dict, school: Dict) -> None:
    s = await _create(client, admin_headers, school, "m@school.edu")
    response = await client.get(
        f"{BASE}/{s['id']}", params={"academic_year_id": str(school["y2"].id)}, headers=admin_headers
    )
    assert response.status_code == 404


async def test_promote_bulk_uses_header_year(client: AsyncClient, admin_headers: Dict, school: Dict) -> None:
    await _create(client, admin_headers, school, "b1@school.edu")
    await _create(client, admin_headers, school, "b2@school.edu", section="b")

    response = await client.post(
        f"{BASE}/promote-bulk",
        json={"from_class_id": str(school["c9"].id), "to_academic_year_id": str(school["y2"].id)},
        headers={**admin_headers, "X-Academic-Year-Id": str(school["y1"].id)},
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert (body["matched"], body["modified"]) == (2, 2)
    assert body["target_class_id"] == str(school["c10"].id)


async def test_promote_bulk_without_source_year_is_400(client: AsyncClient, admin_headers: Dict, school: Dict) -> None:
    response = await client.post(
        f"{BASE}/promote-bulk",
        json={"from_class_id": str(school["c9"].id), "to_academic_year_id": str(school["y2"].id)},
        headers=admin_headers,
    )
    assert response.status_code == 400


async def test_re_admit_endpoints(client: AsyncClient, admin_headers: Dict, school: Dict) -> None:
    a = await _create(client, admin_headers, school, "r1@school.edu")
    b = await _create(client, admin_headers, school, "r2@school.edu")

    response = await client.post(
        f"{BASE}/{a['id']}/re-admit", json=_placement(school, "c10", "a", "y2"), headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["roll_number"] == "10-A-001"

    again = await client.post(
        f"{BASE}/{a['id']}/re-admit", json=_placement(school, "c10", "a", "y2"), headers=admin_headers
    )
    assert again.status_code == 409

    bulk = await client.post(
        f"{BASE}/re-admit-bulk",
        json={"student_ids": [a["id"], b["id"]], **_placement(school, "c10", "a", "y2")},
        headers=admin_headers,
    )
    assert bulk.status_code == 200
    assert (bulk.json()["successful"], bulk.json()["failed"]) == (1, 1)
    assert bulk.json()["errors"][0]["student_id"] == a["id"]


async def test_update_profile_keeps_placement(client: AsyncClient, admin_headers: Dict, school: Dict) -> None:
    s = await _create(client, admin_headers, school, "u@school.edu")

    response = await client.put(
        f"{BASE}/{s['id']}",
        json={"name": " Asha Menon ", "email": "Asha.Menon@School.edu", **_placement(school, "c10", "b", "y2")},
        headers=admin_headers,
    )
    assert response.status_code == 200, response.text
    data = response.json()
    assert (data["name"], data["email"]) == ("Asha Menon", "asha.menon@school.edu")
    assert (data["class_id"], data["academic_year_id"], data["roll_number"]) == (
        s["class_id"],
        s["academic_year_id"],
        "9-A-001",
    )

    history = await client.get(f"{BASE}/{s['id']}/enrollments", headers=admin_headers)
    assert len(history.json()) == 1


async def test_update_email_taken_by_another_student_conflicts(
    client: AsyncClient, admin_headers: Dict, school: Dict
) -> None:
    await _create(client, admin_headers, school, "taken@school.edu")
    s = await _create(client, admin_headers, school, "free@school.edu")

    response = await client.put(f"{BASE}/{s['id']}", json={"email": "TAKEN@school.edu"}, headers=admin_headers)
    assert response.status_code == 409

    # keeping one's own email is not a conflict
    same = await client.put(f"{BASE}/{s['id']}", json={"email": "free@school.edu"}, headers=admin_headers)
    assert same.status_code == 200


async def test_update_missing_student_is_404(client: AsyncClient, admin_headers: Dict) -> None:
    response = await client.put(f"{BASE}/{uuid4()}", json={"name": "Nobody"}, headers=admin_headers)
    assert response.status_code == 404


async def test_search_by_name_email_roll_and_unique_id(
    client: AsyncClient, admin_headers: Dict, school: Dict
) -> None:
    asha = await _create(client, admin_headers, school, "asha@school.edu")
    payload = {"name": "Ravi Kumar", "email": "ravi@school.edu", "password": "Password123", **_placement(school)}
    ravi = (await client.post(BASE, json=payload, headers=admin_headers)).json()

    async def search(q: str):
        response = await client.get(f"{BASE}/search", params={"q": q}, headers=admin_headers)
        assert response.status_code == 200, response.text
        return [s["id"] for s in response.json()]

    assert await search("RAO") == [asha["id"]]
    assert await search("ravi@") == [ravi["id"]]
    assert await search("9-a-002") == [ravi["id"]]
    assert await search(asha["unique_id"]) == [asha["id"]]
    assert await search("school.edu") == [asha["id"], ravi["id"]]
    assert await search("   ") == []


async def test_teacher_searches_but_cannot_update(
    client: AsyncClient, admin_headers: Dict, teacher_headers: Dict, school: Dict
) -> None:
    s = await _create(client, admin_headers, school, "ts@school.edu")

    found = await client.get(f"{BASE}/search", params={"q": "ts@"}, headers=teacher_headers)
    assert found.status_code == 200
    assert [r["id"] for r in found.json()] == [s["id"]]

    response = await client.put(f"{BASE}/{s['id']}", json={"name": "Changed"}, headers=teacher_headers)
    assert response.status_code == 403
