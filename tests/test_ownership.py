"""Cross-user access must look exactly like a missing record."""
import pytest


@pytest.fixture()
def two_users(register):
    _, owner = register(email="owner@example.com")
    _, intruder = register(email="intruder@example.com")
    return owner, intruder


def _seed(client, headers):
    client_id = client.post(
        "/api/clients", json={"name": "Acme", "email": "billing@acme.test"}, headers=headers
    ).get_json()["data"]["id"]
    project_id = client.post(
        "/api/projects", json={"name": "Website", "clientId": client_id}, headers=headers
    ).get_json()["data"]["id"]
    task_id = client.post(
        "/api/tasks", json={"title": "Wireframes", "projectId": project_id}, headers=headers
    ).get_json()["data"]["id"]
    invoice_id = client.post(
        "/api/invoices",
        json={
            "clientId": client_id,
            "dueDate": "2026-12-31",
            "items": [{"description": "Work", "quantity": 1, "unitPrice": 100}],
        },
        headers=headers,
    ).get_json()["data"]["id"]
    return {"clients": client_id, "projects": project_id, "tasks": task_id, "invoices": invoice_id}


@pytest.mark.parametrize("resource", ["clients", "projects", "tasks", "invoices"])
def test_foreign_records_are_not_found(client, two_users, resource):
    owner, intruder = two_users
    ids = _seed(client, owner)
    url = f"/api/{resource}/{ids[resource]}"

    assert client.get(url, headers=intruder).status_code == 404
    assert client.delete(url, headers=intruder).status_code == 404
    assert client.get(url, headers=owner).status_code == 200


HUGE_ID = 99999999999999999999999


@pytest.mark.parametrize("resource", ["clients", "projects", "tasks", "invoices"])
def test_ids_beyond_integer_range_are_not_found(client, two_users, resource):
    owner, _ = two_users
    assert client.get(f"/api/{resource}/{HUGE_ID}", headers=owner).status_code == 404


def test_oversized_filters_and_references(client, two_users):
    owner, _ = two_users
    for url in (
        f"/api/projects?clientId={HUGE_ID}",
        f"/api/tasks?projectId={HUGE_ID}",
        f"/api/invoices?clientId={HUGE_ID}",
        f"/api/clients?page={HUGE_ID}",
    ):
        assert client.get(url, headers=owner).status_code == 400, url

    resp = client.post("/api/projects", json={"name": "Site", "clientId": HUGE_ID}, headers=owner)
    assert resp.status_code == 404


def test_foreign_records_are_not_listed(client, two_users):
    owner, intruder = two_users
    _seed(client, owner)

    assert client.get("/api/clients", headers=intruder).get_json()["data"]["clients"] == []
    assert client.get("/api/projects", headers=intruder).get_json()["data"]["projects"] == []
    assert client.get("/api/tasks", headers=intruder).get_json()["data"] == []
    assert client.get("/api/invoices", headers=intruder).get_json()["data"]["invoices"] == []


def test_cannot_attach_foreign_client_or_project(client, two_users):
    owner, intruder = two_users
    ids = _seed(client, owner)

    resp = client.post("/api/projects", json={"name": "Steal", "clientId": ids["clients"]}, headers=intruder)
    assert resp.status_code == 404
    resp = client.post("/api/tasks", json={"title": "Steal", "projectId": ids["projects"]}, headers=intruder)
    assert resp.status_code == 404
    resp = client.patch(f"/api/invoices/{ids['invoices']}/status", json={"status": "PAID"}, headers=intruder)
    assert resp.status_code == 404
    resp = client.get(f"/api/invoices/{ids['invoices']}/pdf", headers=intruder)
    assert resp.status_code == 404


def test_client_listing_counts_and_detail(client, two_users):
    owner, _ = two_users
    ids = _seed(client, owner)

    listing = client.get("/api/clients?search=acme", headers=owner).get_json()["data"]
    assert listing["pagination"] == {"page": 1, "limit": 10, "total": 1, "pages": 1}
    assert listing["clients"][0]["projectCount"] == 1
    assert listing["clients"][0]["invoiceCount"] == 1

    detail = client.get(f"/api/clients/{ids['clients']}", headers=owner).get_json()["data"]
    assert [project["id"] for project in detail["projects"]] == [ids["projects"]]
    assert [invoice["id"] for invoice in detail["invoices"]] == [ids["invoices"]]


def test_project_detail_includes_task_stats(client, two_users):
    owner, _ = two_users
    ids = _seed(client, owner)
    client.put(f"/api/tasks/{ids['tasks']}", json={"status": "COMPLETED", "hours": 2.5}, headers=owner)

    detail = client.get(f"/api/projects/{ids['projects']}", headers=owner).get_json()["data"]
    assert detail["taskStats"] == {"total": 1, "completed": 1, "inProgress": 0, "totalHours": 2.5}
    assert detail["client"]["name"] == "Acme"
