"""
System smoke test: the HTTP surface in-process against SQLite.

Drives a modality through the API with bearer tokens for each role and
checks how engine rejections are mapped to status codes and error codes.
"""

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from modality_engine.database import engine, init_db
from modality_engine.kernel.identity.jwt import create_access_token
from modality_engine.kernel.models import Base
from modality_engine.kernel.models.roles import UserRole
from modality_engine.main import app

API = "/api/v1"


def auth(actor_id: uuid.UUID, role: UserRole) -> dict:
    token, _, _ = create_access_token(actor_id, role)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def client():
    """Async client over a freshly created schema."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await init_db()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def people():
    return {role: uuid.uuid4() for role in UserRole}


@pytest.fixture
def headers(people):
    return {role: auth(actor_id, role) for role, actor_id in people.items()}


async def create_type(client, headers, name="Trabajo de Grado", documents=None):
    documents = documents if documents is not None else [
        {"name": "Propuesta", "mandatory": True, "examiner_reviewable": True},
        {"name": "Anexos", "mandatory": False},
    ]
    resp = await client.post(
        f"{API}/modality-types",
        json={"name": name, "description": "Degree work", "required_documents": documents},
        headers=headers[UserRole.ADMIN],
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.asyncio
async def test_health_echoes_request_id(client):
    resp = await client.get("/health", headers={"X-Request-ID": "smoke-1"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.json()["database"] == "connected"
    assert resp.headers["X-Request-ID"] == "smoke-1"

    resp = await client.get("/")
    assert resp.headers.get("X-Request-ID")


@pytest.mark.asyncio
async def test_authentication_required(client):
    resp = await client.get(f"{API}/modality-types")
    assert resp.status_code == 401

    resp = await client.get(f"{API}/modality-types", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_modality_type_catalog(client, headers):
    resp = await client.post(
        f"{API}/modality-types",
        json={"name": "Pasantía"},
        headers=headers[UserRole.STUDENT],
    )
    assert resp.status_code == 403

    created = await create_type(client, headers)
    assert [d["position"] for d in created["required_documents"]] == [0, 1]
    assert created["simplified"] is False

    seminar = await create_type(client, headers, name="Seminario de Grado", documents=[])
    assert seminar["simplified"] is True

    resp = await client.post(
        f"{API}/modality-types",
        json={"name": "Trabajo de Grado"},
        headers=headers[UserRole.ADMIN],
    )
    assert resp.status_code == 409

    resp = await client.get(f"{API}/modality-types", headers=headers[UserRole.STUDENT])
    assert [t["name"] for t in resp.json()] == ["Seminario de Grado", "Trabajo de Grado"]


@pytest.mark.asyncio
async def test_status_catalog(client):
    resp = await client.get(f"{API}/modalities/statuses")
    assert resp.status_code == 200
    rows = resp.json()
    assert rows[0]["status"] == "DRAFT"
    by_status = {row["status"]: row for row in rows}
    assert by_status["MODALITY_CLOSED"]["terminal"] is True
    assert by_status["UNDER_REVIEW_PROGRAM_HEAD"]["review_tier"] == "PROGRAM_HEAD"


@pytest.mark.asyncio
async def test_program_head_review_flow(client, headers):
    """Start, document gate, review, approval and the error mapping along the way."""
    modality_type = await create_type(client, headers)
    proposal_id = modality_type["required_documents"][0]["id"]
    student = headers[UserRole.STUDENT]
    program_head = headers[UserRole.PROGRAM_HEAD]

    resp = await client.post(
        f"{API}/modalities", json={"modality_type_id": modality_type["id"]}, headers=student
    )
    assert resp.status_code == 201, resp.text
    record = resp.json()
    assert record["status"] == "MODALITY_SELECTED"
    assert record["modality_type_name"] == "Trabajo de Grado"
    record_url = f"{API}/modalities/{record['id']}"

    resp = await client.post(f"{record_url}/transitions", json={"action": "SUBMIT_FOR_REVIEW"}, headers=student)
    assert resp.status_code == 409
    body = resp.json()
    assert body["code"] == "incomplete_documents"
    assert body["missing_document_ids"] == [proposal_id]
    assert body["request_id"]

    resp = await client.post(
        f"{record_url}/documents",
        json={"required_document_id": proposal_id, "storage_ref": "storage://proposal.pdf"},
        headers=student,
    )
    assert resp.status_code == 201, resp.text
    submission = resp.json()
    assert submission["status"] == "PENDING"

    resp = await client.post(f"{record_url}/transitions", json={"action": "SUBMIT_FOR_REVIEW"}, headers=student)
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "UNDER_REVIEW_PROGRAM_HEAD"
    version = resp.json()["version"]

    resp = await client.post(f"{record_url}/transitions", json={"action": "APPROVE"}, headers=student)
    assert resp.status_code == 403
    assert resp.json()["code"] == "unauthorized_transition"

    resp = await client.post(
        f"{record_url}/transitions", json={"action": "REQUEST_CORRECTIONS"}, headers=program_head
    )
    assert resp.status_code == 422
    assert resp.json()["code"] == "missing_mandatory_reason"

    resp = await client.post(f"{record_url}/transitions", json={"action": "APPROVE"}, headers=program_head)
    assert resp.status_code == 409
    assert resp.json()["code"] == "incomplete_documents"

    resp = await client.post(
        f"{API}/documents/{submission['id']}/review", json={"decision": "ACCEPT"}, headers=program_head
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "ACCEPTED_FOR_PROGRAM_HEAD_REVIEW"

    resp = await client.post(
        f"{record_url}/transitions",
        json={"action": "APPROVE", "expected_version": version},
        headers=program_head,
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "stale_state"

    resp = await client.post(f"{record_url}/transitions", json={"action": "APPROVE"}, headers=program_head)
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "READY_FOR_PROGRAM_CURRICULUM_COMMITTEE"

    resp = await client.get(f"{record_url}/actions", headers=headers[UserRole.PROGRAM_CURRICULUM_COMMITTEE])
    assert resp.json()["actions"] == ["CLOSE", "START_REVIEW"]

    resp = await client.get(f"{record_url}/history", headers=student)
    assert resp.status_code == 200
    events = resp.json()
    status_changes = [e for e in events if e["event_type"] == "modality.status_changed"]
    assert [e["payload"]["to_status"] for e in status_changes] == [
        "READY_FOR_PROGRAM_CURRICULUM_COMMITTEE",
        "UNDER_REVIEW_PROGRAM_HEAD",
    ]
    assert events[-1]["event_type"] == "modality.created"


@pytest.mark.asyncio
async def test_request_errors(client, headers):
    student = headers[UserRole.STUDENT]

    resp = await client.get(f"{API}/modalities/{uuid.uuid4()}", headers=student)
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"

    resp = await client.post(
        f"{API}/modalities/{uuid.uuid4()}/transitions", json={"action": "FLY"}, headers=student
    )
    assert resp.status_code == 422
    assert resp.json()["code"] == "validation_error"

    resp = await client.post(f"{API}/modalities", json={"modality_type_id": str(uuid.uuid4())}, headers=student)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_group_flow(client, headers, people):
    modality_type = await create_type(client, headers)
    student = headers[UserRole.STUDENT]
    peer_id = uuid.uuid4()
    peer = auth(peer_id, UserRole.STUDENT)

    resp = await client.post(
        f"{API}/modalities", json={"modality_type_id": modality_type["id"], "group": True}, headers=student
    )
    assert resp.status_code == 201
    record = resp.json()
    assert record["status"] == "DRAFT"

    resp = await client.post(
        f"{API}/modalities/{record['id']}/invitations", json={"invitee_id": str(peer_id)}, headers=student
    )
    assert resp.status_code == 201, resp.text
    invitation = resp.json()

    resp = await client.post(
        f"{API}/modalities/{record['id']}/invitations", json={"invitee_id": str(peer_id)}, headers=student
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "invitation_conflict"

    resp = await client.get(f"{API}/invitations/mine", headers=peer)
    assert [i["id"] for i in resp.json()] == [invitation["id"]]

    resp = await client.post(f"{API}/invitations/{invitation['id']}/accept", headers=peer)
    assert resp.status_code == 200
    assert resp.json()["status"] == "ACCEPTED"

    resp = await client.post(f"{API}/modalities/{record['id']}/confirm", headers=peer)
    assert resp.status_code == 403

    resp = await client.post(f"{API}/modalities/{record['id']}/confirm", headers=student)
    assert resp.status_code == 200
    confirmed = resp.json()
    assert confirmed["status"] == "MODALITY_SELECTED"
    assert confirmed["member_ids"] == [str(people[UserRole.STUDENT]), str(peer_id)]
