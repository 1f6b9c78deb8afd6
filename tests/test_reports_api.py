import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from fakes import FakeArtifactStore, FakeJobQueue
from reportgen.db.session import get_session
from reportgen.features.auth.security import create_access_token
from reportgen.features.reports.deps import get_artifact_store, get_job_queue
from reportgen.features.reports.errors import QueueTransportError
from reportgen.features.reports.models import Report
from reportgen.main import app

pytestmark = pytest.mark.anyio


@pytest.fixture
def job_queue():
    return FakeJobQueue()


@pytest.fixture
def user_id():
    return uuid.uuid4()


@pytest.fixture
async def client(sessionmaker, job_queue, user_id):
    async def _get_session():
        async with sessionmaker() as session:
            yield session

    app.dependency_overrides[get_session] = _get_session
    app.dependency_overrides[get_job_queue] = lambda: job_queue
    app.dependency_overrides[get_artifact_store] = lambda: FakeArtifactStore()
    headers = {"Authorization": f"Bearer {create_access_token(str(user_id))}"}
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test", headers=headers) as ac:
        yield ac
    app.dependency_overrides.clear()


async def _insert(sessionmaker, **values) -> Report:
    async with sessionmaker() as session:
        report = Report(report_type="monsters", **values)
        session.add(report)
        await session.commit()
        await session.refresh(report)
        return report


async def test_create_report_enqueues_job(client, job_queue, user_id):
    response = await client.post("/reports", json={"report_type": "monsters"})

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "requested"
    assert body["report_type"] == "monsters"
    assert len(job_queue.sent) == 1
    assert job_queue.sent[0].user_id == user_id
    assert str(job_queue.sent[0].report_id) == body["id"]


async def test_create_report_requires_report_type(client, job_queue):
    response = await client.post("/reports", json={"report_type": ""})

    assert response.status_code == 422
    assert job_queue.sent == []


async def test_create_report_reports_queue_outage(client, job_queue):
    def broken_send(job):
        raise QueueTransportError("queue down")

    job_queue.send_job = broken_send

    response = await client.post("/reports", json={"report_type": "monsters"})

    assert response.status_code == 503


async def test_requests_without_valid_token_are_rejected(client):
    missing = await client.get("/reports", headers={"Authorization": ""})
    invalid = await client.get("/reports", headers={"Authorization": "Bearer not-a-token"})

    assert missing.status_code in (401, 403)
    assert invalid.status_code == 401


async def test_get_unknown_report_is_404(client):
    response = await client.get(f"/reports/{uuid.uuid4()}")

    assert response.status_code == 404


async def test_get_report_of_other_user_is_404(client, sessionmaker):
    report = await _insert(sessionmaker, user_id=uuid.uuid4())

    response = await client.get(f"/reports/{report.id}")

    assert response.status_code == 404


async def test_get_completed_report_refreshes_download_url(client, sessionmaker, user_id):
    now = datetime.now(timezone.utc)
    report = await _insert(
        sessionmaker,
        user_id=user_id,
        started_at=now,
        completed_at=now,
        output_file_path=f"users/{user_id}/report/r.csv.gz",
    )

    response = await client.get(f"/reports/{report.id}")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "completed"
    assert body["download_url"].startswith(f"https://artifacts.test/users/{user_id}/report/r.csv.gz")
    assert body["download_url_expires_at"] is not None

    async with sessionmaker() as session:
        stored = await session.get(Report, (user_id, report.id))
    assert stored.download_url == body["download_url"]


async def test_get_keeps_valid_download_url(client, sessionmaker, user_id):
    now = datetime.now(timezone.utc)
    report = await _insert(
        sessionmaker,
        user_id=user_id,
        started_at=now,
        completed_at=now,
        output_file_path="key",
        download_url="https://cached.test/key",
        download_url_expires_at=now + timedelta(minutes=30),
    )

    response = await client.get(f"/reports/{report.id}")

    assert response.json()["download_url"] == "https://cached.test/key"


async def test_processing_report_has_no_download_url(client, sessionmaker, user_id):
    report = await _insert(sessionmaker, user_id=user_id, started_at=datetime.now(timezone.utc))

    response = await client.get(f"/reports/{report.id}")

    body = response.json()
    assert body["status"] == "processing"
    assert body["download_url"] is None


async def test_list_reports_returns_own_reports(client, sessionmaker, user_id):
    mine = await _insert(sessionmaker, user_id=user_id)
    await _insert(sessionmaker, user_id=uuid.uuid4())

    response = await client.get("/reports")

    assert response.status_code == 200
    assert [item["id"] for item in response.json()] == [str(mine.id)]


async def test_get_report_rejects_non_uuid_id(client):
    response = await client.get("/reports/not-a-uuid")

    assert response.status_code == 422


async def test_version_and_health_endpoints(client):
    version = await client.get("/version")
    health = await client.get("/healthz")

    assert version.status_code == 200
    assert version.json()["version"] == (Path(__file__).resolve().parents[1] / "VERSION").read_text().strip()
    assert health.json() == {"status": "ok"}
