import os

os.environ.setdefault("DEBUG", "true")

from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from beanie import init_beanie
from mongomock_motor import AsyncMongoMockClient

from taskhub.models import DOCUMENT_MODELS, Activity, SchoolClass, UserRole
from taskhub.services import storage
from tests.factories import FakeS3, make_user


@pytest_asyncio.fixture(autouse=True)
async def db():
    client = AsyncMongoMockClient()
    await init_beanie(database=client["taskhub_test"], document_models=DOCUMENT_MODELS)
    yield client


@pytest.fixture(autouse=True)
def fake_s3(monkeypatch):
    s3 = FakeS3()
    monkeypatch.setattr(storage, "get_s3", lambda: s3)
    return s3


@pytest.fixture(autouse=True)
def legacy_root(tmp_path, monkeypatch):
    monkeypatch.setattr(storage.settings, "legacy_files_root", str(tmp_path))
    return tmp_path


@pytest_asyncio.fixture
async def teacher():
    return await make_user("Tess Teacher", UserRole.TEACHER)


@pytest_asyncio.fixture
async def student():
    return await make_user("Sam Student")


@pytest_asyncio.fixture
async def school_class(teacher, student):
    c = SchoolClass(
        name="Physics 101",
        teacher_id=str(teacher.id),
        day="Monday",
        time="09:00",
        student_ids=[str(student.id)],
    )
    await c.insert()
    return c


@pytest_asyncio.fixture
async def activity(school_class, teacher):
    a = Activity(
        title="Lab Report",
        date=datetime.utcnow() + timedelta(days=7),
        total_points=100,
        class_id=str(school_class.id),
        created_by=str(teacher.id),
    )
    await a.insert()
    return a
