"""Shared fixtures: in-memory SQLite catalog and a seeded set of courses."""
import os

from tests.helpers import API_TOKEN

# Must be set before any catalog module reads settings
os.environ["DB_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DB_CHECK_ON_STARTUP"] = "false"
os.environ["LOG_FORMAT"] = "text"
os.environ["API_TOKEN"] = API_TOKEN

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from catalog.models import Base, Course, Department

SEED_COURSES = [
    # id, name, department, level, mode, credits, weeks, rating, fee, year
    ("CS101", "Intro to Programming", "Computer Science", "UG", "online", 4, 12, 4.5, 45000, 2024),
    ("CS201", "Data Structures", "Computer Science", "UG", "offline", 4, 16, 4.8, 60000, 2024),
    ("CS501", "Machine Learning", "Computer Science", "PG", "hybrid", 3, 14, 4.2, 90000, 2023),
    ("IT101", "Networking Basics", "Information Technology", "UG", "online", 3, 10, 3.9, 30000, 2023),
    ("ME201", "Thermodynamics", "Mechanical Engineering", "UG", "offline", 4, 16, 4.0, 55000, 2022),
    ("BA501", "Strategic Management", "Business Administration", "PG", "online", 2, 8, 4.6, 120000, 2024),
]


@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(db_engine):
    """Async session bound to the test database."""
    maker = async_sessionmaker(bind=db_engine, expire_on_commit=False, class_=AsyncSession)
    async with maker() as session:
        yield session


@pytest_asyncio.fixture
async def seeded(session):
    """Seed departments and courses; returns department ids by name."""
    departments = {}
    for name in dict.fromkeys(row[2] for row in SEED_COURSES):
        departments[name] = Department(name=name)
    session.add_all(departments.values())
    await session.flush()

    session.add_all([
        Course(
            id=course_id,
            name=name,
            department_id=departments[dept].id,
            level=level,
            delivery_mode=mode,
            credits=credits,
            duration_weeks=weeks,
            rating=rating,
            tuition_fee=fee,
            year_offered=year,
        )
        for course_id, name, dept, level, mode, credits, weeks, rating, fee, year in SEED_COURSES
    ])
    await session.commit()

    return {name: dept.id for name, dept in departments.items()}


@pytest.fixture
def valid_row():
    """A course row that passes validation."""
    return {
        "course_id": "CS101",
        "course_name": "Introduction to Programming",
        "department": "Computer Science",
        "level": "UG",
        "delivery_mode": "online",
        "credits": "4",
        "duration_weeks": "12",
        "rating": "4.5",
        "tuition_fee_inr": "45000",
        "year_offered": "2024",
    }
