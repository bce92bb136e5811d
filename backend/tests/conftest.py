"""
conftest.py — Shared pytest fixtures for the RAB Estimator backend test suite.

Engine fixtures are session-scoped and import lazily.  Repository tests get an
in-memory ``sqlite+aiosqlite`` session; route tests get a TestClient whose
repository dependency is swapped for an in-memory fake.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``app.*`` imports resolve correctly regardless of where pytest is invoked.
"""

import sys
import os
import pytest
import pytest_asyncio

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any app imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


TUKANG_RATE = 150_000.0
PEKERJA_RATE = 135_000.0


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def team_sizer():
    """TeamSizer with the standard daily wages: tukang 150 000, pekerja 135 000."""
    from app.services.workforce_engine import TeamSizer
    return TeamSizer(rate_tukang=TUKANG_RATE, rate_pekerja=PEKERJA_RATE)


@pytest.fixture(scope="session")
def quality_adjuster():
    """MaterialQualityAdjuster on the K225 baseline."""
    from app.services.concrete_quality import MaterialQualityAdjuster
    return MaterialQualityAdjuster("K225")


@pytest.fixture(scope="session")
def cost_composer(team_sizer, quality_adjuster):
    """CostComposer pinned to fixed wages and baseline so env overrides cannot leak in."""
    from app.services.costing_engine import CostComposer
    return CostComposer(team_sizer=team_sizer, quality_adjuster=quality_adjuster)


@pytest.fixture(scope="session")
def beam_quantities():
    """
    Beam 6 m × 0.3 m × 0.5 m, cover 25 mm, 4 × D12, D8 stirrups @ 150 mm.

    concrete 0.9 m³, formwork 8.1 m², 41 stirrups × 1.4 m.
    """
    from app.services.quantity_engine import derive_quantities
    return derive_quantities("beam", {"length": 6, "width": 0.3, "height": 0.5})


@pytest.fixture
def beton_materials():
    """K225 concrete mix per m³: 7.5 sak semen, 0.48 m³ pasir, 0.68 m³ kerikil."""
    return [
        {"name": "Semen Portland", "market_unit": "sak", "market_price": 65_000.0,
         "quantity_per_unit": 7.5, "base_unit": "kg", "conversion_factor": 50.0},
        {"name": "Pasir Halus", "market_unit": "m³", "market_price": 350_000.0,
         "quantity_per_unit": 0.48, "base_unit": "m³", "conversion_factor": 1.0},
        {"name": "Kerikil", "market_unit": "m³", "market_price": 400_000.0,
         "quantity_per_unit": 0.68, "base_unit": "m³", "conversion_factor": 1.0},
    ]


@pytest.fixture
def beton_sub_work(beton_materials):
    """0.9 m³ of concrete, 1 tukang + 2 pekerja at 1:2, 3 m³/day per team."""
    return {
        "name": "Beton",
        "required_quantity": 0.9,
        "unit": "m³",
        "productivity": 3.0,
        "workers": {"tukang": 1, "pekerja": 2, "ratio": "1:2"},
        "materials": beton_materials,
    }


@pytest.fixture
def sample_rules():
    return [
        {"id": 1, "rule_name": "Semen 50kg", "material_pattern": "semen", "unit_pattern": "sak|zak",
         "conversion_factor": 50.0, "base_unit": "kg", "conversion_description": "1 sak = 50 kg",
         "priority": 10, "material_type": "semen", "is_active": True,
         "job_category_pattern": "beton|balok|kolom",
         "conversion_data": {"usage_per_m3_concrete": {"K-225": 7.5, "K-250": 8.0, "K-300": 8.5}}},
        {"id": 2, "rule_name": "Semen Gresik 40kg", "material_pattern": "semen gresik", "unit_pattern": "sak",
         "conversion_factor": 40.0, "base_unit": "kg", "conversion_description": "1 sak = 40 kg",
         "priority": 5, "material_type": "semen", "is_active": True},
        {"id": 3, "rule_name": "Pasir truk", "material_pattern": "pasir", "unit_pattern": "truk",
         "conversion_factor": 7.0, "base_unit": "m³", "conversion_description": "1 truk = 7 m³",
         "priority": 20, "material_type": "pasir", "is_active": True},
        {"id": 4, "rule_name": "Pasir lama (nonaktif)", "material_pattern": "pasir", "unit_pattern": "truk",
         "conversion_factor": 6.0, "base_unit": "m³", "conversion_description": "1 truk = 6 m³",
         "priority": 1, "material_type": "pasir", "is_active": False},
    ]


# ---------------------------------------------------------------------------
# Database fixtures (in-memory SQLite)
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture()
async def db_session():
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
    from app.db import Base
    from app.models import orm_models  # noqa: F401

    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        await session.close()
        await engine.dispose()


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------

class FakeCatalogRepository:
    """In-memory stand-in for the catalog repository used by route tests."""

    def __init__(self, materials=None, rules=None, material_assignments=None, labor_assignments=None):
        self.materials = {m["id"]: m for m in (materials or [])}
        self.rules = list(rules or [])
        self.material_assignments = material_assignments or {}
        self.labor_assignments = labor_assignments or {}
        self.saved = {}

    async def get_material(self, material_id):
        return self.materials.get(material_id)

    async def list_materials(self, filter=None):
        search = ((filter or {}).get("search") or "").lower()
        return [m for m in self.materials.values() if search in m["name"].lower()]

    async def list_conversion_rules(self, active_only=True, search=None, material_type=None):
        rules = [r for r in self.rules if r.get("is_active", True) or not active_only]
        return sorted(rules, key=lambda r: (r["priority"], r["id"]))

    async def get_job_type_material_assignments(self, job_type_id):
        return self.material_assignments.get(job_type_id, [])

    async def get_job_type_labor_assignments(self, job_type_id):
        return self.labor_assignments.get(job_type_id, [])

    async def save_calculation(self, result, job_type_id=None):
        calculation_id = len(self.saved) + 1
        self.saved[calculation_id] = {"id": calculation_id, "job_type_id": job_type_id, **result}
        return calculation_id

    async def get_calculation(self, calculation_id):
        return self.saved.get(calculation_id)


@pytest.fixture
def fake_repository(sample_rules):
    return FakeCatalogRepository(
        materials=[
            {"id": 1, "name": "Semen Portland", "market_unit": "sak", "market_price": 65_000.0,
             "base_unit": "kg", "conversion_factor": 50.0, "conversion_description": "1 sak = 50 kg",
             "supplier": "Toko Bangunan Jaya", "description": None},
            {"id": 2, "name": "Pasir Pasirian", "market_unit": "truk", "market_price": 2_650_000.0,
             "base_unit": "m³", "conversion_factor": 7.0, "conversion_description": "1 truk = 7 m³",
             "supplier": None, "description": None},
        ],
        rules=sample_rules,
        material_assignments={
            7: [{"material_id": 3, "name": "Keramik 40x40", "sub_work": "Pasang Keramik",
                 "quantity_per_unit": 0.16, "is_primary": True, "market_unit": "dus",
                 "market_price": 60_000.0, "conversion_factor": 1.44, "base_unit": "m²",
                 "conversion_description": "1 dus = 1.44 m²"}],
        },
        labor_assignments={
            7: [{"sub_work": "Pasang Keramik", "tukang": 1, "pekerja": 1, "ratio": "1:1",
                 "rate_tukang": 150_000.0, "rate_pekerja": 135_000.0, "productivity": 10.0}],
        },
    )


@pytest.fixture
def client(fake_repository):
    from fastapi.testclient import TestClient
    from app.main import app
    from app.api.deps import get_cost_composer, get_repository
    from app.services.costing_engine import CostComposer
    from app.services.concrete_quality import MaterialQualityAdjuster
    from app.services.workforce_engine import TeamSizer

    composer = CostComposer(TeamSizer(TUKANG_RATE, PEKERJA_RATE), MaterialQualityAdjuster("K225"))
    app.dependency_overrides[get_repository] = lambda: fake_repository
    app.dependency_overrides[get_cost_composer] = lambda: composer
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def db_client(tmp_path):
    """
    TestClient backed by a real SqlAlchemyCatalogRepository on a SQLite file.

    Each request may run on its own event loop, so connections are never
    pooled across requests.
    """
    from fastapi.testclient import TestClient
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
    from sqlalchemy.pool import NullPool
    from app.main import app
    from app.db import Base, get_db
    from app.models import orm_models  # noqa: F401

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'rab.db'}", poolclass=NullPool)
    SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def _get_db():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with SessionLocal() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
