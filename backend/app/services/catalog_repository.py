"""
Catalog data access for the estimation engines.

The engines only see plain dict records.  ``CatalogRepository`` is the
collaborator interface; ``SqlAlchemyCatalogRepository`` implements it over an
``AsyncSession``.  Each calculation fetches a fresh snapshot of rules and
assignments; nothing is cached here.
"""
import abc
import logging
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.orm_models import (
    Calculation,
    JobTypeLabor,
    JobTypeMaterial,
    Material,
    MaterialConversionRule,
)

logger = logging.getLogger("rab-db")


def material_to_dict(material: Material) -> Dict[str, Any]:
    return {
        "id": material.id,
        "name": material.name,
        "market_unit": material.market_unit,
        "market_price": material.market_price,
        "base_unit": material.base_unit,
        "conversion_factor": material.conversion_factor,
        "conversion_description": material.conversion_description,
        "supplier": material.supplier,
        "description": material.description,
    }


def rule_to_dict(rule: MaterialConversionRule) -> Dict[str, Any]:
    return {
        "id": rule.id,
        "rule_name": rule.rule_name,
        "material_pattern": rule.material_pattern,
        "unit_pattern": rule.unit_pattern,
        "conversion_factor": rule.conversion_factor,
        "base_unit": rule.base_unit,
        "conversion_description": rule.conversion_description,
        "material_type": rule.material_type,
        "job_category_pattern": rule.job_category_pattern,
        "conversion_data": rule.conversion_data,
        "priority": rule.priority,
        "is_active": rule.is_active,
        "notes": rule.notes,
    }


class CatalogRepository(abc.ABC):
    """Data the cost engine consumes, as plain records."""

    @abc.abstractmethod
    async def get_material(self, material_id: int) -> Optional[Dict[str, Any]]: ...

    @abc.abstractmethod
    async def list_materials(self, filter: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]: ...

    @abc.abstractmethod
    async def list_conversion_rules(self, active_only: bool = True,
                                    search: Optional[str] = None,
                                    material_type: Optional[str] = None) -> List[Dict[str, Any]]:
        """Ordered by ascending priority, then id."""

    @abc.abstractmethod
    async def get_job_type_material_assignments(self, job_type_id: int) -> List[Dict[str, Any]]: ...

    @abc.abstractmethod
    async def get_job_type_labor_assignments(self, job_type_id: int) -> List[Dict[str, Any]]: ...

    @abc.abstractmethod
    async def save_calculation(self, result: Mapping[str, Any],
                               job_type_id: Optional[int] = None) -> int: ...

    @abc.abstractmethod
    async def get_calculation(self, calculation_id: int) -> Optional[Dict[str, Any]]: ...


class SqlAlchemyCatalogRepository(CatalogRepository):

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_material(self, material_id: int) -> Optional[Dict[str, Any]]:
        material = await self.session.get(Material, material_id)
        return material_to_dict(material) if material else None

    async def list_materials(self, filter: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        """``filter`` keys: search (name/supplier/description), market_unit, supplier."""
        filter = filter or {}
        stmt = select(Material)
        if filter.get("search"):
            term = f"%{filter['search']}%"
            stmt = stmt.where(or_(
                Material.name.ilike(term),
                Material.supplier.ilike(term),
                Material.description.ilike(term),
            ))
        if filter.get("market_unit"):
            stmt = stmt.where(Material.market_unit == filter["market_unit"])
        if filter.get("supplier"):
            stmt = stmt.where(Material.supplier == filter["supplier"])
        result = await self.session.execute(stmt.order_by(Material.name, Material.id))
        return [material_to_dict(m) for m in result.scalars().all()]

    async def list_conversion_rules(self, active_only: bool = True,
                                    search: Optional[str] = None,
                                    material_type: Optional[str] = None) -> List[Dict[str, Any]]:
        stmt = select(MaterialConversionRule)
        if active_only:
            stmt = stmt.where(MaterialConversionRule.is_active.is_(True))
        if search:
            term = f"%{search}%"
            stmt = stmt.where(or_(
                MaterialConversionRule.rule_name.ilike(term),
                MaterialConversionRule.material_pattern.ilike(term),
                MaterialConversionRule.conversion_description.ilike(term),
            ))
        if material_type:
            stmt = stmt.where(MaterialConversionRule.material_type == material_type)
        stmt = stmt.order_by(MaterialConversionRule.priority.asc(), MaterialConversionRule.id.asc())
        result = await self.session.execute(stmt)
        return [rule_to_dict(r) for r in result.scalars().all()]

    async def get_job_type_material_assignments(self, job_type_id: int) -> List[Dict[str, Any]]:
        stmt = (
            select(JobTypeMaterial)
            .options(selectinload(JobTypeMaterial.material))
            .where(JobTypeMaterial.job_type_id == job_type_id)
            .order_by(JobTypeMaterial.id)
        )
        result = await self.session.execute(stmt)
        assignments = []
        for row in result.scalars().all():
            material = row.material
            # assignment-level conversion overrides the material's own
            has_override = row.conversion_factor is not None
            assignments.append({
                "material_id": material.id,
                "name": material.name,
                "sub_work": row.sub_work,
                "quantity_per_unit": row.quantity_per_unit,
                "is_primary": row.is_primary,
                "market_unit": material.market_unit,
                "market_price": material.market_price,
                "conversion_factor": row.conversion_factor if has_override else material.conversion_factor,
                "base_unit": (row.base_unit or material.base_unit) if has_override else material.base_unit,
                "conversion_description": (
                    row.conversion_description if has_override else material.conversion_description
                ),
            })
        return assignments

    async def get_job_type_labor_assignments(self, job_type_id: int) -> List[Dict[str, Any]]:
        stmt = (
            select(JobTypeLabor)
            .where(JobTypeLabor.job_type_id == job_type_id)
            .order_by(JobTypeLabor.id)
        )
        result = await self.session.execute(stmt)
        return [
            {
                "sub_work": row.sub_work,
                "tukang": row.tukang,
                "pekerja": row.pekerja,
                "ratio": row.ratio,
                "rate_tukang": row.rate_tukang,
                "rate_pekerja": row.rate_pekerja,
                "productivity": row.productivity,
            }
            for row in result.scalars().all()
        ]

    async def save_calculation(self, result: Mapping[str, Any],
                               job_type_id: Optional[int] = None) -> int:
        totals = result.get("totals") or {}
        row = Calculation(
            job_type_id=job_type_id,
            project_name=result.get("project_name"),
            shape=result.get("shape"),
            concrete_quality=result.get("concrete_quality"),
            waste_factor=result.get("waste_factor") or 0.0,
            profit_percentage=result.get("profit_percentage") or 0.0,
            material_cost=totals.get("material_cost", 0.0),
            labor_cost=totals.get("labor_cost", 0.0),
            hpp=totals.get("hpp", 0.0),
            rab=totals.get("rab", 0.0),
            profit=totals.get("profit", 0.0),
            estimated_days=totals.get("days", 0.0),
            calculation_data=dict(result),
        )
        self.session.add(row)
        await self.session.flush()
        logger.info("calculation saved", extra={"calculation_id": row.id})
        return row.id

    async def get_calculation(self, calculation_id: int) -> Optional[Dict[str, Any]]:
        row = await self.session.get(Calculation, calculation_id)
        if row is None:
            return None
        return {
            "id": row.id,
            "job_type_id": row.job_type_id,
            "created_at": row.created_at.isoformat() if row.created_at else None,
            **row.calculation_data,
        }


async def seed_catalog(session: AsyncSession) -> int:
    """
    Insert the default materials and built-in conversion rules.

    Runs only against an empty catalog and returns the number of rows added;
    a catalog that already holds any material is left untouched.
    """
    from app.services.conversion_rule_engine import BUILTIN_RULES
    from app.services.default_materials import (
        BEKISTING_MATERIALS,
        BETON_MATERIALS,
        REBAR_PRICE_PER_BAR,
        TIE_WIRE_MATERIAL,
        rebar_bar_material,
    )

    existing = await session.execute(select(Material.id).limit(1))
    if existing.first() is not None:
        return 0

    records = [*BETON_MATERIALS, *BEKISTING_MATERIALS, TIE_WIRE_MATERIAL]
    records += [rebar_bar_material(diameter) for diameter in REBAR_PRICE_PER_BAR]
    rows: List[Any] = [
        Material(
            name=r["name"],
            market_unit=r["market_unit"],
            market_price=r["market_price"],
            base_unit=r["base_unit"],
            conversion_factor=r["conversion_factor"],
            conversion_description=r["conversion_description"],
        )
        for r in records
    ]
    rows += [
        MaterialConversionRule(
            rule_name=rule.rule_name,
            material_pattern=rule.material_pattern,
            unit_pattern=rule.unit_pattern,
            conversion_factor=rule.conversion_factor,
            base_unit=rule.base_unit,
            conversion_description=rule.conversion_description,
            material_type=rule.material_type,
            conversion_data=rule.conversion_data,
            priority=rule.priority,
        )
        for rule in BUILTIN_RULES
    ]
    session.add_all(rows)
    await session.flush()
    logger.info(f"Catalog seeded with {len(rows)} rows")
    return len(rows)
