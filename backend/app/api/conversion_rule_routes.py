"""Conversion rule routes — CRUD, suggestion, job-type requirements."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from app.db import get_db
from app.api.deps import get_repository, validation_http_error
from app.models.estimation_schema import (
    ConversionRuleIn,
    ConversionRuleUpdate,
    RequirementsRequest,
    SuggestRequest,
)
from app.models.orm_models import MaterialConversionRule
from app.services.catalog_repository import CatalogRepository, rule_to_dict
from app.services.conversion_rule_engine import ConversionRuleMatcher
from app.services.estimation_errors import MissingConfiguration, ValidationAggregate

router = APIRouter(prefix="/api/conversion-rules", tags=["Conversion Rules"])
logger = logging.getLogger("rab-api")

# Columns a rule cannot exist without; the rest may be cleared with null
_REQUIRED_RULE_FIELDS = (
    "rule_name", "material_pattern", "unit_pattern", "conversion_factor", "base_unit", "priority", "is_active",
)


@router.get("")
async def list_rules(
    active_only: bool = Query(False),
    search: Optional[str] = None,
    material_type: Optional[str] = None,
    repo: CatalogRepository = Depends(get_repository),
):
    rules = await repo.list_conversion_rules(
        active_only=active_only, search=search, material_type=material_type
    )
    return {"rules": rules, "count": len(rules)}


@router.post("", status_code=201)
async def create_rule(payload: ConversionRuleIn, db: AsyncSession = Depends(get_db)):
    rule = MaterialConversionRule(**payload.model_dump())
    db.add(rule)
    await db.flush()
    logger.info(f"Conversion rule created: {rule.rule_name} (priority {rule.priority})")
    return rule_to_dict(rule)


@router.put("/{rule_id}")
async def update_rule(rule_id: int, payload: ConversionRuleUpdate, db: AsyncSession = Depends(get_db)):
    rule = await db.get(MaterialConversionRule, rule_id)
    if rule is None:
        raise HTTPException(status_code=404, detail="Conversion rule not found")
    changes = payload.model_dump(exclude_unset=True)
    cleared = [f for f in _REQUIRED_RULE_FIELDS if f in changes and changes[f] is None]
    if cleared:
        raise validation_http_error(ValidationAggregate(
            MissingConfiguration(f, "cannot be cleared") for f in cleared
        ))
    for field, value in changes.items():
        setattr(rule, field, value)
    await db.flush()
    return rule_to_dict(rule)


@router.delete("/{rule_id}")
async def delete_rule(rule_id: int, db: AsyncSession = Depends(get_db)):
    rule = await db.get(MaterialConversionRule, rule_id)
    if rule is None:
        raise HTTPException(status_code=404, detail="Conversion rule not found")
    await db.delete(rule)
    return {"status": "deleted", "id": rule_id}


@router.post("/suggest")
async def suggest(payload: SuggestRequest, repo: CatalogRepository = Depends(get_repository)):
    """Best matching rule for a material name and market unit; null when none match."""
    rules = await repo.list_conversion_rules(active_only=True)
    matcher = ConversionRuleMatcher(rules, include_builtin=payload.include_builtin)
    suggestion = matcher.suggest(payload.material_name, payload.unit, job_name=payload.job_type_name)
    return {"suggestion": suggestion.to_dict() if suggestion else None}


@router.post("/requirements")
async def requirements(payload: RequirementsRequest, repo: CatalogRepository = Depends(get_repository)):
    rules = await repo.list_conversion_rules(active_only=True)
    matcher = ConversionRuleMatcher(rules)
    return {"requirements": matcher.requirements(payload.job_type_name)}
