"""Material routes — catalog listing and creation with unit conversion."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from app.db import get_db
from app.api.deps import get_repository, validation_http_error
from app.models.estimation_schema import BrickConversionRequest, MaterialIn
from app.models.orm_models import Material
from app.services.catalog_repository import CatalogRepository, material_to_dict
from app.services.estimation_errors import EstimationError
from app.services.unit_converter import (
    BRICK_PRESETS,
    brick_preset_conversion,
    brick_wall_conversion,
    describe_conversion,
    price_breakdown,
    resolve_conversion_factor,
)

router = APIRouter(prefix="/api/materials", tags=["Materials"])
logger = logging.getLogger("rab-api")


@router.get("")
async def list_materials(
    search: Optional[str] = None,
    market_unit: Optional[str] = None,
    supplier: Optional[str] = None,
    repo: CatalogRepository = Depends(get_repository),
):
    materials = await repo.list_materials(
        {"search": search, "market_unit": market_unit, "supplier": supplier}
    )
    return {"materials": [{**m, **price_breakdown(m)} for m in materials], "count": len(materials)}


@router.get("/brick-presets")
async def brick_presets():
    return {"presets": [{"preset": key, **preset} for key, preset in BRICK_PRESETS.items()]}


@router.post("/brick-conversion")
async def brick_conversion(payload: BrickConversionRequest):
    """Package-to-wall-area factor for bricks, from a preset or explicit sizes."""
    try:
        if payload.preset:
            return brick_preset_conversion(
                payload.preset, payload.pieces, payload.waste_factor,
                payload.wall_type, payload.market_unit,
            )
        return brick_wall_conversion(
            payload.pieces, payload.length_mm, payload.height_mm,
            width_mm=payload.width_mm, mortar_mm=payload.mortar_mm,
            waste_factor=payload.waste_factor, wall_type=payload.wall_type,
            market_unit=payload.market_unit,
        )
    except EstimationError as e:
        raise validation_http_error(e)


@router.get("/{material_id}")
async def get_material(material_id: int, repo: CatalogRepository = Depends(get_repository)):
    material = await repo.get_material(material_id)
    if material is None:
        raise HTTPException(status_code=404, detail="Material not found")
    return {**material, **price_breakdown(material)}


@router.post("", status_code=201)
async def create_material(payload: MaterialIn, db: AsyncSession = Depends(get_db)):
    base_unit = payload.base_unit or payload.market_unit
    try:
        factor = resolve_conversion_factor(payload.market_unit, base_unit, payload.conversion_factor)
    except EstimationError as e:
        raise validation_http_error(e)

    material = Material(
        name=payload.name,
        market_unit=payload.market_unit,
        market_price=payload.market_price,
        base_unit=base_unit,
        conversion_factor=factor,
        conversion_description=payload.conversion_description
            or describe_conversion(payload.market_unit, base_unit, factor),
        supplier=payload.supplier,
        description=payload.description,
    )
    db.add(material)
    await db.flush()
    logger.info(f"Material created: {material.name} ({describe_conversion(material.market_unit, base_unit, factor)})")
    record = material_to_dict(material)
    return {**record, **price_breakdown(record)}
