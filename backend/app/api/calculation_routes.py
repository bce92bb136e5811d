"""Calculation routes — quantities, cost composition, one-shot estimates."""
import logging
from fastapi import APIRouter, Depends, HTTPException
from app.api.deps import get_cost_composer, get_repository, validation_http_error
from app.models.estimation_schema import CostRequest, EstimateRequest, QuantityRequest
from app.services.catalog_repository import CatalogRepository
from app.services.concrete_quality import list_grades
from app.services.costing_engine import CostComposer
from app.services.default_materials import sub_works_from_assignments
from app.services.estimation_errors import EstimationError, ValidationAggregate
from app.services.quantity_engine import derive_quantities

router = APIRouter(prefix="/api/calculations", tags=["Calculations"])
logger = logging.getLogger("rab-api")


async def _maybe_save(result: dict, save: bool, repo: CatalogRepository, job_type_id=None) -> dict:
    if save:
        result["id"] = await repo.save_calculation(result, job_type_id=job_type_id)
    return result


@router.get("/concrete-grades")
async def concrete_grades():
    return {"grades": list_grades()}


@router.post("/quantities")
async def quantities(payload: QuantityRequest):
    try:
        return derive_quantities(payload.shape, payload.dimensions)
    except (ValidationAggregate, EstimationError) as e:
        raise validation_http_error(e)


@router.post("/cost")
async def compute_cost(
    payload: CostRequest,
    composer: CostComposer = Depends(get_cost_composer),
    repo: CatalogRepository = Depends(get_repository),
):
    try:
        result = composer.compute_cost(
            [sw.model_dump() for sw in payload.sub_works],
            concrete_quality=payload.concrete_quality,
            waste_factor=payload.waste_factor,
            profit_percentage=payload.profit_percentage,
            project_name=payload.project_name,
        )
    except (ValidationAggregate, EstimationError) as e:
        raise validation_http_error(e)
    logger.info("cost composed", extra={"sub_works": len(payload.sub_works)})
    return await _maybe_save(result, payload.save, repo)


@router.post("/estimate")
async def estimate(
    payload: EstimateRequest,
    composer: CostComposer = Depends(get_cost_composer),
    repo: CatalogRepository = Depends(get_repository),
):
    """
    Geometry → quantities → sub-works → HPP/RAB.

    Sub-works come from the request, else from the job type's stored
    assignments, else the structural defaults (beam, footplate).
    """
    sub_works = [sw.model_dump() for sw in payload.sub_works] if payload.sub_works is not None else None
    try:
        if sub_works is None and payload.job_type_id is not None:
            quantity_set = derive_quantities(payload.shape, payload.dimensions)
            materials = await repo.get_job_type_material_assignments(payload.job_type_id)
            labor = await repo.get_job_type_labor_assignments(payload.job_type_id)
            if not labor:
                raise HTTPException(
                    status_code=404,
                    detail=f"No labor configured for job type {payload.job_type_id}",
                )
            result = composer.compute_cost(
                sub_works_from_assignments(materials, labor, quantity_set),
                concrete_quality=payload.concrete_quality,
                waste_factor=payload.waste_factor,
                profit_percentage=payload.profit_percentage,
                quantities=quantity_set,
                project_name=payload.project_name,
            )
        else:
            result = composer.estimate(
                payload.shape,
                payload.dimensions,
                sub_works=sub_works,
                concrete_quality=payload.concrete_quality,
                waste_factor=payload.waste_factor,
                profit_percentage=payload.profit_percentage,
                project_name=payload.project_name,
                overrides=payload.overrides,
            )
    except (ValidationAggregate, EstimationError) as e:
        raise validation_http_error(e)

    logger.info(
        "estimate composed",
        extra={"shape": result.get("shape"), "rab": result["totals"]["rab"]},
    )
    return await _maybe_save(result, payload.save, repo, job_type_id=payload.job_type_id)


@router.get("/{calculation_id}")
async def get_calculation(calculation_id: int, repo: CatalogRepository = Depends(get_repository)):
    calculation = await repo.get_calculation(calculation_id)
    if calculation is None:
        raise HTTPException(status_code=404, detail="Calculation not found")
    return calculation
