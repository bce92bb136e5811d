"""FastAPI dependency injection — repository, engines, error mapping."""
from typing import Union
from fastapi import Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from app.db import get_db
from app.services.catalog_repository import CatalogRepository, SqlAlchemyCatalogRepository
from app.services.costing_engine import CostComposer
from app.services.estimation_errors import EstimationError, ValidationAggregate

_COMPOSER = CostComposer()


async def get_repository(db: AsyncSession = Depends(get_db)) -> CatalogRepository:
    return SqlAlchemyCatalogRepository(db)


def get_cost_composer() -> CostComposer:
    return _COMPOSER


def validation_http_error(exc: Union[ValidationAggregate, EstimationError]) -> HTTPException:
    """422 with every violated field, so the client can flag them all at once."""
    errors = exc.to_list() if isinstance(exc, ValidationAggregate) else [exc.to_dict()]
    return HTTPException(
        status_code=422,
        detail={"message": "Validation failed", "errors": errors},
    )
