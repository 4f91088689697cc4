from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockledger.core.api_docs import error_responses
from stockledger.core.deps import get_db
from stockledger.db.unit_of_work import unit_of_work
from stockledger.schemas.location import LocationIn, LocationOut
from stockledger.services.location_service import create_location, list_locations

router = APIRouter(prefix="/locations", tags=["locations"])


@router.post(
    "",
    response_model=LocationOut,
    status_code=201,
    summary="Create a stock location",
    responses=error_responses(400, 422, 500, 503),
)
def create(payload: LocationIn, db: Session = Depends(get_db)):
    with unit_of_work(db):
        location = create_location(
            db,
            code=payload.code,
            name=payload.name,
            kind=payload.kind,
            default_capacity=payload.default_capacity,
            default_min_threshold=payload.default_min_threshold,
        )
    db.refresh(location)
    return LocationOut.model_validate(location)


@router.get(
    "",
    response_model=list[LocationOut],
    summary="List stock locations",
    responses=error_responses(422, 500),
)
def list_all(
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    return [LocationOut.model_validate(row) for row in list_locations(db, include_inactive=include_inactive)]
