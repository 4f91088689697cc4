from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockledger.core.api_docs import error_responses
from stockledger.core.deps import get_db
from stockledger.schemas.alert import ReorderAlertListOut, ReorderAlertOut, RetractOut
from stockledger.schemas.common import pagination
from stockledger.services import stock_service

router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.get(
    "",
    response_model=ReorderAlertListOut,
    summary="List open reorder alerts",
    responses={
        200: {
            "description": "Open alerts inside the lookback window, newest first",
            "content": {
                "application/json": {
                    "example": {
                        "items": [
                            {
                                "id": "alert-id",
                                "product_id": "product-id",
                                "location_id": "location-id",
                                "observed_quantity": 40,
                                "alert_kind": "SHELF_RESTOCK",
                                "threshold": 50,
                                "velocity_class": "MEDIUM",
                                "created_at": "2026-10-19T08:00:00Z",
                            }
                        ],
                        "pagination": {
                            "total": 1,
                            "limit": 100,
                            "offset": 0,
                            "count": 1,
                            "has_next": False,
                        },
                    }
                }
            },
        },
        **error_responses(422, 500, 503),
    },
)
def list_alerts(
    limit: int = Query(default=100, ge=1, le=500, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
):
    rows, total = stock_service.list_alerts(db, limit=limit, offset=offset)
    items = [ReorderAlertOut.model_validate(row) for row in rows]
    return ReorderAlertListOut(
        items=items,
        pagination=pagination(total=total, limit=limit, offset=offset, count=len(items)),
    )


@router.post(
    "/retract-resolved",
    response_model=RetractOut,
    summary="Delete alerts whose product has recovered above the safety floor",
    responses=error_responses(500, 503),
)
def retract_resolved(db: Session = Depends(get_db)):
    return RetractOut(retracted=stock_service.retract_resolved_alerts(db))
