# backend/enrollment/routers/households.py

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.tables import Households
from ..schemas.parcels import ParcelsCommitRequest, ParcelsCommitResponse, ValidationIssueRead
from ..services.parcels import ParcelValidationError, commit_parcels
from ..services.scheduling import Clock, Parcel, get_clock

router = APIRouter(prefix="/households", tags=["households"])


@router.post(
    "/{id}/parcels",
    response_model=ParcelsCommitResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_parcels(
    id: str,
    data: ParcelsCommitRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Store the household's parcels. Safe to retry: duplicates are not created."""
    if not db.get(Households, id):
        raise HTTPException(status_code=404, detail="Not found")

    parcels = [
        Parcel(
            id=p.id,
            pickup_date=p.pickup_date,
            pickup_earliest_time=clock.localize(p.pickup_earliest_time),
            pickup_latest_time=clock.localize(p.pickup_latest_time),
        )
        for p in data.parcels
    ]

    try:
        ids = commit_parcels(db, id, data.pickup_location_id, parcels, clock)
    except ParcelValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"errors": [
                ValidationIssueRead(**issue.to_dict()).model_dump(mode="json")
                for issue in e.issues
            ]},
        )

    return ParcelsCommitResponse(
        household_id=id,
        pickup_location_id=data.pickup_location_id,
        parcel_ids=ids,
    )
