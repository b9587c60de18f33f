from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_backend.core.errors import InfrastructureError
from clinic_backend.database import get_db
from clinic_backend.schemas.doctor import DoctorListItem, DoctorListResponse
from clinic_backend.services.directory import list_doctors

router = APIRouter(tags=['doctors'])


@router.get('', response_model=DoctorListResponse)
def get_doctors(
    specialization: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    try:
        doctors, specializations = list_doctors(db, specialization)
    except SQLAlchemyError as exc:
        raise InfrastructureError('Error loading doctors. Please try again.') from exc

    return DoctorListResponse(
        doctors=[
            DoctorListItem(
                id=doctor.id,
                full_name=doctor.full_name,
                specialization=doctor.specialization,
                is_available=doctor.is_available,
            )
            for doctor in doctors
        ],
        specializations=specializations,
    )
