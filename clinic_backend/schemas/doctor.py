from pydantic import BaseModel


class DoctorListItem(BaseModel):
    id: int
    full_name: str
    specialization: str
    is_available: bool


class DoctorListResponse(BaseModel):
    doctors: list[DoctorListItem]
    specializations: list[str]
