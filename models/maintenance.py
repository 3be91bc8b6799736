# models/maintenance.py

from typing import Optional
from pydantic import BaseModel, Field

from .enums import MaintenancePriority, MaintenanceStatus


class MaintenanceRequestCreate(BaseModel):
    apartment_id: str
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    priority: MaintenancePriority = MaintenancePriority.medium
    estimated_cost: Optional[float] = Field(None, ge=0)


# -------------------------------------------------
# Update (PATCH)
# -------------------------------------------------
class MaintenanceRequestUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[MaintenancePriority] = None
    status: Optional[MaintenanceStatus] = None
    estimated_cost: Optional[float] = Field(None, ge=0)
    actual_cost: Optional[float] = Field(None, ge=0)
