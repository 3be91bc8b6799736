# models/scope.py

from typing import List, Optional
from pydantic import BaseModel, Field


class SelectionUpdate(BaseModel):
    building_id: str = Field(..., description='A building id from the resolved scope, or "all"')


class BuildingRefRead(BaseModel):
    id: str
    name: str


class ScopeRead(BaseModel):
    status: str
    authenticated: bool
    source: str
    buildings: List[BuildingRefRead] = []
    selection: str
    selected_building: Optional[BuildingRefRead] = None
    error: Optional[str] = None


class SelectionResult(BaseModel):
    applied: bool
    scope: ScopeRead
