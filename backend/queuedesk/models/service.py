"""
Service line and operator models.
"""

from pydantic import BaseModel, Field
from typing import List, Optional


class Service(BaseModel):
    """A queueable service line."""
    id: int
    name: str = ""
    prefix: str = ""
    priority: int = 0
    estimated_time: float = Field(default=10.0, ge=0, description="Baseline minutes per ticket")
    active: bool = True


class Operator(BaseModel):
    """Counter operator."""
    id: int
    name: str = ""
    active: bool = True
    service_ids: List[int] = []
    efficiency: float = Field(default=1.0, gt=0, description="1.0 = nominal, >1.0 = faster")
    current_ticket_id: Optional[int] = None
