"""
Wait-time estimation models.
"""

from pydantic import BaseModel, Field
from typing import Dict, Optional
from datetime import datetime
from enum import Enum


class ClientType(str, Enum):
    """Client categories with different attention profiles."""
    REGULAR = "regular"
    VIP = "vip"
    NEW = "new"


class HistoricalStat(BaseModel):
    """Online-learned service durations for one service."""
    service_id: int
    average_service_time: float = 0.0
    completed_tickets: int = 0
    hourly_pattern: Dict[int, float] = {}
    day_of_week_pattern: Dict[int, float] = {}
    operator_pattern: Dict[int, float] = {}
    hourly_samples: Dict[int, int] = {}
    day_of_week_samples: Dict[int, int] = {}
    operator_samples: Dict[int, int] = {}
    last_updated: Optional[datetime] = None


class OptimizationFactors(BaseModel):
    """Real-time signals blended into an estimate. Unset values are derived per call."""
    available_operators: int = Field(default=1, ge=0)
    queue_length: Optional[int] = Field(default=None, ge=0)
    time_of_day: Optional[int] = Field(default=None, ge=0, le=23)
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6, description="0=Monday")
    operator_efficiency: float = Field(default=1.0, gt=0)
    service_complexity: Optional[float] = Field(default=None, ge=0)
    client_type: ClientType = ClientType.REGULAR
    operator_id: Optional[int] = None


class PrecisionMetrics(BaseModel):
    """How trustworthy the learned model is for a service."""
    accuracy: int = 0
    total_predictions: int = 0
    average_error: int = 0


class WaitEstimate(BaseModel):
    """Estimated wait for one waiting ticket."""
    ticket_id: Optional[int] = None
    service_id: Optional[int] = None
    queue_position: int
    estimated_wait_time: int
