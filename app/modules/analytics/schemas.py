from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
from datetime import datetime


class MetricCreate(BaseModel):
    organization_id: Optional[str] = None
    metric_type: str = Field(min_length=1, max_length=100)
    metric_value: Optional[float] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class Metric(BaseModel):
    id: str
    organization_id: Optional[str] = None
    metric_type: str
    metric_value: Optional[float] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    recorded_at: Optional[datetime] = None
