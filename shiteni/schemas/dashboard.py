"""
Dashboard Schemas

Stats are flat numbers the cards render; charts are series the chart
components consume as-is, so they stay loosely typed.
"""
from pydantic import BaseModel
from typing import Any, Dict, List, Optional
from datetime import datetime


class RecentItem(BaseModel):
    id: str
    type: Optional[str] = None
    reference: str
    name: Optional[str] = None
    amount: float
    status: str
    created_at: datetime


class DashboardResponse(BaseModel):
    stats: Dict[str, Any]
    charts: Dict[str, Any]
    recent: List[RecentItem]
    currency: str = "ZMW"
    generated_at: datetime
