from datetime import datetime
from typing import List

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

# La API pública usa camelCase (uniqueViews, recentViews, ...)
_camel = {"alias_generator": to_camel, "populate_by_name": True}


class ResolvedSession(BaseModel):
    """Resultado de resolver la cookie: is_new indica que hay que enviar Set-Cookie."""
    session_id: str
    is_new: bool = False


class RecordResult(BaseModel):
    recorded: bool


class UrlViewCount(BaseModel):
    url: str
    unique_views: int

    model_config = _camel


class RecentView(BaseModel):
    viewed_at: datetime
    session_id_masked: str

    model_config = _camel


class ViewDetails(BaseModel):
    url: str
    unique_views: int
    recent_views: List[RecentView] = []

    model_config = _camel


class ViewsSummary(BaseModel):
    total_urls: int
    views: List[UrlViewCount]

    model_config = _camel

    @property
    def total_unique_views(self) -> int:
        return sum(v.unique_views for v in self.views)


class TrackingOutcome(BaseModel):
    session: ResolvedSession
    recorded: bool
    report: ViewDetails | ViewsSummary


class HealthOut(BaseModel):
    status: str
    timestamp: str
