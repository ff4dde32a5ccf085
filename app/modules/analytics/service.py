from typing import Optional

from app.core.results import OperationResult
from app.database.base import Caller, ProfileStore
from app.modules.analytics.schemas import Metric, MetricCreate


class AnalyticsService:
    """Dashboard metrics. Visibility: super_admin sees everything, others their organization's rows."""

    def __init__(self, store: ProfileStore):
        self.store = store

    def list_metrics(self, caller: Caller, metric_type: Optional[str] = None) -> OperationResult:
        try:
            rows = self.store.list_analytics(caller, metric_type)
            return OperationResult.ok([Metric(**row) for row in rows])
        except Exception as e:
            return OperationResult.from_error(e)

    def record_metric(self, caller: Caller, metric: MetricCreate) -> OperationResult:
        try:
            row = self.store.record_analytics(caller, metric.model_dump())
            return OperationResult.ok(Metric(**row))
        except Exception as e:
            return OperationResult.from_error(e)
