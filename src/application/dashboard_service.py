from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Callable, Optional

from application.dashboard import DashboardAggregator
from application.invalidation import InvalidationSignal
from application.snapshot_service import SnapshotService
from application.view_models import allocation_chart
from domain.models import DashboardSnapshot
from infrastructure.fact_loader import FactLoader


class DashboardService(SnapshotService[DashboardSnapshot]):
    label = "dashboard"

    def __init__(
        self,
        loader: FactLoader,
        aggregator: DashboardAggregator | None = None,
        signal: InvalidationSignal | None = None,
        clock: Callable[[], date] = date.today,
    ) -> None:
        super().__init__()
        self._loader = loader
        self._aggregator = aggregator or DashboardAggregator()
        self._clock = clock
        if signal is not None:
            signal.subscribe(self._on_invalidate)

    async def refresh(self, today: Optional[date] = None) -> DashboardSnapshot:
        today = today or self._clock()

        async def produce() -> DashboardSnapshot:
            facts = await self._loader.load_dashboard_facts(today)
            return self._aggregator.aggregate(facts)

        return await self._fetch(produce)

    def view(self) -> DashboardSnapshot | None:
        """Published snapshot, with the allocation chart never left empty."""
        if self.snapshot is None:
            return None
        return replace(self.snapshot, allocation=allocation_chart(self.snapshot.allocation))
