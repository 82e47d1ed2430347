"""Financing analysis use case: validate, cost, advise, compare"""

import asyncio
import threading
import time
from typing import Set, Tuple

from smart_advisor.domain.advisory import build_comparison
from smart_advisor.domain.amortization import compute_cost
from smart_advisor.domain.exceptions import AnalysisInProgress, DomainException
from smart_advisor.domain.models import Analysis, CostResult, LoanInputs, ProductType
from smart_advisor.domain.validation import validate_loan_inputs
from smart_advisor.infrastructure.observability.logging import log_analysis
from smart_advisor.infrastructure.observability.metrics import record_analysis
from smart_advisor.services.advisory import AdvisoryPipeline


class AnalysisService:
    """
    Runs complete financing analyses against one advisory pipeline.

    A second analysis of an identical input snapshot is rejected while the
    first is still outstanding.
    """

    def __init__(self, pipeline: AdvisoryPipeline):
        self.pipeline = pipeline
        self._lock = threading.Lock()
        self._in_flight: Set[Tuple] = set()

    def cost_only(self, product: ProductType | str, inputs: LoanInputs) -> CostResult:
        """Validated cost breakdown without advice"""
        product = validate_loan_inputs(product, inputs)
        return compute_cost(product, inputs)

    def _claim(self, key: Tuple) -> None:
        with self._lock:
            if key in self._in_flight:
                raise AnalysisInProgress()
            self._in_flight.add(key)

    def _release(self, key: Tuple) -> None:
        with self._lock:
            self._in_flight.discard(key)

    async def analyze(
        self,
        product: ProductType | str,
        inputs: LoanInputs,
        request_id: str = "unknown",
        cancel_event: asyncio.Event | None = None,
    ) -> Analysis:
        """
        Main entry point: full analysis for one input snapshot.

        Flow:
        1. Validate inputs for the product
        2. Compute the cost breakdown
        3. Request advice through the pipeline
        4. Build the cost vs. foregone growth comparison

        Raises:
            DomainException subclasses from validation and the pipeline
        """
        start_time = time.time()
        product = validate_loan_inputs(product, inputs)
        cost = compute_cost(product, inputs)

        key = (product.value, inputs.snapshot())
        self._claim(key)
        try:
            advice = await self.pipeline.get_advice(inputs, product, cost, cancel_event=cancel_event)
        except DomainException as e:
            duration_ms = (time.time() - start_time) * 1000
            outcome = type(e).__name__
            record_analysis(product.value, outcome)
            log_analysis(request_id, product.value, outcome, cost.final_cost, duration_ms)
            raise
        finally:
            self._release(key)

        comparison = build_comparison(cost, advice)

        duration_ms = (time.time() - start_time) * 1000
        outcome = advice.recommendation.value
        record_analysis(product.value, outcome, cost.final_cost)
        log_analysis(request_id, product.value, outcome, cost.final_cost, duration_ms)

        return Analysis(product=product, cost=cost, advice=advice, comparison=comparison)
