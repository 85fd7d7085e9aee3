"""Cost report pipeline: parameters, normalization, tags and summaries."""

from .aggregator import build_report, process_cost_data, summarize_costs
from .models import (
    ColumnarCostResponse,
    CostRecord,
    ParameterSet,
    ResponseEnvelope,
    SummaryStatistics,
    TagMap,
)
from .normalizer import apply_tags, normalize_cost_rows, sort_cost_records
from .parameters import resolve_parameters, validate_parameters
