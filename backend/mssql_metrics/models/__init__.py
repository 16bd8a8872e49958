from .metric_record import GatherResult, MetricRecord, UnitOutcome

__all__ = ["GatherResult", "MetricRecord", "UnitOutcome"]
