"""Run report: anomaly counts and output sizes for one pipeline run"""

import json
import logging
from datetime import datetime, timezone

from fitness_roi.exceptions import MalformedRecord, MissingCostReference

logger = logging.getLogger(__name__)

# Row-level categories a strict run escalates to exceptions
STRICT_CATEGORIES = {
    "malformed_": MalformedRecord,
    "missing_cost_reference": MissingCostReference,
}


def anomaly_class(category):
    for prefix, exception_class in STRICT_CATEGORIES.items():
        if category.startswith(prefix):
            return exception_class
    return None


class RunReport:
    def __init__(self, run_id, environment, processing_date, strict=False):
        self.run_id = run_id
        self.environment = environment
        self.processing_date = processing_date
        self.strict = strict
        self.started_at = datetime.now(timezone.utc)
        self.finished_at = None
        self.status = "running"
        self.anomalies = {}
        self.outputs = {}
        self.locations = {}
        self.quality = {}

    def record_anomalies(self, source, anomalies):
        """Add anomaly counts from a task; raises in strict mode"""
        for category, count in anomalies.items():
            self.anomalies[category] = self.anomalies.get(category, 0) + count
            if not count:
                continue

            logger.info(f"{source}: {count} {category}")
            exception_class = anomaly_class(category)
            if self.strict and exception_class is not None:
                raise exception_class(source, count, f"{count} {category} row(s) in {source} (strict run)")

    def record_output(self, table_name, row_count, location=None):
        self.outputs[table_name] = row_count
        if location is not None:
            self.locations[table_name] = location

    def finish(self, status):
        self.status = status
        self.finished_at = datetime.now(timezone.utc)

    def to_dict(self):
        return {
            "run_id": self.run_id,
            "environment": self.environment,
            "processing_date": self.processing_date.strftime("%Y-%m-%d"),
            "status": self.status,
            "strict": self.strict,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "anomalies": dict(sorted(self.anomalies.items())),
            "outputs": self.outputs,
            "locations": self.locations,
            "quality": self.quality,
        }

    def to_json(self):
        return json.dumps(self.to_dict(), indent=2)
