"""Errors raised by the user ROI pipeline.

Row-level anomalies (MalformedRecord, MissingCostReference) are normally
counted and the offending rows dropped; they are only raised when a run is
configured strict. Everything else aborts the run before any output is
written.
"""


class PipelineError(Exception):
    """Base class for all pipeline failures"""


class RowAnomaly(PipelineError):
    """A row-level problem that a non-strict run recovers from"""

    category = None

    def __init__(self, feed, count, message=None):
        self.feed = feed
        self.count = count
        super().__init__(message or f"{count} {self.category} row(s) in {feed}")


class MalformedRecord(RowAnomaly):
    category = "malformed"


class MissingCostReference(RowAnomaly):
    category = "missing_cost_reference"


class DuplicateKey(PipelineError):
    """A key that must be unique is not; downstream joins would fan out"""

    def __init__(self, dataset, key, duplicates):
        self.dataset = dataset
        self.key = key
        self.duplicates = list(duplicates)
        sample = ", ".join(str(value) for value in self.duplicates[:5])
        super().__init__(f"Duplicate {key} in {dataset}: {sample}")


class DataTestFailure(PipelineError):
    """An output data test failed"""

    def __init__(self, test_name, dataset, column, failures):
        self.test_name = test_name
        self.dataset = dataset
        self.column = column
        self.failures = failures
        super().__init__(f"{test_name} test failed on {dataset}.{column}: {failures} failing row(s)")


class MissingSourceError(PipelineError):
    """An input feed could not be read"""


class MaterializationError(PipelineError):
    """Outputs could not be written; previous outputs are left in place"""
