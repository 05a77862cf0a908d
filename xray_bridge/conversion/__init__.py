"""
Result Conversion Module.

Converts Cypress run results into Xray execution reports:
- Run-result layout detection and validation (Cypress 12 and 13+).
- Normalization into canonical test records.
- Execution report assembly and Xray JSON serialization.
"""

from xray_bridge.conversion.models import (
    Attachment,
    CanonicalTestRecord,
    ExecutionReport,
    Status,
    StepResult,
)
from xray_bridge.conversion.normalizer import UnknownStatusError, normalize
from xray_bridge.conversion.report_builder import ExecutionReportBuilder, build
from xray_bridge.conversion.run_result import RunResultShape, SchemaMismatchError

__all__ = [
    "Attachment",
    "CanonicalTestRecord",
    "ExecutionReport",
    "ExecutionReportBuilder",
    "RunResultShape",
    "SchemaMismatchError",
    "Status",
    "StepResult",
    "UnknownStatusError",
    "build",
    "normalize",
]
