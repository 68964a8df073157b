"""Fiscal document numbering, hash chaining and SAF-T (PT) reporting."""

__version__ = "0.1.0"

from .atcud import generate as generate_unique_code
from .emission import DocumentEmitter, create_draft, emit_with_retry
from .exporter import export_audit_file, export_period, list_report_periods
from .hashchain import derive_code, verify_chain
from .sequencing import DocumentSequencer, format_label
from .validator import summarize, validate

__all__ = [
    "DocumentEmitter",
    "DocumentSequencer",
    "create_draft",
    "derive_code",
    "emit_with_retry",
    "export_audit_file",
    "export_period",
    "format_label",
    "generate_unique_code",
    "list_report_periods",
    "summarize",
    "validate",
    "verify_chain",
]
