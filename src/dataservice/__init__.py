from .trace_store import TraceStore, parse_record
from .output_writer import OutputWriter

__all__ = [
    "TraceStore",
    "parse_record",
    "OutputWriter",
]
