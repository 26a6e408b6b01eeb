"""Model response decoding package."""

from editforge.decoding.envelope import decode, extract_files_object, validate_entries
from editforge.decoding.models import EditSet, GenerationMeta, SkippedEntry, StreamingStatus
from editforge.decoding.plan import FilePlan, batch_continuation_prompt, parse_plan_header
from editforge.decoding.salvage import salvage

__all__ = [
    "EditSet",
    "FilePlan",
    "GenerationMeta",
    "SkippedEntry",
    "StreamingStatus",
    "batch_continuation_prompt",
    "decode",
    "extract_files_object",
    "parse_plan_header",
    "salvage",
    "validate_entries",
]
