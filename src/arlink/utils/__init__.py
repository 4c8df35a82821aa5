from .formatting import format_file_size
from .redact import redact

__all__ = [
    "format_file_size",
    "redact",
]
