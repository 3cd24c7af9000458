"""
Contact worklist package: models, reconciliation rules and the Load/Move
service.

Re-exports the names the API routes and CLI commands use.
"""

from .errors import MissingColumnsError, StoreReadError, StoreWriteError, WorklistError  # noqa: F401
from .models import IssueLogEntry, SentLogEntry, SourceRow, Status, Tag, WorkRow  # noqa: F401
from .service import LoadResult, MoveResult, WorklistService  # noqa: F401
