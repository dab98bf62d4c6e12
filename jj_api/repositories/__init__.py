from .base import ApprovalPolicy, JournalStore, OwnerLocks
from .documents import DocumentStore
from .relational import RelationalStore

__all__ = [
    "ApprovalPolicy",
    "DocumentStore",
    "JournalStore",
    "OwnerLocks",
    "RelationalStore",
]
