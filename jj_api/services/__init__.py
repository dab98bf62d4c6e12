from .journal import JournalService

__all__ = ["JournalService"]
