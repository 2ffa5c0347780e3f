"""Local persistence stores."""

from .local_storage import LocalStorage
from .annotation_store import AnnotationStore
from .workspace_store import WorkspaceStore, DEFAULT_WATCHLIST, SETTING_KEYS

__all__ = ["LocalStorage", "AnnotationStore", "WorkspaceStore", "DEFAULT_WATCHLIST", "SETTING_KEYS"]
