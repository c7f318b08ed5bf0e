"""
Reference libraries whose content is always available as context.

Components:
    - projects: Named file collections with a single active project
    - sources: Global references to files resolved on demand
    - storage: JSON key-value persistence
"""

from omnirag.library.projects import LibraryFile, Project, ProjectLibrary, ProjectNotFound
from omnirag.library.sources import BookmarkCodec, GlobalSourceLibrary, LibraryFileRef
from omnirag.library.storage import KeyValueStore

__all__ = [
    "LibraryFile",
    "Project",
    "ProjectLibrary",
    "ProjectNotFound",
    "BookmarkCodec",
    "GlobalSourceLibrary",
    "LibraryFileRef",
    "KeyValueStore",
]
