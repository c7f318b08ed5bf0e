"""
Project library: named collections of reference files.

Each project caches the full text of its files at the time they are added.
Exactly one project may be active; its files form a context block that is
included in every conversation regardless of ad-hoc retrieval.

The whole project list is persisted as one JSON value. Every mutation works
on a copy, persists it, and only then replaces the in-memory list, so the
stored set and the in-memory set never disagree about which project is
active.
"""

import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, ValidationError

from omnirag.errors import CorruptRecord
from omnirag.library.storage import KeyValueStore
from omnirag.retrieval.extractors import ContentExtractor

logger = logging.getLogger(__name__)

PROJECTS_KEY = "omnirag.library.projects"
DEFAULT_PROJECT_NAME = "Default Project"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class LibraryFile(BaseModel):
    """A file in a project, with its content cached at add time."""

    id: UUID = Field(default_factory=uuid4)
    name: str
    url: str
    content: str
    added_at: datetime = Field(default_factory=_now)


class Project(BaseModel):
    """A named collection of reference files."""

    id: UUID = Field(default_factory=uuid4)
    name: str
    is_active: bool = False
    files: list[LibraryFile] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)
    system_prompt: str = ""


class ProjectNotFound(KeyError):
    """No project with the given id."""


class ProjectLibrary:
    """
    Create, edit and activate projects.

    Example:
        >>> library = ProjectLibrary(KeyValueStore("data/library.json"), extractor)
        >>> project = library.create_project("Thesis")
        >>> library.add_file(project.id, Path("chapter1.md"))
        >>> library.set_active_project(project.id)
        >>> context = library.active_context()
    """

    def __init__(self, storage: KeyValueStore, extractor: ContentExtractor) -> None:
        self.storage = storage
        self.extractor = extractor
        self._lock = threading.RLock()
        self._projects: list[Project] = self._load()

    # ==========================================================================
    # Persistence
    # ==========================================================================

    def _load(self) -> list[Project]:
        raw = self.storage.get(PROJECTS_KEY)
        if raw is None:
            logger.info("No stored projects, creating default project")
            projects = [Project(name=DEFAULT_PROJECT_NAME, is_active=True)]
            self._save(projects)
            return projects

        if not isinstance(raw, list):
            raise CorruptRecord(f"Stored projects under '{PROJECTS_KEY}' are not a list")
        try:
            return [Project.model_validate(item) for item in raw]
        except ValidationError as e:
            raise CorruptRecord(f"Stored projects are invalid: {e.error_count()} errors") from e

    def _save(self, projects: list[Project]) -> None:
        self.storage.set(PROJECTS_KEY, [p.model_dump(mode="json") for p in projects])

    def _mutate(self, change: Callable[[list[Project]], None]) -> None:
        """Apply change to a copy, persist it, then publish it."""
        with self._lock:
            updated = [p.model_copy(deep=True) for p in self._projects]
            change(updated)
            self._save(updated)
            self._projects = updated

    @staticmethod
    def _find(projects: list[Project], project_id: UUID) -> Project:
        for project in projects:
            if project.id == project_id:
                return project
        raise ProjectNotFound(str(project_id))

    # ==========================================================================
    # Queries
    # ==========================================================================

    @property
    def projects(self) -> list[Project]:
        """Snapshot of all projects."""
        with self._lock:
            return [p.model_copy(deep=True) for p in self._projects]

    def get_project(self, project_id: UUID) -> Optional[Project]:
        with self._lock:
            for project in self._projects:
                if project.id == project_id:
                    return project.model_copy(deep=True)
        return None

    @property
    def active_project(self) -> Optional[Project]:
        with self._lock:
            for project in self._projects:
                if project.is_active:
                    return project.model_copy(deep=True)
        return None

    # ==========================================================================
    # Project management
    # ==========================================================================

    def create_project(self, name: str) -> Project:
        project = Project(name=name)
        self._mutate(lambda projects: projects.append(project))
        logger.info(f"Created project '{name}'")
        return project.model_copy(deep=True)

    def delete_project(self, project_id: UUID) -> None:
        def change(projects: list[Project]) -> None:
            projects.remove(self._find(projects, project_id))

        self._mutate(change)

    def rename_project(self, project_id: UUID, new_name: str) -> None:
        def change(projects: list[Project]) -> None:
            self._find(projects, project_id).name = new_name

        self._mutate(change)

    def set_system_prompt(self, project_id: UUID, prompt: str) -> None:
        def change(projects: list[Project]) -> None:
            self._find(projects, project_id).system_prompt = prompt

        self._mutate(change)

    def set_active_project(self, project_id: UUID) -> None:
        """Activate a project and deactivate every other one."""

        def change(projects: list[Project]) -> None:
            target = self._find(projects, project_id)
            for project in projects:
                project.is_active = project is target

        self._mutate(change)
        logger.info(f"Activated project {project_id}")

    def toggle_project_active(self, project_id: UUID) -> None:
        """Deactivate an active project, or activate an inactive one exclusively."""

        def change(projects: list[Project]) -> None:
            target = self._find(projects, project_id)
            if target.is_active:
                target.is_active = False
                return
            for project in projects:
                project.is_active = project is target

        self._mutate(change)

    # ==========================================================================
    # File management
    # ==========================================================================

    def add_file(self, project_id: UUID, path: Path) -> Optional[LibraryFile]:
        """
        Read a file once and cache it in a project.

        Returns:
            The new LibraryFile, or None if the project already has this file

        Raises:
            UnreadableFile: If the file cannot be read
            ProjectNotFound: If the project does not exist
        """
        path = Path(path)
        url = str(path.expanduser().resolve())
        project = self.get_project(project_id)
        if project is None:
            raise ProjectNotFound(str(project_id))
        if any(f.url == url for f in project.files):
            logger.debug(f"{path.name} already in project '{project.name}'")
            return None

        # Extraction (possibly OCR) runs without holding the library lock
        content = self.extractor.extract(path)
        library_file = LibraryFile(name=path.name, url=url, content=content)
        added = False

        def change(projects: list[Project]) -> None:
            nonlocal added
            target = self._find(projects, project_id)
            if any(f.url == url for f in target.files):
                return
            target.files.append(library_file)
            added = True

        self._mutate(change)
        if not added:
            logger.debug(f"{path.name} was added to project '{project.name}' concurrently")
            return None

        logger.info(f"Added {path.name} to project '{project.name}' ({len(content):,} chars)")
        return library_file

    def remove_file(self, project_id: UUID, file_id: UUID) -> None:
        def change(projects: list[Project]) -> None:
            project = self._find(projects, project_id)
            project.files = [f for f in project.files if f.id != file_id]

        self._mutate(change)

    # ==========================================================================
    # Context
    # ==========================================================================

    def active_context(self) -> str:
        """Concatenated file contents of the active project, or ''."""
        project = self.active_project
        if project is None or not project.files:
            return ""
        return "# Reference Library Context\n\n" + _file_sections(project)

    def context_for(self, project: Project) -> str:
        """Context block for a specific project, naming it in the header."""
        if not project.files:
            return ""
        header = (
            f"# Reference Library Context: {project.name}\n"
            f"(This chat is using {len(project.files)} file(s) as a source of truth.)\n\n---\n\n"
        )
        return header + _file_sections(project)


def _file_sections(project: Project) -> str:
    return "".join(
        f"## File: {f.name}\n\n{f.content}\n\n---\n\n" for f in project.files
    )
