"""
Project snapshot repositories

The orchestrator never talks to the program-file parser directly; it asks a
repository for a ProjectSnapshot. The in-memory variant serves embedding and
tests, the JSON variant reads one ``<project_id>.json`` file per project.
"""

import json
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Union

from loguru import logger

from components.analysis.models import ProjectSnapshot


class ProjectNotFoundError(LookupError):
    """No snapshot exists for the requested project"""

    def __init__(self, project_id: str):
        super().__init__(f"Project not found: {project_id}")
        self.project_id = project_id


class NoAnalysisDataError(ValueError):
    """Project exists but has neither tags nor routines to analyze"""

    def __init__(self, project_id: str):
        super().__init__(f"No analysis data for project {project_id}: upload a program file first")
        self.project_id = project_id


class ProjectRepository(ABC):
    """Source of project snapshots"""

    @abstractmethod
    def get(self, project_id: str) -> Optional[ProjectSnapshot]:
        """Snapshot for the project, or None when unknown"""

    def load(self, project_id: str) -> ProjectSnapshot:
        snapshot = self.get(project_id)
        if snapshot is None:
            raise ProjectNotFoundError(project_id)
        return snapshot


class InMemoryProjectRepository(ProjectRepository):
    def __init__(self):
        self._snapshots: Dict[str, ProjectSnapshot] = {}
        self._lock = threading.Lock()

    def add(self, snapshot: ProjectSnapshot) -> None:
        with self._lock:
            self._snapshots[snapshot.project_id] = snapshot

    def get(self, project_id: str) -> Optional[ProjectSnapshot]:
        with self._lock:
            return self._snapshots.get(project_id)


class JsonProjectRepository(ProjectRepository):
    """Reads snapshots exported by the parser as ``<project_id>.json``"""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _path_for(self, project_id: str) -> Path:
        # Project ids become file names; reject anything that could escape the directory
        if not project_id or "/" in project_id or "\\" in project_id or project_id.startswith("."):
            raise ProjectNotFoundError(project_id)
        return self.directory / f"{project_id}.json"

    def get(self, project_id: str) -> Optional[ProjectSnapshot]:
        path = self._path_for(project_id)
        if not path.exists():
            return None

        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        data.setdefault("project_id", project_id)
        snapshot = ProjectSnapshot.from_dict(data)
        logger.debug(
            f"[ProjectRepository] Loaded {project_id}: {len(snapshot.tags)} tags, "
            f"{len(snapshot.references)} references, {len(snapshot.rungs)} rungs"
        )
        return snapshot
