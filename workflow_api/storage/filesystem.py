from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from workflow_api.domain.errors import NotFoundError, VersionConflictError
from workflow_api.domain.graph import WorkflowGraph
from workflow_api.storage.interface import WorkflowStore, summarize

logger = logging.getLogger(__name__)

_WORKFLOW_ID = re.compile(r"^[A-Za-z0-9_-]+$")

# Serializes read-check-write cycles of every store instance in this process
_write_lock = threading.RLock()


class FilesystemWorkflowStore(WorkflowStore):
    """
    Stores each workflow as one JSON document in a directory.

    Documents are replaced atomically (temp file + rename), so readers
    always see either the previous or the new ``(graph, version)`` pair.
    """

    def __init__(self, base_dir: str = None):
        """
        Initialize filesystem storage.

        Args:
            base_dir: Directory holding workflow documents.
                      If None, uses 'workflows' in the current working directory.
        """
        if base_dir is None:
            base_dir = os.path.join(os.getcwd(), "workflows")

        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, workflow_id: str) -> Path:
        if not _WORKFLOW_ID.match(workflow_id or ""):
            raise NotFoundError(f"Workflow {workflow_id} not found")
        return self.base_dir / f"{workflow_id}.json"

    def _read(self, workflow_id: str) -> Dict[str, Any]:
        path = self._path(workflow_id)
        if not path.exists():
            raise NotFoundError(f"Workflow {workflow_id} not found")
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)

    def _write(self, document: Dict[str, Any]) -> None:
        path = self._path(document["id"])
        fd, tmp_name = tempfile.mkstemp(dir=self.base_dir, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    @staticmethod
    def _summary(document: Dict[str, Any]) -> Dict[str, Any]:
        graph = WorkflowGraph.from_wire(document["graph"])
        return summarize(
            workflow_id=document["id"],
            name=document["name"],
            description=document.get("description", ""),
            graph=graph,
            version=document["version"],
            created_at=document["created_at"],
            updated_at=document["updated_at"],
        )

    def create(self, name: str, description: str = "", graph: Optional[WorkflowGraph] = None) -> Dict[str, Any]:
        graph = graph.model_copy(deep=True) if graph is not None else WorkflowGraph()
        graph.version = 0
        now = datetime.now().isoformat()
        document = {
            "id": str(uuid4()),
            "name": name,
            "description": description or "",
            "version": 0,
            "created_at": now,
            "updated_at": now,
            "graph": graph.to_wire(),
        }
        with _write_lock:
            self._write(document)
        logger.debug(f"Created workflow document {document['id']}")
        return self._summary(document)

    def get(self, workflow_id: str) -> Dict[str, Any]:
        return self._summary(self._read(workflow_id))

    def list(self) -> List[Dict[str, Any]]:
        summaries = []
        for path in self.base_dir.glob("*.json"):
            try:
                summaries.append(self.get(path.stem))
            except NotFoundError:
                # Deleted between glob and read
                continue
        return sorted(summaries, key=lambda s: (s["created_at"], s["id"]))

    def load(self, workflow_id: str) -> Tuple[WorkflowGraph, int]:
        document = self._read(workflow_id)
        graph = WorkflowGraph.from_wire(document["graph"])
        graph.version = document["version"]
        return graph, document["version"]

    def save(self, workflow_id: str, graph: WorkflowGraph, expected_version: int) -> int:
        with _write_lock:
            document = self._read(workflow_id)
            current_version = document["version"]
            if current_version != expected_version:
                raise VersionConflictError(workflow_id, expected_version, current_version)

            stored = graph.model_copy(deep=True)
            stored.version = current_version
            new_version = stored.bump_version()

            document["graph"] = stored.to_wire()
            document["version"] = new_version
            document["updated_at"] = datetime.now().isoformat()
            self._write(document)
        return new_version

    def update_details(self, workflow_id: str, name: Optional[str] = None,
                       description: Optional[str] = None) -> Dict[str, Any]:
        with _write_lock:
            document = self._read(workflow_id)
            if name is not None:
                document["name"] = name
            if description is not None:
                document["description"] = description
            document["updated_at"] = datetime.now().isoformat()
            self._write(document)
        return self._summary(document)

    def delete(self, workflow_id: str) -> Dict[str, Any]:
        with _write_lock:
            summary = self.get(workflow_id)
            self._path(workflow_id).unlink()
        return summary
