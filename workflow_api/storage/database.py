from __future__ import annotations

import datetime
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session

from workflow_api.db.models import WorkflowRecord
from workflow_api.domain.errors import NotFoundError, VersionConflictError
from workflow_api.domain.graph import WorkflowGraph
from workflow_api.storage.interface import WorkflowStore, summarize

logger = logging.getLogger(__name__)


class SqlWorkflowStore(WorkflowStore):
    """
    Stores workflows in the ``workflows`` table.

    Saves are a single guarded UPDATE (``WHERE version = :expected``), so
    the version check and the write happen atomically in the database
    even with several API processes.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    @staticmethod
    def _summary(record: WorkflowRecord) -> Dict[str, Any]:
        return summarize(
            workflow_id=record.id,
            name=record.name,
            description=record.description or "",
            graph=WorkflowGraph.from_wire(record.graph),
            version=record.version,
            created_at=record.created_at.isoformat(),
            updated_at=record.updated_at.isoformat(),
        )

    @staticmethod
    def _require(db: Session, workflow_id: str) -> WorkflowRecord:
        record = db.get(WorkflowRecord, workflow_id)
        if record is None:
            raise NotFoundError(f"Workflow {workflow_id} not found")
        return record

    def create(self, name: str, description: str = "", graph: Optional[WorkflowGraph] = None) -> Dict[str, Any]:
        graph = graph.model_copy(deep=True) if graph is not None else WorkflowGraph()
        graph.version = 0
        now = datetime.datetime.now()
        with self.session_factory() as db:
            record = WorkflowRecord(
                name=name,
                description=description or "",
                graph=graph.to_wire(),
                version=0,
                created_at=now,
                updated_at=now,
            )
            db.add(record)
            db.commit()
            db.refresh(record)
            return self._summary(record)

    def get(self, workflow_id: str) -> Dict[str, Any]:
        with self.session_factory() as db:
            return self._summary(self._require(db, workflow_id))

    def list(self) -> List[Dict[str, Any]]:
        with self.session_factory() as db:
            records = db.query(WorkflowRecord).order_by(WorkflowRecord.created_at, WorkflowRecord.id).all()
            return [self._summary(record) for record in records]

    def load(self, workflow_id: str) -> Tuple[WorkflowGraph, int]:
        with self.session_factory() as db:
            record = self._require(db, workflow_id)
            graph = WorkflowGraph.from_wire(record.graph)
            graph.version = record.version
            return graph, record.version

    def save(self, workflow_id: str, graph: WorkflowGraph, expected_version: int) -> int:
        stored = graph.model_copy(deep=True)
        stored.version = expected_version
        new_version = stored.bump_version()

        with self.session_factory() as db:
            result = db.execute(
                update(WorkflowRecord)
                .where(WorkflowRecord.id == workflow_id, WorkflowRecord.version == expected_version)
                .values(graph=stored.to_wire(), version=new_version, updated_at=datetime.datetime.now())
            )
            if result.rowcount != 1:
                db.rollback()
                record = self._require(db, workflow_id)
                raise VersionConflictError(workflow_id, expected_version, record.version)
            db.commit()
        return new_version

    def update_details(self, workflow_id: str, name: Optional[str] = None,
                       description: Optional[str] = None) -> Dict[str, Any]:
        with self.session_factory() as db:
            record = self._require(db, workflow_id)
            if name is not None:
                record.name = name
            if description is not None:
                record.description = description
            record.updated_at = datetime.datetime.now()
            db.commit()
            db.refresh(record)
            return self._summary(record)

    def delete(self, workflow_id: str) -> Dict[str, Any]:
        with self.session_factory() as db:
            record = self._require(db, workflow_id)
            summary = self._summary(record)
            db.delete(record)
            db.commit()
            return summary
