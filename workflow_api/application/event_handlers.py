"""Event handlers for domain events."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from workflow_api.domain.events import (
        WorkflowCreated,
        WorkflowDeleted,
        WorkflowSaved,
        WorkflowSaveRejected,
    )

logger = logging.getLogger(__name__)


class AuditLogHandler:
    """Logs all domain events for audit trail."""

    def handle_workflow_created(self, event: WorkflowCreated) -> None:
        logger.info(f"[AUDIT] Workflow created: {event.aggregate_id} - {event.name}")

    def handle_workflow_deleted(self, event: WorkflowDeleted) -> None:
        logger.info(f"[AUDIT] Workflow deleted: {event.aggregate_id} - {event.name}")

    def handle_workflow_saved(self, event: WorkflowSaved) -> None:
        logger.info(
            f"[AUDIT] Workflow graph saved: {event.aggregate_id} v{event.version} "
            f"({event.node_count} nodes, {event.edge_count} edges, {event.warning_count} warnings)"
        )

    def handle_save_rejected(self, event: WorkflowSaveRejected) -> None:
        logger.warning(
            f"[AUDIT] Workflow save rejected: {event.aggregate_id} "
            f"(based on v{event.expected_version}, {event.error_count} errors)"
        )


audit_handler = AuditLogHandler()


def register_event_handlers():
    """Register all event handlers with the publisher."""
    from workflow_api.domain.events import (
        event_publisher,
        WorkflowCreated,
        WorkflowDeleted,
        WorkflowSaved,
        WorkflowSaveRejected,
    )

    event_publisher.subscribe(WorkflowCreated, audit_handler.handle_workflow_created)
    event_publisher.subscribe(WorkflowDeleted, audit_handler.handle_workflow_deleted)
    event_publisher.subscribe(WorkflowSaved, audit_handler.handle_workflow_saved)
    event_publisher.subscribe(WorkflowSaveRejected, audit_handler.handle_save_rejected)
