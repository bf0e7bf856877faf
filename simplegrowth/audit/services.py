"""
Recording audit events from route handlers and webhook processors.

Entries are added to the caller's session and committed with the change
they describe.
"""
from typing import Any, Dict, List, Literal, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from simplegrowth.audit.models import AuditLog

EntityType = Literal[
    "user", "organization", "subscription", "project", "change_request", "lead",
    "invoice", "insight", "integration", "payroll",
]
SourceType = Literal["api", "stripe_webhook", "gusto_sync", "system", "admin"]


class AuditService:
    """
    Writes AuditLog rows on behalf of one actor.

        audit = AuditService(db, user_id=user.id, organization_id=org.id)
        await audit.log("organization", org.id, "organization_created", new_value={"name": org.name})
        await audit.log_update("project", project.id, {"status": ("submitted", "in_progress")})
    """

    def __init__(
        self,
        db: AsyncSession,
        user_id: Optional[str] = None,
        organization_id: Optional[str] = None,
        source: SourceType = "api",
    ):
        self.db = db
        self.user_id = user_id
        self.organization_id = organization_id
        self.source = source

    async def log(
        self,
        entity_type: EntityType,
        entity_id: str,
        action: str,
        field_name: Optional[str] = None,
        old_value: Optional[Any] = None,
        new_value: Optional[Any] = None,
        extra_data: Optional[Dict[str, Any]] = None,
        notes: Optional[str] = None,
    ) -> AuditLog:
        """Add one event to the session. ``old_value``/``new_value`` must be JSON-serializable."""
        entry = AuditLog(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            field_name=field_name,
            old_value=old_value,
            new_value=new_value,
            user_id=self.user_id,
            organization_id=self.organization_id,
            source=self.source,
            extra_data=extra_data,
            notes=notes,
        )
        self.db.add(entry)
        return entry

    async def log_update(
        self,
        entity_type: EntityType,
        entity_id: str,
        changes: Dict[str, Tuple[Any, Any]],
        notes: Optional[str] = None,
    ) -> List[AuditLog]:
        """One "update" row per field in ``changes`` whose value actually changed."""
        return [
            await self.log(
                entity_type,
                entity_id,
                "update",
                field_name=field_name,
                old_value=old_value,
                new_value=new_value,
                notes=notes,
            )
            for field_name, (old_value, new_value) in changes.items()
            if old_value != new_value
        ]
