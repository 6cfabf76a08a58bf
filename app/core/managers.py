"""
Managers and querysets for soft-deletable models.

Usage:
    from core.managers import SoftDeleteManager

    class NotificationRecipient(SoftDeleteMixin, BaseModel):
        objects = SoftDeleteManager()  # Excludes deleted by default
        all_objects = models.Manager()  # Includes deleted rows

    NotificationRecipient.objects.filter(recipient_id="alice").delete()
    NotificationRecipient.all_objects.filter(is_deleted=True).count()
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone


class SoftDeleteQuerySet(models.QuerySet):
    """
    QuerySet whose delete() marks rows instead of removing them.

    Methods:
        delete(): Soft delete (marks is_deleted=True)
    """

    def delete(self) -> tuple[int, dict[str, int]]:
        """
        Soft delete every active object in the queryset with one UPDATE.

        Returns:
            Tuple of (count, {model_label: count}) matching Django's delete()
        """
        now = timezone.now()
        changes = {"is_deleted": True, "deleted_at": now}
        if any(f.name == "updated_at" for f in self.model._meta.concrete_fields):
            # QuerySet.update() bypasses auto_now
            changes["updated_at"] = now
        count = self.filter(is_deleted=False).update(**changes)
        return count, {self.model._meta.label: count}


class SoftDeleteManager(models.Manager):
    """
    Manager that filters out soft-deleted records by default.

    Always pair with a plain Manager (``all_objects``) for code that must
    see deleted rows, such as counter reconciliation.
    """

    def get_queryset(self) -> SoftDeleteQuerySet:
        return SoftDeleteQuerySet(self.model, using=self._db).filter(is_deleted=False)
