"""
Core models for OpsHub.
Provides BaseModel with UUID primary keys, soft delete, and timestamp fields,
plus tenant-scoped querysets shared by every business model.
"""
import uuid
from django.db import models
from django.utils import timezone


class TenantScopedQuerySet(models.QuerySet):
    """QuerySet with soft delete support and a tenant filter."""

    def for_tenant(self, tenant_id):
        """Restrict rows to one tenant. Every business query goes through this."""
        return self.filter(tenant_id=tenant_id)

    def delete(self):
        """Soft delete all objects in queryset."""
        return self.update(deleted_at=timezone.now())

    def hard_delete(self):
        """Permanently delete all objects in queryset."""
        return super().delete()


class ActiveManager(models.Manager):
    """Manager that excludes soft-deleted objects by default."""

    def get_queryset(self):
        return super().get_queryset().filter(deleted_at__isnull=True)


class BaseModel(models.Model):
    """
    Abstract base model with UUID primary key, soft delete, and timestamps.
    """
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
    )

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(null=True, blank=True, db_index=True)

    objects = ActiveManager.from_queryset(TenantScopedQuerySet)()
    objects_with_deleted = models.Manager.from_queryset(TenantScopedQuerySet)()

    class Meta:
        abstract = True
        ordering = ['-created_at']

    def delete(self, using=None, keep_parents=False):
        """Soft delete the object."""
        self.deleted_at = timezone.now()
        self.save(using=using, update_fields=['deleted_at', 'updated_at'])

    def hard_delete(self, using=None, keep_parents=False):
        """Permanently delete the object."""
        super().delete(using=using, keep_parents=keep_parents)

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    def snapshot(self, fields=None):
        """
        Column values keyed by attribute name, for audit before/after data.

        Foreign keys appear as their ``<name>_id`` attribute. Values are left
        as Python objects; the audit JSON field encodes dates, UUIDs and
        decimals.
        """
        data = {}
        for field in self._meta.concrete_fields:
            if fields is not None and field.name not in fields and field.attname not in fields:
                continue
            data[field.attname] = field.value_from_object(self)
        return data
