"""
Tenant model for multi-tenant isolation.

Every business row carries a tenant foreign key and every query is filtered
by it.
"""
from django.db import models, transaction

from apps.core.models import BaseModel


class TenantManager(models.Manager):
    """Manager for tenant queries."""

    def get_queryset(self):
        return super().get_queryset().filter(deleted_at__isnull=True)

    def by_slug(self, slug):
        return self.filter(slug=slug).first()

    def _next_seq(self, tenant_id, field, using=None):
        """
        Increment and return one of the tenant's counters.

        The tenant row is locked for the rest of the transaction so concurrent
        callers never receive the same number.
        """
        with transaction.atomic(using=using):
            tenant = (
                self.db_manager(using)
                .select_for_update()
                .only('id', field)
                .get(pk=tenant_id)
            )
            value = getattr(tenant, field) + 1
            setattr(tenant, field, value)
            tenant.save(update_fields=[field, 'updated_at'])
        return value

    def next_workflow_number(self, tenant_id, using=None):
        """Allocate the next workflow number for a tenant."""
        return Tenant.format_workflow_number(self._next_seq(tenant_id, 'workflow_seq', using))

    def next_invoice_number(self, tenant_id, using=None):
        """Allocate the next invoice number for a tenant."""
        return Tenant.format_invoice_number(self._next_seq(tenant_id, 'invoice_seq', using))


class Tenant(BaseModel):
    """
    An isolated customer organisation.

    ``settings`` holds contact details and preferences edited by tenant
    admins (see ``TENANT_SETTING_KEYS`` in ``apps.tenants.serializers``).
    """
    WORKFLOW_NUMBER_PREFIX = 'WF'
    INVOICE_NUMBER_PREFIX = 'INV'

    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=100, unique=True)
    settings = models.JSONField(default=dict, blank=True)
    workflow_seq = models.PositiveIntegerField(
        default=0,
        help_text="Last workflow number issued in this tenant"
    )
    invoice_seq = models.PositiveIntegerField(
        default=0,
        help_text="Last invoice number issued in this tenant"
    )

    objects = TenantManager()

    class Meta:
        db_table = 'tenants'
        ordering = ['name']

    def __str__(self):
        return self.name

    @classmethod
    def format_workflow_number(cls, seq):
        return f"{cls.WORKFLOW_NUMBER_PREFIX}-{seq:06d}"

    @classmethod
    def format_invoice_number(cls, seq):
        return f"{cls.INVOICE_NUMBER_PREFIX}-{seq:06d}"
