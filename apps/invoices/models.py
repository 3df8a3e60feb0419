"""
Client invoices and their line items.

Amounts are derived from the items when an invoice is saved through the
actions: each item is quantity times unit price rounded to the cent, tax is
the subtotal times the rate rounded down.
"""
import uuid
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal

from django.conf import settings
from django.db import models

from apps.core.models import BaseModel
from apps.core.transitions import TransitionTable

CENT = Decimal('0.01')
DEFAULT_TAX_RATE = Decimal('10')


class InvoiceStatus(models.TextChoices):
    DRAFT = 'draft', 'Draft'
    SENT = 'sent', 'Sent'
    PAID = 'paid', 'Paid'
    CANCELLED = 'cancelled', 'Cancelled'


INVOICE_TRANSITIONS = TransitionTable('invoice', {
    InvoiceStatus.DRAFT: [InvoiceStatus.SENT, InvoiceStatus.CANCELLED],
    InvoiceStatus.SENT: [InvoiceStatus.PAID, InvoiceStatus.CANCELLED],
    InvoiceStatus.PAID: [],
    InvoiceStatus.CANCELLED: [],
})


def line_amount(quantity, unit_price):
    return (quantity * unit_price).quantize(CENT, ROUND_HALF_UP)


def compute_totals(amounts, tax_rate):
    """Return ``(subtotal, tax_amount, total_amount)`` for item amounts."""
    subtotal = sum(amounts, Decimal('0'))
    tax_amount = (subtotal * tax_rate / 100).quantize(CENT, ROUND_DOWN)
    return subtotal, tax_amount, subtotal + tax_amount


class Invoice(BaseModel):
    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        related_name='invoices',
    )
    invoice_number = models.CharField(max_length=20)
    client_name = models.CharField(max_length=200)
    project = models.ForeignKey(
        'projects.Project',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='invoices',
    )
    issued_date = models.DateField(db_index=True)
    due_date = models.DateField()
    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=DEFAULT_TAX_RATE)
    tax_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    total_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    status = models.CharField(
        max_length=20,
        choices=InvoiceStatus.choices,
        default=InvoiceStatus.DRAFT,
        db_index=True,
    )
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='+',
    )

    class Meta:
        db_table = 'invoices'
        ordering = ['-issued_date', '-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['tenant', 'invoice_number'],
                name='unique_invoice_number_per_tenant',
            ),
        ]
        indexes = [
            models.Index(fields=['tenant', 'status']),
            models.Index(fields=['tenant', 'project']),
        ]

    def __str__(self):
        return f"{self.invoice_number} {self.client_name}"


class InvoiceItem(models.Model):
    """Line item; replacing an invoice's items deletes the old rows."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        related_name='+',
    )
    invoice = models.ForeignKey(
        Invoice,
        on_delete=models.CASCADE,
        related_name='items',
    )
    description = models.CharField(max_length=500)
    quantity = models.DecimalField(max_digits=10, decimal_places=2)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = 'invoice_items'
        ordering = ['sort_order']

    def __str__(self):
        return self.description
