"""
Invoice actions.

Accounting and tenant admins manage invoices. A PM may read the invoices
of projects they manage. Only drafts can be edited or deleted; everything
else moves through ``INVOICE_TRANSITIONS``.
"""
from apps.core.actions import with_auth
from apps.core.exceptions import AuthorizationDenied, DomainRuleViolated, ValidationFailed
from apps.core.validators import ensure_date_range, validate_input
from apps.invoices.models import (
    INVOICE_TRANSITIONS,
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    compute_totals,
    line_amount,
)
from apps.invoices.serializers import (
    InvoiceFieldsSerializer,
    InvoiceIdSerializer,
    InvoiceSerializer,
    InvoiceStatusSerializer,
    ListInvoicesSerializer,
    UpdateInvoiceSerializer,
)
from apps.projects.models import Project
from apps.rbac.audit import AuditEntry, write_audit_log
from apps.rbac.identity import has_role
from apps.rbac.models import Role
from apps.tenants.models import Tenant

ERR_NOT_FOUND = 'ERR-INV-001'
ERR_NOT_EDITABLE = 'ERR-INV-002'
ERR_TRANSITION = 'ERR-INV-003'
ERR_NOT_DELETABLE = 'ERR-INV-004'
ERR_FORBIDDEN = 'ERR-AUTH-004'

CLIENT_NAME_MAX_LENGTH = 200
MANAGER_ROLES = (Role.ACCOUNTING, Role.TENANT_ADMIN)


def _invalid(code, field, message):
    return ValidationFailed(message, code=code, fields={field: message})


def _ensure_manager(identity, tenant_id):
    if not has_role(identity, tenant_id, MANAGER_ROLES):
        raise AuthorizationDenied('Only accounting can manage invoices', code=ERR_FORBIDDEN)


def _managed_project_ids(identity, tenant_id):
    return list(
        Project.objects.for_tenant(tenant_id)
        .filter(pm_id=identity.id)
        .values_list('id', flat=True)
    )


def _validate_invoice(tenant_id, payload):
    """Check the invoice form and return its items with computed amounts."""
    client_name = payload.get('client_name') or ''
    if not client_name:
        raise _invalid('ERR-VAL-001', 'client_name', 'Client name is required')
    if len(client_name) > CLIENT_NAME_MAX_LENGTH:
        raise _invalid('ERR-VAL-002', 'client_name',
                       f'Client name must be {CLIENT_NAME_MAX_LENGTH} characters or fewer')
    if not payload.get('issued_date'):
        raise _invalid('ERR-VAL-003', 'issued_date', 'Issue date is required')
    if not payload.get('due_date'):
        raise _invalid('ERR-VAL-004', 'due_date', 'Due date is required')
    ensure_date_range(payload['issued_date'], payload['due_date'], code='ERR-VAL-004', field='due_date')

    project_id = payload.get('project_id')
    if project_id and not Project.objects.for_tenant(tenant_id).filter(pk=project_id).exists():
        raise _invalid('ERR-VAL-005', 'project_id', 'Project not found')

    items = payload.get('items') or []
    if not items:
        raise _invalid('ERR-VAL-006', 'items', 'Add at least one item')

    lines = []
    for index, item in enumerate(items):
        description = item.get('description') or ''
        quantity = item.get('quantity')
        unit_price = item.get('unit_price')
        if not description:
            raise _invalid('ERR-VAL-007', f'items.{index}.description', 'Description is required')
        if quantity is None or quantity <= 0:
            raise _invalid('ERR-VAL-008', f'items.{index}.quantity', 'Quantity must be greater than 0')
        if unit_price is None or unit_price < 0:
            raise _invalid('ERR-VAL-009', f'items.{index}.unit_price', 'Unit price must be 0 or more')
        lines.append({
            'description': description,
            'quantity': quantity,
            'unit_price': unit_price,
            'amount': line_amount(quantity, unit_price),
            'sort_order': index,
        })
    return lines


def _apply(invoice, payload, lines, using):
    """Copy the form onto ``invoice``, replace its items and recompute totals."""
    invoice.client_name = payload['client_name']
    invoice.project_id = payload.get('project_id')
    invoice.issued_date = payload['issued_date']
    invoice.due_date = payload['due_date']
    invoice.tax_rate = payload['tax_rate']
    invoice.notes = payload.get('notes') or ''
    invoice.subtotal, invoice.tax_amount, invoice.total_amount = compute_totals(
        [line['amount'] for line in lines], invoice.tax_rate,
    )
    invoice.save(using=using)

    invoice.items.all().delete()
    InvoiceItem.objects.db_manager(using).bulk_create([
        InvoiceItem(tenant_id=invoice.tenant_id, invoice=invoice, **line) for line in lines
    ])


def _get_invoice(tenant_id, invoice_id, for_update=False):
    qs = Invoice.objects.for_tenant(tenant_id)
    if for_update:
        qs = qs.select_for_update()
    invoice = qs.filter(pk=invoice_id).first()
    if invoice is None:
        raise DomainRuleViolated(ERR_NOT_FOUND, 'Invoice not found')
    return invoice


@with_auth
def create_invoice(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    _ensure_manager(identity, tenant_id)
    payload = validate_input(InvoiceFieldsSerializer, data)
    lines = _validate_invoice(tenant_id, payload)

    invoice = Invoice(
        tenant_id=tenant_id,
        invoice_number=Tenant.objects.next_invoice_number(tenant_id, using=ctx.using),
        status=InvoiceStatus.DRAFT,
        created_by_id=identity.id,
    )
    _apply(invoice, payload, lines, ctx.using)

    write_audit_log(ctx, identity.id, AuditEntry(
        tenant_id=tenant_id,
        action='invoice.create',
        resource_type='invoice',
        resource_id=invoice.id,
        after=invoice.snapshot(),
        metadata={'item_count': len(lines)},
    ))
    return InvoiceSerializer(invoice).data


@with_auth
def update_invoice(identity, ctx, data):
    """Replace a draft invoice's fields and items."""
    tenant_id = ctx.require_tenant()
    _ensure_manager(identity, tenant_id)
    payload = validate_input(UpdateInvoiceSerializer, data)

    invoice = _get_invoice(tenant_id, payload['invoice_id'], for_update=True)
    if invoice.status != InvoiceStatus.DRAFT:
        raise DomainRuleViolated(ERR_NOT_EDITABLE, 'Only draft invoices can be edited')
    lines = _validate_invoice(tenant_id, payload)

    before = invoice.snapshot()
    _apply(invoice, payload, lines, ctx.using)

    write_audit_log(ctx, identity.id, AuditEntry(
        tenant_id=tenant_id,
        action='invoice.update',
        resource_type='invoice',
        resource_id=invoice.id,
        before=before,
        after=invoice.snapshot(),
        metadata={'item_count': len(lines)},
    ))
    return InvoiceSerializer(invoice).data


@with_auth
def delete_invoice(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    _ensure_manager(identity, tenant_id)
    payload = validate_input(InvoiceIdSerializer, data)

    invoice = _get_invoice(tenant_id, payload['invoice_id'], for_update=True)
    if invoice.status != InvoiceStatus.DRAFT:
        raise DomainRuleViolated(ERR_NOT_DELETABLE, 'Only draft invoices can be deleted')

    before = invoice.snapshot()
    invoice.delete(using=ctx.using)

    write_audit_log(ctx, identity.id, AuditEntry(
        tenant_id=tenant_id,
        action='invoice.delete',
        resource_type='invoice',
        resource_id=invoice.id,
        before=before,
    ))
    return {'deleted': str(invoice.id)}


@with_auth
def update_invoice_status(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    _ensure_manager(identity, tenant_id)
    payload = validate_input(InvoiceStatusSerializer, data)

    invoice = _get_invoice(tenant_id, payload['invoice_id'], for_update=True)
    previous = invoice.status
    INVOICE_TRANSITIONS.ensure(previous, payload['status'], ERR_TRANSITION)

    invoice.status = payload['status']
    invoice.save(using=ctx.using, update_fields=['status', 'updated_at'])

    write_audit_log(ctx, identity.id, AuditEntry(
        tenant_id=tenant_id,
        action='invoice.status_change',
        resource_type='invoice',
        resource_id=invoice.id,
        before={'status': previous},
        after={'status': invoice.status},
    ))
    return InvoiceSerializer(invoice).data


@with_auth
def get_invoice(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    payload = validate_input(InvoiceIdSerializer, data)
    invoice = _get_invoice(tenant_id, payload['invoice_id'])

    if not has_role(identity, tenant_id, MANAGER_ROLES):
        allowed = (
            has_role(identity, tenant_id, [Role.PM])
            and invoice.project_id is not None
            and invoice.project_id in _managed_project_ids(identity, tenant_id)
        )
        if not allowed:
            raise AuthorizationDenied('You are not allowed to view this invoice', code=ERR_FORBIDDEN)
    return InvoiceSerializer(invoice).data


@with_auth
def list_invoices(identity, ctx, data):
    """
    Invoices newest first, optionally filtered by status, project and issue
    date range. A PM only sees invoices of the projects they manage.
    """
    tenant_id = ctx.require_tenant()
    payload = validate_input(ListInvoicesSerializer, data)
    ensure_date_range(payload.get('date_from'), payload.get('date_to'))

    qs = Invoice.objects.for_tenant(tenant_id).prefetch_related('items')
    if not has_role(identity, tenant_id, MANAGER_ROLES):
        if not has_role(identity, tenant_id, [Role.PM]):
            raise AuthorizationDenied('You are not allowed to view invoices', code=ERR_FORBIDDEN)
        qs = qs.filter(project_id__in=_managed_project_ids(identity, tenant_id))

    if payload.get('status'):
        qs = qs.filter(status=payload['status'])
    if payload.get('project_id'):
        qs = qs.filter(project_id=payload['project_id'])
    if payload.get('date_from'):
        qs = qs.filter(issued_date__gte=payload['date_from'])
    if payload.get('date_to'):
        qs = qs.filter(issued_date__lte=payload['date_to'])

    invoices = list(qs.order_by('-issued_date', '-created_at'))
    return {'data': InvoiceSerializer(invoices, many=True).data, 'count': len(invoices)}
