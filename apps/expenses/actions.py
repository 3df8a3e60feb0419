"""
Expense claim actions.

Creating an expense also opens the expense workflow that carries its
approval. Accounting and tenant admins see every claim in the tenant,
everyone else only their own. The summary actions aggregate claims for
accounting, PMs and tenant admins.
"""
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal

from django.db.models import Count, Max, Sum
from django.db.models.functions import TruncMonth

from apps.core.actions import with_auth
from apps.core.exceptions import AuthorizationDenied, DomainRuleViolated, ValidationFailed
from apps.core.validators import ensure_date_range, validate_input
from apps.expenses.models import MAX_AMOUNT, Expense, ExpenseCategory
from apps.expenses.serializers import (
    CreateExpenseSerializer,
    ExpenseIdSerializer,
    ExpenseSerializer,
    ExpenseSummarySerializer,
    ListExpensesSerializer,
)
from apps.notifications.models import NotificationType
from apps.notifications.services import create_notification
from apps.projects.models import Project, ProjectStatus
from apps.rbac.audit import AuditEntry, write_audit_log
from apps.rbac.identity import ensure_role, has_role
from apps.rbac.models import Role, UserRole
from apps.tenants.models import Tenant
from apps.workflows.models import Workflow, WorkflowStatus, WorkflowType

ERR_NOT_FOUND = 'ERR-EXP-001'
ERR_SUMMARY_RANGE = 'ERR-VAL-010'

APPROVER_ROLES = (Role.APPROVER, Role.ACCOUNTING, Role.TENANT_ADMIN)
FULL_ACCESS_ROLES = (Role.ACCOUNTING, Role.TENANT_ADMIN)
SUMMARY_ROLES = (Role.ACCOUNTING, Role.PM, Role.TENANT_ADMIN)


def _invalid(code, field, message):
    return ValidationFailed(message, code=code, fields={field: message})


def _validate_claim(tenant_id, payload):
    category = payload.get('category')
    if category not in ExpenseCategory.values:
        raise _invalid('ERR-VAL-001', 'category', 'Select a valid category')

    amount = payload.get('amount')
    if amount is None or amount <= 0 or amount > MAX_AMOUNT:
        raise _invalid('ERR-VAL-002', 'amount', f'Amount must be greater than 0 and at most {MAX_AMOUNT}')

    if not payload.get('expense_date'):
        raise _invalid('ERR-VAL-003', 'expense_date', 'Expense date is required')

    project_id = payload.get('project_id')
    if not project_id or not Project.objects.for_tenant(tenant_id).filter(pk=project_id).exists():
        raise _invalid('ERR-VAL-004', 'project_id', 'Select a project')

    approver_id = payload.get('approver_id')
    eligible = approver_id and UserRole.objects.for_tenant(tenant_id).filter(
        user_id=approver_id,
        role__in=APPROVER_ROLES,
        user__is_active=True,
    ).exists()
    if not eligible:
        raise _invalid('ERR-VAL-005', 'approver_id', 'Select an approver')


def _money(value):
    return f'{(value or Decimal("0")):.2f}'


@with_auth
def create_expense(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    payload = validate_input(CreateExpenseSerializer, data)
    _validate_claim(tenant_id, payload)

    category = ExpenseCategory(payload['category'])
    workflow = Workflow.objects.create(
        tenant_id=tenant_id,
        workflow_number=Tenant.objects.next_workflow_number(tenant_id, using=ctx.using),
        type=WorkflowType.EXPENSE,
        title=f'Expense: {category.label} {_money(payload["amount"])}',
        description=payload.get('description') or '',
        amount=payload['amount'],
        date_from=payload['expense_date'],
        date_to=payload['expense_date'],
        approver_id=payload['approver_id'],
        status=payload['status'],
        created_by_id=identity.id,
    )
    expense = Expense.objects.create(
        tenant_id=tenant_id,
        workflow=workflow,
        project_id=payload['project_id'],
        category=category,
        amount=payload['amount'],
        expense_date=payload['expense_date'],
        description=payload.get('description') or '',
        created_by_id=identity.id,
    )

    submitted = workflow.status == WorkflowStatus.SUBMITTED
    write_audit_log(ctx, identity.id, AuditEntry(
        tenant_id=tenant_id,
        action='expense.submit' if submitted else 'expense.create',
        resource_type='expense',
        resource_id=expense.id,
        after=expense.snapshot(),
        metadata={'workflow_number': workflow.workflow_number},
    ))
    if submitted:
        create_notification(
            ctx,
            tenant_id=tenant_id,
            user_id=workflow.approver_id,
            type=NotificationType.WORKFLOW_SUBMITTED,
            title=f'New request to review: {workflow.title}',
            body=f'{workflow.workflow_number} "{workflow.title}" was submitted for approval',
            resource_type='workflow',
            resource_id=workflow.id,
        )

    return ExpenseSerializer(expense).data


def _visible_expenses(identity, tenant_id):
    qs = Expense.objects.for_tenant(tenant_id).select_related('workflow', 'project')
    if has_role(identity, tenant_id, FULL_ACCESS_ROLES):
        return qs
    return qs.filter(created_by_id=identity.id)


@with_auth
def list_expenses(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    payload = validate_input(ListExpensesSerializer, data)
    qs = _visible_expenses(identity, tenant_id)
    if payload.get('category'):
        qs = qs.filter(category=payload['category'])
    return ExpenseSerializer(qs.order_by('-expense_date', '-created_at'), many=True).data


@with_auth
def get_expense(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    payload = validate_input(ExpenseIdSerializer, data)
    expense = (
        Expense.objects.for_tenant(tenant_id)
        .select_related('workflow', 'project')
        .filter(pk=payload['expense_id'])
        .first()
    )
    if expense is None:
        raise DomainRuleViolated(ERR_NOT_FOUND, 'Expense not found')
    if expense.created_by_id != identity.id and not has_role(identity, tenant_id, FULL_ACCESS_ROLES):
        raise AuthorizationDenied('You are not allowed to view this expense')
    return ExpenseSerializer(expense).data


@with_auth
def get_expense_projects(identity, ctx, data):
    """Projects an expense can be booked against."""
    tenant_id = ctx.require_tenant()
    projects = (
        Project.objects.for_tenant(tenant_id)
        .filter(status__in=[ProjectStatus.PLANNING, ProjectStatus.ACTIVE])
        .order_by('name')
    )
    return [{'id': str(p.id), 'name': p.name} for p in projects]


@with_auth
def get_expense_approvers(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    rows = (
        UserRole.objects.for_tenant(tenant_id)
        .filter(role__in=APPROVER_ROLES, user__is_active=True)
        .select_related('user')
        .order_by('user__email', 'role')
    )
    return [
        {
            'user_id': str(row.user_id),
            'role': row.role,
            'display_name': row.user.get_full_name(),
        }
        for row in rows
    ]


def _summary_queryset(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    ensure_role(identity, tenant_id, SUMMARY_ROLES)
    payload = validate_input(ExpenseSummarySerializer, data)
    ensure_date_range(payload.get('date_from'), payload.get('date_to'), code=ERR_SUMMARY_RANGE)

    qs = Expense.objects.for_tenant(tenant_id)
    if payload.get('date_from'):
        qs = qs.filter(expense_date__gte=payload['date_from'])
    if payload.get('date_to'):
        qs = qs.filter(expense_date__lte=payload['date_to'])
    if payload.get('category'):
        qs = qs.filter(category=payload['category'])
    if payload.get('project_id'):
        qs = qs.filter(project_id=payload['project_id'])
    if payload['approved_only']:
        qs = qs.filter(workflow__status=WorkflowStatus.APPROVED)
    return qs


@with_auth
def expense_summary_by_category(identity, ctx, data):
    """Count, total and share of the grand total per category, largest first."""
    qs = _summary_queryset(identity, ctx, data)
    rows = list(qs.values('category').annotate(count=Count('id'), total=Sum('amount')).order_by())
    grand_total = sum((row['total'] for row in rows), Decimal('0'))
    rows.sort(key=lambda row: row['total'], reverse=True)
    return [
        {
            'category': row['category'],
            'count': row['count'],
            'total': _money(row['total']),
            'percentage': float(
                (row['total'] * 100 / grand_total).quantize(Decimal('0.1'), ROUND_HALF_UP)
            ) if grand_total else 0.0,
        }
        for row in rows
    ]


@with_auth
def expense_summary_by_project(identity, ctx, data):
    qs = _summary_queryset(identity, ctx, data)
    rows = (
        qs.values('project_id', 'project__name')
        .annotate(count=Count('id'), total=Sum('amount'))
        .order_by('-total', 'project__name')
    )
    return [
        {
            'project_id': str(row['project_id']),
            'project_name': row['project__name'],
            'count': row['count'],
            'total': _money(row['total']),
        }
        for row in rows
    ]


@with_auth
def expense_summary_by_month(identity, ctx, data):
    qs = _summary_queryset(identity, ctx, data)
    rows = (
        qs.annotate(month=TruncMonth('expense_date'))
        .values('month')
        .annotate(count=Count('id'), total=Sum('amount'))
        .order_by('month')
    )
    return [
        {
            'month': row['month'].strftime('%Y-%m'),
            'count': row['count'],
            'total': _money(row['total']),
        }
        for row in rows
    ]


@with_auth
def expense_stats(identity, ctx, data):
    qs = _summary_queryset(identity, ctx, data)
    stats = qs.aggregate(total=Sum('amount'), count=Count('id'), largest=Max('amount'))
    total = stats['total'] or Decimal('0')
    count = stats['count']
    average = (total / count).quantize(Decimal('0.01'), ROUND_DOWN) if count else Decimal('0')
    return {
        'total_amount': _money(total),
        'total_count': count,
        'avg_amount': _money(average),
        'max_amount': _money(stats['largest']),
    }
