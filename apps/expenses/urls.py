"""
Expense URLs.
"""
from django.urls import path

from apps.core.views import ActionView
from apps.expenses import actions


def _post(action):
    return ActionView.as_view(server_action=action, http_method_names=['post'])


def _get(action):
    return ActionView.as_view(server_action=action, http_method_names=['get'])


urlpatterns = [
    path('', _get(actions.list_expenses), name='expense-list'),
    path('create', _post(actions.create_expense), name='expense-create'),
    path('projects', _get(actions.get_expense_projects), name='expense-projects'),
    path('approvers', _get(actions.get_expense_approvers), name='expense-approvers'),
    path('summary/categories', _get(actions.expense_summary_by_category), name='expense-summary-category'),
    path('summary/projects', _get(actions.expense_summary_by_project), name='expense-summary-project'),
    path('summary/months', _get(actions.expense_summary_by_month), name='expense-summary-month'),
    path('summary/stats', _get(actions.expense_stats), name='expense-stats'),
    path('<uuid:expense_id>', _get(actions.get_expense), name='expense-detail'),
]
