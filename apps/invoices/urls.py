"""
Invoice URLs.
"""
from django.urls import path

from apps.core.views import ActionView
from apps.invoices import actions


def _post(action):
    return ActionView.as_view(server_action=action, http_method_names=['post'])


def _get(action):
    return ActionView.as_view(server_action=action, http_method_names=['get'])


urlpatterns = [
    path('', _get(actions.list_invoices), name='invoice-list'),
    path('create', _post(actions.create_invoice), name='invoice-create'),
    path('<uuid:invoice_id>', _get(actions.get_invoice), name='invoice-detail'),
    path('<uuid:invoice_id>/update', _post(actions.update_invoice), name='invoice-update'),
    path('<uuid:invoice_id>/delete', _post(actions.delete_invoice), name='invoice-delete'),
    path('<uuid:invoice_id>/status', _post(actions.update_invoice_status), name='invoice-status'),
]
