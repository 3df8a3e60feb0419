from django.contrib import admin
from .models import Expense


@admin.register(Expense)
class ExpenseAdmin(admin.ModelAdmin):
    list_display = ['expense_date', 'category', 'amount', 'project', 'created_by', 'tenant']
    list_filter = ['category']
    search_fields = ['description', 'workflow__workflow_number']
    readonly_fields = ['workflow', 'created_at', 'updated_at']
