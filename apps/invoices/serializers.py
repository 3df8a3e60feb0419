"""
Serializers for invoice actions.

Required fields and item rules are checked in the actions so each failure
carries its own validation code.
"""
from rest_framework import serializers

from apps.invoices.models import DEFAULT_TAX_RATE, Invoice, InvoiceItem, InvoiceStatus


class InvoiceItemSerializer(serializers.ModelSerializer):

    class Meta:
        model = InvoiceItem
        fields = ['id', 'description', 'quantity', 'unit_price', 'amount', 'sort_order']
        read_only_fields = fields


class InvoiceSerializer(serializers.ModelSerializer):
    tenant_id = serializers.UUIDField(read_only=True)
    project_id = serializers.UUIDField(read_only=True)
    created_by_id = serializers.UUIDField(read_only=True)
    items = InvoiceItemSerializer(many=True, read_only=True)

    class Meta:
        model = Invoice
        fields = [
            'id', 'tenant_id', 'invoice_number', 'client_name', 'project_id',
            'issued_date', 'due_date', 'subtotal', 'tax_rate', 'tax_amount',
            'total_amount', 'status', 'notes', 'items', 'created_by_id',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class InvoiceItemInputSerializer(serializers.Serializer):
    description = serializers.CharField(required=False, allow_blank=True, trim_whitespace=True)
    quantity = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)


class InvoiceFieldsSerializer(serializers.Serializer):
    client_name = serializers.CharField(required=False, allow_blank=True, trim_whitespace=True)
    project_id = serializers.UUIDField(required=False, allow_null=True)
    issued_date = serializers.DateField(required=False, allow_null=True)
    due_date = serializers.DateField(required=False, allow_null=True)
    tax_rate = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=0, max_value=100, default=DEFAULT_TAX_RATE,
    )
    notes = serializers.CharField(required=False, allow_blank=True)
    items = InvoiceItemInputSerializer(many=True, required=False)


class UpdateInvoiceSerializer(InvoiceFieldsSerializer):
    invoice_id = serializers.UUIDField()


class InvoiceIdSerializer(serializers.Serializer):
    invoice_id = serializers.UUIDField()


class InvoiceStatusSerializer(InvoiceIdSerializer):
    status = serializers.ChoiceField(choices=InvoiceStatus.choices)


class ListInvoicesSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=InvoiceStatus.choices, required=False)
    project_id = serializers.UUIDField(required=False)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
