"""
Input validation helpers for action handlers.
"""
from apps.core.exceptions import ValidationFailed, flatten_errors


def validate_input(serializer_class, data, code=None, **kwargs):
    """
    Validate ``data`` with a DRF serializer and return ``validated_data``.

    Raises ``ValidationFailed`` carrying one message per invalid field.
    """
    serializer = serializer_class(data=data, **kwargs)
    if not serializer.is_valid():
        fields = flatten_errors(serializer.errors)
        message = next(iter(fields.values()), 'Invalid input')
        raise ValidationFailed(message, code=code, fields=fields)
    return serializer.validated_data


def ensure_date_range(date_from, date_to, code='ERR-VAL-001', field='date_to'):
    """Reject ranges whose end precedes their start. Missing ends are allowed."""
    if date_from and date_to and date_to < date_from:
        message = 'End date must be on or after the start date'
        raise ValidationFailed(message, code=code, fields={field: message})
