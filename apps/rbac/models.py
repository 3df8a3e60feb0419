"""
RBAC models for multi-tenant access control.

Implements:
- Global User identity (can belong to several tenants)
- Role (closed set of tenant-scoped roles)
- UserRole (one role granted to one user in one tenant)
- AuditLog (append-only audit trail)
"""
import uuid

from django.contrib.auth.hashers import make_password, check_password
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone

from apps.core.models import BaseModel


class Role(models.TextChoices):
    """
    Tenant-scoped roles. A role only ever applies inside the tenant it was
    granted for.
    """
    MEMBER = 'member', 'Member'
    APPROVER = 'approver', 'Approver'
    PM = 'pm', 'Project Manager'
    ACCOUNTING = 'accounting', 'Accounting'
    IT_ADMIN = 'it_admin', 'IT Admin'
    TENANT_ADMIN = 'tenant_admin', 'Tenant Admin'

    @classmethod
    def parse(cls, value):
        """Return the Role for ``value``; unknown values raise ValueError."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unknown role: {value!r}") from None


ADMIN_ROLES = (Role.TENANT_ADMIN, Role.IT_ADMIN)


class UserStatus(models.TextChoices):
    ACTIVE = 'active', 'Active'
    INVITED = 'invited', 'Invited'
    DISABLED = 'disabled', 'Disabled'


class UserManager(models.Manager):
    """
    Manager for User queries.

    Compatible with Django's authentication system and admin interface.
    """

    def active(self):
        return self.filter(is_active=True)

    def by_email(self, email):
        return self.filter(email__iexact=self.normalize_email(email)).first()

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('Email address is required')

        email = self.normalize_email(email)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('is_superuser', False)

        user = self.model(email=email, **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        """Required by Django's createsuperuser command."""
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('email_confirmed_at', timezone.now())

        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True')

        return self.create_user(email, password, **extra_fields)

    @staticmethod
    def normalize_email(email):
        """Lowercase the domain part of the email address."""
        email = email or ''
        try:
            email_name, domain_part = email.strip().rsplit('@', 1)
        except ValueError:
            pass
        else:
            email = email_name + '@' + domain_part.lower()
        return email

    def get_by_natural_key(self, email):
        return self.get(**{self.model.USERNAME_FIELD: email})


class User(BaseModel):
    """
    Global user identity.

    Authentication happens at the User level; authorization comes from the
    user's UserRole rows in the tenant being acted on.

    This is the AUTH_USER_MODEL for the project, including Django admin.
    """

    email = models.EmailField(unique=True, db_index=True)
    password_hash = models.CharField(max_length=255, db_column='password_hash')
    display_name = models.CharField(max_length=150, blank=True)

    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Disabled users cannot sign in and their sessions stop resolving"
    )
    is_superuser = models.BooleanField(
        default=False,
        help_text="Django admin access only; grants no tenant roles"
    )

    invited_at = models.DateTimeField(null=True, blank=True)
    email_confirmed_at = models.DateTimeField(null=True, blank=True)
    last_login_at = models.DateTimeField(null=True, blank=True)

    USERNAME_FIELD = 'email'
    EMAIL_FIELD = 'email'
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        db_table = 'users'
        ordering = ['email']
        indexes = [
            models.Index(fields=['is_active', 'created_at']),
        ]

    def __str__(self):
        return self.email

    @property
    def password(self):
        """Alias for password_hash; Django admin expects a 'password' field."""
        return self.password_hash

    @password.setter
    def password(self, value):
        self.password_hash = value

    def check_password(self, raw_password):
        return check_password(raw_password, self.password_hash)

    def set_password(self, raw_password):
        self.password_hash = make_password(raw_password)

    def set_unusable_password(self):
        self.password_hash = make_password(None)

    def has_usable_password(self):
        return bool(self.password_hash) and not self.password_hash.startswith('!')

    def get_full_name(self):
        return self.display_name or self.email

    def get_short_name(self):
        return self.get_full_name()

    def get_email_field_name(self):
        return self.EMAIL_FIELD

    @property
    def status(self):
        if not self.is_active:
            return UserStatus.DISABLED
        if self.invited_at and not self.email_confirmed_at:
            return UserStatus.INVITED
        return UserStatus.ACTIVE

    def update_last_login(self):
        self.last_login_at = timezone.now()
        self.save(update_fields=['last_login_at', 'updated_at'])

    @property
    def is_authenticated(self):
        return True

    @property
    def is_anonymous(self):
        return False

    @property
    def is_staff(self):
        return self.is_superuser

    def has_perm(self, perm, obj=None):
        return self.is_superuser

    def has_perms(self, perm_list, obj=None):
        return self.is_superuser

    def has_module_perms(self, app_label):
        return self.is_superuser

    def natural_key(self):
        return (self.email,)


class UserRoleQuerySet(models.QuerySet):

    def for_tenant(self, tenant_id):
        return self.filter(tenant_id=tenant_id)

    def for_user(self, user):
        return self.filter(user=user)

    def with_roles(self, roles):
        return self.filter(role__in=[Role.parse(role) for role in roles])


class UserRole(models.Model):
    """
    One role granted to one user in one tenant.

    The ordered set of a user's rows is the source of an Identity's roles and
    tenant memberships.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        related_name='user_roles',
    )
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='role_assignments',
    )
    role = models.CharField(max_length=32, choices=Role.choices, db_index=True)
    granted_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    objects = UserRoleQuerySet.as_manager()

    class Meta:
        db_table = 'user_roles'
        ordering = ['created_at', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['tenant', 'user', 'role'],
                name='unique_role_per_tenant_user',
            ),
        ]
        indexes = [
            models.Index(fields=['tenant', 'role']),
            models.Index(fields=['user', 'created_at']),
        ]

    def __str__(self):
        return f"{self.user_id} - {self.role} @ {self.tenant_id}"

    def save(self, *args, **kwargs):
        self.role = Role.parse(self.role).value
        super().save(*args, **kwargs)


class AuditLogQuerySet(models.QuerySet):

    def for_tenant(self, tenant_id):
        return self.filter(tenant_id=tenant_id)

    def by_resource(self, resource_type, resource_id=None):
        qs = self.filter(resource_type=resource_type)
        if resource_id is not None:
            qs = qs.filter(resource_id=str(resource_id))
        return qs

    def by_request(self, request_id):
        return self.filter(request_id=request_id)

    def update(self, **kwargs):
        raise TypeError('Audit log entries are write-once')

    def delete(self):
        raise TypeError('Audit log entries are write-once')


class AuditLog(models.Model):
    """
    Append-only audit trail of mutations.

    Rows are inserted by ``apps.rbac.audit.write_audit_log`` and never
    updated or deleted.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.PROTECT,
        related_name='audit_logs',
    )
    user = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='audit_logs',
    )

    action = models.CharField(max_length=100, db_index=True)
    resource_type = models.CharField(max_length=50, db_index=True)
    resource_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)

    before_data = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    after_data = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    metadata = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)

    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    request_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)

    created_at = models.DateTimeField(default=timezone.now, editable=False, db_index=True)

    objects = AuditLogQuerySet.as_manager()

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant', 'created_at']),
            models.Index(fields=['tenant', 'action', 'created_at']),
            models.Index(fields=['resource_type', 'resource_id']),
        ]

    def __str__(self):
        return f"{self.tenant_id} - {self.user_id} - {self.action}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise TypeError('Audit log entries are write-once')
        # The timestamp is always assigned here, never taken from the caller
        self.created_at = timezone.now()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise TypeError('Audit log entries are write-once')
