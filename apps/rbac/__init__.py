"""
RBAC (Role-Based Access Control) application.

Provides multi-tenant access control with:
- Global user identity with session authentication
- Tenant-scoped role assignments from a closed role set
- Append-only audit logging
"""
