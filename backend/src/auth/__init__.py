"""
Authentication and workspace authorization.

Provides:
- Password hashing (passwords)
- Opaque-token login sessions (sessions)
- Workspace role resolution and enforcement (rbac)
"""
