"""Tenant context, query options and a SQLAlchemy base-model mixin."""

__all__ = ["tenant", "options", "base_model"]