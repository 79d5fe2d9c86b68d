# =============================================================================
# Database Package
# =============================================================================
# Provides the async SQLAlchemy engine, transactional sessions, and the ORM
# tables that hold profile and collection documents as JSON.
#
# Key exports:
#   - session_scope: one transaction per store operation
#   - Base: SQLAlchemy declarative base for ORM models
# =============================================================================
