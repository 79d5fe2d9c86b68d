# =============================================================================
# Jurifly — Compliance & Legal Workspace API
# =============================================================================
# A multi-tenant backend for startups and their accountants: profiles with
# plans and credits, companies with cap tables and document requests,
# advisor/client/team invites, and a catalogue of LLM-backed prompt flows.
#
# Package structure:
#   jurifly/
#   ├── api/          → FastAPI routers, dependencies, audit middleware
#   ├── db/           → Async SQLAlchemy engine and ORM tables
#   ├── flows/        → Prompt flows: schemas, catalog, generic runner
#   ├── models/       → Domain documents and API request/response schemas
#   └── services/     → Business logic (profile session, credits, invites,
#                        capabilities, stores, LLM providers)
# =============================================================================
