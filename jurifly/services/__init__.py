# =============================================================================
# Services Package — Business Logic
# =============================================================================
# Contains the core business logic, separated from API handlers:
#   - profile.py:      per-request ProfileSession (profile, credits, passes)
#   - companies.py:    companies, cap tables, document requests
#   - invites.py:      advisor / client / team invitations
#   - capabilities.py: role × plan feature table
#   - store.py:        DocumentStore protocol + in-memory backend
#   - sql_store.py:    PostgreSQL backend
#   - llm.py:          multi-provider LLM abstraction
#   - pricing.py:      per-token model pricing for flow-run metrics
#   - auth.py / rate_limiter.py: bearer keys and per-identity rate limits
# =============================================================================
