# =============================================================================
# Models Package — Pydantic V2 Schemas
# =============================================================================
#   - domain.py:    the stored documents (profile, company, invite, ...)
#   - requests.py:  request bodies accepted by the API
#   - responses.py: the ActionResponse envelope and response payloads
#
# These are separate from the ORM tables in jurifly/db/models.py, which
# hold the documents as JSON.
# =============================================================================
