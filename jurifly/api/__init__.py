# =============================================================================
# API Package — FastAPI Route Handlers
# =============================================================================
# Each module defines an APIRouter for one area:
#   - auth.py:          signup and bearer key issue
#   - profile.py:       profile, credits, access passes, feedback, chat
#   - companies.py:     companies, cap table, document requests, checklist
#   - invites.py:       advisor / client / team invitations
#   - notifications.py: notification feed
#   - flows.py:         prompt-flow catalogue and invocation
#   - billing.py:       UPI transaction records
#   - admin.py:         transaction verification, access passes, audit log
# =============================================================================
