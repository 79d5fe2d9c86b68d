# =============================================================================
# Flows Package — Prompt Flows as Data
# =============================================================================
#   - schemas.py: input/output Pydantic models per flow
#   - runner.py:  FlowDefinition, FlowResult and the generic run_flow()
#   - catalog.py: FLOW_REGISTRY with templates, credit costs, gated features
# =============================================================================
