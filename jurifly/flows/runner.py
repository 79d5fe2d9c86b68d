# =============================================================================
# Flow Runner — One Generic Executor for Every Prompt Flow
# =============================================================================
#
# A flow is data (FlowDefinition): input model, output model, Jinja2
# template, system prompt, credit cost, gated feature. run_flow() executes
# any of them:
#
#   payload ──validate──→ input model ──render──→ prompt text
#           ──llm.complete()──→ reply ──extract JSON──→ output model
#
# DESIGN DECISION: The output JSON schema goes into the system prompt.
# Both provider families understand "reply with JSON matching this schema",
# so structured output does not depend on a provider-specific feature.
#
# DESIGN DECISION: Tolerant extraction, strict validation. Models wrap JSON
# in ``` fences or add a sentence before it; extract_json() digs the object
# out. What comes out must still validate against the output model.
#
# No retries, streaming or caching. A failed run raises and the caller
# decides what to do (the flows router refunds credits).
# =============================================================================

from __future__ import annotations

import json
import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from jinja2 import Environment, StrictUndefined, TemplateError
from pydantic import BaseModel, ValidationError

from jurifly.errors import FlowOutputError, FlowValidationError
from jurifly.services.llm import LLMProvider

logger = logging.getLogger(__name__)

# Prompts are plain text: no HTML escaping; undefined variables raise
_jinja_env = Environment(
    undefined=StrictUndefined,
    autoescape=False,
    trim_blocks=True,
    lstrip_blocks=True,
)

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)

_JSON_INSTRUCTIONS = (
    "Respond with a single JSON object and nothing else. It must validate "
    "against this JSON Schema:\n\n{schema}\n\n"
    "Do not wrap the object in prose. Use the exact property names shown."
)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FlowDefinition:
    """
    Everything needed to run one flow.

    `prepare` derives extra template variables from the validated input
    (e.g. profit per year from revenue and expenses).
    """

    name: str
    description: str
    input_model: type[BaseModel]
    output_model: type[BaseModel]
    template: str
    system: str
    credit_cost: int
    feature: str
    prepare: Callable[[BaseModel], dict[str, Any]] | None = field(
        default=None, compare=False,
    )


@dataclass
class FlowResult:
    """Validated output of one run plus model usage."""

    output: BaseModel
    model: str
    input_tokens: int
    output_tokens: int
    latency_ms: int


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def render_prompt(definition: FlowDefinition, data: BaseModel) -> str:
    """Render the flow template against validated input."""
    context = data.model_dump()
    if definition.prepare is not None:
        context.update(definition.prepare(data))
    try:
        return _jinja_env.from_string(definition.template).render(**context)
    except TemplateError as e:
        # A template bug, not bad input: the model validated already
        logger.exception("Template for flow %s failed to render", definition.name)
        raise FlowOutputError(f"Flow '{definition.name}' could not be prepared.") from e


def validate_input(definition: FlowDefinition, payload: dict[str, Any]) -> BaseModel:
    """
    Raises:
        FlowValidationError: payload does not match the input model.
    """
    try:
        return definition.input_model.model_validate(payload)
    except ValidationError as e:
        raise FlowValidationError(
            f"Invalid input for flow '{definition.name}': "
            f"{_summarise_errors(e)}"
        ) from e


def build_system_prompt(definition: FlowDefinition) -> str:
    schema = json.dumps(definition.output_model.model_json_schema(), indent=2)
    return f"{definition.system}\n\n{_JSON_INSTRUCTIONS.format(schema=schema)}"


def extract_json(text: str) -> Any:
    """
    Pull the JSON object out of a model reply.

    Tries, in order: the whole reply, the first ``` fenced block, and the
    span from the first "{" to the last "}".

    Raises:
        ValueError: No parseable JSON object was found.
    """
    candidates = [text.strip()]
    fenced = _FENCE_RE.search(text)
    if fenced:
        candidates.append(fenced.group(1).strip())
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        if not candidate:
            continue
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    raise ValueError("No JSON object found in model reply")


async def run_flow(
    definition: FlowDefinition,
    payload: dict[str, Any],
    llm: LLMProvider,
) -> FlowResult:
    """
    Execute a flow end to end.

    Raises:
        FlowValidationError: payload does not match the input model.
        FlowOutputError: the reply is empty, not JSON, or fails the
            output model.
    """
    data = validate_input(definition, payload)
    prompt = render_prompt(definition, data)

    logger.info("Running flow %s (prompt %d chars)", definition.name, len(prompt))
    start = time.perf_counter()

    response = await llm.complete(
        messages=[{"role": "user", "content": prompt}],
        system=build_system_prompt(definition),
        json_output=True,
    )

    latency_ms = int((time.perf_counter() - start) * 1000)
    logger.info(
        "Flow %s complete: model=%s, tokens=%d+%d, %dms",
        definition.name, response.model,
        response.input_tokens, response.output_tokens, latency_ms,
    )

    if not response.content.strip():
        raise FlowOutputError(f"The AI returned an empty response for '{definition.name}'.")

    try:
        raw = extract_json(response.content)
        output = definition.output_model.model_validate(raw)
    except (ValueError, ValidationError) as e:
        logger.warning(
            "Flow %s returned unusable output: %s", definition.name, e,
        )
        raise FlowOutputError(
            f"The AI returned an invalid response for '{definition.name}'."
        ) from e

    return FlowResult(
        output=output,
        model=response.model,
        input_tokens=response.input_tokens,
        output_tokens=response.output_tokens,
        latency_ms=latency_ms,
    )


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _summarise_errors(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "input"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)
