# =============================================================================
# Flow Catalog — Registry of Every Prompt Flow
# =============================================================================
#
# Each entry is a FlowDefinition: schemas from schemas.py, a Jinja2
# template, a system prompt persona, a credit cost, and the capability key
# that gates it. Adding a flow means adding one entry here; the runner and
# the /flows router pick it up by name.
#
# Credit costs follow the dashboard's pricing: cheap lookups cost 1, full
# document analysis 5, multi-document reconciliation 15, legal research 20.
#
# Templates render with StrictUndefined: referencing a field the input model
# does not define fails loudly instead of sending "" to the model.
# =============================================================================

from __future__ import annotations

from typing import Any

from jurifly.errors import FlowNotFoundError
from jurifly.flows import schemas as s
from jurifly.flows.runner import FlowDefinition

# ---------------------------------------------------------------------------
# System prompts (personas)
# ---------------------------------------------------------------------------

SYSTEM_PROMPTS: dict[str, str] = {
    "compliance": (
        "You are an expert compliance assistant for startups and chartered "
        "accountants. Give practical, jurisdiction-specific guidance. Frame "
        "answers as information, never as definitive legal advice."
    ),
    "legal": (
        "You are a senior corporate lawyer. Read documents closely, cite the "
        "clause you rely on, and flag anything unusual or one-sided."
    ),
    "finance": (
        "You are a startup CFO and financial analyst. Be quantitative, "
        "direct and specific. Use the currency of the stated legal region."
    ),
    "advisor": (
        "You are a startup ecosystem advisor who knows government schemes, "
        "investors and incorporation rules. Prefer official, verifiable "
        "sources and say when something must be double-checked."
    ),
    "secretary": (
        "You are an experienced company secretary who drafts formal board "
        "and shareholder documents."
    ),
}


# ---------------------------------------------------------------------------
# Prepare hooks
# ---------------------------------------------------------------------------


def _prepare_yoy(data: s.YoyAnalysisInput) -> dict[str, Any]:
    processed = [
        {**year.model_dump(), "profit_or_loss": year.revenue - year.expenses}
        for year in data.historical_data
    ]
    return {
        "processed_data": processed,
        "last_year": data.historical_data[-1].year,
    }


def _prepare_financial_report(data: s.FinancialReportInput) -> dict[str, Any]:
    burn = data.monthly_expenses - data.monthly_revenue
    runway = round(data.cash_balance / burn, 1) if burn > 0 else None
    return {"net_burn": burn, "runway_months": runway}


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------

_DOCUMENT_BLOCK = (
    "Document: {{ file_name }}\n"
    "-----BEGIN DOCUMENT-----\n{{ document_text }}\n-----END DOCUMENT-----\n"
)

_FLOWS: list[FlowDefinition] = [
    FlowDefinition(
        name="assistant",
        description="Answer a compliance question, optionally as a checklist.",
        input_model=s.AssistantInput,
        output_model=s.AssistantOutput,
        system=SYSTEM_PROMPTS["compliance"],
        template=(
            "Legal region: {{ legal_region }}\n\n"
            "Question: {{ topic }}\n\n"
            "Answer conversationally. If a list of concrete tasks is the best "
            "answer, also return it as a checklist with a category per task."
        ),
        credit_cost=1,
        feature="aiToolkit",
    ),
    FlowDefinition(
        name="business-recommender",
        description="Recommend a legal structure for a new business.",
        input_model=s.BusinessRecommenderInput,
        output_model=s.BusinessRecommenderOutput,
        system=SYSTEM_PROMPTS["advisor"],
        template=(
            "Recommend the best business structure in {{ legal_region }}.\n\n"
            "- Founders: {{ founder_count }}\n"
            "- Investment plan: {{ investment_plan }}\n"
            "- Revenue goal (first 2-3 years): {{ revenue_goal }}\n"
            "- Business: {{ business_description }}\n\n"
            "Explain the choice against these inputs, list pros and cons, and "
            "name one alternative if there is a reasonable one."
        ),
        credit_cost=1,
        feature="launchPad",
    ),
    FlowDefinition(
        name="company-details",
        description="Look up registry details for a company identifier.",
        input_model=s.CompanyDetailsInput,
        output_model=s.CompanyDetailsOutput,
        system=SYSTEM_PROMPTS["advisor"],
        template=(
            "Return the registered details of the company with identifier "
            "{{ cin }} in {{ legal_region }}: legal name, tax id, "
            "incorporation date, sector and registered office location."
        ),
        credit_cost=1,
        feature="dashboard",
    ),
    FlowDefinition(
        name="compliance-validator",
        description="Score a policy document's readiness against a framework.",
        input_model=s.ComplianceValidatorInput,
        output_model=s.ComplianceValidatorOutput,
        system=SYSTEM_PROMPTS["compliance"],
        template=(
            "Assess the document below against the {{ framework }} framework "
            "({{ legal_region }} context).\n\n" + _DOCUMENT_BLOCK + "\n"
            "Give a readiness score from 0 to 100, a short summary, and every "
            "required control or policy that is missing, each with a "
            "recommendation."
        ),
        credit_cost=2,
        feature="aiToolkit",
    ),
    FlowDefinition(
        name="contract-analyzer",
        description="Summarise a contract, score its risk and list gaps.",
        input_model=s.ContractAnalyzerInput,
        output_model=s.ContractAnalyzerOutput,
        system=SYSTEM_PROMPTS["legal"],
        template=(
            "Analyse this contract under {{ legal_region }} law.\n\n"
            + _DOCUMENT_BLOCK + "\n"
            "Summarise type, parties, effective date, purpose and key "
            "obligations. Score risk from 0 (very high risk) to 100 (very low "
            "risk). Flag risky clauses and list standard clauses that are "
            "missing."
        ),
        credit_cost=5,
        feature="aiToolkit",
    ),
    FlowDefinition(
        name="document-generator",
        description="Draft a legal document from a template name.",
        input_model=s.DocumentGeneratorInput,
        output_model=s.DocumentGeneratorOutput,
        system=SYSTEM_PROMPTS["legal"],
        template=(
            "Draft a complete \"{{ template_name }}\" valid in "
            "{{ legal_region }}. Use placeholders like [Company Name] for "
            "details you do not know. Plain text with line breaks."
        ),
        credit_cost=3,
        feature="aiToolkit",
    ),
    FlowDefinition(
        name="document-intelligence",
        description="Classify a document, flag risks, suggest replies and reminders.",
        input_model=s.DocumentIntelligenceInput,
        output_model=s.DocumentIntelligenceOutput,
        system=SYSTEM_PROMPTS["legal"],
        template=(
            "Analyse the document below ({{ legal_region }} context).\n\n"
            + _DOCUMENT_BLOCK + "\n"
            "1. Classify its type.\n"
            "2. Summarise it in bullet points.\n"
            "3. Flag risks with severity.\n"
            "4. If it is a notice needing a response, draft a reply.\n"
            "5. If it mentions a deadline, suggest a reminder date.\n"
            "6. If it is a legal contract, extract parties, effective date, "
            "term and renewal notice date. Otherwise leave contract_details "
            "null."
        ),
        credit_cost=2,
        feature="docVault",
    ),
    FlowDefinition(
        name="document-summarizer",
        description="Plain-language summary of a document.",
        input_model=s.DocumentSummarizerInput,
        output_model=s.DocumentSummarizerOutput,
        system=SYSTEM_PROMPTS["legal"],
        template=(
            "Summarise the purpose, key points and obligations of this "
            "document in plain language, formatted as Markdown.\n\n"
            + _DOCUMENT_BLOCK
        ),
        credit_cost=1,
        feature="docVault",
    ),
    FlowDefinition(
        name="filing-generator",
        description="Compliance calendar for the next twelve months.",
        input_model=s.FilingGeneratorInput,
        output_model=s.FilingGeneratorOutput,
        system=SYSTEM_PROMPTS["compliance"],
        template=(
            "Company type: {{ company_type }}\n"
            "Incorporated: {{ incorporation_date }}\n"
            "Today: {{ current_date }}\n"
            "Legal region: {{ legal_region }}\n\n"
            "List the corporate and tax filings this company must make in "
            "the twelve months from today, with due dates, a description and "
            "the penalty for missing each."
        ),
        credit_cost=1,
        feature="dashboard",
    ),
    FlowDefinition(
        name="financial-report",
        description="Financial health report from monthly figures.",
        input_model=s.FinancialReportInput,
        output_model=s.FinancialReportOutput,
        system=SYSTEM_PROMPTS["finance"],
        template=(
            "Legal region: {{ legal_region }}\n"
            "- Monthly revenue: {{ monthly_revenue }}\n"
            "- Monthly expenses: {{ monthly_expenses }}\n"
            "- Cash balance: {{ cash_balance }}\n"
            "- Net monthly burn: {{ net_burn }}\n"
            "{% if runway_months is not none %}"
            "- Runway: {{ runway_months }} months\n"
            "{% else %}"
            "- Runway: not burning cash\n"
            "{% endif %}\n"
            "Write a Markdown financial health report with key metrics and "
            "actionable advice."
        ),
        credit_cost=1,
        feature="financials",
        prepare=_prepare_financial_report,
    ),
    FlowDefinition(
        name="founder-salary",
        description="Tax-efficient founder compensation structure.",
        input_model=s.FounderSalaryInput,
        output_model=s.FounderSalaryOutput,
        system=SYSTEM_PROMPTS["finance"],
        template=(
            "Structure a founder's annual payout of {{ desired_annual_payout }} "
            "in {{ legal_region }}.\n"
            "Company stage: {{ company_stage }}. Last funding round: "
            "{{ last_funding_amount }}.\n\n"
            "Split it into in-hand salary, reimbursements, ESOP value and "
            "director's fees. Explain tax efficiency, legal limits and "
            "investor perception, and list warnings."
        ),
        credit_cost=2,
        feature="financials",
    ),
    FlowDefinition(
        name="diligence-checklist",
        description="Due diligence checklist for a deal or audit.",
        input_model=s.DiligenceChecklistInput,
        output_model=s.DiligenceChecklistOutput,
        system=SYSTEM_PROMPTS["compliance"],
        template=(
            "Create a due diligence checklist for a {{ deal_type }} in "
            "{{ legal_region }}. Group tasks by category (Financial, Legal, "
            "Technical, ...)."
        ),
        credit_cost=2,
        feature="aiToolkit",
    ),
    FlowDefinition(
        name="report-insights",
        description="Executive summary for the report center.",
        input_model=s.ReportInsightsInput,
        output_model=s.ReportInsightsOutput,
        system=SYSTEM_PROMPTS["finance"],
        template=(
            "Legal region: {{ legal_region }}\n"
            "- Compliance hygiene score: {{ hygiene_score }}/100\n"
            "- Overdue filings: {{ overdue_filings }}\n"
            "- Filings due in 30 days: {{ upcoming_filings }}\n"
            "- Net monthly burn: {{ burn_rate }}\n"
            "- Runway: {{ runway_in_months }} months\n"
            "{% if recent_risk_flags %}"
            "- Recent risk flags:\n"
            "{% for flag in recent_risk_flags %}"
            "  - {{ flag }}\n"
            "{% endfor %}"
            "{% endif %}\n"
            "Write a 3-5 point executive summary: overall posture, the most "
            "urgent issue, and 2-3 prioritised actions."
        ),
        credit_cost=1,
        feature="reportCenter",
    ),
    FlowDefinition(
        name="governance-agenda",
        description="Structured agenda for a board or shareholder meeting.",
        input_model=s.GovernanceAgendaInput,
        output_model=s.GovernanceAgendaOutput,
        system=SYSTEM_PROMPTS["secretary"],
        template=(
            "Prepare an agenda for a {{ meeting_type }} ({{ legal_region }}).\n"
            "Topics:\n"
            "{% for topic in topics %}"
            "- {{ topic }}\n"
            "{% endfor %}\n"
            "Include the statutory opening and closing items. Give each item "
            "a presenter, a time allocation and a short description."
        ),
        credit_cost=2,
        feature="playbook",
    ),
    FlowDefinition(
        name="governance-minutes",
        description="Formal minutes from an agenda and raw notes.",
        input_model=s.GovernanceMinutesInput,
        output_model=s.GovernanceMinutesOutput,
        system=SYSTEM_PROMPTS["secretary"],
        template=(
            "Draft formal meeting minutes ({{ legal_region }}).\n\n"
            "Agenda:\n{{ agenda }}\n\n"
            "Attendees: {{ attendees | join(', ') }}\n\n"
            "Notes:\n{{ notes }}\n\n"
            "Record each resolution with its mover and outcome."
        ),
        credit_cost=2,
        feature="playbook",
    ),
    FlowDefinition(
        name="grant-recommender",
        description="Grants, exemptions and schemes a startup may qualify for.",
        input_model=s.GrantRecommenderInput,
        output_model=s.GrantRecommenderOutput,
        system=SYSTEM_PROMPTS["advisor"],
        template=(
            "Recommend government grants, tax exemptions and schemes for this "
            "startup in {{ legal_region }}:\n"
            "- Industry: {{ industry }}\n"
            "- State: {{ location }}\n"
            "- Age: {{ business_age_in_months }} months\n"
            "- Female co-founder: {{ 'yes' if has_female_founder else 'no' }}\n"
            "- DPIIT recognised: {{ 'yes' if is_dpiit_recognized else 'no' }}\n\n"
            "Assess eligibility for each and link the official page."
        ),
        credit_cost=2,
        feature="launchPad",
    ),
    FlowDefinition(
        name="inc-code-finder",
        description="Suggest an industry classification (NIC) code.",
        input_model=s.IncCodeFinderInput,
        output_model=s.IncCodeFinderOutput,
        system=SYSTEM_PROMPTS["advisor"],
        template=(
            "Suggest the best 5-digit NIC code for this business, with "
            "reasoning and up to three alternatives:\n\n"
            "{{ business_description }}"
        ),
        credit_cost=1,
        feature="launchPad",
    ),
    FlowDefinition(
        name="investor-finder",
        description="Investors and grants matched to a startup profile.",
        input_model=s.InvestorFinderInput,
        output_model=s.InvestorFinderOutput,
        system=SYSTEM_PROMPTS["advisor"],
        template=(
            "List 10-15 active investors (VC firms or angel networks) for a "
            "{{ stage }} {{ industry }} startup based in {{ location }}, "
            "{{ legal_region }}. Include cheque size, website, LinkedIn and key "
            "partners. Add 2-3 relevant government grants."
        ),
        credit_cost=2,
        feature="launchPad",
    ),
    FlowDefinition(
        name="learn",
        description="Explain a business topic for founders.",
        input_model=s.LearnInput,
        output_model=s.LearnOutput,
        system=SYSTEM_PROMPTS["advisor"],
        template=(
            "Explain \"{{ topic }}\" to a startup founder in {{ legal_region }}. "
            "Start with a very simple summary, then a detailed Markdown "
            "explanation with practical examples, then 3-4 related topics."
        ),
        credit_cost=1,
        feature="learnHub",
    ),
    FlowDefinition(
        name="legal-research",
        description="Research a legal question with analysis and precedents.",
        input_model=s.LegalResearchInput,
        output_model=s.LegalResearchOutput,
        system=SYSTEM_PROMPTS["legal"],
        template=(
            "Research this question under {{ legal_region }} law:\n\n"
            "{{ query }}\n\n"
            "Give a concise answer, a detailed analysis of the governing "
            "principles, and relevant precedents."
        ),
        credit_cost=20,
        feature="aiToolkit",
    ),
    FlowDefinition(
        name="penalty-predictor",
        description="Estimate the penalty and risk of a compliance default.",
        input_model=s.PenaltyPredictorInput,
        output_model=s.PenaltyPredictorOutput,
        system=SYSTEM_PROMPTS["compliance"],
        template=(
            "Compliance default ({{ legal_region }}):\n{{ compliance_default }}\n\n"
            "Estimate the penalty, rate the risk Low, Medium or High, explain "
            "why with reference to the relevant law, and list 2-3 mitigation "
            "steps."
        ),
        credit_cost=1,
        feature="aiToolkit",
    ),
    FlowDefinition(
        name="proactive-insights",
        description="One to three dashboard insights for the caller.",
        input_model=s.ProactiveInsightsInput,
        output_model=s.ProactiveInsightsOutput,
        system=SYSTEM_PROMPTS["compliance"],
        template=(
            "User role: {{ user_role }} ({{ legal_region }})\n"
            "{% if founder_context %}"
            "Company: {{ founder_context.company_type }}, "
            "{{ founder_context.company_age_in_days }} days old\n"
            "Hygiene score: {{ founder_context.hygiene_score }}\n"
            "Overdue: {{ founder_context.overdue_count }}, due in 30 days: "
            "{{ founder_context.upcoming_in_30_days_count }}\n"
            "Monthly burn: {{ founder_context.burn_rate }}\n"
            "{% endif %}"
            "{% if ca_context %}"
            "Clients: {{ ca_context.client_count }}, high risk: "
            "{{ ca_context.high_risk_client_count }}\n"
            "{% endif %}\n"
            "Suggest 1-3 timely insights, each with a call to action and an "
            "in-app link starting with /dashboard."
        ),
        credit_cost=1,
        feature="dashboard",
    ),
    FlowDefinition(
        name="reconciliation",
        description="Cross-check figures across two or three filings.",
        input_model=s.ReconciliationInput,
        output_model=s.ReconciliationOutput,
        system=SYSTEM_PROMPTS["finance"],
        template=(
            "Reconcile the key financial figures (revenue, profit before tax, "
            "tax paid, ...) across these filings ({{ legal_region }}).\n\n"
            "{% for doc in documents %}"
            "=== {{ doc.name }} ===\n{{ doc.document_text }}\n\n"
            "{% endfor %}"
            "List the figures that match and every discrepancy with the value "
            "per source and the likely reason."
        ),
        credit_cost=15,
        feature="reconciliation",
    ),
    FlowDefinition(
        name="regulation-watcher",
        description="Digest of recent updates from a regulatory portal.",
        input_model=s.RegulationWatcherInput,
        output_model=s.RegulationWatcherOutput,
        system=SYSTEM_PROMPTS["compliance"],
        template=(
            "Summarise the most important recent {{ portal }} updates for a "
            "{{ frequency }} digest. Use Markdown bullet points."
        ),
        credit_cost=1,
        feature="aiToolkit",
    ),
    FlowDefinition(
        name="state-comparison",
        description="Compare Indian states for incorporating a business.",
        input_model=s.StateComparisonInput,
        output_model=s.StateComparisonOutput,
        system=SYSTEM_PROMPTS["advisor"],
        template=(
            "Compare these states for a {{ business_type }} business "
            "({{ funding_stage }}, hiring {{ hiring_plan }}): "
            "{{ states_to_compare | join(', ') }}.\n\n"
            "For each, cover incorporation, startup schemes, tax and labour, "
            "and common issues, and score it out of 10. Finish with a "
            "recommendation."
        ),
        credit_cost=1,
        feature="playbook",
    ),
    FlowDefinition(
        name="valuation-optimizer",
        description="Defensible valuation range for an early-stage startup.",
        input_model=s.ValuationOptimizerInput,
        output_model=s.ValuationOptimizerOutput,
        system=SYSTEM_PROMPTS["finance"],
        template=(
            "Suggest a defensible valuation range for a {{ stage }} "
            "{{ industry }} startup in {{ legal_region }}.\n"
            "Traction: {{ traction }}\nTeam: {{ team_summary }}\n\n"
            "Explain the reasoning and list 3-4 steps to justify it to "
            "investors and tax authorities."
        ),
        credit_cost=2,
        feature="financials",
    ),
    FlowDefinition(
        name="wiki-generator",
        description="Internal wiki page from a policy document.",
        input_model=s.WikiGeneratorInput,
        output_model=s.WikiGeneratorOutput,
        system=SYSTEM_PROMPTS["legal"],
        template=(
            "Turn the policy \"{{ document_title }}\" into an internal wiki "
            "page employees can skim. Markdown, with headings and FAQs.\n\n"
            + _DOCUMENT_BLOCK
        ),
        credit_cost=5,
        feature="aiToolkit",
    ),
    FlowDefinition(
        name="yoy-analysis",
        description="Year-over-year insights from annual figures.",
        input_model=s.YoyAnalysisInput,
        output_model=s.YoyAnalysisOutput,
        system=SYSTEM_PROMPTS["finance"],
        template=(
            "Financial data ({{ legal_region }}):\n"
            "{% for row in processed_data %}"
            "- FY {{ row.year }}: revenue {{ row.revenue }}, expenses "
            "{{ row.expenses }}, profit/loss {{ row.profit_or_loss }}\n"
            "{% endfor %}\n"
            "Give 6-8 insights on revenue growth, expense control, "
            "profitability, efficiency and turning points, ending with a "
            "suggestion for FY {{ last_year }}. With a single year of data, "
            "say that a trend cannot be measured yet."
        ),
        credit_cost=2,
        feature="financials",
        prepare=_prepare_yoy,
    ),
]

FLOW_REGISTRY: dict[str, FlowDefinition] = {flow.name: flow for flow in _FLOWS}


def get_flow(name: str) -> FlowDefinition:
    """
    Raises:
        FlowNotFoundError: no flow is registered under `name`.
    """
    try:
        return FLOW_REGISTRY[name]
    except KeyError:
        raise FlowNotFoundError(f"Unknown flow '{name}'.") from None


def list_flows() -> list[FlowDefinition]:
    return sorted(FLOW_REGISTRY.values(), key=lambda flow: flow.name)
