# =============================================================================
# Flow Schemas — Input & Output Models for Every Flow
# =============================================================================
#
# Each flow has one input model (validated before the template renders) and
# one output model (validated against the model's JSON reply). Output models
# double as the JSON Schema embedded in the system prompt, so field
# descriptions here are read by the model: keep them short and concrete.
#
# DESIGN DECISION: Documents travel as extracted text (`document_text`),
# not as base64 data URIs. Text extraction is the caller's job; the runner
# only ever sends text to the model.
# =============================================================================

from typing import Literal

from pydantic import BaseModel, Field

RiskLevel = Literal["Low", "Medium", "High"]


class RegionalInput(BaseModel):
    """Base for flows whose answer depends on jurisdiction."""

    legal_region: str = Field(
        default="India",
        description='Country or legal region, e.g. "India", "USA"',
    )


class DocumentInput(RegionalInput):
    file_name: str = Field(..., min_length=1, description="Name of the uploaded file")
    document_text: str = Field(
        ..., min_length=1, description="Plain text extracted from the document",
    )


# ---------------------------------------------------------------------------
# Assistant & learning
# ---------------------------------------------------------------------------


class AssistantInput(RegionalInput):
    topic: str = Field(..., min_length=1, description="The question or topic")


class ChecklistItem(BaseModel):
    task: str = Field(description="One actionable task")
    category: str = Field(description='Category, e.g. "Tax Filings"')


class Checklist(BaseModel):
    title: str
    items: list[ChecklistItem]


class AssistantOutput(BaseModel):
    response: str = Field(
        description="Helpful answer framed as guidance, not legal advice",
    )
    checklist: Checklist | None = Field(
        default=None,
        description="A checklist, only when one answers the question best",
    )


class LearnInput(RegionalInput):
    topic: str = Field(..., min_length=1, description='e.g. "Burn Rate", "CAC"')


class LearnOutput(BaseModel):
    title: str
    summary: str = Field(description="Explain-like-I'm-five summary")
    content: str = Field(description="Detailed Markdown explanation with examples")
    further_reading: list[str] = Field(default_factory=list)


class LegalResearchInput(RegionalInput):
    query: str = Field(..., min_length=1, description="The legal question to research")


class Precedent(BaseModel):
    case_name: str
    summary: str


class LegalResearchOutput(BaseModel):
    summary: str
    analysis: str
    precedents: list[Precedent]


class RegulationWatcherInput(BaseModel):
    portal: str = Field(..., description='Regulatory portal, e.g. "MCA", "SEBI"')
    frequency: str = Field(default="weekly", description='"daily" or "weekly"')


class RegulationWatcherOutput(BaseModel):
    summary: str = Field(description="Markdown summary of recent updates")


# ---------------------------------------------------------------------------
# Company setup
# ---------------------------------------------------------------------------


class BusinessRecommenderInput(RegionalInput):
    founder_count: int = Field(..., ge=1)
    investment_plan: str = Field(..., description='e.g. "bootstrapped", "venture capital"')
    revenue_goal: str
    business_description: str = Field(..., min_length=1)


class BusinessRecommenderOutput(BaseModel):
    recommended_type: str = Field(description='e.g. "Private Limited Company"')
    reasoning: str
    pros: list[str]
    cons: list[str]
    alternative_option: str | None = None


class CompanyDetailsInput(RegionalInput):
    cin: str = Field(..., min_length=1, description="Company identification number")


class CompanyDetailsOutput(BaseModel):
    name: str
    pan: str = Field(description="Tax id (PAN, EIN, ...)")
    incorporation_date: str = Field(description="YYYY-MM-DD")
    sector: str
    location: str = Field(description='"City, State"')


class IncCodeFinderInput(BaseModel):
    business_description: str = Field(..., min_length=1)


class IndustryCode(BaseModel):
    code: str
    title: str


class IncCodeFinderOutput(BaseModel):
    nic_code: str = Field(description='5-digit NIC code, e.g. "62099"')
    nic_title: str
    reasoning: str
    alternative_codes: list[IndustryCode] = Field(default_factory=list)


class StateComparisonInput(BaseModel):
    business_type: Literal[
        "Tech/IT/SaaS", "Manufacturing", "Services (Non-IT)",
        "Agri-business", "E-commerce/Retail",
    ]
    funding_stage: Literal["Bootstrapped", "Pre-Seed/Angel", "VC Funded"]
    hiring_plan: Literal["1-10 Employees", "11-50 Employees", "50+ Employees"]
    states_to_compare: list[str] = Field(..., min_length=1, max_length=3)


class StateIncorporation(BaseModel):
    ease_of_registration: str
    compliance_notes: str


class StateSchemes(BaseModel):
    key_schemes: list[str]
    incentives: str


class StateTaxAndLabour(BaseModel):
    professional_tax: str
    labour_law_compliance: str


class StateRisks(BaseModel):
    common_issues: list[str]


class StateAnalysis(BaseModel):
    state: str
    incorporation: StateIncorporation
    startup_schemes: StateSchemes
    tax_and_labour: StateTaxAndLabour
    risks_and_flags: StateRisks
    score: float = Field(ge=0, le=10)


class StateComparisonOutput(BaseModel):
    analysis: list[StateAnalysis]
    recommendation: str


# ---------------------------------------------------------------------------
# Funding
# ---------------------------------------------------------------------------


class GrantRecommenderInput(RegionalInput):
    industry: str
    location: str = Field(..., description="Primary state of operation")
    business_age_in_months: int = Field(..., ge=0)
    has_female_founder: bool = False
    is_dpiit_recognized: bool = False


class GrantRecommendation(BaseModel):
    scheme_name: str
    description: str
    eligibility_summary: str
    is_eligible: bool
    category: Literal[
        "Tax Exemption", "Grant / Funding", "Certification",
        "State-Specific", "Loan Scheme", "Women Entrepreneur",
    ]
    link: str


class GrantRecommenderOutput(BaseModel):
    recommendations: list[GrantRecommendation]


class InvestorFinderInput(RegionalInput):
    industry: str
    stage: str = Field(..., description='e.g. "Seed", "Series A"')
    location: str


class KeyPartner(BaseModel):
    name: str
    linkedin: str


class Investor(BaseModel):
    firm_name: str
    sector_focus: str
    cheque_size: str
    website: str
    linkedin: str
    key_partners: list[KeyPartner] = Field(default_factory=list)
    portfolio: list[str] = Field(default_factory=list)


class Grant(BaseModel):
    name: str
    description: str
    eligibility_summary: str
    link: str


class InvestorFinderOutput(BaseModel):
    investors: list[Investor]
    grants: list[Grant] = Field(default_factory=list)


class ValuationOptimizerInput(RegionalInput):
    industry: str
    stage: Literal["Idea", "Pre-Seed", "Seed"]
    traction: str
    team_summary: str


class ValuationOptimizerOutput(BaseModel):
    suggested_valuation_range: str
    reasoning: str
    justification_steps: list[str]


# ---------------------------------------------------------------------------
# Finance
# ---------------------------------------------------------------------------


class FinancialReportInput(RegionalInput):
    monthly_revenue: float = Field(..., ge=0)
    monthly_expenses: float = Field(..., ge=0)
    cash_balance: float


class FinancialReportOutput(BaseModel):
    report: str = Field(description="Markdown financial health report")


class FounderSalaryInput(RegionalInput):
    desired_annual_payout: float = Field(..., ge=1)
    company_stage: Literal["Pre-Revenue", "Early Revenue", "Growth Stage"]
    last_funding_amount: float = Field(default=0, ge=0)


class SalaryBreakdown(BaseModel):
    in_hand_salary: float
    reimbursements: float
    esop_allocation_value: float
    directors_fee: float


class FounderSalaryOutput(BaseModel):
    breakdown: SalaryBreakdown
    reasoning: str
    warnings: list[str]


class YearFigures(BaseModel):
    year: str
    revenue: float
    expenses: float


class YoyAnalysisInput(RegionalInput):
    historical_data: list[YearFigures] = Field(..., min_length=1)


class YoyAnalysisOutput(BaseModel):
    insights: list[str] = Field(description="6 to 8 actionable insights")


class ReportInsightsInput(RegionalInput):
    hygiene_score: float = Field(..., ge=0, le=100)
    overdue_filings: int = Field(..., ge=0)
    upcoming_filings: int = Field(..., ge=0)
    burn_rate: float = Field(..., description="Net monthly burn; positive is a loss")
    runway_in_months: str
    recent_risk_flags: list[str] = Field(default_factory=list)


class ReportInsightsOutput(BaseModel):
    executive_summary: str = Field(description="3-5 point Markdown summary")


# ---------------------------------------------------------------------------
# Compliance
# ---------------------------------------------------------------------------


class FilingGeneratorInput(RegionalInput):
    company_type: str
    incorporation_date: str = Field(..., description="YYYY-MM-DD")
    current_date: str = Field(..., description="YYYY-MM-DD")


class FilingItem(BaseModel):
    date: str = Field(description="Due date, YYYY-MM-DD")
    title: str
    type: Literal["Corporate Filing", "Tax Filing", "Other Task"]
    description: str
    penalty: str


class FilingGeneratorOutput(BaseModel):
    filings: list[FilingItem]


class PenaltyPredictorInput(RegionalInput):
    compliance_default: str = Field(..., min_length=1)


class PenaltyPredictorOutput(BaseModel):
    penalty_amount: str = Field(description="e.g. '₹500 per day'")
    risk_level: RiskLevel
    reasoning: str
    mitigation_steps: list[str]


class ComplianceValidatorInput(DocumentInput):
    framework: str = Field(..., description='e.g. "SOC2", "GDPR"')


class MissingItem(BaseModel):
    item: str
    recommendation: str


class ComplianceValidatorOutput(BaseModel):
    readiness_score: float = Field(ge=0, le=100)
    summary: str
    missing_items: list[MissingItem]


class DiligenceChecklistInput(RegionalInput):
    deal_type: str = Field(..., description='e.g. "Seed Funding", "Series A"')


class DiligenceChecklistOutput(BaseModel):
    title: str
    checklist: list[ChecklistItem]


class ProactiveFounderContext(BaseModel):
    company_age_in_days: int
    company_type: str
    hygiene_score: float
    overdue_count: int
    upcoming_in_30_days_count: int
    burn_rate: float


class ProactiveAdvisorContext(BaseModel):
    client_count: int
    high_risk_client_count: int


class ProactiveInsightsInput(RegionalInput):
    user_role: Literal["Founder", "CA", "Legal Advisor", "Enterprise"]
    founder_context: ProactiveFounderContext | None = None
    ca_context: ProactiveAdvisorContext | None = None


class Insight(BaseModel):
    title: str
    description: str
    cta: str
    href: str
    icon: Literal[
        "Lightbulb", "BarChart", "FileText", "AlertTriangle", "Users", "ShieldCheck",
    ]


class ProactiveInsightsOutput(BaseModel):
    insights: list[Insight] = Field(max_length=3)


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class DocumentGeneratorInput(RegionalInput):
    template_name: str = Field(..., min_length=1)


class DocumentGeneratorOutput(BaseModel):
    title: str
    content: str


class DocumentSummarizerInput(DocumentInput):
    pass


class DocumentSummarizerOutput(BaseModel):
    summary: str


class RiskFlag(BaseModel):
    clause: str
    risk: str


class SeverityRiskFlag(RiskFlag):
    severity: RiskLevel


class ReminderSuggestion(BaseModel):
    title: str
    date: str = Field(description="YYYY-MM-DD, a few days before the deadline")


class ReplySuggestion(BaseModel):
    title: str
    content: str


class ContractDetails(BaseModel):
    contracting_parties: list[str]
    effective_date: str
    term: str
    renewal_notice_date: str | None = None


class DocumentIntelligenceInput(DocumentInput):
    pass


class DocumentIntelligenceOutput(BaseModel):
    document_type: Literal[
        "Legal Contract", "Government Notice", "Termination/Warning Letter",
        "Compliance Filing", "Other",
    ]
    summary: str = Field(description="Bullet-point Markdown summary")
    risk_flags: list[SeverityRiskFlag]
    reply_suggestion: ReplySuggestion | None = None
    reminder: ReminderSuggestion | None = None
    contract_details: ContractDetails | None = None


class ContractAnalyzerInput(DocumentInput):
    pass


class ContractSummary(BaseModel):
    contract_type: str
    parties: list[str]
    effective_date: str
    purpose: str
    key_obligations: list[str]


class ContractAnalyzerOutput(BaseModel):
    summary: ContractSummary
    risk_score: float = Field(ge=0, le=100, description="0 very high risk, 100 very low")
    risk_flags: list[RiskFlag]
    missing_clauses: list[str]


class WikiGeneratorInput(DocumentInput):
    document_title: str = Field(..., description='e.g. "Terms of Service"')


class WikiGeneratorOutput(BaseModel):
    wiki_content: str


class SourceDocument(BaseModel):
    name: str = Field(..., description='e.g. "GST Filing"')
    document_text: str = Field(..., min_length=1)


class ReconciliationInput(RegionalInput):
    documents: list[SourceDocument] = Field(..., min_length=2, max_length=3)


class MatchedItem(BaseModel):
    field: str
    value: str


class SourceValue(BaseModel):
    source: str
    value: str


class Discrepancy(BaseModel):
    field: str
    values: list[SourceValue]
    reason: str


class ReconciliationOutput(BaseModel):
    overall_status: Literal["Matched", "Discrepancies Found"]
    summary: str
    matched_items: list[MatchedItem]
    discrepancies: list[Discrepancy]


# ---------------------------------------------------------------------------
# Governance
# ---------------------------------------------------------------------------


class GovernanceAgendaInput(RegionalInput):
    meeting_type: str = Field(..., description='e.g. "Quarterly Board Meeting", "AGM"')
    topics: list[str] = Field(..., min_length=1)


class AgendaItem(BaseModel):
    topic: str
    presenter: str
    time_allocated: str
    description: str


class GovernanceAgendaOutput(BaseModel):
    title: str
    agenda: list[AgendaItem]


class GovernanceMinutesInput(RegionalInput):
    agenda: str
    attendees: list[str] = Field(..., min_length=1)
    notes: str


class GovernanceMinutesOutput(BaseModel):
    minutes: str = Field(description="Complete Markdown minutes")
