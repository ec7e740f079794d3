"""Competency catalog: CPA Canada competency reference data.

The catalog is read-only to users. The only write path is reseed_catalog,
an administrative upsert that runs inside a savepoint so a failed seed
never leaves the table partially updated.

Keyword phrases are matched by the keyword scorer as stem prefixes, so
"deficienc" matches "deficiency" and "deficiencies". All-caps entries are
acronyms and are matched exactly.
"""

import logging
from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from pathfinder.core.errors import NotFoundError
from pathfinder.models.competency import Competency
from pathfinder.repositories.competency_repository import CompetencyRepository

logger = logging.getLogger(__name__)


# =============================================================================
# Seed Data
# =============================================================================

CPA_COMPETENCIES: tuple[dict, ...] = (
    {
        "competency_id": "FR1",
        "category": "Technical",
        "area_code": "FR",
        "area_name": "Financial Reporting",
        "sub_code": "1.1",
        "sub_name": "Financial Reporting Needs and Systems",
        "description": (
            "Evaluates financial reporting needs and establishes appropriate "
            "accounting policies and systems"
        ),
        "evr_relevance": "HIGH",
        "level_1_criteria": (
            "Applies accounting standards to routine transactions and prepares "
            "financial statements"
        ),
        "level_2_criteria": (
            "Evaluates reporting needs and designs financial reporting systems "
            "for complex entities"
        ),
        "guiding_questions": (
            "Which reporting framework (IFRS or ASPE) applied? Did you prepare "
            "or review financial statements? Did you assess the reporting needs "
            "of stakeholders?"
        ),
        "keywords": [
            "IFRS",
            "ASPE",
            "financial statement",
            "reporting framework",
            "year-end close",
            "month-end close",
            "consolidation",
            "general ledger",
            "note disclosure",
        ],
    },
    {
        "competency_id": "FR2",
        "category": "Technical",
        "area_code": "FR",
        "area_name": "Financial Reporting",
        "sub_code": "1.2",
        "sub_name": "Accounting Policies and Transactions",
        "description": (
            "Evaluates the appropriateness of the basis of accounting and "
            "develops or evaluates accounting policies"
        ),
        "evr_relevance": "HIGH",
        "level_1_criteria": (
            "Applies accounting policies to specific transactions"
        ),
        "level_2_criteria": (
            "Develops accounting policies and evaluates treatment of complex "
            "transactions"
        ),
        "guiding_questions": (
            "Did you analyze how a transaction should be recorded? Did you "
            "research accounting guidance or draft a policy memo? Which "
            "professional judgments did you make?"
        ),
        "keywords": [
            "accounting polic",
            "transaction analysis",
            "revenue recognition",
            "lease accounting",
            "journal entr",
            "accrual",
            "professional judgment",
            "technical memo",
        ],
    },
    {
        "competency_id": "SG1",
        "category": "Technical",
        "area_code": "SG",
        "area_name": "Strategy and Governance",
        "sub_code": "2.1",
        "sub_name": "Governance and Strategy Development",
        "description": (
            "Evaluates the entity's governance structure and strategy "
            "development process"
        ),
        "evr_relevance": "MEDIUM",
        "level_1_criteria": (
            "Assesses governance practices and identifies improvements"
        ),
        "level_2_criteria": (
            "Designs governance frameworks and strategic planning processes"
        ),
        "guiding_questions": (
            "Did you support the board or an audit committee? Did you take part "
            "in strategic planning or enterprise risk oversight?"
        ),
        "keywords": [
            "governance",
            "board of directors",
            "audit committee",
            "strategic plan",
            "risk oversight",
            "enterprise risk",
            "mission",
        ],
    },
    {
        "competency_id": "MA1",
        "category": "Technical",
        "area_code": "MA",
        "area_name": "Management Accounting",
        "sub_code": "3.1",
        "sub_name": "Management Information Needs",
        "description": (
            "Evaluates management information requirements and designs "
            "information systems"
        ),
        "evr_relevance": "HIGH",
        "level_1_criteria": "Develops management reports and KPIs",
        "level_2_criteria": (
            "Designs comprehensive management information systems"
        ),
        "guiding_questions": (
            "Did you build management reports or dashboards? Which KPIs did you "
            "define? How did management use the information for decisions?"
        ),
        "keywords": [
            "management report",
            "KPI",
            "dashboard",
            "decision support",
            "performance measure",
            "scorecard",
        ],
    },
    {
        "competency_id": "MA2",
        "category": "Technical",
        "area_code": "MA",
        "area_name": "Management Accounting",
        "sub_code": "3.2",
        "sub_name": "Planning and Budgeting",
        "description": (
            "Evaluates and applies cost management and budgeting techniques"
        ),
        "evr_relevance": "HIGH",
        "level_1_criteria": "Prepares budgets and analyzes variances",
        "level_2_criteria": (
            "Designs budgeting systems and strategic cost management"
        ),
        "guiding_questions": (
            "Did you prepare a budget or forecast? Did you explain variances to "
            "management? Did you recommend cost reductions?"
        ),
        "keywords": [
            "budget",
            "forecast",
            "variance analysis",
            "cost management",
            "costing",
            "cost reduction",
        ],
    },
    {
        "competency_id": "AA1",
        "category": "Technical",
        "area_code": "AA",
        "area_name": "Audit and Assurance",
        "sub_code": "4.1",
        "sub_name": "Internal Control",
        "description": (
            "Evaluates internal control and identifies control weaknesses"
        ),
        "evr_relevance": "HIGH",
        "level_1_criteria": "Tests controls and identifies deficiencies",
        "level_2_criteria": "Designs control frameworks and remediation plans",
        "guiding_questions": (
            "Did you document or test internal controls? Did you perform "
            "walkthroughs or fieldwork? Did you report deficiencies in a "
            "management letter and follow up on remediation?"
        ),
        "keywords": [
            "internal control",
            "COSO",
            "control testing",
            "risk assessment",
            "audit",
            "fieldwork",
            "test",
            "deficienc",
            "management letter",
            "remediation",
            "walkthrough",
            "segregation of duties",
        ],
    },
    {
        "competency_id": "AA2",
        "category": "Technical",
        "area_code": "AA",
        "area_name": "Audit and Assurance",
        "sub_code": "4.2",
        "sub_name": "Assurance Engagement Planning",
        "description": "Plans and executes assurance engagements",
        "evr_relevance": "HIGH",
        "level_1_criteria": "Develops audit programs and performs procedures",
        "level_2_criteria": "Manages complex audit engagements",
        "guiding_questions": (
            "Did you set materiality or plan an engagement? Did you design or "
            "perform substantive audit procedures? Did you supervise staff on "
            "the file?"
        ),
        "keywords": [
            "audit planning",
            "materiality",
            "audit procedure",
            "substantive",
            "audit program",
            "engagement",
            "review engagement",
            "working paper",
        ],
    },
    {
        "competency_id": "FN1",
        "category": "Technical",
        "area_code": "FN",
        "area_name": "Finance",
        "sub_code": "5.1",
        "sub_name": "Financial Analysis and Planning",
        "description": (
            "Evaluates the entity's financial state and financial management "
            "strategies"
        ),
        "evr_relevance": "MEDIUM",
        "level_1_criteria": "Conducts comprehensive financial analysis",
        "level_2_criteria": "Develops financial strategies and policies",
        "guiding_questions": (
            "Did you analyze ratios, cash flow or working capital? Did you "
            "build financial models or evaluate financing options?"
        ),
        "keywords": [
            "financial analysis",
            "ratio analysis",
            "cash flow",
            "working capital",
            "financial model",
            "valuation",
            "financing",
            "treasury",
        ],
    },
    {
        "competency_id": "TX1",
        "category": "Technical",
        "area_code": "TX",
        "area_name": "Taxation",
        "sub_code": "6.1",
        "sub_name": "Corporate Taxation",
        "description": (
            "Prepares tax returns and analyzes tax issues for corporate entities"
        ),
        "evr_relevance": "HIGH",
        "level_1_criteria": "Prepares corporate tax returns",
        "level_2_criteria": "Provides tax planning advice",
        "guiding_questions": (
            "Did you prepare T2 returns or tax provisions? Did you research the "
            "ITA or advise on tax planning, SR&ED or transfer pricing?"
        ),
        "keywords": [
            "corporate tax",
            "tax return",
            "tax compliance",
            "tax planning",
            "ITA",
            "income tax",
            "T2",
            "taxable income",
            "SR&ED",
            "transfer pricing",
        ],
    },
    {
        "competency_id": "PS1",
        "category": "Enabling",
        "area_code": "PS",
        "area_name": "Professional Behaviour",
        "sub_code": "7.1",
        "sub_name": "Professional and Ethical Behaviour",
        "description": (
            "Acts ethically and demonstrates professional values, including "
            "independence and objectivity"
        ),
        "evr_relevance": "MEDIUM",
        "level_1_criteria": (
            "Recognizes ethical issues and applies the code of conduct"
        ),
        "level_2_criteria": (
            "Resolves ethical dilemmas and promotes professional standards"
        ),
        "guiding_questions": (
            "Did you face an ethical issue or independence concern? How did you "
            "apply the code of professional conduct? Did you protect "
            "confidential information?"
        ),
        "keywords": [
            "ethic",
            "independence",
            "objectivity",
            "code of conduct",
            "confidential",
            "integrity",
            "professional skepticism",
        ],
    },
    {
        "competency_id": "CO1",
        "category": "Enabling",
        "area_code": "CO",
        "area_name": "Communication",
        "sub_code": "8.1",
        "sub_name": "Communication",
        "description": (
            "Communicates clearly and effectively in writing and orally to "
            "different audiences"
        ),
        "evr_relevance": "MEDIUM",
        "level_1_criteria": (
            "Prepares clear written reports and presents findings to colleagues"
        ),
        "level_2_criteria": (
            "Tailors complex messages to executive and external audiences"
        ),
        "guiding_questions": (
            "Did you present findings to management or clients? Did you write "
            "reports or memos for a non-accounting audience?"
        ),
        "keywords": [
            "present",
            "communicat",
            "stakeholder",
            "client",
            "memo",
            "training session",
            "negotiat",
        ],
    },
)


# =============================================================================
# Service Functions
# =============================================================================


async def list_competencies(
    db: AsyncSession,
    *,
    category: str | None = None,
    evr_relevance: str | None = None,
) -> list[Competency]:
    """List active competencies in category, area code, sub-code order.

    Args:
        db: Async database session.
        category: Optional "Technical"/"Enabling" filter.
        evr_relevance: Optional "HIGH"/"MEDIUM"/"LOW" filter.

    Returns:
        Matching competencies. Repeated calls with no reseed in between
        return the same sequence.
    """
    return await CompetencyRepository.list_all(
        db, category=category, evr_relevance=evr_relevance
    )


async def get_competency(db: AsyncSession, competency_id: str) -> Competency:
    """Fetch one competency.

    Raises:
        NotFoundError: If the identifier is not in the catalog.
    """
    competency = await CompetencyRepository.get_by_id(db, competency_id)
    if competency is None:
        raise NotFoundError("Competency", competency_id)
    return competency


async def reseed_catalog(
    db: AsyncSession,
    entries: Sequence[dict] = CPA_COMPETENCIES,
) -> int:
    """Bring the catalog in line with ``entries``.

    Administrative only. Existing competencies are updated in place and
    those dropped from ``entries`` are retired, or deleted when no user data
    refers to them. Either every change applies or the table is left exactly
    as it was.

    Args:
        db: Async database session. The caller commits.
        entries: Competency column dicts. Defaults to the built-in catalog.

    Returns:
        Number of competencies seeded.
    """
    rows = [{"is_active": True, **entry} for entry in entries]
    try:
        count = await CompetencyRepository.upsert_all(db, rows)
    except Exception:
        logger.error("Competency reseed failed; catalog left unchanged")
        raise
    logger.info("Seeded %d CPA competencies", count)
    return count
