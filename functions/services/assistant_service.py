"""Project assistant (chat) for CostScan.

Answers questions about one project's estimate. With a provider configured the
question goes to the LLM together with a context prompt built from the
project's line items; without one, keyword-matched canned advice is returned.
"""

from collections import OrderedDict
from typing import List, Optional

import structlog

from config.errors import CostScanError, ErrorCode, ValidationError
from models.project import LineItem, Project
from services.llm_service import LLMService

logger = structlog.get_logger()


APOLOGY_REPLY = (
    "I apologize, but I encountered an error while processing your request. "
    "Please try again or rephrase your question."
)

MAX_QUESTION_CHARS = 2000


def _usd(amount: float) -> str:
    return f"${amount:,.0f}"


def build_context_prompt(project: Project, items: List[LineItem]) -> str:
    """System prompt describing the project's estimate."""
    category_totals: "OrderedDict[str, float]" = OrderedDict()
    for item in items:
        category_totals[item.category] = category_totals.get(item.category, 0.0) + item.amount

    total = project.total_cost or sum(item.amount for item in items)

    breakdown = "\n".join(
        f"- {category}: {_usd(amount)} ({(amount / total * 100) if total else 0:.1f}%)"
        for category, amount in category_totals.items()
    )
    line_items = "\n".join(
        f"- {item.description}: {item.quantity:g} {item.unit} @ {_usd(item.rate)} = {_usd(item.amount)}"
        for item in items
    )

    return f"""You are an expert construction advisor and cost consultant. You are helping with a {project.type or 'construction'} project called "{project.name or 'Construction Project'}".

PROJECT DETAILS:
- Total Estimated Cost: {_usd(total)}
- Accuracy: {project.accuracy}%
- Number of Line Items: {len(items)}

COST BREAKDOWN BY CATEGORY:
{breakdown or '- No line items yet'}

DETAILED LINE ITEMS:
{line_items or '- No line items yet'}

Provide helpful, actionable advice based on this specific project data. Be concise but thorough. Focus on practical suggestions that can help optimize costs, improve quality, or mitigate risks. Use the actual numbers and categories from this project in your responses."""


def fallback_reply(question: str, project: Project, items: List[LineItem]) -> str:
    """Deterministic advice used when no provider is configured."""
    lowered = question.lower()
    project_type = project.type or "construction"
    total = _usd(project.total_cost)

    if any(word in lowered for word in ("cost", "expensive", "budget")):
        lines = [f"Based on your project estimate of {total}, here are some cost optimization suggestions:", ""]
        if items:
            highest = max(items, key=lambda item: item.amount)
            lines.append(f'• Your highest cost item is "{highest.description}" at {_usd(highest.amount)}')
        lines += [
            "• Consider bulk purchasing for materials to get 5-10% discounts",
            "• Review specifications for potential value engineering opportunities",
            "• Get multiple quotes from suppliers and contractors",
            "• Consider phased construction to spread costs over time",
            "",
            f"The current estimate shows {project.accuracy}% accuracy. "
            "I recommend adding a 10-15% contingency for unexpected costs.",
        ]
        return "\n".join(lines)

    if any(word in lowered for word in ("material", "alternative")):
        return "\n".join([
            f"For material optimization in your {project_type} project:",
            "",
            "• Consider alternative materials that meet the same performance standards",
            "• Look into sustainable options that may qualify for tax incentives",
            "• Evaluate local vs. imported materials for cost and timeline benefits",
            "• Review material specifications for potential over-engineering",
            "",
            f"Material costs are a significant portion of the {total} total. "
            "I can help you analyze specific categories if you'd like to focus on particular areas.",
        ])

    if any(word in lowered for word in ("time", "schedule", "duration")):
        return "\n".join([
            "For timeline optimization:",
            "",
            f"• Your project has {len(items)} major line items to coordinate",
            "• Consider parallel work streams where possible",
            "• Plan for material delivery schedules to avoid delays",
            "• Factor in weather conditions and seasonal variations",
            "• Build in buffer time for inspections and approvals",
            "",
            "Based on the project scope, I estimate 8-12 months for completion, "
            "depending on complexity and local conditions.",
        ])

    if any(word in lowered for word in ("risk", "problem", "issue")):
        return "\n".join([
            "Key risks to consider for your project:",
            "",
            "• Market volatility: Material costs can fluctuate ±10-15%",
            "• Weather delays: Plan for seasonal impacts",
            "• Permit delays: Start applications early",
            "• Labor availability: Secure skilled contractors in advance",
            "• Supply chain: Order long-lead items early",
            "",
            f"Your {project.accuracy}% accuracy estimate is a good baseline, "
            "but I recommend a 10-15% contingency fund for unforeseen issues.",
        ])

    return "\n".join([
        f"Thank you for your question about the {project_type} project. "
        f"Based on your estimate of {total} with {len(items)} line items:",
        "",
        f"• The project shows {project.accuracy}% confidence in the estimates",
        "• Consider reviewing the highest cost categories for optimization opportunities",
        "• Plan for proper project management and quality control",
        "• Ensure all permits and approvals are in place before starting",
        "",
        "Could you be more specific about what aspect you'd like me to focus on? "
        "I can help with costs, materials, timeline, or risk management.",
    ])


class ProjectAssistant:
    """Answers questions about a project's estimate."""

    def __init__(self, llm_service: Optional[LLMService] = None):
        self.llm_service = llm_service

    @property
    def is_configured(self) -> bool:
        return self.llm_service is not None

    async def answer(self, question: str, project: Project, items: List[LineItem]) -> str:
        """Answer a question.

        Raises:
            ValidationError: If the question is empty or too long.
        """
        question = (question or "").strip()
        if not question:
            raise ValidationError(message="Question is required", field="question", code=ErrorCode.MISSING_FIELD)
        if len(question) > MAX_QUESTION_CHARS:
            raise ValidationError(
                message=f"Question exceeds {MAX_QUESTION_CHARS} characters",
                field="question",
                code=ErrorCode.INVALID_FIELD,
            )

        if not self.is_configured:
            logger.info("assistant_fallback_reply", project_id=project.id)
            return fallback_reply(question, project, items)

        try:
            response = await self.llm_service.generate_with_system_prompt(
                build_context_prompt(project, items),
                f"User Question: {question}\n\nProvide a helpful response based on the project data above.",
            )
        except CostScanError as e:
            logger.warning("assistant_llm_failed", project_id=project.id, code=e.code, error=e.message)
            return APOLOGY_REPLY

        content = (response.get("content") or "").strip()
        return content or APOLOGY_REPLY
