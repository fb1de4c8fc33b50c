"""Document analysis capability for CostScan.

The intake pipeline depends only on DocumentAnalyzer. One implementation is
backed by an LLM provider; the null implementation represents "no provider
configured" and routes the pipeline into simulation mode.
"""

import base64
from abc import ABC, abstractmethod
from typing import Optional

import structlog
from langchain_core.messages import HumanMessage, SystemMessage

from config.ai_config import AIConfig
from config.errors import CostScanError, ErrorCode
from models.analysis import AnalysisResult, parse_analysis_response
from services.content_extractor import ExtractedContent
from services.llm_service import LLMService

logger = structlog.get_logger()


ANALYSIS_PROMPT = """You are an expert construction cost estimator and quantity surveyor. Analyze the provided construction document and extract detailed cost estimation information.

Please provide your analysis in the following JSON format:

{
  "extractedText": "Brief summary of document content",
  "identifiedItems": [
    {
      "category": "Category (e.g., Structural, Civil, Electrical, Plumbing, Finishing, HVAC)",
      "description": "Detailed description of the item",
      "quantity": number,
      "unit": "Unit of measurement (e.g., m³, m², kg, tons, units, lot)",
      "estimatedRate": number,
      "confidence": number (0-100)
    }
  ],
  "projectType": "Type of construction project",
  "totalEstimatedCost": number,
  "accuracy": number (85-98),
  "insights": [
    "Key insight 1",
    "Key insight 2",
    "Risk factor or recommendation"
  ]
}

Guidelines:
- Extract quantities from drawings, BOQs, specifications
- Express quantities in metric units and rates in USD
- Categories: Structural, Civil, Electrical, Plumbing, Finishing, HVAC, Site Work
- Be conservative with confidence scores
- Include material and labor costs
- Identify potential cost risks
- Provide actionable insights

Respond only with valid JSON."""


class DocumentAnalyzer(ABC):
    """Given document content, return a structured cost analysis."""

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """False when no provider backs this analyzer."""

    @property
    @abstractmethod
    def provider(self) -> Optional[str]:
        """Provider name, or None."""

    @abstractmethod
    async def analyze(self, content: ExtractedContent, file_name: str, mime_type: str) -> AnalysisResult:
        """Analyze one document.

        Malformed provider output yields an empty AnalysisResult. Provider
        failures raise CostScanError.
        """


class NullDocumentAnalyzer(DocumentAnalyzer):
    """Analyzer used when no provider is configured."""

    @property
    def is_configured(self) -> bool:
        return False

    @property
    def provider(self) -> Optional[str]:
        return None

    async def analyze(self, content: ExtractedContent, file_name: str, mime_type: str) -> AnalysisResult:
        raise CostScanError(
            code=ErrorCode.ANALYSIS_NOT_CONFIGURED,
            message="No AI provider is configured",
            details={"fileName": file_name}
        )


class LLMDocumentAnalyzer(DocumentAnalyzer):
    """Analyzer backed by a LangChain chat model."""

    def __init__(self, llm_service: LLMService, max_tokens: Optional[int] = None):
        self.llm_service = llm_service
        self.max_tokens = max_tokens

    @property
    def is_configured(self) -> bool:
        return True

    @property
    def provider(self) -> Optional[str]:
        return self.llm_service.provider.value

    def build_messages(self, content: ExtractedContent, file_name: str, mime_type: str) -> list:
        """System prompt plus a text or vision user message."""
        if content.is_image:
            encoded = base64.b64encode(content.image).decode("ascii")
            user = HumanMessage(content=[
                {"type": "text", "text": f"Analyze this construction drawing/document for cost estimation ({file_name}):"},
                {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}},
            ])
        else:
            user = HumanMessage(content=f"Analyze this construction document ({file_name}):\n\n{content.text}")
        return [SystemMessage(content=ANALYSIS_PROMPT), user]

    async def analyze(self, content: ExtractedContent, file_name: str, mime_type: str) -> AnalysisResult:
        messages = self.build_messages(content, file_name, mime_type)
        response = await self.llm_service.generate(messages, max_tokens=self.max_tokens)
        result = parse_analysis_response(response["content"])

        logger.info(
            "document_analyzed",
            provider=self.provider,
            file_name=file_name,
            item_count=len(result.identified_items),
            accuracy=result.accuracy,
            tokens_used=response.get("tokens_used", 0),
        )
        return result


def create_document_analyzer(ai_config: Optional[AIConfig]) -> DocumentAnalyzer:
    """Analyzer for a resolved configuration; None means not configured."""
    if ai_config is None:
        return NullDocumentAnalyzer()
    return LLMDocumentAnalyzer(LLMService.from_config(ai_config))
