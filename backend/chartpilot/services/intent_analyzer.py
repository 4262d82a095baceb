"""
Chart intent analysis.

Combines the AI service's recommendation with the deterministic heuristic
recommender and validates any intent against the data it will be drawn from.
"""
import json
import logging
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from pydantic.alias_generators import to_camel
from chartpilot.core.config import Settings
from chartpilot.core.errors import ChartPipelineError, ErrorKinds, Stages
from chartpilot.core.performance import track_performance
from chartpilot.core.sanitization import sanitize_for_prompt
from chartpilot.core.schemas import (
    ChartIntent, ChartType, CompatibilityResult, IntentSuggestions, UnifiedDataStructure, VisualMapping,
)
from chartpilot.services.ai_service import AIService, AIServiceError, ChatRequest, chat_json
from chartpilot.services.chart_rules import CHART_RULES, PART_TO_WHOLE, row_floor_issue, structural_issues
from chartpilot.services.heuristics import HeuristicRecommendation, recommend_chart, title_case

logger = logging.getLogger(__name__)

PIE_READABLE_ROWS = 10
SAMPLE_ROWS_FOR_AI = 3

INTENT_SYSTEM_PROMPT = """You are a data visualization expert. Choose the best chart for the user's request and data.

Supported chart types:
- bar: compare values across categories
- line: show trends over time or ordered categories
- pie: show parts of a whole
- area: show cumulative or stacked values over time
- radar: compare several metrics per category
- radial: show parts of a whole as concentric rings

Use only field names that exist in the data structure.

Respond with strict JSON only:
{
  "chartType": "bar|line|pie|area|radar|radial",
  "confidence": 0.0-1.0,
  "reasoning": "why this chart fits",
  "visualMapping": {"xAxis": "field", "yAxis": ["field"], "colorBy": "field or null"},
  "title": "chart title",
  "description": "one sentence description",
  "insights": ["short insight"]
}"""


class AIVisualMapping(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    x_axis: Optional[str] = None
    y_axis: List[str] = []
    color_by: Optional[str] = None

    @field_validator('y_axis', mode='before')
    @classmethod
    def wrap_single_field(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v


class AIIntentPayload(BaseModel):
    """Shape of the AI service's intent reply; anything else is a failed call."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    chart_type: ChartType
    confidence: float = 0.8
    reasoning: str = ""
    visual_mapping: Optional[AIVisualMapping] = None
    title: Optional[str] = None
    description: Optional[str] = None
    insights: List[str] = []

    @field_validator('chart_type', mode='before')
    @classmethod
    def normalize_chart_type(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator('confidence', mode='before')
    @classmethod
    def default_confidence(cls, v: Any) -> Any:
        return 0.8 if v is None else v


def describe_data(data: UnifiedDataStructure) -> str:
    """Compact, prompt-safe description of a dataset's schema and first rows."""
    fields = [
        {"name": sanitize_for_prompt(f.name, 60), "type": f.type.value}
        for f in data.data_schema.fields
    ]
    sample = [
        {sanitize_for_prompt(str(k), 60): v for k, v in row.items()}
        for row in data.data[:SAMPLE_ROWS_FOR_AI]
    ]
    return (
        f"Rows: {data.data_schema.row_count}\n"
        f"Fields: {json.dumps(fields, ensure_ascii=False)}\n"
        f"Sample rows: {json.dumps(sample, ensure_ascii=False, default=str)}"
    )


class IntentAnalyzer:
    """Pick a chart intent for a dataset and check it against the data."""

    def __init__(self, ai_service: AIService, settings: Settings):
        self.ai_service = ai_service
        self.settings = settings

    @track_performance("analyze_chart_intent")
    async def analyze_chart_intent(self, prompt: str, data: UnifiedDataStructure) -> ChartIntent:
        """Recommend a chart for a prompt; the heuristic is computed first and kept as fallback."""
        heuristic = recommend_chart(prompt, data, self.settings)
        user_prompt = f"User request: {sanitize_for_prompt(prompt, 500)}\n\nData structure:\n{describe_data(data)}"
        ai_intent = await self._request_ai_intent(user_prompt, data)
        return self._reconcile(ai_intent, heuristic, data)

    @track_performance("suggest_best_visualization")
    async def suggest_best_visualization(self, data: UnifiedDataStructure) -> ChartIntent:
        """Recommend a chart from the data alone; only its shape drives the heuristic."""
        heuristic = recommend_chart("", data, self.settings)
        user_prompt = (
            "No request was given. Recommend the most informative chart for this data.\n\n"
            f"Data structure:\n{describe_data(data)}"
        )
        ai_intent = await self._request_ai_intent(user_prompt, data)
        return self._reconcile(ai_intent, heuristic, data)

    async def _request_ai_intent(self, user_prompt: str, data: UnifiedDataStructure) -> Optional[ChartIntent]:
        request = ChatRequest.single(user_prompt, INTENT_SYSTEM_PROMPT, temperature=0.3, max_tokens=800)
        try:
            payload = AIIntentPayload.model_validate(
                await chat_json(self.ai_service, request, self.settings.ai_timeout_seconds)
            )
            return self._intent_from_payload(payload, data)
        except (AIServiceError, ValidationError) as e:
            logger.warning(
                f"AI intent analysis failed, using heuristic: {e}",
                extra={"stage": Stages.INTENT_ANALYSIS}
            )
            return None

    def _intent_from_payload(self, payload: AIIntentPayload, data: UnifiedDataStructure) -> ChartIntent:
        stats = data.statistics
        mapping = payload.visual_mapping or AIVisualMapping()

        x_axis = mapping.x_axis or (stats.categorical_fields[0] if stats.categorical_fields else "category")
        y_axis = mapping.y_axis or stats.numeric_fields[:2]
        color_by = mapping.color_by if mapping.color_by and mapping.color_by != x_axis else None
        rule = CHART_RULES[payload.chart_type]

        return ChartIntent(
            chart_type=payload.chart_type,
            confidence=min(1.0, max(0.0, payload.confidence)),
            reasoning=payload.reasoning or "Recommended by the AI service",
            required_fields=list(dict.fromkeys([x_axis, *y_axis])),
            optional_fields=[color_by] if color_by else [],
            visual_mapping=VisualMapping(x_axis=x_axis, y_axis=y_axis, color_by=color_by),
            suggestions=IntentSuggestions(
                title=payload.title or f"{rule.label} of {title_case(x_axis)}",
                description=payload.description or f"{rule.label} generated from {data.data_schema.row_count} records",
                insights=[i for i in payload.insights if isinstance(i, str) and i.strip()],
            ),
        )

    def _reconcile(
        self,
        ai_intent: Optional[ChartIntent],
        heuristic: HeuristicRecommendation,
        data: UnifiedDataStructure,
    ) -> ChartIntent:
        fallback = heuristic.intent
        analysis = heuristic.analysis

        if ai_intent is None:
            if fallback is None:
                raise ChartPipelineError(
                    Stages.INTENT_ANALYSIS,
                    ErrorKinds.SERVICE_UNAVAILABLE,
                    "Could not determine a chart: the AI service failed and the data supports no chart type",
                    {"scores": {ct.value: s for ct, s in analysis.scores.items()}},
                )
            logger.info(f"Using heuristic intent: {fallback.chart_type.value}", extra={"chart_type": fallback.chart_type.value})
            return fallback

        if fallback is None:
            return ai_intent

        ai_compatible = self.validate_data_compatibility(ai_intent, data).is_compatible
        if not ai_compatible and self.validate_data_compatibility(fallback, data).is_compatible:
            logger.info(
                f"AI suggested {ai_intent.chart_type.value} which the data cannot support; "
                f"using heuristic {fallback.chart_type.value}",
                extra={"chart_type": fallback.chart_type.value}
            )
            return fallback

        strong_signal = bool(
            analysis.matched_keywords
            and analysis.margin >= self.settings.preference_margin
        )
        if fallback.chart_type != ai_intent.chart_type and strong_signal:
            logger.info(
                f"Prompt keywords strongly favour {fallback.chart_type.value} over AI's "
                f"{ai_intent.chart_type.value} (margin {analysis.margin:.2f})",
                extra={"chart_type": fallback.chart_type.value}
            )
            return fallback

        return ai_intent

    def validate_data_compatibility(self, intent: ChartIntent, data: UnifiedDataStructure) -> CompatibilityResult:
        """Check an intent against the data; advisory notes never make it incompatible."""
        field_names = set(data.data_schema.field_names())
        row_count = len(data.data)
        chart_type = intent.chart_type

        missing_fields = [f for f in intent.required_fields if f not in field_names]
        incompatible: List[str] = structural_issues(chart_type, data.statistics)
        floor = row_floor_issue(chart_type, row_count)
        if floor:
            incompatible.append(floor)

        suggestions: List[str] = []
        quality = data.data_schema.quality_score
        if quality < self.settings.quality_advisory_threshold:
            suggestions.append(f"Data quality is low ({quality:.2f}); clean missing or malformed values first")
        if chart_type in PART_TO_WHOLE and row_count > PIE_READABLE_ROWS:
            suggestions.append(f"{chart_type.value} chart with {row_count} segments is hard to read; consider a bar chart")
        if floor:
            suggestions.append(CHART_RULES[chart_type].min_rows_reason.capitalize())

        reason: Optional[str] = None
        if missing_fields or incompatible:
            parts: List[str] = []
            if missing_fields:
                parts.append(f"missing fields: {', '.join(missing_fields)}")
            parts.extend(incompatible)
            reason = "; ".join(parts)

        return CompatibilityResult(
            is_compatible=not missing_fields and not incompatible,
            reason=reason,
            missing_fields=missing_fields,
            incompatible_types=incompatible,
            suggestions=suggestions,
        )
