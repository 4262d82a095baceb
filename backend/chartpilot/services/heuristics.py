"""
Deterministic chart recommender.

Scores every chart type from prompt keywords and data shape, picks the best
one the data can actually support and builds a complete ChartIntent for it.
Pure: no I/O, no randomness, no clock.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple
from chartpilot.core.config import Settings
from chartpilot.core.schemas import (
    ChartIntent, ChartType, IntentSuggestions, Row, UnifiedDataStructure, VisualMapping,
)
from chartpilot.services.chart_rules import (
    CHART_ORDER, CHART_RULES, PART_TO_WHOLE, contains_phrase, is_satisfiable,
    keyword_matches, select_axes,
)

logger = logging.getLogger(__name__)

KEYWORD_WEIGHT = 2.0
MAX_INSIGHTS = 3

# (phrases, score bonuses, reason) applied once per group when any phrase occurs
PHRASE_BONUSES: List[Tuple[Tuple[str, ...], Dict[ChartType, float], str]] = [
    (("percent", "percentage", "share", "ratio", "%", "占比", "比例", "份额"),
     {ChartType.PIE: 2.5, ChartType.RADIAL: 1.5},
     "the prompt asks about proportions"),
    (("compare", "comparison", "versus", "对比", "比较"),
     {ChartType.BAR: 2.0},
     "the prompt asks for a comparison"),
    (("trend", "over time", "growth", "decline", "趋势", "走势"),
     {ChartType.LINE: 2.0, ChartType.AREA: 1.0},
     "the prompt asks for a trend"),
    (("cumulative", "stacked", "area", "累计", "堆叠", "面积"),
     {ChartType.AREA: 2.2},
     "the prompt asks for cumulative values"),
]


@dataclass(frozen=True)
class ScoreAnalysis:
    best_type: ChartType
    best_score: float
    second_score: float
    scores: Dict[ChartType, float]
    matched_keywords: List[str] = field(default_factory=list)
    reasons: List[str] = field(default_factory=list)

    @property
    def margin(self) -> float:
        return self.best_score - self.second_score


@dataclass(frozen=True)
class HeuristicRecommendation:
    intent: Optional[ChartIntent]
    analysis: ScoreAnalysis


def title_case(name: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in name.replace("_", " ").split())


def format_value(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def _distinct_count(rows: Sequence[Row], field_name: str) -> int:
    return len({row.get(field_name) for row in rows if row.get(field_name) is not None})


def _numeric_points(rows: Sequence[Row], x_axis: str, metric: str) -> List[Tuple[object, float]]:
    return [
        (row.get(x_axis), row[metric]) for row in rows
        if isinstance(row.get(metric), (int, float)) and not isinstance(row.get(metric), bool)
    ]


def build_insights(chart_type: ChartType, rows: Sequence[Row], x_axis: str, metric: str) -> List[str]:
    """Name the peak of the primary metric and, where meaningful, the minimum."""
    points = _numeric_points(rows, x_axis, metric)
    if not points:
        return ["Data automatically analysed to highlight the main trend"]

    label = title_case(metric)
    peak_x, peak_value = max(points, key=lambda p: p[1])
    insights = [f"{label} peaks at {peak_x} with {format_value(peak_value)}"]

    if chart_type not in PART_TO_WHOLE and len(points) > 1:
        low_x, low_value = min(points, key=lambda p: p[1])
        insights.append(f"{label} is lowest at {low_x} with {format_value(low_value)}")

    return insights[:MAX_INSIGHTS]


def score_chart_types(prompt: str, data: UnifiedDataStructure, settings: Settings) -> ScoreAnalysis:
    """Keyword and data-shape scores for every chart type."""
    stats = data.statistics
    row_count = len(data.data)
    scores: Dict[ChartType, float] = {ct: 0.0 for ct in CHART_ORDER}
    reasons: List[str] = []
    matched: List[str] = []

    for chart_type, keywords in keyword_matches(prompt).items():
        if keywords:
            scores[chart_type] += KEYWORD_WEIGHT * len(keywords)
            matched.extend(keywords)
    if matched:
        reasons.append(f"prompt mentions {', '.join(matched)}")

    n_numeric = len(stats.numeric_fields)
    n_categorical = len(stats.categorical_fields)
    n_date = len(stats.date_fields)

    if n_date:
        scores[ChartType.LINE] += 1.5
        scores[ChartType.AREA] += 1.2
        reasons.append(f"date field '{stats.date_fields[0]}' suits a time axis")
    if n_categorical:
        scores[ChartType.BAR] += 1.2
        reasons.append(f"categorical field '{stats.categorical_fields[0]}' suits grouped bars")
    if n_numeric > 1:
        scores[ChartType.LINE] += 0.8
        scores[ChartType.AREA] += 1.0
        reasons.append(f"{n_numeric} numeric fields can share one axis")
    if n_numeric >= 3 and n_categorical == 1:
        scores[ChartType.RADAR] += 1.0
        reasons.append("several metrics per category allow a radar comparison")
    if n_numeric == 1 and n_categorical >= 1:
        scores[ChartType.RADIAL] += 0.5

    if row_count <= settings.few_rows_threshold:
        scores[ChartType.PIE] += 0.6
        scores[ChartType.RADIAL] += 0.3
        reasons.append(f"only {row_count} rows, few enough for segments")
    elif row_count > settings.many_rows_threshold:
        scores[ChartType.PIE] -= 1.0
        scores[ChartType.RADIAL] -= 1.0
        reasons.append(f"{row_count} rows are too many for segments")

    for phrases, bonuses, reason in PHRASE_BONUSES:
        if any(contains_phrase(prompt or "", p) for p in phrases):
            for chart_type, bonus in bonuses.items():
                scores[chart_type] += bonus
            reasons.append(reason)

    # sorted() is stable, so ties keep rule-table order
    ranking = sorted(CHART_ORDER, key=lambda ct: -scores[ct])
    return ScoreAnalysis(
        best_type=ranking[0],
        best_score=scores[ranking[0]],
        second_score=scores[ranking[1]],
        scores=scores,
        matched_keywords=matched,
        reasons=reasons,
    )


def _too_many_segments(data: UnifiedDataStructure, settings: Settings) -> bool:
    stats = data.statistics
    if not stats.categorical_fields or not stats.numeric_fields:
        return True
    return _distinct_count(data.data, stats.categorical_fields[0]) > settings.max_pie_categories


def recommend_chart(prompt: str, data: UnifiedDataStructure, settings: Settings) -> HeuristicRecommendation:
    """
    Recommend a chart for a prompt and a dataset.

    Returns a recommendation whose intent is None when the data cannot back
    any chart type (for example, no numeric field at all).
    """
    analysis = score_chart_types(prompt, data, settings)
    stats = data.statistics
    reasons = list(analysis.reasons)
    row_count = len(data.data)

    chosen = analysis.best_type
    best_score = analysis.best_score
    if best_score <= 0:
        chosen = ChartType.LINE if stats.date_fields else ChartType.BAR if stats.categorical_fields else ChartType.LINE
        best_score = max(best_score, 0.5)
        reasons.append(f"no strong signal, defaulting to {chosen.value}")

    if chosen in PART_TO_WHOLE and _too_many_segments(data, settings):
        demoted = ChartType.BAR if stats.categorical_fields else ChartType.LINE if stats.date_fields else ChartType.BAR
        reasons.append(f"{chosen.value} chart is unsuitable for this data, using {demoted.value}")
        chosen = demoted

    ranking = sorted(CHART_ORDER, key=lambda ct: -analysis.scores[ct])
    candidates = [chosen] + [ct for ct in ranking if ct != chosen]
    selected: Optional[Tuple[ChartType, str, List[str]]] = None
    for chart_type in candidates:
        if chart_type in PART_TO_WHOLE and _too_many_segments(data, settings):
            continue
        if not is_satisfiable(chart_type, stats, row_count):
            continue
        axes = select_axes(chart_type, stats)
        if axes is not None:
            selected = (chart_type, axes[0], axes[1])
            break

    if selected is not None and selected[0] != chosen:
        reasons.append(f"{chosen.value} chart cannot be drawn from this data, using {selected[0].value}")

    analysis = ScoreAnalysis(
        best_type=chosen,
        best_score=best_score,
        second_score=analysis.second_score,
        scores=analysis.scores,
        matched_keywords=analysis.matched_keywords,
        reasons=reasons,
    )

    if selected is None:
        logger.info("Heuristic found no chart type the data can support")
        return HeuristicRecommendation(intent=None, analysis=analysis)

    chart_type, x_axis, y_axis = selected

    rule = CHART_RULES[chart_type]
    optional_fields = [f for f in stats.categorical_fields if f != x_axis]
    color_by = None if chart_type in PART_TO_WHOLE or not optional_fields else optional_fields[0]
    confidence = max(0.5, min(0.9, 0.55 + 0.08 * best_score))

    intent = ChartIntent(
        chart_type=chart_type,
        confidence=round(confidence, 4),
        reasoning="; ".join(reasons),
        required_fields=list(dict.fromkeys([x_axis, *y_axis])),
        optional_fields=optional_fields,
        visual_mapping=VisualMapping(x_axis=x_axis, y_axis=y_axis, color_by=color_by),
        suggestions=IntentSuggestions(
            title=f"{rule.label} of {title_case(x_axis)}",
            description=(
                f"{rule.label} automatically generated from {row_count} records "
                f"highlighting {', '.join(y_axis)}"
            ),
            insights=build_insights(chart_type, data.data, x_axis, y_axis[0]),
        ),
    )
    logger.debug(
        f"Heuristic recommends {chart_type.value} (score {best_score:.2f})",
        extra={"chart_type": chart_type.value}
    )
    return HeuristicRecommendation(intent=intent, analysis=analysis)
