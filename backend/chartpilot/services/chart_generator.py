"""
Renderer-agnostic chart configuration and final result assembly.

No chart decisions are made here: the intent says what to draw, this
module works out colors, dimensions, axes, legend and summary insights.
"""
import time
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple
import pandas as pd
from chartpilot.core.errors import ChartPipelineError, ErrorKinds, Stages
from chartpilot.core.performance import track_performance
from chartpilot.core.schemas import (
    AxisSpec, ChartConfig, ChartGenerationResult, ChartIntent, ChartMetadata, ChartType,
    Dimensions, FieldType, LegendSpec, Row, SeriesSpec, UnifiedDataStructure,
)
from chartpilot.services.chart_rules import PART_TO_WHOLE
from chartpilot.services.data_extractor import parse_number
from chartpilot.services.heuristics import format_value, title_case

logger = logging.getLogger(__name__)

# Colorblind-safe categorical palette
DEFAULT_COLORS = [
    '#1f77b4',  # Blue
    '#ff7f0e',  # Orange
    '#2ca02c',  # Green
    '#d62728',  # Red
    '#9467bd',  # Purple
    '#8c564b',  # Brown
    '#e377c2',  # Pink
    '#7f7f7f',  # Gray
    '#bcbd22',  # Yellow-green
    '#17becf',  # Cyan
]

DEFAULT_WIDTH = 800
DEFAULT_HEIGHT = 400
MAX_WIDTH = 1200
WIDE_BAR_ROWS = 10
LEGEND_TOP_ROWS = 8
MAX_INSIGHTS = 6

AXIS_TYPES = {FieldType.DATE: "time", FieldType.NUMBER: "value"}


def calculate_trend(series: pd.Series) -> Optional[Dict[str, Any]]:
    """
    Calculate trend direction and strength between the first and last value.

    Returns:
        Dict with direction ('increasing', 'decreasing', 'stable') and percentage change
    """
    numeric_series = pd.to_numeric(series, errors='coerce').dropna()
    if len(numeric_series) < 2:
        return None

    first_val = numeric_series.iloc[0]
    last_val = numeric_series.iloc[-1]
    if first_val == 0:
        return None

    pct_change = ((last_val - first_val) / abs(first_val)) * 100
    if abs(pct_change) < 5:
        direction = 'stable'
    elif pct_change > 0:
        direction = 'increasing'
    else:
        direction = 'decreasing'

    return {
        'direction': direction,
        'percentage_change': round(float(pct_change), 1),
        'first_value': float(first_val),
        'last_value': float(last_val),
    }


def palette(count: int) -> List[str]:
    """`count` colors, cycling the default palette when needed."""
    return [DEFAULT_COLORS[i % len(DEFAULT_COLORS)] for i in range(max(count, 1))]


def _as_number(value: Any) -> Optional[float]:
    number = parse_number(value)
    if number is None:
        return None
    return int(number) if number.is_integer() else number


class ChartGenerator:
    """Assemble chart configuration and results from an intent and its data."""

    def prepare_rows(self, intent: ChartIntent, data: UnifiedDataStructure) -> List[Row]:
        """Project rows onto the mapped fields; rows without x or any numeric y are dropped."""
        mapping = intent.visual_mapping
        rows: List[Row] = []
        for row in data.data:
            x_value = row.get(mapping.x_axis)
            if x_value is None or x_value == "":
                continue
            point: Row = {mapping.x_axis: x_value}
            for metric in mapping.y_axis:
                point[metric] = _as_number(row.get(metric))
            if all(point[metric] is None for metric in mapping.y_axis):
                continue
            if mapping.color_by:
                point[mapping.color_by] = row.get(mapping.color_by)
            rows.append(point)
        return rows

    def build_configuration(
        self,
        chart_type: ChartType,
        data: UnifiedDataStructure,
        intent: ChartIntent,
        rows: Optional[Sequence[Row]] = None,
    ) -> ChartConfig:
        """Colors, dimensions, axes, legend and series for a chart."""
        mapping = intent.visual_mapping
        rows = list(rows) if rows is not None else self.prepare_rows(intent, data)
        row_count = len(rows)
        part_to_whole = chart_type in PART_TO_WHOLE

        color_count = row_count if part_to_whole else len(mapping.y_axis)
        colors = palette(color_count)

        width, height = DEFAULT_WIDTH, DEFAULT_HEIGHT
        if chart_type == ChartType.BAR and row_count > WIDE_BAR_ROWS:
            width = min(MAX_WIDTH, 600 + row_count * 30)
        if part_to_whole:
            width = min(width, height + 200)

        x_field = data.data_schema.get_field(mapping.x_axis)
        x_type = AXIS_TYPES.get(x_field.type, "category") if x_field else "category"
        y_min, y_max = self._value_range(chart_type, rows, mapping.y_axis)
        y_label = title_case(mapping.y_axis[0]) if len(mapping.y_axis) == 1 else "Value"

        if part_to_whole:
            position = "right"
        elif row_count > LEGEND_TOP_ROWS:
            position = "top"
        else:
            position = "bottom"

        return ChartConfig(
            colors=colors,
            dimensions=Dimensions(width=width, height=height),
            x_axis=AxisSpec(label=title_case(mapping.x_axis), type=x_type),
            y_axis=AxisSpec(label=y_label, type="value", min=y_min, max=y_max),
            legend=LegendSpec(
                show=len(mapping.y_axis) > 1 or part_to_whole or bool(mapping.color_by),
                position=position,
            ),
            series=[
                SeriesSpec(field=metric, label=title_case(metric), color=colors[i % len(colors)])
                for i, metric in enumerate(mapping.y_axis)
            ],
        )

    @staticmethod
    def _value_range(chart_type: ChartType, rows: Sequence[Row], metrics: Sequence[str]) -> Tuple[float, float]:
        values = [row[m] for row in rows for m in metrics if row.get(m) is not None]
        if not values:
            return 0.0, 100.0

        low, high = min(values), max(values)
        padding = (high - low) * 0.1 or abs(high) * 0.1 or 1.0
        y_min = low - padding
        y_max = high + padding
        if low >= 0:
            y_min = max(0.0, y_min)
            if chart_type == ChartType.AREA:
                y_min = 0.0
        return round(y_min, 2), round(y_max, 2)

    def _statistical_insights(
        self,
        chart_type: ChartType,
        rows: Sequence[Row],
        intent: ChartIntent,
        missing_values: int,
    ) -> List[str]:
        mapping = intent.visual_mapping
        metric = mapping.y_axis[0]
        label = title_case(metric)
        df = pd.DataFrame(list(rows))
        values = pd.to_numeric(df[metric], errors='coerce')
        valid = df.assign(**{metric: values}).dropna(subset=[metric])
        if valid.empty:
            return []

        insights = [
            f"{label} ranges from {format_value(valid[metric].min())} to {format_value(valid[metric].max())}",
            f"Average {label} is {format_value(round(float(valid[metric].mean()), 2))}",
        ]

        if chart_type in (ChartType.LINE, ChartType.AREA):
            trend = calculate_trend(valid[metric])
            if trend and trend['direction'] == 'increasing':
                insights.append(f"{label} grew {abs(trend['percentage_change']):.1f}% from first to last point")
            elif trend and trend['direction'] == 'decreasing':
                insights.append(f"{label} fell {abs(trend['percentage_change']):.1f}% from first to last point")
            elif trend:
                insights.append(f"{label} stayed relatively stable")

        if chart_type in PART_TO_WHOLE:
            total = valid[metric].sum()
            if total > 0:
                top = valid.loc[valid[metric].idxmax()]
                insights.append(f"{top[mapping.x_axis]} holds the largest share at {top[metric] / total * 100:.1f}%")

        if chart_type == ChartType.BAR and len(valid) >= 2:
            leaders = valid.nlargest(2, metric)
            first, second = leaders.iloc[0], leaders.iloc[1]
            insights.append(
                f"{first[mapping.x_axis]} leads with {format_value(first[metric])}, "
                f"followed by {second[mapping.x_axis]} with {format_value(second[metric])}"
            )

        if missing_values:
            insights.append(f"{missing_values} missing or unreadable values were left out")

        return insights

    @track_performance("generate_chart")
    def generate_chart(self, intent: ChartIntent, data: UnifiedDataStructure) -> ChartGenerationResult:
        """
        Assemble the final chart payload.

        Raises:
            ChartPipelineError: (chart_generation, INSUFFICIENT_DATA) when no row
                survives projection, (chart_generation, UNKNOWN_ERROR) otherwise
        """
        start_time = time.perf_counter()
        try:
            rows = self.prepare_rows(intent, data)
            if not rows:
                raise ChartPipelineError(
                    Stages.CHART_GENERATION,
                    ErrorKinds.INSUFFICIENT_DATA,
                    f"No rows have both '{intent.visual_mapping.x_axis}' and a numeric value to plot",
                )

            config = self.build_configuration(intent.chart_type, data, intent, rows)
            insights = list(dict.fromkeys(
                intent.suggestions.insights
                + self._statistical_insights(intent.chart_type, rows, intent, data.statistics.missing_values)
            ))[:MAX_INSIGHTS]

            file_info = data.metadata.file_info
            result = ChartGenerationResult(
                chart_type=intent.chart_type,
                data=rows,
                config=config,
                title=intent.suggestions.title,
                description=intent.suggestions.description,
                insights=insights,
                metadata=ChartMetadata(
                    generated_at=datetime.now(timezone.utc),
                    data_source=file_info.name if file_info else data.metadata.source,
                    processing_time=round((time.perf_counter() - start_time) * 1000, 2),
                    confidence=intent.confidence,
                ),
            )
        except ChartPipelineError:
            raise
        except Exception as e:
            logger.error(f"Chart assembly failed: {e}", exc_info=True, extra={"stage": Stages.CHART_GENERATION})
            raise ChartPipelineError(
                Stages.CHART_GENERATION,
                ErrorKinds.UNKNOWN_ERROR,
                "Unexpected error while assembling the chart",
                {"error": str(e)},
            ) from e

        logger.info(
            f"Generated {intent.chart_type.value} chart with {len(rows)} rows",
            extra={"stage": Stages.CHART_GENERATION, "chart_type": intent.chart_type.value}
        )
        return result
