"""
Per-chart-type rules shared by the recommender and the compatibility check.

One entry per ChartType: prompt keywords, minimum rows, how the x-axis is
picked and how many metrics the y-axis can carry.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from chartpilot.core.schemas import ChartType, DataStatistics


@dataclass(frozen=True)
class ChartRule:
    chart_type: ChartType
    label: str
    keywords: Tuple[str, ...]
    min_rows: int
    min_rows_reason: str
    max_y_fields: int
    # Field groups tried in order when picking the x-axis
    x_preference: Tuple[str, ...]
    min_numeric: int = 1
    # With no preferred field, the first of two or more numeric fields can carry the x-axis
    numeric_x_fallback: bool = False


CHART_RULES: Dict[ChartType, ChartRule] = {
    ChartType.LINE: ChartRule(
        chart_type=ChartType.LINE,
        label="Line chart",
        keywords=("line", "line chart", "line graph", "trend", "timeline", "over time",
                  "growth", "decline", "走势", "趋势", "折线", "变化"),
        min_rows=2,
        min_rows_reason="a trend needs at least two points",
        max_y_fields=3,
        x_preference=("date", "categorical"),
        numeric_x_fallback=True,
    ),
    ChartType.AREA: ChartRule(
        chart_type=ChartType.AREA,
        label="Area chart",
        keywords=("area", "area chart", "stacked", "cumulative", "filled", "coverage",
                  "累计", "面积", "堆叠"),
        min_rows=2,
        min_rows_reason="a filled area needs at least two points",
        max_y_fields=3,
        x_preference=("date", "categorical"),
        numeric_x_fallback=True,
    ),
    ChartType.BAR: ChartRule(
        chart_type=ChartType.BAR,
        label="Bar chart",
        keywords=("bar", "column", "compare", "comparison", "versus", "ranking", "top", "bottom",
                  "对比", "比较", "柱状", "条形"),
        min_rows=1,
        min_rows_reason="there must be at least one bar to draw",
        max_y_fields=2,
        x_preference=("categorical", "date"),
        numeric_x_fallback=True,
    ),
    ChartType.PIE: ChartRule(
        chart_type=ChartType.PIE,
        label="Pie chart",
        keywords=("pie", "donut", "share", "portion", "ratio", "percentage", "percent",
                  "distribution", "breakdown", "composition", "占比", "比例", "份额", "饼图"),
        min_rows=1,
        min_rows_reason="there must be at least one segment to draw",
        max_y_fields=1,
        x_preference=("categorical",),
    ),
    ChartType.RADAR: ChartRule(
        chart_type=ChartType.RADAR,
        label="Radar chart",
        keywords=("radar", "spider", "multi-dimensional", "multidimensional", "dimensions",
                  "雷达", "多维", "综合"),
        min_rows=3,
        min_rows_reason="a radar needs at least three axes to enclose an area",
        max_y_fields=5,
        x_preference=("categorical",),
        min_numeric=2,
    ),
    ChartType.RADIAL: ChartRule(
        chart_type=ChartType.RADIAL,
        label="Radial chart",
        keywords=("radial", "circular", "hierarchy", "径向", "圆形", "层次"),
        min_rows=1,
        min_rows_reason="there must be at least one ring to draw",
        max_y_fields=1,
        x_preference=("categorical",),
    ),
}

# Stable rule order, used to break score ties
CHART_ORDER: Tuple[ChartType, ...] = tuple(CHART_RULES)

# Kinds drawn as parts of a whole; they get demoted when categories explode
PART_TO_WHOLE = (ChartType.PIE, ChartType.RADIAL)


def contains_phrase(text: str, phrase: str) -> bool:
    """Case-insensitive literal containment, so inflections ("compared", "trending") still count."""
    return phrase.lower() in (text or "").lower()


def keyword_matches(prompt: str) -> Dict[ChartType, List[str]]:
    """Keywords of every chart type found in the prompt."""
    text = (prompt or "").lower()
    return {
        chart_type: [kw for kw in rule.keywords if contains_phrase(text, kw)]
        for chart_type, rule in CHART_RULES.items()
    }


def guess_chart_type(prompt: str, default: ChartType = ChartType.BAR) -> ChartType:
    """Chart type with the most keyword hits, or `default` when nothing matches."""
    matches = keyword_matches(prompt)
    best = max(CHART_ORDER, key=lambda ct: len(matches[ct]))
    return best if matches[best] else default


def field_groups(statistics: DataStatistics) -> Dict[str, List[str]]:
    return {
        "date": list(statistics.date_fields),
        "categorical": list(statistics.categorical_fields),
        "numeric": list(statistics.numeric_fields),
    }


def pick_x_axis(rule: ChartRule, groups: Dict[str, List[str]]) -> Optional[str]:
    x_axis = next((groups[g][0] for g in rule.x_preference if groups[g]), None)
    if x_axis is None and rule.numeric_x_fallback and len(groups["numeric"]) >= 2:
        x_axis = groups["numeric"][0]
    return x_axis


def select_axes(chart_type: ChartType, statistics: DataStatistics) -> Optional[Tuple[str, List[str]]]:
    """
    Pick the x-axis field and the y-axis metrics for a chart type.

    Returns None when the data offers no valid pair.
    """
    rule = CHART_RULES[chart_type]
    groups = field_groups(statistics)

    x_axis = pick_x_axis(rule, groups)
    if x_axis is None:
        return None

    y_axis = [f for f in groups["numeric"] if f != x_axis][:rule.max_y_fields]
    if not y_axis:
        return None
    return x_axis, y_axis


def structural_issues(chart_type: ChartType, statistics: DataStatistics) -> List[str]:
    """Field-type requirements of a chart type that the data does not meet."""
    rule = CHART_RULES[chart_type]
    name = chart_type.value
    issues: List[str] = []

    numeric_count = len(statistics.numeric_fields)
    if numeric_count < rule.min_numeric:
        if rule.min_numeric == 1:
            issues.append(f"{name} chart needs at least one numeric field")
        else:
            issues.append(f"{name} chart needs at least {rule.min_numeric} numeric fields")

    groups = field_groups(statistics)
    if pick_x_axis(rule, groups) is None:
        wanted = " or ".join(rule.x_preference)
        issues.append(f"{name} chart needs a {wanted} field for its x-axis")

    return issues


def row_floor_issue(chart_type: ChartType, row_count: int) -> Optional[str]:
    rule = CHART_RULES[chart_type]
    if row_count < rule.min_rows:
        unit = "row" if rule.min_rows == 1 else "rows"
        return f"{chart_type.value} chart requires at least {rule.min_rows} {unit} of data"
    return None


def is_satisfiable(chart_type: ChartType, statistics: DataStatistics, row_count: int) -> bool:
    return not structural_issues(chart_type, statistics) and row_floor_issue(chart_type, row_count) is None
