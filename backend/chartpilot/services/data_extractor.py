"""
Data extraction and normalization.

Turns prompt text or parsed spreadsheet tables into a UnifiedDataStructure:
typed schema, cleaned rows, statistics and a quality score.
"""
import re
import math
import numbers
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple
import pandas as pd
from pydantic import BaseModel, Field, ValidationError
from chartpilot.core.config import Settings
from chartpilot.core.errors import ChartPipelineError, ErrorKinds, Stages
from chartpilot.core.performance import track_performance
from chartpilot.core.sanitization import clean_header, sanitize_for_logging, sanitize_for_prompt
from chartpilot.core.schemas import (
    ChartType, DataField, DataMetadata, DataSchema, DataStatistics, ExtractedData,
    FieldType, FileInfo, InputFile, Row, UnifiedDataStructure,
)
from chartpilot.services.ai_service import AIService, AIServiceError, ChatRequest, chat_json
from chartpilot.services.chart_rules import guess_chart_type

logger = logging.getLogger(__name__)

TYPE_SAMPLE_SIZE = 100
PREVIEW_ROWS = 5
MIN_QUALITY_SCORE = 0.5

BOOLEAN_TRUE = {"true", "1", "是", "yes"}
BOOLEAN_FALSE = {"false", "0", "否", "no"}
BOOLEAN_TOKENS = {"true", "false", "是", "否", "yes", "no"}

_NUMBER_RE = re.compile(r"^[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?$")
_CURRENCY_RE = re.compile(r"[,$%¥€£\s]")
_DATE_RES = (
    re.compile(r"^\d{4}[-/.]\d{1,2}(?:[-/.]\d{1,2})?(?:[ T]\d{1,2}:\d{2}(?::\d{2})?(?:\.\d+)?)?Z?$"),
    re.compile(r"^\d{1,2}/\d{1,2}/\d{4}$"),
    re.compile(r"^\d{4}年\d{1,2}月(?:\d{1,2}日)?$"),
    re.compile(r"^(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?\s+\d{1,2},?\s+\d{4}$", re.IGNORECASE),
)
_CJK_RE = re.compile(r"[一-鿿]")

_SERIES_RE = re.compile(r"([^\[\]:：,，;；\n]+?)\s*\[([^\]]+)\]")
_LABELLED_LIST_RE = re.compile(
    r"([^:：,，;；\n\d][^:：;；\n]*?)\s*[：:]\s*(-?\d+(?:\.\d+)?(?:\s*[,，、]\s*-?\d+(?:\.\d+)?)+)(?!\d|\.\d|\s*[：:])"
)
_KEY_VALUE_RE = re.compile(r"([^：:,，;；\n]+)[：:]\s*([^,，;；\n]+)")
_VALUE_UNIT_RE = re.compile(r"(-?\d+(?:\.\d+)?)\s*([万千百亿]|[kK](?![a-zA-Z]))?\s*([元人次台套个]?)")
_NUMBER_RUN_RE = re.compile(r"-?\d+(?:\.\d+)?(?:\s*[,，、]\s*-?\d+(?:\.\d+)?){2,}")
_SPLIT_RE = re.compile(r"[,，、\s]+")

UNIT_MULTIPLIERS = {"万": 10_000, "千": 1_000, "百": 100, "亿": 100_000_000, "k": 1_000, "K": 1_000}

WEEKDAYS_ZH = ["星期一", "星期二", "星期三", "星期四", "星期五", "星期六", "星期日"]
WEEKDAYS_EN = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
MONTHS_ZH = [f"{i}月" for i in range(1, 13)]
MONTHS_EN = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

# Category field names inferred from a sample key: (pattern, english, chinese)
CATEGORY_FIELD_NAMES: List[Tuple[re.Pattern, str, str]] = [
    (re.compile(r"月|\b(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\b|month", re.IGNORECASE), "month", "月份"),
    (re.compile(r"季|\bq[1-4]\b|quarter", re.IGNORECASE), "quarter", "季度"),
    (re.compile(r"年|\b(?:19|20)\d{2}\b|year", re.IGNORECASE), "year", "年份"),
    (re.compile(r"日|天|\bday\b", re.IGNORECASE), "day", "日期"),
    (re.compile(r"周|星期|week|(?:mon|tues|wednes|thurs|fri|satur|sun)day", re.IGNORECASE), "week", "周"),
    (re.compile(r"地区|城市|region|city", re.IGNORECASE), "region", "地区"),
    (re.compile(r"产品|商品|product", re.IGNORECASE), "product", "产品"),
    (re.compile(r"部门|团队|department|team", re.IGNORECASE), "department", "部门"),
]

# Value field names inferred from a unit suffix: (unit chars, english, chinese)
VALUE_FIELD_NAMES: List[Tuple[str, str, str]] = [
    ("元", "amount", "金额(元)"),
    ("人", "people", "人数"),
    ("台套个", "quantity", "数量"),
    ("次", "count", "次数"),
]

TEMPLATE_ROWS: Dict[ChartType, List[Row]] = {
    ChartType.BAR: [
        {"category": "Product A", "value": 320},
        {"category": "Product B", "value": 240},
        {"category": "Product C", "value": 180},
        {"category": "Product D", "value": 290},
        {"category": "Product E", "value": 160},
    ],
    ChartType.LINE: [
        {"time": "Jan", "value": 150},
        {"time": "Feb", "value": 180},
        {"time": "Mar", "value": 160},
        {"time": "Apr", "value": 220},
        {"time": "May", "value": 200},
        {"time": "Jun", "value": 250},
    ],
    ChartType.PIE: [
        {"category": "Category A", "value": 35},
        {"category": "Category B", "value": 25},
        {"category": "Category C", "value": 20},
        {"category": "Category D", "value": 20},
    ],
    ChartType.AREA: [
        {"time": "Q1", "series1": 100, "series2": 80},
        {"time": "Q2", "series1": 120, "series2": 95},
        {"time": "Q3", "series1": 140, "series2": 110},
        {"time": "Q4", "series1": 160, "series2": 125},
    ],
    ChartType.RADAR: [
        {"dimension": "Skill A", "score": 85, "target": 80},
        {"dimension": "Skill B", "score": 72, "target": 75},
        {"dimension": "Skill C", "score": 68, "target": 70},
        {"dimension": "Skill D", "score": 79, "target": 85},
        {"dimension": "Skill E", "score": 91, "target": 80},
    ],
    ChartType.RADIAL: [
        {"category": "Level 1", "value": 100},
        {"category": "Level 2A", "value": 60},
        {"category": "Level 2B", "value": 40},
        {"category": "Level 3A", "value": 35},
        {"category": "Level 3B", "value": 25},
    ],
}

EXTRACTION_SYSTEM_PROMPT = """You are a data extraction expert. Identify structured data in the user's description.

Rules:
1. Only extract when the description contains explicit numeric values, lists or tables
2. Identify dimensions and measures and keep their original meaning
3. If there is no concrete data, answer with hasData: false

Respond with strict JSON only:
{"hasData": true, "data": [{"field1": "value", "field2": 123}], "confidence": 0.0-1.0}"""

SYNTHESIS_SYSTEM_PROMPT = """You generate realistic sample data for charts.

Rules:
1. Produce 5-8 rows that suit the requested chart type
2. Use one text field for categories or time labels and at least one numeric field
3. Keep field names short and meaningful for the description

Respond with a strict JSON array only:
[{"field1": "label", "field2": 123}]"""


class AIExtractionPayload(BaseModel):
    has_data: bool = Field(default=False, alias="hasData")
    data: List[Dict[str, Any]] = []
    confidence: float = 0.8


# --- Value parsing ---

def is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return value is pd.NaT


def parse_number(value: Any) -> Optional[float]:
    """Parse a number, tolerating thousands separators and currency or percent signs."""
    if isinstance(value, bool) or is_missing(value):
        return None
    if isinstance(value, numbers.Real):
        return float(value)
    text = _CURRENCY_RE.sub("", str(value))
    if not _NUMBER_RE.match(text):
        return None
    return float(text)


def parse_date(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not any(r.match(text) for r in _DATE_RES):
        return None
    if "年" in text:
        text = text.replace("年", "-").replace("月", "-").replace("日", "").rstrip("-")
    parsed = pd.to_datetime(text, errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime().replace(tzinfo=None)


def is_boolean(value: Any) -> bool:
    return isinstance(value, bool) or str(value).strip().lower() in BOOLEAN_TOKENS


def infer_field_type(values: Sequence[Any]) -> FieldType:
    """Majority vote over non-missing values: boolean, number, date, then string."""
    if not values:
        return FieldType.STRING

    total = len(values)
    if sum(1 for v in values if is_boolean(v)) / total > 0.8:
        return FieldType.BOOLEAN
    if sum(1 for v in values if parse_number(v) is not None) / total > 0.8:
        return FieldType.NUMBER
    if sum(1 for v in values if parse_date(v) is not None) / total > 0.6:
        return FieldType.DATE
    return FieldType.STRING


def coerce_value(value: Any, field_type: FieldType) -> Any:
    """Convert a raw cell to the field type; unparseable values become None."""
    if is_missing(value):
        return None

    if field_type == FieldType.NUMBER:
        number = parse_number(value)
        if number is None:
            return None
        return int(number) if number.is_integer() and abs(number) < 2 ** 53 else number

    if field_type == FieldType.DATE:
        parsed = parse_date(value)
        return parsed.strftime("%Y-%m-%dT%H:%M:%S") if parsed else None

    if field_type == FieldType.BOOLEAN:
        if isinstance(value, bool):
            return value
        token = str(value).strip().lower()
        if token in BOOLEAN_TRUE:
            return True
        return False if token in BOOLEAN_FALSE else None

    return str(value).strip()


def _has_cjk(text: str) -> bool:
    return bool(_CJK_RE.search(text))


def _split_numbers(text: str) -> List[float]:
    values = []
    for token in _SPLIT_RE.split(text.strip()):
        number = parse_number(token)
        if number is not None:
            values.append(number)
    return values


def _clean_label(text: str) -> str:
    # Keep only the clause closest to the separator
    label = re.split(r"[。.!?！？]", text)[-1].strip(" \t-–'\"")
    label = re.sub(r"^(?:and\s+|&\s*|和|与)", "", label, flags=re.IGNORECASE)
    words = label.split()
    if len(words) > 3:
        label = words[-1]
    return label


def _time_labels(prompt: str, length: int) -> List[str]:
    lowered = prompt.lower()
    if re.search(r"星期|周", prompt) and length <= 7:
        return WEEKDAYS_ZH[:length]
    if re.search(r"\bweek|weekday|monday|tuesday", lowered) and length <= 7:
        return WEEKDAYS_EN[:length]
    if re.search(r"月", prompt) and length <= 12:
        return MONTHS_ZH[:length]
    if re.search(r"\bmonth", lowered) and length <= 12:
        return MONTHS_EN[:length]
    if _has_cjk(prompt):
        return [f"第{i + 1}天" for i in range(length)]
    return [f"Day {i + 1}" for i in range(length)]


def _category_field_name(sample_key: str) -> str:
    chinese = _has_cjk(sample_key)
    for pattern, english, zh in CATEGORY_FIELD_NAMES:
        if pattern.search(sample_key):
            return zh if chinese else english
    return "类别" if chinese else "category"


def _value_field_name(unit: str, chinese: bool) -> str:
    for chars, english, zh in VALUE_FIELD_NAMES:
        if unit and unit in chars:
            return zh if chinese else english
    return "数值" if chinese else "value"


class DataExtractor:
    """Extract rows from prompts and files and normalize them."""

    def __init__(self, ai_service: AIService, settings: Settings):
        self.ai_service = ai_service
        self.settings = settings

    # --- Prompt extraction ---

    @track_performance("extract_from_prompt")
    async def extract_from_prompt(self, prompt: str) -> Optional[ExtractedData]:
        """
        Find structured rows embedded in free text.

        The AI service is asked first; when it fails or finds nothing the
        regex patterns run. Returns None when no rows can be found.
        """
        extracted = await self._ai_extract(prompt)
        if extracted is not None:
            return extracted
        return self.regex_extract(prompt)

    async def _ai_extract(self, prompt: str) -> Optional[ExtractedData]:
        request = ChatRequest.single(prompt, EXTRACTION_SYSTEM_PROMPT, temperature=0.1, max_tokens=1000)
        try:
            payload = AIExtractionPayload.model_validate(
                await chat_json(self.ai_service, request, self.settings.ai_timeout_seconds)
            )
        except (AIServiceError, ValidationError) as e:
            logger.warning(f"AI extraction failed, trying patterns: {e}", extra={"stage": Stages.DATA_EXTRACTION})
            return None

        rows = [row for row in payload.data if isinstance(row, dict) and row]
        if not payload.has_data or not rows:
            logger.info("AI found no data in the prompt")
            return None

        return ExtractedData(
            data=rows,
            confidence=min(1.0, max(0.0, payload.confidence)),
            extraction_method="ai_parsing",
        )

    def regex_extract(self, prompt: str) -> Optional[ExtractedData]:
        """Deterministic pattern-based extraction, tried in order of specificity."""
        text = prompt or ""
        for extract in (
            self._extract_series,
            self._extract_labelled_lists,
            self._extract_key_values,
            self._extract_number_run,
        ):
            result = extract(text)
            if result is not None:
                logger.info(
                    f"Extracted {len(result.data)} rows with {extract.__name__.lstrip('_')}",
                    extra={"stage": Stages.DATA_EXTRACTION}
                )
                return result

        logger.info(f"No data pattern matched prompt: {sanitize_for_logging(text, 80)}")
        return None

    def _extract_series(self, prompt: str) -> Optional[ExtractedData]:
        """Bracketed series such as `Beijing[22, 23, 21]`, one series per name."""
        series: Dict[str, List[float]] = {}
        for match in _SERIES_RE.finditer(prompt):
            name = _clean_label(match.group(1))
            values = _split_numbers(match.group(2))
            if name and values:
                series[name] = values

        if not series:
            return None

        length = max(len(v) for v in series.values())
        labels = _time_labels(prompt, length)
        rows = []
        for index, label in enumerate(labels):
            row: Row = {"time": label}
            for name, values in series.items():
                row[name] = values[index] if index < len(values) else None
            rows.append(row)

        return ExtractedData(
            data=rows,
            confidence=0.7,
            extraction_method="regex_pattern",
            warnings=["Extracted with pattern matching; please verify the values"],
        )

    def _extract_labelled_lists(self, prompt: str) -> Optional[ExtractedData]:
        """Labelled lists such as `sales: 100, 200, 300`."""
        lists: Dict[str, List[float]] = {}
        for match in _LABELLED_LIST_RE.finditer(prompt):
            label = _clean_label(match.group(1))
            values = _split_numbers(match.group(2))
            # A bare number before ':' is a key ("2021: 100"), not a series name
            if label and parse_number(label) is None and len(values) >= 2:
                lists[label] = values

        if not lists:
            return None

        prefix = "类别" if _has_cjk(prompt) else "Item "
        length = max(len(v) for v in lists.values())
        rows = []
        for index in range(length):
            row: Row = {"category": f"{prefix}{index + 1}"}
            for label, values in lists.items():
                row[label] = values[index] if index < len(values) else None
            rows.append(row)

        return ExtractedData(
            data=rows,
            confidence=0.6,
            extraction_method="regex_pattern",
            warnings=["Extracted with pattern matching; a more structured description gives better results"],
        )

    def _extract_key_values(self, prompt: str) -> Optional[ExtractedData]:
        """Key/value pairs such as `Jan: 850, Feb: 920` or `1月：850万元`."""
        pairs: List[Tuple[str, float, str]] = []
        for match in _KEY_VALUE_RE.finditer(prompt):
            raw_key, raw_value = match.group(1), match.group(2)
            # "Revenue: Jan: 850" keeps the key nearest to the value
            nested = re.split(r"[：:]", raw_value)
            if len(nested) > 1:
                raw_key, raw_value = nested[-2], nested[-1]
            key = _clean_label(raw_key)
            value_match = _VALUE_UNIT_RE.search(raw_value)
            if not key or not value_match:
                continue
            value = float(value_match.group(1)) * UNIT_MULTIPLIERS.get(value_match.group(2), 1)
            pairs.append((key, value, value_match.group(3)))

        if not pairs:
            return None

        chinese = _has_cjk(prompt)
        category_field = _category_field_name(pairs[0][0])
        value_field = _value_field_name(pairs[0][2], chinese)
        if value_field == category_field:
            value_field = f"{value_field}_value"

        rows = [{category_field: key, value_field: value} for key, value, _ in pairs]
        return ExtractedData(
            data=rows,
            confidence=0.8,
            extraction_method="regex_pattern",
            warnings=["Extracted key/value pairs with pattern matching"],
        )

    def _extract_number_run(self, prompt: str) -> Optional[ExtractedData]:
        """A bare run of three or more numbers such as `120, 130, 140`."""
        match = _NUMBER_RUN_RE.search(prompt)
        if not match:
            return None

        values = _split_numbers(match.group(0))
        if len(values) < 3:
            return None

        prefix = "类别" if _has_cjk(prompt) else "Item "
        rows = [{"category": f"{prefix}{i + 1}", "value": v} for i, v in enumerate(values)]
        return ExtractedData(
            data=rows,
            confidence=0.5,
            extraction_method="regex_pattern",
            warnings=["Only a list of numbers was found; categories were numbered automatically"],
        )

    # --- Synthetic rows ---

    @track_performance("synthesize_from_prompt")
    async def synthesize_from_prompt(self, prompt: str) -> ExtractedData:
        """
        Produce sample rows for a prompt that carries no data.

        Asks the AI service for rows that suit the chart the prompt asks
        for and falls back to a fixed template for that chart type.
        """
        chart_type = guess_chart_type(prompt)
        request = ChatRequest.single(
            f"Chart type: {chart_type.value}\nDescription: {sanitize_for_prompt(prompt, 500)}",
            SYNTHESIS_SYSTEM_PROMPT,
            temperature=0.4,
            max_tokens=800,
        )
        try:
            payload = await chat_json(self.ai_service, request, self.settings.ai_timeout_seconds)
            if isinstance(payload, dict):
                payload = payload.get("data")
            if not isinstance(payload, list):
                payload = []
            rows = [row for row in payload if isinstance(row, dict) and row]
            if not rows:
                raise AIServiceError("AI returned no sample rows")
        except AIServiceError as e:
            logger.warning(
                f"Sample data generation failed, using {chart_type.value} template: {e}",
                extra={"stage": Stages.DATA_EXTRACTION, "chart_type": chart_type.value}
            )
            return ExtractedData(
                data=[dict(row) for row in TEMPLATE_ROWS[chart_type]],
                confidence=0.3,
                extraction_method="template",
                warnings=["No data found in the prompt; showing template data"],
            )

        return ExtractedData(
            data=rows,
            confidence=0.5,
            extraction_method="ai_generated",
            warnings=["No data found in the prompt; showing generated sample data"],
        )

    # --- File extraction ---

    @track_performance("extract_from_files")
    def extract_from_files(self, files: Sequence[InputFile]) -> List[ExtractedData]:
        """Convert each parsed file table into row mappings keyed by header."""
        return [self._extract_file(file) for file in files]

    def _extract_file(self, file: InputFile) -> ExtractedData:
        if file.extension not in self.settings.supported_extensions_list:
            raise ChartPipelineError(
                Stages.DATA_EXTRACTION,
                ErrorKinds.INVALID_REQUEST,
                f"Unsupported file type: {file.extension or 'none'}",
                {"file": file.name},
            )
        if file.table is None:
            raise ChartPipelineError(
                Stages.DATA_EXTRACTION,
                ErrorKinds.UNKNOWN_ERROR,
                f"File '{file.name}' could not be read",
                {"file": file.name},
            )
        if not file.table.headers:
            raise ChartPipelineError(
                Stages.DATA_EXTRACTION,
                ErrorKinds.INSUFFICIENT_DATA,
                f"File '{file.name}' is empty",
                {"file": file.name},
            )

        headers = self._unique_headers(file.table.headers)
        rows: List[Row] = []
        for raw in file.table.rows:
            if all(is_missing(cell) for cell in raw):
                continue
            rows.append({
                header: (None if index >= len(raw) or is_missing(raw[index]) else raw[index])
                for index, header in enumerate(headers)
            })

        return ExtractedData(
            data=rows,
            confidence=0.9,
            extraction_method="file_parsing",
            warnings=[] if rows else [f"File '{file.name}' has no data rows"],
        )

    @staticmethod
    def _unique_headers(raw_headers: Sequence[Any]) -> List[str]:
        headers: List[str] = []
        seen: Dict[str, int] = {}
        for index, raw in enumerate(raw_headers):
            name = clean_header(raw) if not is_missing(raw) else ""
            name = name or f"Column_{index + 1}"
            if name in seen:
                seen[name] += 1
                name = f"{name}_{seen[name]}"
            else:
                seen[name] = 1
            headers.append(name)
        return headers

    # --- Normalization ---

    @track_performance("normalize_data")
    def normalize_data(
        self,
        rows: Sequence[Row],
        source: str,
        file_info: Optional[FileInfo] = None,
    ) -> UnifiedDataStructure:
        """
        Infer a schema, coerce every cell and compute statistics.

        Raises:
            ChartPipelineError: (data_extraction, INSUFFICIENT_DATA) for empty input
        """
        if not rows:
            raise ChartPipelineError(
                Stages.DATA_EXTRACTION,
                ErrorKinds.INSUFFICIENT_DATA,
                "No data rows were found to chart",
            )

        field_names: List[str] = []
        for row in rows:
            for key in row:
                if str(key) not in field_names:
                    field_names.append(str(key))

        sample = rows[:TYPE_SAMPLE_SIZE]
        fields: List[DataField] = []
        for name in field_names:
            sample_values = [row.get(name) for row in sample if not is_missing(row.get(name))]
            field_type = infer_field_type(sample_values)
            distinct = {str(v) for v in sample_values}
            fields.append(DataField(
                name=name,
                type=field_type,
                nullable=any(is_missing(row.get(name)) for row in rows),
                unique=len(distinct) == len(sample_values) and len(sample_values) > 1,
            ))

        cleaned: List[Row] = [
            {f.name: coerce_value(row.get(f.name), f.type) for f in fields}
            for row in rows
        ]

        total_cells = len(cleaned) * len(fields)
        bad_cells = sum(1 for row in cleaned for value in row.values() if value is None)
        quality_score = round(1 - bad_cells / total_cells, 4) if total_cells else 0.0

        primary_key = next(
            (f.name for f in fields if f.unique and f.type in (FieldType.STRING, FieldType.DATE)),
            None,
        )
        schema = DataSchema(
            fields=fields,
            primary_key=primary_key,
            row_count=len(cleaned),
            quality_score=quality_score,
        )
        statistics = DataStatistics(
            numeric_fields=[f.name for f in fields if f.type == FieldType.NUMBER],
            categorical_fields=[f.name for f in fields if f.type == FieldType.STRING],
            date_fields=[f.name for f in fields if f.type == FieldType.DATE],
            missing_values=bad_cells,
        )

        validation_errors: List[str] = []
        if not cleaned:
            validation_errors.append("Dataset is empty")
        if not fields:
            validation_errors.append("No data fields detected")
        if quality_score < MIN_QUALITY_SCORE:
            validation_errors.append(
                f"Data quality score is too low ({quality_score:.2f}); the chart may be unreliable"
            )

        logger.info(
            f"Normalized {len(cleaned)} rows x {len(fields)} fields, quality {quality_score:.2f}",
            extra={"stage": Stages.DATA_EXTRACTION}
        )

        return UnifiedDataStructure(
            data=cleaned,
            data_schema=schema,
            metadata=DataMetadata(
                source=source,
                extracted_at=datetime.now(timezone.utc),
                file_info=file_info,
                preview=cleaned[:PREVIEW_ROWS],
                statistics=statistics,
            ),
            is_valid=not validation_errors,
            validation_errors=validation_errors,
        )
