"""
Data model shared by every pipeline stage.

Models are immutable; stages build new values instead of patching their
input. JSON produced for clients uses camelCase keys.
"""
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Row = Dict[str, Any]


class ChartType(str, Enum):
    LINE = "line"
    AREA = "area"
    BAR = "bar"
    PIE = "pie"
    RADAR = "radar"
    RADIAL = "radial"


class Scenario(str, Enum):
    TEXT_ONLY = "TEXT_ONLY"
    TEXT_WITH_FILE = "TEXT_WITH_FILE"
    FILE_ONLY = "FILE_ONLY"


class FieldType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"


class ChartModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# --- Data ---

class DataField(ChartModel):
    name: str
    type: FieldType
    nullable: bool = False
    unique: Optional[bool] = None


class DataSchema(ChartModel):
    fields: List[DataField]
    primary_key: Optional[str] = None
    row_count: int = Field(ge=0)
    quality_score: float = Field(ge=0, le=1)

    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    def get_field(self, name: str) -> Optional[DataField]:
        return next((f for f in self.fields if f.name == name), None)


class DataStatistics(ChartModel):
    numeric_fields: List[str] = []
    categorical_fields: List[str] = []
    date_fields: List[str] = []
    missing_values: int = 0


class FileInfo(ChartModel):
    name: str
    size: int
    type: str


class DataMetadata(ChartModel):
    source: Literal["prompt", "file", "hybrid"]
    extracted_at: datetime
    file_info: Optional[FileInfo] = None
    preview: List[Row] = []
    statistics: DataStatistics


class UnifiedDataStructure(ChartModel):
    data: List[Row]
    data_schema: DataSchema = Field(alias="schema")
    metadata: DataMetadata
    is_valid: bool
    validation_errors: List[str] = []

    @property
    def statistics(self) -> DataStatistics:
        return self.metadata.statistics


# --- Intent ---

class VisualMapping(ChartModel):
    x_axis: str
    y_axis: List[str]
    color_by: Optional[str] = None


class IntentSuggestions(ChartModel):
    title: str
    description: str
    insights: List[str] = []


class ChartIntent(ChartModel):
    chart_type: ChartType
    confidence: float = Field(ge=0, le=1)
    reasoning: str
    required_fields: List[str]
    optional_fields: List[str] = []
    visual_mapping: VisualMapping
    suggestions: IntentSuggestions


class CompatibilityResult(ChartModel):
    is_compatible: bool
    reason: Optional[str] = None
    missing_fields: List[str] = []
    incompatible_types: List[str] = []
    suggestions: List[str] = []


class ValidationResult(ChartModel):
    is_valid: bool
    errors: List[str] = []
    warnings: List[str] = []


# --- Input ---

class TabularFile(ChartModel):
    """Header row plus raw cell rows, as produced by the upload parser."""
    headers: List[Any]
    rows: List[List[Any]]


class InputFile(ChartModel):
    name: str
    size: int = Field(ge=0)
    content_type: Optional[str] = None
    table: Optional[TabularFile] = None

    @property
    def extension(self) -> str:
        return Path(self.name).suffix.lower()


class ExtractedData(ChartModel):
    data: List[Row]
    confidence: float = Field(ge=0, le=1)
    extraction_method: Literal["ai_parsing", "regex_pattern", "file_parsing", "ai_generated", "template"]
    warnings: List[str] = []


# --- Output ---

class AxisSpec(ChartModel):
    label: str
    type: Literal["category", "time", "value"]
    min: Optional[float] = None
    max: Optional[float] = None


class LegendSpec(ChartModel):
    show: bool
    position: Literal["top", "bottom", "left", "right"]


class Dimensions(ChartModel):
    width: int
    height: int


class SeriesSpec(ChartModel):
    field: str
    label: str
    color: str


class ChartConfig(ChartModel):
    colors: List[str]
    dimensions: Dimensions
    x_axis: AxisSpec
    y_axis: AxisSpec
    legend: LegendSpec
    series: List[SeriesSpec]
    responsive: bool = True


class ChartMetadata(ChartModel):
    generated_at: datetime
    data_source: str
    processing_time: float
    confidence: float = Field(ge=0, le=1)


class ChartGenerationResult(ChartModel):
    success: Literal[True] = True
    chart_type: ChartType
    data: List[Row]
    config: ChartConfig
    title: str
    description: str
    insights: List[str] = []
    metadata: ChartMetadata


class ErrorInfo(ChartModel):
    kind: str
    message: str
    details: Optional[Any] = None


class ChartGenerationError(ChartModel):
    success: Literal[False] = False
    error: ErrorInfo
    failed_stage: str
    suggestions: List[str] = []


class SystemStatus(ChartModel):
    ai_service_connected: bool
    components_initialized: bool
    last_error: Optional[str] = None


# --- API ---

class AnalyzeIntentRequest(ChartModel):
    prompt: str = ""
    data_structure: UnifiedDataStructure


class AnalyzeIntentResponse(ChartModel):
    success: bool
    chart_intent: ChartIntent
