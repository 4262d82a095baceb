"""
Unit tests for prompt/file extraction and normalization.
"""
import pytest
from chartpilot.core.errors import ChartPipelineError, ErrorKinds, Stages
from chartpilot.core.schemas import FieldType
from chartpilot.services.data_extractor import (
    DataExtractor,
    coerce_value,
    infer_field_type,
    parse_number,
)
from conftest import FakeAIService, make_input_file


@pytest.mark.unit
def test_parse_number_tolerates_formatting():
    assert parse_number("1,200") == 1200
    assert parse_number("$99.5") == 99.5
    assert parse_number("45%") == 45
    assert parse_number(7) == 7
    assert parse_number("abc") is None
    assert parse_number(True) is None
    assert parse_number("") is None


@pytest.mark.unit
def test_infer_field_type():
    assert infer_field_type(["1", "2", "3.5"]) == FieldType.NUMBER
    assert infer_field_type(["2024-01-01", "2024-02-01"]) == FieldType.DATE
    assert infer_field_type(["yes", "no", "yes"]) == FieldType.BOOLEAN
    assert infer_field_type(["North", "South"]) == FieldType.STRING
    assert infer_field_type([]) == FieldType.STRING


@pytest.mark.unit
def test_coerce_value():
    assert coerce_value("12.0", FieldType.NUMBER) == 12
    assert isinstance(coerce_value("12.0", FieldType.NUMBER), int)
    assert coerce_value("n/a", FieldType.NUMBER) is None
    assert coerce_value("2024-01-05", FieldType.DATE) == "2024-01-05T00:00:00"
    assert coerce_value("no", FieldType.BOOLEAN) is False
    assert coerce_value("  North ", FieldType.STRING) == "North"
    assert coerce_value(None, FieldType.STRING) is None


@pytest.mark.unit
def test_regex_extracts_number_run(extractor):
    result = extractor.regex_extract("show sales of 120, 130, 140")

    assert result is not None
    assert result.extraction_method == "regex_pattern"
    assert result.data == [
        {"category": "Item 1", "value": 120},
        {"category": "Item 2", "value": 130},
        {"category": "Item 3", "value": 140},
    ]


@pytest.mark.unit
def test_regex_extracts_key_values(extractor):
    result = extractor.regex_extract("Jan: 850, Feb: 920, Mar: 780")

    assert result.data == [
        {"month": "Jan", "value": 850},
        {"month": "Feb", "value": 920},
        {"month": "Mar", "value": 780},
    ]


@pytest.mark.unit
def test_leading_label_does_not_swallow_first_pair(extractor):
    result = extractor.regex_extract("Revenue: Jan: 850, Feb: 920, Mar: 1000")

    assert result.data == [
        {"month": "Jan", "value": 850},
        {"month": "Feb", "value": 920},
        {"month": "Mar", "value": 1000},
    ]


@pytest.mark.unit
def test_numeric_keys_are_pairs_not_series(extractor):
    result = extractor.regex_extract("Sales by year: 2021: 100, 2022: 150, 2023: 180")

    assert result.data == [
        {"year": "2021", "value": 100},
        {"year": "2022", "value": 150},
        {"year": "2023", "value": 180},
    ]


@pytest.mark.unit
def test_labelled_list_ending_a_sentence(extractor):
    result = extractor.regex_extract("Weekly visits: 12, 15, 19.")

    assert [row["Weekly visits"] for row in result.data] == [12, 15, 19]


@pytest.mark.unit
def test_regex_applies_chinese_units(extractor):
    result = extractor.regex_extract("1月：850万元，2月：920万元")

    assert result.data == [
        {"月份": "1月", "金额(元)": 8_500_000},
        {"月份": "2月", "金额(元)": 9_200_000},
    ]


@pytest.mark.unit
def test_regex_extracts_labelled_lists(extractor):
    result = extractor.regex_extract("sales: 100, 200, 300; costs: 80, 90, 100")

    assert len(result.data) == 3
    assert result.data[0] == {"category": "Item 1", "sales": 100, "costs": 80}
    assert result.data[2] == {"category": "Item 3", "sales": 300, "costs": 100}


@pytest.mark.unit
def test_regex_extracts_bracketed_series(extractor):
    result = extractor.regex_extract("Beijing[22, 23, 21], Shanghai[25, 26, 24] this week")

    assert [row["time"] for row in result.data] == ["Monday", "Tuesday", "Wednesday"]
    assert result.data[0]["Beijing"] == 22
    assert result.data[2]["Shanghai"] == 24


@pytest.mark.unit
def test_regex_finds_nothing_without_numbers(extractor):
    assert extractor.regex_extract("show sales by region") is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_prompt_extraction_prefers_ai(settings):
    ai = FakeAIService([{"hasData": True, "data": [{"city": "Paris", "visits": 12}], "confidence": 0.9}])
    extractor = DataExtractor(ai, settings)

    result = await extractor.extract_from_prompt("Paris had 12 visits")

    assert result.extraction_method == "ai_parsing"
    assert result.confidence == 0.9
    assert result.data == [{"city": "Paris", "visits": 12}]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_prompt_extraction_falls_back_to_patterns(settings):
    ai = FakeAIService(["```json\n{\"hasData\": false, \"data\": []}\n```"])
    extractor = DataExtractor(ai, settings)

    result = await extractor.extract_from_prompt("show sales of 120, 130, 140")

    assert result.extraction_method == "regex_pattern"
    assert len(result.data) == 3


@pytest.mark.asyncio
@pytest.mark.unit
async def test_synthesis_uses_template_when_ai_fails(extractor):
    result = await extractor.synthesize_from_prompt("show a pie chart of market share")

    assert result.extraction_method == "template"
    assert result.confidence == 0.3
    assert result.data[0] == {"category": "Category A", "value": 35}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_synthesis_uses_ai_rows(settings):
    rows = [{"team": "A", "score": 3}, {"team": "B", "score": 5}]
    extractor = DataExtractor(FakeAIService([{"data": rows}]), settings)

    result = await extractor.synthesize_from_prompt("team scores")

    assert result.extraction_method == "ai_generated"
    assert result.data == rows


@pytest.mark.unit
def test_file_extraction_cleans_headers_and_rows(extractor):
    file = make_input_file(
        headers=["Region", None, "Region"],
        rows=[["North", 1, "x"], [None, "", None], ["South", 2]],
    )

    [result] = extractor.extract_from_files([file])

    assert result.extraction_method == "file_parsing"
    assert result.data == [
        {"Region": "North", "Column_2": 1, "Region_2": "x"},
        {"Region": "South", "Column_2": 2, "Region_2": None},
    ]


@pytest.mark.unit
def test_file_extraction_errors(extractor):
    with pytest.raises(ChartPipelineError) as exc_info:
        extractor.extract_from_files([make_input_file(name="data.json", headers=["a"])])
    assert exc_info.value.kind == ErrorKinds.INVALID_REQUEST

    with pytest.raises(ChartPipelineError) as exc_info:
        extractor.extract_from_files([make_input_file()])
    assert exc_info.value.kind == ErrorKinds.UNKNOWN_ERROR

    with pytest.raises(ChartPipelineError) as exc_info:
        extractor.extract_from_files([make_input_file(headers=[])])
    assert exc_info.value.kind == ErrorKinds.INSUFFICIENT_DATA
    assert exc_info.value.stage == Stages.DATA_EXTRACTION


@pytest.mark.unit
def test_normalize_data(make_data):
    data = make_data([
        {"month": "Jan", "sales": "1,200"},
        {"month": "Feb", "sales": "$980"},
        {"month": "Mar", "sales": None},
    ])

    assert data.data == [
        {"month": "Jan", "sales": 1200},
        {"month": "Feb", "sales": 980},
        {"month": "Mar", "sales": None},
    ]
    assert data.data_schema.get_field("sales").type == FieldType.NUMBER
    assert data.data_schema.get_field("sales").nullable
    assert data.data_schema.primary_key == "month"
    assert data.data_schema.row_count == 3
    assert data.data_schema.quality_score == pytest.approx(5 / 6, rel=1e-3)
    assert data.statistics.numeric_fields == ["sales"]
    assert data.statistics.categorical_fields == ["month"]
    assert data.statistics.missing_values == 1
    assert data.metadata.source == "prompt"
    assert data.is_valid


@pytest.mark.unit
def test_normalize_flags_low_quality(make_data):
    data = make_data([{"a": "x", "b": None}, {"a": None, "b": None}])

    assert not data.is_valid
    assert any("quality" in e for e in data.validation_errors)


@pytest.mark.unit
def test_normalize_rejects_empty_input(make_data):
    with pytest.raises(ChartPipelineError) as exc_info:
        make_data([])
    assert exc_info.value.kind == ErrorKinds.INSUFFICIENT_DATA
