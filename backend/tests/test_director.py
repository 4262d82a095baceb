"""
End-to-end pipeline tests through the director with a scripted AI service.
"""
import pytest
from chartpilot.core.errors import ErrorKinds, Stages
from chartpilot.core.schemas import ChartGenerationError, ChartGenerationResult, ChartType, Scenario
from chartpilot.services.director import UPLOAD_SUGGESTION, ChartDirector
from conftest import FakeAIService, make_input_file


@pytest.fixture
def director(settings):
    return ChartDirector.from_settings(settings, ai_service=FakeAIService())


@pytest.mark.asyncio
@pytest.mark.integration
async def test_text_prompt_produces_chart(director):
    result = await director.generate_chart("show sales of 120, 130, 140", [])

    assert isinstance(result, ChartGenerationResult)
    assert result.chart_type == ChartType.BAR
    assert [row["value"] for row in result.data] == [120, 130, 140]
    assert result.metadata.data_source == "prompt"
    assert director.last_error is None


@pytest.mark.asyncio
@pytest.mark.integration
async def test_empty_request_fails_input_validation(director):
    result = await director.generate_chart("", [])

    assert isinstance(result, ChartGenerationError)
    assert result.success is False
    assert result.failed_stage == Stages.INPUT_VALIDATION
    assert result.error.kind == ErrorKinds.INVALID_REQUEST
    assert result.suggestions[0] == UPLOAD_SUGGESTION
    assert director.last_error.startswith("input_validation")


@pytest.mark.asyncio
@pytest.mark.integration
async def test_yearly_key_values_produce_chart(director):
    result = await director.generate_chart("Sales by year: 2021: 100, 2022: 150, 2023: 180", [])

    assert isinstance(result, ChartGenerationResult)
    assert result.config.x_axis.label == "Year"
    assert [row["value"] for row in result.data] == [100, 150, 180]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_prompt_without_data_is_rejected(director):
    result = await director.generate_chart("make something pretty", [])

    assert result.failed_stage == Stages.INPUT_VALIDATION
    assert "does not describe any data" in result.error.message
    assert result.error.details["scenario"] == Scenario.TEXT_ONLY.value


@pytest.mark.asyncio
@pytest.mark.integration
async def test_prompt_without_numbers_uses_sample_data(director):
    result = await director.generate_chart("show sales by region", [])

    assert isinstance(result, ChartGenerationResult)
    assert result.chart_type == ChartType.BAR
    assert len(result.data) == 5
    assert result.data[0] == {"category": "Product A", "value": 320}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_file_only_request(director):
    file = make_input_file(
        name="monthly.csv",
        headers=["month", "revenue"],
        rows=[["Jan", "100"], ["Feb", "120"], ["Mar", "90"]],
    )

    result = await director.generate_chart("", [file])

    assert isinstance(result, ChartGenerationResult)
    assert result.chart_type == ChartType.BAR
    assert result.metadata.data_source == "monthly.csv"
    assert result.config.x_axis.label == "Month"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_text_with_file_is_hybrid(director):
    files = [
        make_input_file(name="a.csv", headers=["region", "sales"], rows=[["North", 1], ["South", 2]]),
        make_input_file(name="b.csv", headers=["x", "y"], rows=[["p", 9]]),
    ]

    data = await director._extract(Scenario.TEXT_WITH_FILE, "compare", files)

    assert data.metadata.source == "hybrid"
    assert data.metadata.file_info.name == "a.csv"
    assert data.data_schema.field_names() == ["region", "sales"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_file_without_rows_is_insufficient(director):
    result = await director.generate_chart("", [make_input_file(headers=["a", "b"], rows=[])])

    assert result.failed_stage == Stages.DATA_EXTRACTION
    assert result.error.kind == ErrorKinds.INSUFFICIENT_DATA
    assert UPLOAD_SUGGESTION not in result.suggestions


@pytest.mark.asyncio
@pytest.mark.integration
async def test_incompatible_intent_is_reported(settings):
    ai = FakeAIService([{
        "chartType": "bar",
        "visualMapping": {"xAxis": "name", "yAxis": ["sales"]},
    }])
    director = ChartDirector.from_settings(settings, ai_service=ai)
    file = make_input_file(headers=["name", "city"], rows=[["Ann", "Oslo"], ["Bo", "Rome"]])

    result = await director.generate_chart("", [file])

    assert result.failed_stage == Stages.INTENT_ANALYSIS
    assert result.error.kind == ErrorKinds.INVALID_REQUEST
    assert "missing fields: sales" in result.error.message
    assert result.error.details["missingFields"] == ["sales"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_generation_crash_is_wrapped(director):
    class BrokenGenerator:
        def generate_chart(self, intent, data):
            raise RuntimeError("boom")

    director.generator = BrokenGenerator()

    result = await director.generate_chart("show sales of 120, 130, 140", [])

    assert result.failed_stage == Stages.CHART_GENERATION
    assert result.error.kind == ErrorKinds.UNKNOWN_ERROR
    assert result.error.details == {"error": "boom"}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_system_status(settings):
    director = ChartDirector.from_settings(settings, ai_service=FakeAIService(connected=False))

    status = await director.get_system_status()
    assert status.ai_service_connected is False
    assert status.components_initialized is True
    assert status.last_error is None

    await director.generate_chart("", [])
    status = await director.get_system_status()
    assert status.last_error.startswith("input_validation")

    await director.generate_chart("show sales of 120, 130, 140", [])
    assert (await director.get_system_status()).last_error is None
