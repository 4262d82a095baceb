"""
Unit tests for request classification and validation.
"""
import pytest
from chartpilot.core.config import Settings
from chartpilot.core.errors import ChartPipelineError, ErrorKinds, Stages
from chartpilot.core.schemas import Scenario
from chartpilot.services.input_classifier import InputClassifier
from conftest import make_input_file


@pytest.fixture
def classifier(settings):
    return InputClassifier(settings)


@pytest.mark.unit
def test_classify_without_prompt_or_files_raises(classifier):
    with pytest.raises(ChartPipelineError) as exc_info:
        classifier.classify("", [])
    assert exc_info.value.stage == Stages.INPUT_VALIDATION
    assert exc_info.value.kind == ErrorKinds.INVALID_REQUEST


@pytest.mark.unit
def test_classify_scenarios(classifier):
    file = make_input_file()
    assert classifier.classify("", [file]) == Scenario.FILE_ONLY
    assert classifier.classify("show sales of 120, 130, 140", []) == Scenario.TEXT_ONLY
    assert classifier.classify("compare regions", [file]) == Scenario.TEXT_WITH_FILE


@pytest.mark.unit
def test_whitespace_prompt_counts_as_missing(classifier):
    assert classifier.classify("   ", [make_input_file()]) == Scenario.FILE_ONLY


@pytest.mark.unit
def test_text_prompt_with_numbers_validates(classifier):
    result = classifier.validate(Scenario.TEXT_ONLY, "show sales of 120, 130, 140", [])
    assert result.is_valid
    assert result.errors == []


@pytest.mark.unit
def test_text_prompt_without_data_is_rejected(classifier):
    result = classifier.validate(Scenario.TEXT_ONLY, "make something pretty", [])
    assert not result.is_valid
    assert "does not describe any data" in result.errors[0]


@pytest.mark.unit
def test_short_prompt_warns(classifier):
    result = classifier.validate(Scenario.TEXT_ONLY, "sales 1, 2, 3", [])
    assert result.is_valid
    assert any("short" in w for w in result.warnings)


@pytest.mark.unit
def test_detect_data_indicators(classifier):
    indicators = classifier.detect_data_indicators("Revenue growth of 20% in Q1 across regions")
    assert {"number", "percent", "date", "category", "relation"} <= set(indicators)

    chinese = classifier.detect_data_indicators("各地区销售额对比：北京100万，上海80万")
    assert {"number", "unit", "category", "relation"} <= set(chinese)


@pytest.mark.unit
def test_file_checks(classifier):
    too_big = make_input_file(size=Settings().max_file_size_bytes + 1)
    wrong_type = make_input_file(name="notes.txt")
    long_name = make_input_file(name="a" * 120 + ".csv")

    result = classifier.validate(Scenario.FILE_ONLY, "", [too_big, wrong_type, long_name])

    assert not result.is_valid
    assert any("size limit" in e for e in result.errors)
    assert any("unsupported type '.txt'" in e for e in result.errors)
    assert any("longer than" in w for w in result.warnings)
    assert "No prompt given: data will be analysed automatically" in result.warnings


@pytest.mark.unit
def test_too_many_files(classifier):
    files = [make_input_file(name=f"f{i}.csv") for i in range(4)]
    result = classifier.validate(Scenario.FILE_ONLY, "", files)
    assert not result.is_valid
    assert any("At most 3 files" in e for e in result.errors)


@pytest.mark.unit
def test_describe_scenario():
    assert "automatically" in InputClassifier.describe_scenario(Scenario.FILE_ONLY)
