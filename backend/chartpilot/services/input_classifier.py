"""
Input classification and validation.

Decides which of the three request scenarios applies and checks the prompt
and the uploaded files against the configured limits. No I/O.
"""
import re
import logging
from typing import Dict, List, Sequence
from chartpilot.core.config import Settings
from chartpilot.core.errors import ChartPipelineError, ErrorKinds, Stages
from chartpilot.core.schemas import InputFile, Scenario, ValidationResult

logger = logging.getLogger(__name__)

SHORT_PROMPT_LENGTH = 20
MAX_FILENAME_LENGTH = 100

_MONTHS = (r"jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?"
           r"|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?")

# Each entry: indicator name -> patterns that reveal it
DATA_INDICATORS: Dict[str, Sequence[re.Pattern]] = {
    "number": (
        re.compile(r"\d+(?:\.\d+)?"),
        re.compile(r"[一二三四五六七八九十百千万亿]+"),
    ),
    "percent": (
        re.compile(r"\d+(?:\.\d+)?\s*%"),
        re.compile(r"百分之|\bpercent(?:age)?s?\b", re.IGNORECASE),
    ),
    "unit": (
        re.compile(r"\d+(?:\.\d+)?\s*(?:万|千|百|亿|元|件|个|台|人)"),
    ),
    "bracketed_list": (
        re.compile(r"\w+\s*\[[^\]]+\]"),
    ),
    "date": (
        re.compile(r"\d{4}[-/年]\d{1,2}"),
        re.compile(r"\d+[月日时分秒]"),
        re.compile(r"星期[一二三四五六日天]|周[一二三四五六日]"),
        re.compile(r"[一二三四五六七八九十]+月"),
        re.compile(r"\b(?:mon|tues|wednes|thurs|fri|satur|sun)day\b", re.IGNORECASE),
        re.compile(rf"\b(?:{_MONTHS})\b", re.IGNORECASE),
        re.compile(r"\bq[1-4]\b", re.IGNORECASE),
    ),
    "category": (
        re.compile(r"产品|地区|类别|部门|渠道|品牌|类型|分类|省份|城市|区域|行业|公司|团队|项目"),
        re.compile(r"\b(?:products?|regions?|categor(?:y|ies)|departments?|channels?|brands?|types?"
                   r"|provinces?|cit(?:y|ies)|industr(?:y|ies)|compan(?:y|ies)|teams?|projects?)\b",
                   re.IGNORECASE),
    ),
    "relation": (
        re.compile(r"比较|对比|增长|下降|变化|趋势|分布|占比|份额|排名|排序|最高|最低|平均|总计"),
        re.compile(r"\b(?:compar(?:e|ison)|versus|vs|growth|increase|decrease|decline|change|trends?"
                   r"|distribution|share|proportion|rank(?:ing)?|highest|lowest|average|total)\b",
                   re.IGNORECASE),
    ),
}

SCENARIO_DESCRIPTIONS: Dict[Scenario, str] = {
    Scenario.TEXT_ONLY: "Chart generated from the data described in the prompt",
    Scenario.TEXT_WITH_FILE: "Chart generated from the uploaded file, guided by the prompt",
    Scenario.FILE_ONLY: "Chart recommended automatically from the uploaded file",
}


class InputClassifier:
    """Classify a request into a Scenario and validate it."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def _has_prompt(self, prompt: str) -> bool:
        return len((prompt or "").strip()) >= self.settings.min_prompt_length

    def classify(self, prompt: str, files: Sequence[InputFile]) -> Scenario:
        """
        Decide the scenario from which inputs are present.

        Raises:
            ChartPipelineError: (input_validation, INVALID_REQUEST) when neither
                a meaningful prompt nor a file was supplied
        """
        has_prompt = self._has_prompt(prompt)
        has_files = len(files) > 0

        if has_prompt and has_files:
            scenario = Scenario.TEXT_WITH_FILE
        elif has_prompt:
            scenario = Scenario.TEXT_ONLY
        elif has_files:
            scenario = Scenario.FILE_ONLY
        else:
            raise ChartPipelineError(
                Stages.INPUT_VALIDATION,
                ErrorKinds.INVALID_REQUEST,
                "Provide a prompt describing the data or upload at least one file",
            )

        logger.debug(f"Classified request as {scenario.value}", extra={"stage": Stages.INPUT_VALIDATION})
        return scenario

    def detect_data_indicators(self, prompt: str) -> List[str]:
        """Names of the data indicators present in the prompt."""
        text = prompt or ""
        return [
            name for name, patterns in DATA_INDICATORS.items()
            if any(p.search(text) for p in patterns)
        ]

    def validate(self, scenario: Scenario, prompt: str, files: Sequence[InputFile]) -> ValidationResult:
        errors: List[str] = []
        warnings: List[str] = []
        text = (prompt or "").strip()

        if scenario == Scenario.TEXT_ONLY:
            self._check_prompt_length(text, errors)
            if text and not self.detect_data_indicators(text):
                errors.append(
                    "Prompt does not describe any data: include numbers, dates, categories or a comparison"
                )
            if text and len(text) < SHORT_PROMPT_LENGTH:
                warnings.append("Prompt is short; a more detailed description gives better charts")

        elif scenario == Scenario.TEXT_WITH_FILE:
            self._check_prompt_length(text, errors)
            self._check_files(files, errors, warnings)

        elif scenario == Scenario.FILE_ONLY:
            self._check_files(files, errors, warnings)
            warnings.append("No prompt given: data will be analysed automatically")

        return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)

    def _check_prompt_length(self, text: str, errors: List[str]) -> None:
        if len(text) < self.settings.min_prompt_length:
            errors.append(f"Prompt must be at least {self.settings.min_prompt_length} characters long")

    def _check_files(self, files: Sequence[InputFile], errors: List[str], warnings: List[str]) -> None:
        if not files:
            errors.append("At least one file is required")
            return

        if len(files) > self.settings.max_files:
            errors.append(f"At most {self.settings.max_files} files can be uploaded at once")

        supported = self.settings.supported_extensions_list
        for file in files:
            if file.size > self.settings.max_file_size_bytes:
                errors.append(f"File '{file.name}' exceeds the {self.settings.max_file_size_mb}MB size limit")
            if file.extension not in supported:
                errors.append(
                    f"File '{file.name}' has unsupported type '{file.extension or 'none'}'; "
                    f"supported: {', '.join(supported)}"
                )
            if len(file.name) > MAX_FILENAME_LENGTH:
                warnings.append(f"File name '{file.name[:30]}...' is longer than {MAX_FILENAME_LENGTH} characters")

    @staticmethod
    def describe_scenario(scenario: Scenario) -> str:
        return SCENARIO_DESCRIPTIONS[scenario]
