"""
Chart pipeline director.

Runs classify -> extract -> analyze -> validate -> generate for one request
and is the only place pipeline errors are turned into client payloads.
"""
import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence, Union
from chartpilot.core.config import Settings
from chartpilot.core.errors import ChartPipelineError, ErrorKinds, Stages, get_stage_suggestions
from chartpilot.core.sanitization import sanitize_for_logging
from chartpilot.core.schemas import (
    ChartGenerationError, ChartGenerationResult, ErrorInfo, ExtractedData, FileInfo, InputFile,
    Scenario, SystemStatus, UnifiedDataStructure,
)
from chartpilot.services.ai_service import AIService, GroqGeminiService
from chartpilot.services.chart_generator import ChartGenerator
from chartpilot.services.data_extractor import DataExtractor
from chartpilot.services.input_classifier import InputClassifier
from chartpilot.services.intent_analyzer import IntentAnalyzer

logger = logging.getLogger(__name__)

PipelineOutcome = Union[ChartGenerationResult, ChartGenerationError]

UPLOAD_SUGGESTION = "Upload a spreadsheet file (.csv, .xlsx, .xls) holding the data"
CHART_TYPE_SUGGESTION = "State a concrete chart type, e.g. 'show a bar chart of sales by region'"


@contextmanager
def pipeline_stage(stage: str) -> Iterator[None]:
    """Tag any non-pipeline exception raised inside the block with `stage`."""
    try:
        yield
    except ChartPipelineError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error in {stage}: {e}", exc_info=True, extra={"stage": stage})
        raise ChartPipelineError(stage, ErrorKinds.UNKNOWN_ERROR, f"Unexpected error during {stage}", {"error": str(e)}) from e


class ChartDirector:
    """Orchestrates the chart pipeline; one instance serves every request."""

    def __init__(
        self,
        classifier: InputClassifier,
        extractor: DataExtractor,
        analyzer: IntentAnalyzer,
        generator: ChartGenerator,
        ai_service: AIService,
    ):
        self.classifier = classifier
        self.extractor = extractor
        self.analyzer = analyzer
        self.generator = generator
        self.ai_service = ai_service
        self.last_error: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Settings, ai_service: Optional[AIService] = None) -> "ChartDirector":
        """Build the director and its components; the AI service defaults to Groq/Gemini from env."""
        ai_service = ai_service or GroqGeminiService.from_env(settings)
        return cls(
            classifier=InputClassifier(settings),
            extractor=DataExtractor(ai_service, settings),
            analyzer=IntentAnalyzer(ai_service, settings),
            generator=ChartGenerator(),
            ai_service=ai_service,
        )

    async def generate_chart(self, prompt: str, files: Sequence[InputFile] = ()) -> PipelineOutcome:
        """
        Run the full pipeline for one request.

        Never raises for pipeline failures: they come back as a
        ChartGenerationError naming the failed stage.
        """
        prompt = prompt or ""
        files = list(files)
        try:
            result = await self._run(prompt, files)
        except ChartPipelineError as e:
            return self.describe_failure(e, prompt, files)

        self.last_error = None
        return result

    async def _run(self, prompt: str, files: List[InputFile]) -> ChartGenerationResult:
        with pipeline_stage(Stages.INPUT_VALIDATION):
            scenario = self.classifier.classify(prompt, files)
            validation = self.classifier.validate(scenario, prompt, files)
            if not validation.is_valid:
                raise ChartPipelineError(
                    Stages.INPUT_VALIDATION,
                    ErrorKinds.INVALID_REQUEST,
                    "; ".join(validation.errors),
                    {"errors": validation.errors, "scenario": scenario.value},
                )
            for warning in validation.warnings:
                logger.info(f"Input warning: {warning}", extra={"stage": Stages.INPUT_VALIDATION})

        logger.info(
            f"Processing {scenario.value} request ({self.classifier.describe_scenario(scenario)}): "
            f"prompt='{sanitize_for_logging(prompt)}', files={len(files)}",
            extra={"stage": Stages.INPUT_VALIDATION}
        )

        with pipeline_stage(Stages.DATA_EXTRACTION):
            data = await self._extract(scenario, prompt, files)

        with pipeline_stage(Stages.INTENT_ANALYSIS):
            if scenario == Scenario.FILE_ONLY:
                intent = await self.analyzer.suggest_best_visualization(data)
            else:
                intent = await self.analyzer.analyze_chart_intent(prompt, data)

            compatibility = self.analyzer.validate_data_compatibility(intent, data)
            if not compatibility.is_compatible:
                raise ChartPipelineError(
                    Stages.INTENT_ANALYSIS,
                    ErrorKinds.INVALID_REQUEST,
                    f"Data is incompatible with the {intent.chart_type.value} chart: {compatibility.reason}",
                    compatibility.model_dump(by_alias=True),
                )
            for note in compatibility.suggestions:
                logger.info(f"Compatibility note: {note}", extra={"stage": Stages.INTENT_ANALYSIS})

        with pipeline_stage(Stages.CHART_GENERATION):
            return self.generator.generate_chart(intent, data)

    async def _extract(self, scenario: Scenario, prompt: str, files: List[InputFile]) -> UnifiedDataStructure:
        if scenario == Scenario.TEXT_ONLY:
            extracted = await self.extractor.extract_from_prompt(prompt)
            if extracted is None:
                extracted = await self.extractor.synthesize_from_prompt(prompt)
            self._log_extraction(extracted)
            return self.extractor.normalize_data(extracted.data, source="prompt")

        extracted_files = self.extractor.extract_from_files(files)
        if len(files) > 1:
            logger.info(f"{len(files)} files uploaded; charting '{files[0].name}'")

        primary_file = files[0]
        extracted = extracted_files[0]
        self._log_extraction(extracted)
        return self.extractor.normalize_data(
            extracted.data,
            source="hybrid" if scenario == Scenario.TEXT_WITH_FILE else "file",
            file_info=FileInfo(
                name=primary_file.name,
                size=primary_file.size,
                type=primary_file.content_type or primary_file.extension.lstrip("."),
            ),
        )

    @staticmethod
    def _log_extraction(extracted: ExtractedData) -> None:
        logger.info(
            f"Extracted {len(extracted.data)} rows via {extracted.extraction_method} "
            f"(confidence {extracted.confidence:.2f})",
            extra={"stage": Stages.DATA_EXTRACTION}
        )
        for warning in extracted.warnings:
            logger.warning(f"Extraction warning: {warning}", extra={"stage": Stages.DATA_EXTRACTION})

    def describe_failure(self, error: ChartPipelineError, prompt: str, files: Sequence[InputFile]) -> ChartGenerationError:
        """Turn a pipeline error into the client payload and remember it as the last error."""
        self.last_error = f"{error.stage}: {error.message}"
        logger.warning(
            f"Chart pipeline failed at {error.stage} ({error.kind}): {error.message}",
            extra={"stage": error.stage}
        )

        suggestions = get_stage_suggestions(error.stage)
        if error.stage in (Stages.INPUT_VALIDATION, Stages.DATA_EXTRACTION) and not files:
            suggestions.insert(0, UPLOAD_SUGGESTION)
        if error.stage == Stages.INTENT_ANALYSIS:
            if isinstance(error.details, dict):
                suggestions = list(error.details.get("suggestions", [])) + suggestions
            if prompt.strip():
                suggestions.insert(0, CHART_TYPE_SUGGESTION)

        return ChartGenerationError(
            error=ErrorInfo(kind=error.kind, message=error.message, details=error.details),
            failed_stage=error.stage,
            suggestions=list(dict.fromkeys(suggestions)),
        )

    async def get_system_status(self) -> SystemStatus:
        try:
            connected = await self.ai_service.validate_connection()
        except Exception as e:
            logger.warning(f"AI connection check failed: {e}")
            connected = False

        return SystemStatus(
            ai_service_connected=connected,
            components_initialized=all(
                component is not None
                for component in (self.classifier, self.extractor, self.analyzer, self.generator)
            ),
            last_error=self.last_error,
        )
