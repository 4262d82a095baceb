"""
Pipeline error type, error kinds and user-facing error messages.
"""
from typing import Any, Dict, List, Optional


class ErrorKinds:
    INVALID_REQUEST = "INVALID_REQUEST"
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    TIMEOUT = "TIMEOUT"


class Stages:
    INPUT_VALIDATION = "input_validation"
    DATA_EXTRACTION = "data_extraction"
    INTENT_ANALYSIS = "intent_analysis"
    CHART_GENERATION = "chart_generation"


class ChartPipelineError(Exception):
    """
    Raised by any pipeline stage.

    Carries the stage that failed and an error kind so the director can
    turn it into a structured error payload without guessing.
    """

    def __init__(
        self,
        stage: str,
        kind: str,
        message: str,
        details: Optional[Any] = None,
    ):
        super().__init__(message)
        self.stage = stage
        self.kind = kind
        self.message = message
        self.details = details

    def __repr__(self) -> str:
        return f"ChartPipelineError(stage={self.stage!r}, kind={self.kind!r}, message={self.message!r})"


# HTTP status per error kind
ERROR_STATUS: Dict[str, int] = {
    ErrorKinds.INVALID_REQUEST: 400,
    ErrorKinds.INSUFFICIENT_DATA: 422,
    ErrorKinds.SERVICE_UNAVAILABLE: 503,
    ErrorKinds.UNKNOWN_ERROR: 500,
    ErrorKinds.RATE_LIMIT_EXCEEDED: 429,
    ErrorKinds.TIMEOUT: 504,
}

ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    ErrorKinds.INVALID_REQUEST: {
        "message": "We couldn't use that request",
        "detail": "Something about the prompt, the files or the requested chart doesn't fit together.",
    },
    ErrorKinds.INSUFFICIENT_DATA: {
        "message": "There isn't enough data to chart",
        "detail": "We couldn't find usable rows in what you sent.",
    },
    ErrorKinds.SERVICE_UNAVAILABLE: {
        "message": "The analysis service is unavailable",
        "detail": "Neither the AI service nor the built-in recommender could pick a chart.",
    },
    ErrorKinds.UNKNOWN_ERROR: {
        "message": "Hmm, something unexpected happened",
        "detail": "We encountered an issue we weren't expecting. Don't worry - it's not your fault!",
    },
    ErrorKinds.RATE_LIMIT_EXCEEDED: {
        "message": "Whoa there! Slow down a bit",
        "detail": "You're sending requests faster than we can keep up. Try again in about a minute.",
    },
    ErrorKinds.TIMEOUT: {
        "message": "This is taking longer than expected",
        "detail": "Your request took too long to process. Try a smaller file or a shorter prompt.",
    },
}

# Remediation hints shown with a failed stage
STAGE_SUGGESTIONS: Dict[str, List[str]] = {
    Stages.INPUT_VALIDATION: [
        "Check that the prompt describes the data you want to chart",
        "Upload CSV or Excel files only (.csv, .xlsx, .xls)",
        "Keep each file under the size limit",
    ],
    Stages.DATA_EXTRACTION: [
        "Include concrete numbers in the prompt, e.g. 'Sales: 120, 130, 140'",
        "Make sure the first row of the file holds the column names",
        "Remove empty rows and columns from the file",
    ],
    Stages.INTENT_ANALYSIS: [
        "Name the chart you want, e.g. 'line chart' or 'pie chart'",
        "Describe what to compare, e.g. 'compare sales by region'",
        "Make sure the data has at least one numeric column",
    ],
    Stages.CHART_GENERATION: [
        "Check that numeric columns contain numbers only",
        "Try a different chart type",
        "Try again with a smaller dataset",
    ],
}


def get_error_response(error_kind: str, additional_detail: Optional[str] = None) -> Dict[str, str]:
    """
    Get user-friendly error response for an error kind.

    Args:
        error_kind: One of the ErrorKinds constants
        additional_detail: Optional additional detail to append

    Returns:
        Dictionary with code, message and detail
    """
    error_info = ERROR_MESSAGES.get(error_kind, ERROR_MESSAGES[ErrorKinds.UNKNOWN_ERROR])

    response = {
        "code": error_kind,
        "message": error_info["message"],
        "detail": error_info["detail"],
    }

    if additional_detail:
        response["detail"] = f"{response['detail']} {additional_detail}"

    return response


def get_stage_suggestions(stage: Optional[str]) -> List[str]:
    return list(STAGE_SUGGESTIONS.get(stage or "", ["Try again in a moment"]))


def status_for_kind(error_kind: str) -> int:
    return ERROR_STATUS.get(error_kind, 500)
