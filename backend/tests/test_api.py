"""
Integration tests for API endpoints.
"""
import pytest
from io import BytesIO
from fastapi.testclient import TestClient
from main import app
from chartpilot.core.config import Settings
from chartpilot.services.director import ChartDirector
from conftest import FakeAIService


@pytest.fixture
def client():
    """Create a test client whose director talks to a scripted AI service."""
    original = app.state.director
    app.state.director = ChartDirector.from_settings(Settings(), ai_service=FakeAIService())
    try:
        yield TestClient(app)
    finally:
        app.state.director = original


@pytest.mark.integration
def test_health_check(client):
    """Test the health check endpoint."""
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.integration
def test_root_endpoint(client):
    """Test the root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    assert "message" in response.json()


@pytest.mark.integration
def test_generate_chart_from_csv(client):
    csv_content = b"region,sales\nNorth,120\nSouth,95\nEast,130\nWest,80"

    response = client.post(
        "/api/chart/generate",
        files={"files": ("sales.csv", BytesIO(csv_content), "text/csv")},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["chartType"] == "bar"
    assert len(data["data"]) == 4
    assert data["config"]["xAxis"]["label"] == "Region"
    assert data["metadata"]["dataSource"] == "sales.csv"


@pytest.mark.integration
def test_generate_chart_from_prompt(client):
    response = client.post("/api/chart/generate", data={"prompt": "show sales of 120, 130, 140"})

    assert response.status_code == 200
    data = response.json()
    assert data["chartType"] == "bar"
    assert data["metadata"]["dataSource"] == "prompt"


@pytest.mark.integration
def test_generate_chart_without_input(client):
    response = client.post("/api/chart/generate", data={"prompt": ""})

    assert response.status_code == 400
    data = response.json()
    assert data["success"] is False
    assert data["failedStage"] == "input_validation"
    assert data["error"]["kind"] == "INVALID_REQUEST"
    assert len(data["suggestions"]) > 0


@pytest.mark.integration
def test_generate_chart_rejects_unreadable_spreadsheet(client):
    response = client.post(
        "/api/chart/generate",
        files={"files": ("broken.xlsx", BytesIO(b"not a workbook"), "application/octet-stream")},
    )

    assert response.status_code == 400
    assert response.json()["failedStage"] == "data_extraction"


@pytest.mark.integration
def test_analyze_intent(client, make_data, sales_rows):
    payload = {
        "prompt": "share of sales per region",
        "dataStructure": make_data(sales_rows).model_dump(by_alias=True, mode="json"),
    }

    response = client.post("/api/ai/analyze-intent", json=payload)

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["chartIntent"]["chartType"] == "pie"
    assert data["chartIntent"]["visualMapping"]["xAxis"] == "region"


@pytest.mark.integration
def test_analyze_intent_without_prompt_uses_data_shape(client, make_data, sales_rows):
    payload = {"dataStructure": make_data(sales_rows).model_dump(by_alias=True, mode="json")}

    response = client.post("/api/ai/analyze-intent", json=payload)

    assert response.status_code == 200
    assert response.json()["chartIntent"]["chartType"] == "bar"


@pytest.mark.integration
def test_analyze_intent_validates_body(client):
    response = client.post("/api/ai/analyze-intent", json={"prompt": "bar chart"})
    assert response.status_code == 422


@pytest.mark.integration
def test_system_status(client):
    response = client.get("/api/status")

    assert response.status_code == 200
    data = response.json()
    assert data["aiServiceConnected"] is True
    assert data["componentsInitialized"] is True
    assert "lastError" in data


@pytest.mark.integration
def test_metrics_endpoint(client):
    response = client.get("/api/metrics")

    assert response.status_code == 200
    assert "performance" in response.json()


@pytest.mark.integration
def test_correlation_id_header(client):
    """Responses echo the caller's correlation id or mint one."""
    response = client.get("/api/health", headers={"X-Correlation-ID": "abc-123"})
    assert response.headers["X-Correlation-ID"] == "abc-123"

    response = client.get("/api/health")
    assert response.headers.get("X-Correlation-ID")
