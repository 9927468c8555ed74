"""Tests for structured logging."""
from fastapi import FastAPI
from fastapi.testclient import TestClient

from medbook.logging_config import (
    RequestIDMiddleware,
    generate_request_id,
    get_logger,
    mask_email,
    setup_structured_logging,
)


class TestStructuredLogging:
    """Test structured logging with request IDs."""

    def test_setup_configures_structlog(self):
        setup_structured_logging(log_level="INFO")
        logger = get_logger(__name__)

        assert hasattr(logger, 'info')
        assert hasattr(logger, 'warning')
        assert hasattr(logger, 'error')

    def test_logger_methods_work(self):
        setup_structured_logging(log_level="DEBUG")
        logger = get_logger(__name__)

        # These should not raise
        logger.info("test_info", doctor_id="doc-1")
        logger.warning("test_warning")
        logger.error("test_error", error="boom")

    def test_generate_request_id_format(self):
        request_id = generate_request_id()

        assert request_id.startswith("req-")
        assert len(request_id) == 16  # "req-" (4) + 12 hex chars
        assert request_id != generate_request_id()

    def test_request_id_middleware_adds_header(self):
        app = FastAPI()
        app.add_middleware(RequestIDMiddleware)

        @app.get("/ping")
        def ping():
            return {"ok": True}

        response = TestClient(app).get("/ping")

        assert response.status_code == 200
        assert response.headers["X-Request-ID"].startswith("req-")

    def test_request_ids_differ_per_request(self):
        app = FastAPI()
        app.add_middleware(RequestIDMiddleware)

        @app.get("/ping")
        def ping():
            return {"ok": True}

        client = TestClient(app)
        first = client.get("/ping").headers["X-Request-ID"]
        second = client.get("/ping").headers["X-Request-ID"]

        assert first != second


class TestMaskEmail:

    def test_keeps_first_letter_and_domain(self):
        assert mask_email("jane.doe@example.com") == "j***@example.com"

    def test_without_at_sign(self):
        assert mask_email("not-an-email") == "***"
