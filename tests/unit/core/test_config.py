"""Unit tests for configuration management."""

import os
from unittest.mock import patch

from n8n_node_catalog.core.config import DEFAULT_REQUEST_HEADERS, Settings


class TestSettings:
    """Test Settings configuration class."""

    def test_default_values(self):
        """Test default configuration values."""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings()

            # Application defaults
            assert settings.app_name == "n8n Node Catalog"
            assert settings.debug is False
            assert settings.log_level == "INFO"

            # Source defaults
            assert settings.docs_base_url == "https://docs.n8n.io/integrations/builtin/"
            assert settings.request_headers == DEFAULT_REQUEST_HEADERS

            # Fetch policy defaults
            assert settings.rate_limit_ms == 1000
            assert settings.timeout_ms == 30000
            assert settings.max_retries == 3
            assert settings.retry_delay_ms == 2000
            assert settings.batch_size == 5
            assert settings.batch_cooldown_ms == 2000
            assert settings.retain_html is False

            # Quality defaults
            assert settings.namespace == "n8n-nodes-base"
            assert settings.min_description_length == 20
            assert settings.quality_score_threshold == 70

            assert settings.artifacts_path == "./artifacts"

    def test_environment_variable_override(self):
        """Test that environment variables override defaults."""
        env_vars = {
            "LOG_LEVEL": "DEBUG",
            "DOCS_BASE_URL": "http://localhost:8080/integrations/builtin/",
            "RATE_LIMIT_MS": "0",
            "MAX_RETRIES": "5",
            "BATCH_SIZE": "10",
            "RETAIN_HTML": "true",
            "PROPERTY_DRIFT_THRESHOLD": "2.5",
            "ARTIFACTS_PATH": "/tmp/catalog",
        }

        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings()

            assert settings.log_level == "DEBUG"
            assert settings.docs_base_url == "http://localhost:8080/integrations/builtin/"
            assert settings.rate_limit_ms == 0
            assert settings.max_retries == 5
            assert settings.batch_size == 10
            assert settings.retain_html is True
            assert settings.property_drift_threshold == 2.5
            assert settings.artifacts_path == "/tmp/catalog"

    def test_empty_values_use_defaults(self):
        with patch.dict(os.environ, {"BATCH_SIZE": "", "DEBUG": ""}, clear=True):
            settings = Settings()

            assert settings.batch_size == 5
            assert settings.debug is False

    def test_request_headers_are_not_shared(self):
        settings = Settings()
        settings.request_headers["X-Test"] = "1"

        assert "X-Test" not in DEFAULT_REQUEST_HEADERS
        assert "X-Test" not in Settings().request_headers
