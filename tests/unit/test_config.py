"""
Unit tests for configuration management.
"""

import pytest
from unittest.mock import patch
import os

from pr_agent.config import TaskSettings, load_settings
from pr_agent.errors import ConfigurationError


def _settings(**kwargs):
    return TaskSettings(_env_file=None, **kwargs)


def test_settings_loads_from_task_inputs(tmp_path):
    """Test that settings can be loaded from pipeline INPUT_* variables."""
    with patch.dict(os.environ, {
        'INPUT_ANALYSISTYPE': 'security',
        'INPUT_APIENDPOINT': 'https://example.openai.azure.com',
        'INPUT_APIKEY': 'test_key',
        'INPUT_SOURCEDIRECTORY': str(tmp_path),
        'INPUT_INCLUDEPATTERNS': '**/*.py\n\n*.ts\n',
        'INPUT_ENABLESECURITYSCAN': 'true',
        'INPUT_QUALITYTHRESHOLD': '70',
        'INPUT_OUTPUTFORMAT': 'sarif',
        'INPUT_TIMEOUT': '5',
        'INPUT_LOGLEVEL': 'DEBUG',
    }, clear=True):
        settings = _settings()

        assert settings.analysis_type == 'security'
        assert settings.api_endpoint == 'https://example.openai.azure.com'
        assert settings.api_key == 'test_key'
        assert settings.source_directory == str(tmp_path)
        assert settings.include_pattern_list == ['**/*.py', '*.ts']
        assert settings.enable_security_scan is True
        assert settings.quality_threshold == 70
        assert settings.output_format == 'sarif'
        assert settings.timeout_seconds == 300.0
        assert settings.log_level == 'DEBUG'


def test_settings_environment_fallbacks():
    """Plain environment variables are used when task inputs are absent."""
    with patch.dict(os.environ, {
        'AZURE_OPENAI_ENDPOINT': 'https://fallback.openai.azure.com',
        'AZURE_OPENAI_API_KEY': 'fallback_key',
        'AZURE_OPENAI_DEPLOYMENT_NAME': 'gpt-4o',
        'PR_URL': 'https://dev.azure.com/org/proj/_git/repo/pullrequest/3',
        'SYSTEM_ACCESSTOKEN': 'system_token',
        'BUILD_BUILDID': '101',
        'BUILD_SOURCEBRANCHNAME': 'feature-x',
    }, clear=True):
        settings = _settings()

        assert settings.api_endpoint == 'https://fallback.openai.azure.com'
        assert settings.api_key == 'fallback_key'
        assert settings.deployment_name == 'gpt-4o'
        assert settings.pr_url.endswith('/pullrequest/3')
        assert settings.azure_devops_pat == 'system_token'
        assert settings.build_id == '101'
        assert settings.source_branch_name == 'feature-x'


def test_settings_task_input_wins_over_fallback():
    """INPUT_* variables take precedence over the plain environment names."""
    with patch.dict(os.environ, {
        'INPUT_APIKEY': 'input_key',
        'AZURE_OPENAI_API_KEY': 'env_key',
        'AZURE_DEVOPS_PAT': 'pat',
        'SYSTEM_ACCESSTOKEN': 'system_token',
    }, clear=True):
        settings = _settings()

        assert settings.api_key == 'input_key'
        assert settings.azure_devops_pat == 'pat'


def test_settings_has_default_values():
    """Test that settings have appropriate default values."""
    with patch.dict(os.environ, {}, clear=True):
        settings = _settings()

        assert settings.analysis_type == 'review'
        assert settings.deployment_name == 'gpt-4.1'
        assert settings.api_version == '2024-02-15-preview'
        assert settings.timeout_minutes == 10
        assert settings.retry_count == 3
        assert settings.quality_threshold == 80
        assert settings.security_threshold == 90
        assert settings.output_format == 'json'
        assert settings.publish_results is False
        assert settings.source_directory == os.getcwd()
        assert settings.include_pattern_list == []
        assert settings.log_level == 'INFO'


def test_settings_accepts_field_names():
    """Explicit keyword arguments override the environment."""
    with patch.dict(os.environ, {'INPUT_ANALYSISTYPE': 'review'}, clear=True):
        settings = _settings(analysis_type='all', quality_threshold=50)

        assert settings.analysis_type == 'all'
        assert settings.quality_threshold == 50


class TestValidateRequired:
    """Tests for TaskSettings.validate_required."""

    def test_valid_settings(self, tmp_path):
        settings = _settings(api_endpoint='https://x.openai.azure.com', api_key='k', source_directory=str(tmp_path))

        settings.validate_required()

    def test_missing_endpoint(self, tmp_path):
        settings = _settings(api_key='k', source_directory=str(tmp_path))

        with pytest.raises(ConfigurationError, match="endpoint is required"):
            settings.validate_required()

    def test_missing_api_key(self, tmp_path):
        settings = _settings(api_endpoint='https://x.openai.azure.com', source_directory=str(tmp_path))

        with pytest.raises(ConfigurationError, match="API key is required"):
            settings.validate_required()

    def test_missing_source_directory(self, tmp_path):
        missing = tmp_path / "missing"
        settings = _settings(api_endpoint='https://x', api_key='k', source_directory=str(missing))

        with pytest.raises(ConfigurationError, match="Source directory does not exist"):
            settings.validate_required()

    def test_unknown_analysis_type(self, tmp_path):
        settings = _settings(
            api_endpoint='https://x', api_key='k', source_directory=str(tmp_path), analysis_type='lint'
        )

        with pytest.raises(ConfigurationError, match="Unknown analysis type"):
            settings.validate_required()

    def test_unknown_output_format(self, tmp_path):
        settings = _settings(
            api_endpoint='https://x', api_key='k', source_directory=str(tmp_path), output_format='xml'
        )

        with pytest.raises(ConfigurationError, match="Unknown output format"):
            settings.validate_required()


def test_load_settings_rejects_malformed_input():
    """Unparsable inputs surface as ConfigurationError."""
    with patch.dict(os.environ, {'INPUT_QUALITYTHRESHOLD': 'abc'}, clear=True):
        with pytest.raises(ConfigurationError, match="Invalid task configuration") as exc_info:
            load_settings(_env_file=None)

    assert "quality" in str(exc_info.value).lower()


def test_load_settings_applies_overrides():
    """Explicit overrides win over the environment."""
    with patch.dict(os.environ, {'INPUT_ANALYSISTYPE': 'security'}, clear=True):
        settings = load_settings(_env_file=None, analysis_type="tests")

    assert settings.analysis_type == "tests"
