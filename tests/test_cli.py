"""
Tests for the salescoach CLI.
"""

from contextlib import contextmanager
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from salescoach.cli import app
from salescoach.config import settings
from tests.conftest import USER_AUTH_ID, FakeLLMProvider, conversation_payload

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging():
    with patch("salescoach.cli.setup_logging"):
        yield


class TestServe:
    def test_uses_settings_defaults(self):
        with patch("uvicorn.run") as run, \
                patch.object(settings, "api_reload", False):
            result = runner.invoke(app, ["serve", "--port", "9000"])

        assert result.exit_code == 0
        run.assert_called_once_with(
            "salescoach.api.app:app", host=settings.api_host, port=9000, reload=False
        )

    def test_reload_flag(self):
        with patch("uvicorn.run") as run:
            result = runner.invoke(app, ["serve", "--reload"])

        assert result.exit_code == 0
        assert run.call_args.kwargs["reload"] is True


class TestInitDb:
    def test_creates_tables(self):
        with patch("salescoach.db.connection.init_db") as init_db:
            result = runner.invoke(app, ["init-db"])

        assert result.exit_code == 0
        init_db.assert_called_once()
        assert "Tables created" in result.output


class TestAnalyze:
    def test_requires_voice_key(self):
        with patch("salescoach.api.dependencies.get_voice_client", return_value=None):
            result = runner.invoke(app, ["analyze", "conv_1"])

        assert result.exit_code == 1
        assert "ELEVENLABS_API_KEY" in result.output

    def test_requires_llm_key(self, voice):
        with patch("salescoach.api.dependencies.get_voice_client", return_value=voice.client()), \
                patch("salescoach.api.dependencies.get_llm_provider", return_value=None):
            result = runner.invoke(app, ["analyze", "conv_1"])

        assert result.exit_code == 1
        assert "no API key" in result.output

    def test_analyzes_then_serves_from_cache(self, voice, db_session, user_profile):
        voice.responses["conv_1"] = [conversation_payload("conv_1")]
        llm = FakeLLMProvider()

        @contextmanager
        def _session():
            yield db_session

        with patch("salescoach.api.dependencies.get_voice_client", return_value=voice.client()), \
                patch("salescoach.api.dependencies.get_llm_provider", return_value=llm), \
                patch("salescoach.db.connection.db_session", _session):
            first = runner.invoke(app, ["analyze", "conv_1", "--auth-id", USER_AUTH_ID])
            second = runner.invoke(app, ["analyze", "conv_1"])

        assert first.exit_code == 0
        assert "from LLM" in first.output
        assert "8.2" in first.output
        assert second.exit_code == 0
        assert "from cache" in second.output
        assert "Stored under session" in first.output
        assert len(llm.calls) == 1

    def test_not_ready_exits_with_error(self, voice, db_session):
        voice.responses["conv_1"] = [conversation_payload("conv_1", transcript=[])]

        @contextmanager
        def _session():
            yield db_session

        with patch("salescoach.api.dependencies.get_voice_client", return_value=voice.client()), \
                patch("salescoach.api.dependencies.get_llm_provider", return_value=FakeLLMProvider()), \
                patch("salescoach.db.connection.db_session", _session), \
                patch.object(settings, "transcript_retry_delay_seconds", 0.0):
            result = runner.invoke(app, ["analyze", "conv_1"])

        assert result.exit_code == 1
        assert "Error" in result.output
