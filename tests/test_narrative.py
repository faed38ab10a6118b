from unittest.mock import MagicMock, patch

import pytest
import requests

from billing.services import LedgerService
from billing.services.narrative_service import NarrativeEnhancer
from tests.factories import MatterFactory


def _completion(content):
    response = MagicMock()
    response.raise_for_status.return_value = None
    response.json.return_value = {"choices": [{"message": {"content": content}}]}
    return response


@pytest.fixture
def enhancer():
    return NarrativeEnhancer(api_url="https://llm.example/v1/chat/completions", api_key="sk-test",
                             model="test-model", timeout=3, enabled=True)


class TestNarrativeEnhancer:
    def test_disabled_returns_raw_text(self):
        disabled = NarrativeEnhancer(enabled=False, api_key="sk-test")
        with patch("billing.services.narrative_service.requests.post") as post:
            assert disabled.enhance("call w/ client", 12) == "call w/ client"
        post.assert_not_called()

    def test_enabled_without_key_returns_raw_text(self):
        assert NarrativeEnhancer(enabled=True, api_key="").enhance("call", 6) == "call"

    def test_returns_enhanced_text(self, enhancer):
        with patch("billing.services.narrative_service.requests.post",
                   return_value=_completion("  Telephone conference with client regarding settlement.  ")) as post:
            result = enhancer.enhance("call w/ client re settlement", 18)

        assert result == "Telephone conference with client regarding settlement."
        _, kwargs = post.call_args
        assert kwargs["timeout"] == 3
        assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
        assert kwargs["json"]["model"] == "test-model"
        assert kwargs["json"]["messages"][1]["content"] == "Time entry: call w/ client re settlement (18 minutes)"

    @pytest.mark.parametrize("error", [requests.exceptions.Timeout("slow"), requests.exceptions.ConnectionError("down")])
    def test_network_failure_falls_back(self, enhancer, error):
        with patch("billing.services.narrative_service.requests.post", side_effect=error):
            assert enhancer.enhance("research", 30) == "research"

    def test_http_error_falls_back(self, enhancer):
        response = MagicMock()
        response.raise_for_status.side_effect = requests.exceptions.HTTPError("500")
        with patch("billing.services.narrative_service.requests.post", return_value=response):
            assert enhancer.enhance("research", 30) == "research"

    @pytest.mark.parametrize("payload", [{}, {"choices": []}, {"choices": [{"message": {"content": ""}}]}])
    def test_malformed_response_falls_back(self, enhancer, payload):
        response = MagicMock()
        response.raise_for_status.return_value = None
        response.json.return_value = payload
        with patch("billing.services.narrative_service.requests.post", return_value=response):
            assert enhancer.enhance("research", 30) == "research"


@pytest.mark.django_db
def test_record_survives_narrative_outage(settings):
    settings.NARRATIVE_ENHANCEMENT_ENABLED = True
    settings.NARRATIVE_API_KEY = "sk-test"
    matter = MatterFactory()

    with patch("billing.services.narrative_service.requests.post", side_effect=requests.exceptions.Timeout("slow")):
        entry = LedgerService.record(matter.id, "drafted reply brief", 45, hourly_rate=30000)

    assert entry.pk is not None
    assert entry.ai_narrative == ""
    assert entry.narrative == "drafted reply brief"
