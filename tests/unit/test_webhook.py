"""
Unit tests for ciboot_client.webhook module.
"""

from unittest.mock import Mock, patch

import requests

from ciboot_client.webhook import build_hook_payload, register_webhook, webhook_url
from ciboot_common.models import WebhookStatus


class TestWebhookUrl:
    def test_appends_callback_path(self):
        assert webhook_url("https://abc.ngrok.app") == "https://abc.ngrok.app/github-webhook/"

    def test_strips_trailing_slash(self):
        assert webhook_url("https://abc.ngrok.app/") == "https://abc.ngrok.app/github-webhook/"


class TestBuildHookPayload:
    def test_payload_shape(self):
        payload = build_hook_payload("https://x/github-webhook/")

        assert payload == {
            "name": "web",
            "active": True,
            "events": ["push", "pull_request"],
            "config": {
                "url": "https://x/github-webhook/",
                "content_type": "json",
                "insecure_ssl": "0",
            },
        }

    def test_secret_included_when_given(self):
        payload = build_hook_payload("https://x/github-webhook/", secret="s3cret")
        assert payload["config"]["secret"] == "s3cret"


class TestRegisterWebhook:
    """Test suite for register_webhook."""

    @patch("ciboot_client.webhook.requests.post")
    def test_created(self, mock_post):
        mock_response = Mock()
        mock_response.raise_for_status = Mock()
        mock_response.json.return_value = {"id": 17}
        mock_post.return_value = mock_response

        result = register_webhook("acme/app", "https://abc.ngrok.app", "tok")

        assert result.status == WebhookStatus.CREATED
        assert result.created
        assert result.hook_id == 17
        assert result.target_url == "https://abc.ngrok.app/github-webhook/"
        assert result.manual_instructions is None

        args, kwargs = mock_post.call_args
        assert args[0] == "https://api.github.com/repos/acme/app/hooks"
        assert kwargs["headers"]["Authorization"] == "Bearer tok"
        assert kwargs["json"]["config"]["url"] == "https://abc.ngrok.app/github-webhook/"

    @patch("ciboot_client.webhook.requests.post")
    def test_custom_api_url(self, mock_post):
        mock_post.return_value = Mock(raise_for_status=Mock(), json=Mock(return_value={"id": 1}))

        register_webhook("acme/app", "https://x", "tok", api_url="https://ghe.local/api/v3/")

        assert mock_post.call_args[0][0] == "https://ghe.local/api/v3/repos/acme/app/hooks"

    @patch("ciboot_client.webhook.requests.post")
    def test_no_target_url_is_skipped(self, mock_post):
        result = register_webhook("acme/app", None, "tok")

        assert result.status == WebhookStatus.SKIPPED
        assert "Settings -> Webhooks" in result.manual_instructions
        mock_post.assert_not_called()

    @patch("ciboot_client.webhook.requests.post")
    def test_no_token_is_skipped_with_instructions(self, mock_post):
        result = register_webhook("acme/app", "https://abc.ngrok.app", None)

        assert result.status == WebhookStatus.SKIPPED
        assert "Payload URL: https://abc.ngrok.app/github-webhook/" in result.manual_instructions
        mock_post.assert_not_called()

    @patch("ciboot_client.webhook.requests.post")
    def test_failure_degrades_to_manual_instructions(self, mock_post):
        """Test that a rejected call never raises and is tried exactly once."""
        mock_response = Mock()
        mock_response.raise_for_status.side_effect = requests.exceptions.HTTPError("404")
        mock_post.return_value = mock_response

        result = register_webhook("acme/app", "https://abc.ngrok.app", "tok")

        assert result.status == WebhookStatus.FAILED
        assert not result.created
        assert "Payload URL: https://abc.ngrok.app/github-webhook/" in result.manual_instructions
        mock_post.assert_called_once()

    @patch("ciboot_client.webhook.requests.post")
    def test_network_error(self, mock_post):
        mock_post.side_effect = requests.exceptions.ConnectionError("offline")

        result = register_webhook("acme/app", "https://abc.ngrok.app", "tok")

        assert result.status == WebhookStatus.FAILED

    @patch("ciboot_client.webhook.requests.post")
    def test_non_object_body_still_created(self, mock_post):
        """Test that a 2xx with an unexpected JSON body is reported, not raised."""
        mock_post.return_value = Mock(raise_for_status=Mock(), json=Mock(return_value=[]))

        result = register_webhook("acme/app", "https://abc.ngrok.app", "tok")

        assert result.status == WebhookStatus.CREATED
        assert result.hook_id is None
