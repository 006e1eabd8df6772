"""Unit tests for webhook signature validation."""

from unittest.mock import MagicMock, patch

import pytest
from fastapi import HTTPException, Request

from api.middleware.signature_validation import validate_webhook_signature


def make_request(headers):
    request = MagicMock(spec=Request)
    request.headers = headers
    request.url.path = "/webhook/whatsapp"
    return request


class TestWebhookSignatureValidation:
    """Tests for the webhook signature header check."""

    def test_no_secret_skips_check(self):
        """Test requests pass when WEBHOOK_SECRET is not configured."""
        with patch("api.middleware.signature_validation.get_settings") as mock_settings:
            mock_settings.return_value.WEBHOOK_SECRET = ""

            assert validate_webhook_signature(make_request({})) is None

    @pytest.mark.parametrize("header", ["X-Webhook-Signature", "X-Signature"])
    def test_signature_header_accepted(self, header):
        """Test either signature header satisfies the check."""
        with patch("api.middleware.signature_validation.get_settings") as mock_settings:
            mock_settings.return_value.WEBHOOK_SECRET = "segredo"

            assert validate_webhook_signature(make_request({header: "sha256=abc"})) is None

    def test_missing_signature_returns_401(self):
        """Test a missing header raises 401."""
        with patch("api.middleware.signature_validation.get_settings") as mock_settings:
            mock_settings.return_value.WEBHOOK_SECRET = "segredo"

            with pytest.raises(HTTPException) as exc_info:
                validate_webhook_signature(make_request({}))

            assert exc_info.value.status_code == 401

    def test_blank_signature_returns_401(self):
        """Test a blank header raises 401."""
        with patch("api.middleware.signature_validation.get_settings") as mock_settings:
            mock_settings.return_value.WEBHOOK_SECRET = "segredo"

            with pytest.raises(HTTPException) as exc_info:
                validate_webhook_signature(make_request({"X-Signature": "  "}))

            assert exc_info.value.status_code == 401
            assert exc_info.value.detail == "Assinatura do webhook inválida."
