"""
Tests for webhook signing and URL validation.
"""
import pytest

from sms_dev.core.security import compute_signature, validate_webhook_url, verify_signature


class TestSignature:
    """Tests for HMAC signature computation and verification."""
    
    def test_compute_signature_is_deterministic(self):
        body = b'{"id": "msg_1"}'
        assert compute_signature("secret", body) == compute_signature("secret", body)
        assert len(compute_signature("secret", body)) == 64
    
    def test_verify_valid_signature(self):
        body = b'{"id": "msg_1"}'
        assert verify_signature("secret", body, compute_signature("secret", body)) is True
    
    def test_verify_rejects_wrong_secret(self):
        body = b'{"id": "msg_1"}'
        assert verify_signature("secret", body, compute_signature("other", body)) is False
    
    def test_verify_rejects_tampered_body(self):
        signature = compute_signature("secret", b'{"id": "msg_1"}')
        assert verify_signature("secret", b'{"id": "msg_2"}', signature) is False


class TestValidateWebhookUrl:
    
    @pytest.mark.parametrize("url", [
        "http://localhost:3000/hook",
        "http://127.0.0.1:8080/sms",
        "https://example.com/hook",
    ])
    def test_clean_urls(self, url):
        check = validate_webhook_url(url)
        assert check.valid
        assert check.errors == []
        assert check.warnings == []
    
    @pytest.mark.parametrize("url", [
        "",
        "ftp://example.com/hook",
        "not a url",
        "http:///path-only",
        "http://localhost:99999/hook",
    ])
    def test_invalid_urls(self, url):
        check = validate_webhook_url(url)
        assert not check.valid
        assert check.errors
    
    def test_plain_http_to_remote_host_warns(self):
        check = validate_webhook_url("http://example.com/hook")
        assert check.valid
        assert check.warnings == ["HTTP URLs are not secure for production use"]
    
    def test_private_network_warns(self):
        check = validate_webhook_url("https://192.168.1.20/hook")
        assert check.valid
        assert "Webhook URL points to private network" in check.warnings
    
    def test_privileged_port_on_remote_host_warns(self):
        check = validate_webhook_url("https://example.com:444/hook")
        assert "Using privileged port on remote host" in check.warnings
        assert validate_webhook_url("http://localhost:80/hook").warnings == []
