"""
Log redaction tests.

Guards against OAuth credentials reaching log sinks through provider error
bodies or request dumps.
"""
from app.utils.logger import mask_secret, redact


def test_form_encoded_refresh_token_is_masked():
    line = redact("grant_type=refresh_token&refresh_token=1//0gAbCdEf&client_id=cid")
    assert "1//0gAbCdEf" not in line
    assert "refresh_token=1//0****" in line
    assert "client_id=cid" in line


def test_json_access_token_is_masked():
    line = redact('Google OAuth API error (400): {"access_token": "ya29.secretvalue", "expires_in": 3599}')
    assert "ya29.secretvalue" not in line
    assert '"expires_in": 3599' in line


def test_bearer_header_is_masked():
    assert redact("Authorization: Bearer ya29.abcdef") == "Authorization: Bearer ya29****"


def test_plain_messages_untouched():
    message = "Fetched 12 Search Console rows for sc-domain:herbariumdyeworks.com"
    assert redact(message) == message


def test_mask_short_and_empty_values():
    assert mask_secret("") == "(empty)"
    assert mask_secret("abc") == "****"


def test_status_code_is_not_treated_as_secret():
    assert redact("status_code=400") == "status_code=400"
