"""Tests for the error taxonomy, redaction and envelope construction."""

import json

import pytest

from alfredkit.core.envelope import (
    ErrorInfo,
    OutputMode,
    error_envelope,
    hint_output_mode,
    render_json,
    select_output_mode,
    success_envelope,
)
from alfredkit.core.errors import (
    ErrorCode,
    ErrorKind,
    WorkflowError,
    internal_error,
    runtime_error,
    user_error,
)
from alfredkit.core.redaction import REDACTED, configured_secrets, redact_text, redact_value


class TestErrorTaxonomy:
    def test_exit_codes_follow_kind(self):
        assert user_error("bad").exit_code == 2
        assert runtime_error("down").exit_code == 1
        assert ErrorKind.USER.exit_code == 2
        assert ErrorKind.RUNTIME.exit_code == 1

    def test_every_code_has_a_kind_matching_its_prefix(self):
        for code in ErrorCode:
            assert code.value.startswith(code.kind.value + ".")

    def test_constructors_reject_mismatched_codes(self):
        with pytest.raises(ValueError):
            user_error("x", code=ErrorCode.STORAGE_FAILURE)
        with pytest.raises(ValueError):
            runtime_error("x", code=ErrorCode.INVALID_INPUT)

    def test_workflow_error_is_raisable(self):
        with pytest.raises(WorkflowError) as exc_info:
            raise user_error("query must not be empty")
        assert str(exc_info.value) == "query must not be empty"
        assert exc_info.value.retryable is False

    def test_internal_error_names_exception_type(self):
        error = internal_error(KeyError("boom"))
        assert error.code is ErrorCode.INTERNAL
        assert error.details == {"exception": "KeyError"}
        assert error.message.startswith("internal error:")


class TestRedaction:
    @pytest.mark.parametrize(
        "text,leak",
        [
            ("Authorization: Bearer abc.def.ghi", "abc.def.ghi"),
            ("token=s3cr3t&x=1", "s3cr3t"),
            ("client_secret=topsecret", "topsecret"),
            ("PASSWORD: hunter22", "hunter22"),
            ("api_key=k-123", "k-123"),
            ("https://example.com/search?q=a&key=AIzaXYZ", "AIzaXYZ"),
            ("https://example.com/?access_token=tok123", "tok123"),
        ],
    )
    def test_credential_shapes_are_redacted(self, text, leak):
        redacted = redact_text(text)
        assert leak not in redacted
        assert REDACTED in redacted

    def test_configured_secret_values_are_redacted(self):
        secrets = configured_secrets({"BILIBILI_UID": "12345678", "YOUTUBE_API_KEY": " "})
        assert secrets == ["12345678"]
        assert redact_text("uid 12345678 rejected", secrets) == f"uid {REDACTED} rejected"

    def test_short_configured_secrets_are_redacted(self):
        secrets = configured_secrets({"BILIBILI_UID": "42", "SPOTIFY_CLIENT_ID": "7"})
        assert secrets == ["42", "7"]
        assert redact_text("uid 42 client 7", secrets) == f"uid {REDACTED} client {REDACTED}"

    def test_secret_inside_marker_text_is_left_alone(self):
        redacted = redact_text("uid A, client E", ["A", "E"])
        assert redacted == f"uid {REDACTED}, client {REDACTED}"

    def test_redaction_is_stable(self):
        once = redact_text("token=abc bearer xyz")
        assert redact_text(once) == once

    def test_redact_value_walks_nested_details(self):
        value = {"provider_trace": ["youtube: token=abc rejected"], "n": 3}
        assert redact_value(value) == {
            "provider_trace": [f"youtube: token={REDACTED} rejected"],
            "n": 3,
        }

    def test_plain_text_is_untouched(self):
        assert redact_text("amount must be positive: 0") == "amount must be positive: 0"


class TestOutputModes:
    def test_parse_accepts_aliases(self):
        assert OutputMode.parse("service-json") is OutputMode.JSON
        assert OutputMode.parse("alfred") is OutputMode.ALFRED
        assert OutputMode.parse(" TEXT ") is OutputMode.HUMAN

    def test_parse_rejects_unknown(self):
        with pytest.raises(WorkflowError) as exc_info:
            OutputMode.parse("xml")
        assert exc_info.value.code is ErrorCode.INVALID_INPUT

    def test_json_flag_conflicts_with_human(self):
        with pytest.raises(WorkflowError) as exc_info:
            select_output_mode(OutputMode.HUMAN, True, OutputMode.HUMAN)
        assert exc_info.value.code is ErrorCode.OUTPUT_MODE_CONFLICT
        assert "(got human)" in exc_info.value.message
        assert hint_output_mode(OutputMode.HUMAN, True, OutputMode.HUMAN) is OutputMode.JSON

    def test_selection_precedence(self):
        assert select_output_mode(None, False, OutputMode.ALFRED) is OutputMode.ALFRED
        assert select_output_mode(OutputMode.HUMAN, False, OutputMode.ALFRED) is OutputMode.HUMAN
        assert select_output_mode(OutputMode.JSON, True, OutputMode.HUMAN) is OutputMode.JSON
        assert select_output_mode(None, True, OutputMode.HUMAN) is OutputMode.JSON


class TestEnvelope:
    def test_success_envelope_shape(self):
        envelope = success_envelope("market.fx", {"unit_price": "1"})
        assert envelope == {
            "schema_version": "v1",
            "command": "market.fx",
            "ok": True,
            "result": {"unit_price": "1"},
            "error": None,
        }

    def test_error_envelope_is_redacted_and_complete(self):
        error = runtime_error(
            "upstream said token=abc123",
            retryable=True,
            details={"provider_trace": ["p: key sk-999 invalid"]},
        )
        info = ErrorInfo.from_error(error, ["sk-999"])
        envelope = error_envelope("search", info)

        assert envelope["ok"] is False
        assert envelope["result"] is None
        assert envelope["error"]["code"] == "runtime.upstream_unavailable"
        assert envelope["error"]["retryable"] is True
        rendered = render_json(envelope)
        assert "abc123" not in rendered
        assert "sk-999" not in rendered

    def test_render_json_keeps_non_ascii_compact(self):
        assert render_json({"summary": "晴朗"}) == '{"summary":"晴朗"}'
        assert json.loads(render_json({"a": [1, 2]})) == {"a": [1, 2]}
