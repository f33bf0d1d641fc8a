"""Tests for unified error handling."""

from accesslayer.core.errors import (
    AccessLayerError,
    ConfigurationError,
    EvaluationError,
    ExitCode,
    PolicyNotFoundError,
    PolicyStateError,
    ValidationError,
    format_error_message,
    main_with_error_handling,
)


class TestExitCodes:
    """Tests for error exit codes."""

    def test_codes(self):
        assert ConfigurationError("x").exit_code == ExitCode.CONFIG_ERROR
        assert ValidationError("x").exit_code == ExitCode.VALIDATION_ERROR
        assert EvaluationError("x").exit_code == ExitCode.EVALUATION_ERROR
        assert PolicyNotFoundError("x").exit_code == ExitCode.POLICY_ERROR
        assert PolicyStateError("x").exit_code == ExitCode.POLICY_ERROR
        assert AccessLayerError("x").exit_code == ExitCode.UNKNOWN_ERROR

    def test_details_default(self):
        assert ValidationError("x").details == {}


class TestMainWithErrorHandling:
    """Tests for the CLI decorator."""

    def test_passes_through_return(self):
        @main_with_error_handling()
        def command():
            return ExitCode.DENIED

        assert command() == ExitCode.DENIED

    def test_access_layer_error(self):
        @main_with_error_handling()
        def command():
            raise ValidationError("bad policy", details={"name": "p"})

        assert command() == ExitCode.VALIDATION_ERROR

    def test_keyboard_interrupt(self):
        @main_with_error_handling()
        def command():
            raise KeyboardInterrupt

        assert command() == 130

    def test_unexpected_error(self):
        @main_with_error_handling(log_errors=False)
        def command():
            raise RuntimeError("boom")

        assert command() == ExitCode.UNKNOWN_ERROR

    def test_traceback_printed(self, capsys):
        @main_with_error_handling(show_traceback=True, log_errors=False)
        def command():
            raise RuntimeError("boom")

        command()

        assert "RuntimeError: boom" in capsys.readouterr().err

    def test_preserves_name(self):
        @main_with_error_handling()
        def validate_things():
            """Docs."""
            return 0

        assert validate_things.__name__ == "validate_things"
        assert validate_things.__doc__ == "Docs."


class TestFormatErrorMessage:
    """Tests for format_error_message."""

    def test_without_details(self):
        assert format_error_message(ValidationError("bad")) == "bad"

    def test_with_details(self):
        error = PolicyNotFoundError("policy not found", details={"policy_id": "p1"})

        assert format_error_message(error) == "policy not found (policy_id=p1)"
