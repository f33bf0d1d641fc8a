"""Tests for CLI output helpers."""

from accesslayer.cli.ux import (
    ACCESSLAYER_THEME,
    bullet,
    decision_badge,
    error,
    header,
    print_key_value,
    print_table,
    success,
    warning,
)


class TestMessages:
    """Tests for status messages."""

    def test_success(self, capsys):
        success("Bundle loaded")
        assert "✓ Bundle loaded" in capsys.readouterr().out

    def test_error(self, capsys):
        error("Bundle invalid")
        assert "✗ Bundle invalid" in capsys.readouterr().out

    def test_warning(self, capsys):
        warning("Policy skipped")
        assert "⚠ Policy skipped" in capsys.readouterr().out

    def test_header(self, capsys):
        header("Access Decision")
        assert "Access Decision" in capsys.readouterr().out


class TestStructuredOutput:
    """Tests for tables and key/value output."""

    def test_print_table(self, capsys):
        print_table("Policies", ["Name", "Effect"], [["deny-all", "DENY"]])

        out = capsys.readouterr().out
        assert "Policies" in out
        assert "deny-all" in out
        assert "DENY" in out

    def test_print_key_value(self, capsys):
        print_key_value({"Action": "approve"}, title="Request")

        out = capsys.readouterr().out
        assert "Request" in out
        assert "Action: approve" in out


class TestTheme:
    """Tests for the theme."""

    def test_decision_styles(self):
        assert "allow" in ACCESSLAYER_THEME.styles
        assert "deny" in ACCESSLAYER_THEME.styles

class TestDecisionOutput:
    """Tests for decision markup and bullets."""

    def test_decision_badge_styles(self):
        assert decision_badge("ALLOW") == "[allow]ALLOW[/allow]"
        assert decision_badge("DENY") == "[deny]DENY[/deny]"

    def test_bullet_indent(self, capsys):
        bullet("policies[0]: name is required", indent=4)

        assert "    • policies[0]: name is required" in capsys.readouterr().out
