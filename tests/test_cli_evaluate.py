"""Tests for the evaluate command."""

import json

import pytest
from accesslayer.cli.evaluate import evaluate_command
from accesslayer.core.errors import ExitCode

BUNDLE = """
policies:
  - name: managers-approve
    display_name: Managers approve payments
    effect: ALLOW
    priority: 10
    resources: ["payment:*"]
    actions: [approve]
    conditions:
      AND:
        - {attribute: user.role, operator: "=", value: manager}
        - {attribute: resource.amount, operator: "<=", value: 10000}
  - name: block-contractors
    display_name: Block contractors
    effect: DENY
    priority: 5
    resources: ["*"]
    actions: ["*"]
    conditions: {attribute: user.employment_type, operator: "=", value: contractor}
attributes:
  users:
    alice: {role: manager}
    carl: {role: manager, employment_type: contractor}
  resources:
    "payment:42": {amount: 500}
"""


@pytest.fixture
def bundle_path(tmp_path):
    path = tmp_path / "bundle.yaml"
    path.write_text(BUNDLE)
    return path


def _request_file(tmp_path, subject_id, **extra):
    path = tmp_path / f"request-{subject_id}.json"
    body = {"subject": {"id": subject_id}, "action": "approve", "resource": "payment:42"}
    body.update(extra)
    path.write_text(json.dumps(body))
    return path


class TestEvaluateCommand:
    """Tests for evaluate_command."""

    def test_allow_uses_directory_attributes(self, tmp_path, bundle_path, capsys):
        code = evaluate_command(str(bundle_path), str(_request_file(tmp_path, "alice")))

        assert code == ExitCode.SUCCESS
        out = capsys.readouterr().out
        assert "ALLOW" in out
        assert "matched policy managers-approve (ALLOW)" in out

    def test_deny_exit_code(self, tmp_path, bundle_path, capsys):
        code = evaluate_command(str(bundle_path), str(_request_file(tmp_path, "carl")))

        assert code == ExitCode.DENIED
        assert "block-contractors" in capsys.readouterr().out

    def test_no_match(self, tmp_path, bundle_path, capsys):
        code = evaluate_command(str(bundle_path), str(_request_file(tmp_path, "nobody")))

        assert code == ExitCode.DENIED
        assert "no matching policy" in capsys.readouterr().out

    def test_json_output(self, tmp_path, bundle_path, capsys):
        code = evaluate_command(
            str(bundle_path),
            str(_request_file(tmp_path, "alice")),
            output_format="json",
        )

        assert code == ExitCode.SUCCESS
        result = json.loads(capsys.readouterr().out)
        assert result["result"] == "ALLOW"
        assert [p["name"] for p in result["matched_policies"]] == ["managers-approve"]
        assert result["details"]["conditions_passed"] == 2

    def test_request_values_override_directory(self, tmp_path, bundle_path, capsys):
        request = _request_file(tmp_path, "alice", resource_attributes={"amount": 50_000})

        assert evaluate_command(str(bundle_path), str(request), output_format="json") == ExitCode.DENIED

    def test_missing_request_file(self, tmp_path, bundle_path):
        assert evaluate_command(str(bundle_path), str(tmp_path / "nope.json")) == ExitCode.CONFIG_ERROR

    def test_invalid_request(self, tmp_path, bundle_path):
        path = tmp_path / "request.json"
        path.write_text(json.dumps({"resource": "payment:42"}))

        assert evaluate_command(str(bundle_path), str(path)) == ExitCode.VALIDATION_ERROR

    def test_missing_bundle(self, tmp_path):
        request = _request_file(tmp_path, "alice")

        assert evaluate_command(str(tmp_path / "missing.yaml"), str(request)) == ExitCode.CONFIG_ERROR

    def test_policy_errors_reported(self, tmp_path, capsys):
        path = tmp_path / "bundle.yaml"
        path.write_text(
            "policies:\n"
            "  - name: broken-regex\n"
            "    display_name: Broken regex\n"
            "    effect: ALLOW\n"
            "    resources: ['*']\n"
            "    actions: ['*']\n"
            "    conditions: {attribute: user.id, operator: MATCHES, value: '(unclosed'}\n"
        )

        code = evaluate_command(str(path), str(_request_file(tmp_path, "alice")))

        assert code == ExitCode.DENIED
        out = capsys.readouterr().out
        assert "Policies skipped after evaluation errors" in out
        assert "broken-regex" in out
