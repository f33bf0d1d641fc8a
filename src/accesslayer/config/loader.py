"""
Policy bundle loading.

A bundle is a YAML (or JSON) document:

    policies:
      - name: managers-approve-payments
        display_name: Managers approve payments
        effect: ALLOW
        resources: ["payment:*"]
        actions: ["approve"]
        conditions:
          AND:
            - {attribute: user.role, operator: "=", value: manager}
    attributes:                # optional, seeds the attribute directory
      users:
        alice: {department: finance}
      resources:
        "payment:42": {owner_id: alice}

Policies in a bundle default to status "active".

Search order:
1. Explicit path (--bundle argument or ACCESSLAYER_POLICY_FILE)
2. .accesslayer/policies.yaml (project root)
3. ~/.accesslayer/policies.yaml (user home)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import structlog
import yaml

from accesslayer.core.errors import ConfigurationError, ValidationError
from accesslayer.policies.conditions import ConditionLimits
from accesslayer.policies.directory import AttributeDirectory
from accesslayer.policies.models import EvaluationRequest, Policy, PolicyStatus
from accesslayer.policies.store import PolicyStore

logger = structlog.get_logger()

BUNDLE_DIR = ".accesslayer"
BUNDLE_FILE = "policies.yaml"


def get_policy_file_path(explicit_path: str | Path | None = None) -> Path | None:
    """
    Find the policy bundle to use.

    Returns:
        Path to the bundle or None if not found
    """
    if explicit_path:
        path = Path(explicit_path)
        if path.exists():
            return path
        return None

    cwd_bundle = Path.cwd() / BUNDLE_DIR / BUNDLE_FILE
    if cwd_bundle.exists():
        return cwd_bundle

    home_bundle = Path.home() / BUNDLE_DIR / BUNDLE_FILE
    if home_bundle.exists():
        return home_bundle

    return None


@dataclass
class PolicyBundle:
    """Policies and attribute assignments loaded from one file."""

    path: Path | None
    policies: list[Policy] = field(default_factory=list)
    user_attributes: dict[str, dict[str, Any]] = field(default_factory=dict)
    resource_attributes: dict[str, dict[str, Any]] = field(default_factory=dict)

    @property
    def active_policies(self) -> list[Policy]:
        return [p for p in self.policies if p.is_active]

    def build_store(self) -> PolicyStore:
        return PolicyStore(self.policies)

    def build_directory(self) -> AttributeDirectory:
        """Attribute directory seeded with the bundle's assignments."""
        directory = AttributeDirectory()
        for user_id, attributes in self.user_attributes.items():
            directory.bulk_assign_user_attributes(user_id, attributes, assigned_by="bundle")
        for resource, attributes in self.resource_attributes.items():
            resource_type, _, resource_id = resource.partition(":")
            for name, value in attributes.items():
                directory.assign_resource_attribute(
                    resource_type, resource_id, name, value, assigned_by="bundle"
                )
        return directory


def _read_document(path: Path) -> Any:
    try:
        with open(path) as f:
            return yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"cannot read {path}", details={"error": str(e)}) from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid YAML in {path}", details={"error": str(e)}) from e


def parse_policy_bundle(
    data: Any,
    path: Path | None = None,
    limits: ConditionLimits | None = None,
) -> PolicyBundle:
    """
    Validate a decoded bundle document.

    Raises:
        ConfigurationError: If the document structure is wrong
        ValidationError: If a policy is invalid (details name file and index)
    """
    source = str(path) if path else "<bundle>"
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"{source}: bundle must be a mapping")

    raw_policies = data.get("policies") or []
    if not isinstance(raw_policies, list):
        raise ConfigurationError(f"{source}: 'policies' must be a list")

    policies: list[Policy] = []
    for index, item in enumerate(raw_policies):
        if not isinstance(item, Mapping):
            raise ValidationError(
                "policy entry must be a mapping",
                details={"file": source, "index": index},
            )
        try:
            policies.append(
                Policy.from_dict({"status": PolicyStatus.ACTIVE.value, **item}, limits)
            )
        except ValidationError as e:
            raise ValidationError(
                e.message,
                details={"file": source, "index": index, "name": item.get("name"), **e.details},
            ) from e

    attributes = data.get("attributes") or {}
    if not isinstance(attributes, Mapping):
        raise ConfigurationError(f"{source}: 'attributes' must be a mapping")
    users = _attribute_section(attributes, "users", source)
    resources = _attribute_section(attributes, "resources", source)
    for resource in resources:
        if ":" not in resource:
            raise ConfigurationError(
                f"{source}: resource attribute keys must be type:id",
                details={"resource": resource},
            )

    return PolicyBundle(
        path=path,
        policies=policies,
        user_attributes=users,
        resource_attributes=resources,
    )


def _attribute_section(attributes: Mapping[str, Any], key: str, source: str) -> dict[str, dict[str, Any]]:
    section = attributes.get(key) or {}
    if not isinstance(section, Mapping) or not all(isinstance(v, Mapping) for v in section.values()):
        raise ConfigurationError(f"{source}: 'attributes.{key}' must map ids to attribute mappings")
    return {str(k): dict(v) for k, v in section.items()}


def load_policy_bundle(
    path: str | Path | None = None,
    limits: ConditionLimits | None = None,
) -> PolicyBundle:
    """
    Load and validate a policy bundle.

    Args:
        path: Optional explicit bundle path
        limits: Condition tree bounds (default: from settings)

    Raises:
        ConfigurationError: If no bundle is found or it cannot be parsed
        ValidationError: If a policy in the bundle is invalid
    """
    bundle_path = get_policy_file_path(path)
    if bundle_path is None:
        raise ConfigurationError(
            "policy bundle not found",
            details={"path": str(path) if path else f"{BUNDLE_DIR}/{BUNDLE_FILE}"},
        )

    bundle = parse_policy_bundle(
        _read_document(bundle_path),
        bundle_path,
        limits or ConditionLimits.from_settings(),
    )
    logger.debug("loaded_policy_bundle", path=str(bundle_path), policies=len(bundle.policies))
    return bundle


def load_request(path: str | Path) -> EvaluationRequest:
    """Load an evaluation request from a JSON or YAML file."""
    request_path = Path(path)
    if not request_path.exists():
        raise ConfigurationError("request file not found", details={"path": str(request_path)})
    data = _read_document(request_path)
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"{request_path}: request must be a mapping")
    return EvaluationRequest.parse(data)
