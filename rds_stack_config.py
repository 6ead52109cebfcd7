"""
Configuration for the Aurora MySQL Serverless stack.

The stack is configured through environment variables (optionally loaded
from a .env file):

- RDS_STACK_CONFIG: JSON object with the stack settings
- VPC_ID: VPC to deploy into, when RDS_STACK_CONFIG has no vpcID
- STACK_TAGS: JSON object of tags applied to every resource
- STACK_NAME: optional CloudFormation stack name
- CDK_DEFAULT_ACCOUNT / CDK_DEFAULT_REGION: deployment environment
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional

from aws_cdk import Environment
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "RDS_STACK_CONFIG"
VPC_ID_ENV_VAR = "VPC_ID"
TAGS_ENV_VAR = "STACK_TAGS"
STACK_NAME_ENV_VAR = "STACK_NAME"

REMOVAL_POLICIES = ("retain", "destroy", "snapshot")


class StackConfigError(ValueError):
    """Raised when the stack configuration is invalid."""


class InvalidCapacityError(StackConfigError):
    """Raised for an Aurora capacity unit value outside the allowed set."""


@dataclass
class RDSStackConfig:
    """Settings for one Aurora MySQL Serverless cluster."""
    vpc_id: str
    admin_username: str = "admin"
    database_name: str = "instance"
    deletion_protection: bool = False
    skip_snapshot_on_delete: bool = False
    removal_policy: Optional[str] = None  # retain, destroy or snapshot

    # Scaling
    aurora_capacity_units_min: int = 1
    aurora_capacity_units_max: int = 8
    auto_pause_duration_minutes: int = 10

    # Cluster parameter overrides, only attached when non-empty
    parameters: Dict[str, str] = field(default_factory=dict)
    restore_snapshot_arn: str = ""

    engine_version: str = "5.7.mysql_aurora.2.11.4"
    tags: Dict[str, str] = field(default_factory=dict)


# JSON key -> dataclass field
_JSON_KEYS = {
    "vpcID": "vpc_id",
    "adminUsername": "admin_username",
    "databaseName": "database_name",
    "deletionProtection": "deletion_protection",
    "skipSnapshotOnDelete": "skip_snapshot_on_delete",
    "removalPolicy": "removal_policy",
    "auroraCapacityUnitsV1Min": "aurora_capacity_units_min",
    "auroraCapacityUnitsV1Max": "aurora_capacity_units_max",
    "autoPauseDurationMinutes": "auto_pause_duration_minutes",
    "parameters": "parameters",
    "restoreSnapshotArn": "restore_snapshot_arn",
    "engineVersion": "engine_version",
    "tags": "tags",
}

_FIELD_TYPES = {f.name: f.type for f in fields(RDSStackConfig)}


def _parse_json_object(raw: Optional[str], source: str) -> Dict[str, Any]:
    if not raw or not raw.strip():
        return {}

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise StackConfigError(f"{source} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise StackConfigError(f"{source} must be a JSON object, got {type(data).__name__}")

    return data


def _string_map(value: Any, key: str) -> Dict[str, str]:
    if not isinstance(value, dict):
        raise StackConfigError(f"'{key}' must be an object of string values")
    result = {}
    for k, v in value.items():
        if isinstance(v, bool) or not isinstance(v, (str, int, float)):
            raise StackConfigError(f"'{key}.{k}' must be a string, got {type(v).__name__}")
        result[str(k)] = str(v)
    return result


def _check_type(name: str, value: Any, key: str) -> Any:
    expected = _FIELD_TYPES[name]

    if expected is bool:
        if not isinstance(value, bool):
            raise StackConfigError(f"'{key}' must be a boolean, got {value!r}")
    elif expected is int:
        # bool is an int subclass, reject it explicitly
        if isinstance(value, bool) or not isinstance(value, int):
            raise StackConfigError(f"'{key}' must be an integer, got {value!r}")
    elif name in ("parameters", "tags"):
        value = _string_map(value, key)
    elif name == "removal_policy":
        if value is not None and not isinstance(value, str):
            raise StackConfigError(f"'{key}' must be a string, got {value!r}")
    elif not isinstance(value, str):
        raise StackConfigError(f"'{key}' must be a string, got {value!r}")

    return value


def config_from_dict(data: Mapping[str, Any], vpc_id: Optional[str] = None) -> RDSStackConfig:
    """
    Build a RDSStackConfig from its JSON representation.

    Args:
        data: Decoded RDS_STACK_CONFIG object
        vpc_id: Fallback VPC ID when the object has no vpcID

    Returns:
        Validated configuration
    """
    kwargs = {}
    for key, value in data.items():
        name = _JSON_KEYS.get(key)
        if name is None:
            logger.warning(f"Ignoring unknown config key '{key}'")
            continue
        kwargs[name] = _check_type(name, value, key)

    if not kwargs.get("vpc_id"):
        kwargs["vpc_id"] = vpc_id or ""
    if not kwargs["vpc_id"]:
        raise StackConfigError(
            f"VPC ID is required: set 'vpcID' in {CONFIG_ENV_VAR} or the {VPC_ID_ENV_VAR} environment variable"
        )

    removal_policy = kwargs.get("removal_policy")
    if removal_policy is not None and removal_policy.lower() not in REMOVAL_POLICIES:
        raise StackConfigError(
            f"Invalid removal policy '{removal_policy}', must be one of: {', '.join(REMOVAL_POLICIES)}"
        )

    return RDSStackConfig(**kwargs)


def load_stack_config(environ: Optional[Mapping[str, str]] = None) -> RDSStackConfig:
    """Load the stack configuration from the environment (and .env)."""
    if environ is None:
        load_dotenv()
        environ = os.environ

    data = _parse_json_object(environ.get(CONFIG_ENV_VAR), CONFIG_ENV_VAR)
    config = config_from_dict(data, vpc_id=environ.get(VPC_ID_ENV_VAR))

    # Tags from the config record take precedence over STACK_TAGS
    tags = _string_map(_parse_json_object(environ.get(TAGS_ENV_VAR), TAGS_ENV_VAR), TAGS_ENV_VAR)
    tags.update(config.tags)
    config.tags = tags

    logger.info(f"Loaded stack config for VPC {config.vpc_id}")
    return config


def stack_environment(
    account: Optional[str] = None,
    region: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Optional[Environment]:
    """
    Resolve the deployment environment for the stack.

    Explicit values (usually CDK context) win over CDK_DEFAULT_ACCOUNT and
    CDK_DEFAULT_REGION. Returns None when neither is known.
    """
    if environ is None:
        environ = os.environ

    account = account or environ.get("CDK_DEFAULT_ACCOUNT")
    region = region or environ.get("CDK_DEFAULT_REGION")

    if not account and not region:
        return None
    return Environment(account=account, region=region)


def stack_name(environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    if environ is None:
        environ = os.environ
    return environ.get(STACK_NAME_ENV_VAR) or None
