import json

import pytest

from rds_stack_config import (
    RDSStackConfig,
    StackConfigError,
    config_from_dict,
    load_stack_config,
    stack_environment,
    stack_name,
)

VPC_ID = "vpc-0123456789abcdef0"


def test_config_from_dict_defaults() -> None:
    config = config_from_dict({"vpcID": VPC_ID})

    assert config == RDSStackConfig(vpc_id=VPC_ID)
    assert config.admin_username == "admin"
    assert config.aurora_capacity_units_min == 1
    assert config.aurora_capacity_units_max == 8
    assert config.auto_pause_duration_minutes == 10
    assert config.parameters == {}
    assert config.restore_snapshot_arn == ""


def test_config_from_dict_all_fields() -> None:
    config = config_from_dict(
        {
            "vpcID": VPC_ID,
            "adminUsername": "root_user",
            "databaseName": "orders",
            "deletionProtection": True,
            "skipSnapshotOnDelete": True,
            "removalPolicy": "retain",
            "auroraCapacityUnitsV1Min": 2,
            "auroraCapacityUnitsV1Max": 32,
            "autoPauseDurationMinutes": 60,
            "parameters": {"time_zone": "UTC", "max_connections": 500},
            "restoreSnapshotArn": "arn:aws:rds:us-east-1:123456789012:cluster-snapshot:snap",
            "engineVersion": "5.7.mysql_aurora.2.11.3",
            "tags": {"team": "data"},
        }
    )

    assert config == RDSStackConfig(
        vpc_id=VPC_ID,
        admin_username="root_user",
        database_name="orders",
        deletion_protection=True,
        skip_snapshot_on_delete=True,
        removal_policy="retain",
        aurora_capacity_units_min=2,
        aurora_capacity_units_max=32,
        auto_pause_duration_minutes=60,
        parameters={"time_zone": "UTC", "max_connections": "500"},
        restore_snapshot_arn="arn:aws:rds:us-east-1:123456789012:cluster-snapshot:snap",
        engine_version="5.7.mysql_aurora.2.11.3",
        tags={"team": "data"},
    )


def test_config_from_dict_vpc_fallback() -> None:
    assert config_from_dict({}, vpc_id=VPC_ID).vpc_id == VPC_ID
    assert config_from_dict({"vpcID": "vpc-explicit"}, vpc_id=VPC_ID).vpc_id == "vpc-explicit"


def test_config_from_dict_requires_vpc() -> None:
    with pytest.raises(StackConfigError, match="VPC ID is required"):
        config_from_dict({"databaseName": "orders"})


def test_config_from_dict_ignores_unknown_keys(caplog) -> None:
    config = config_from_dict({"vpcID": VPC_ID, "instanceClass": "db.r5.large"})

    assert config == RDSStackConfig(vpc_id=VPC_ID)
    assert "instanceClass" in caplog.text


@pytest.mark.parametrize(
    "data, message",
    [
        pytest.param({"deletionProtection": "yes"}, "must be a boolean", id="bool"),
        pytest.param({"auroraCapacityUnitsV1Min": "2"}, "must be an integer", id="int"),
        pytest.param({"auroraCapacityUnitsV1Max": True}, "must be an integer", id="bool as int"),
        pytest.param({"adminUsername": 5}, "must be a string", id="str"),
        pytest.param({"parameters": ["a"]}, "object of string values", id="parameters list"),
        pytest.param({"parameters": {"a": {"b": 1}}}, "must be a string", id="nested parameter"),
        pytest.param({"removalPolicy": "keep"}, "Invalid removal policy", id="removal policy"),
    ],
)
def test_config_from_dict_invalid(data, message: str) -> None:
    with pytest.raises(StackConfigError, match=message):
        config_from_dict({"vpcID": VPC_ID, **data})


def test_load_stack_config() -> None:
    environ = {
        "RDS_STACK_CONFIG": json.dumps(
            {"databaseName": "orders", "tags": {"owner": "orders-team"}}
        ),
        "VPC_ID": VPC_ID,
        "STACK_TAGS": json.dumps({"owner": "platform", "env": "dev"}),
    }

    config = load_stack_config(environ)

    assert config.vpc_id == VPC_ID
    assert config.database_name == "orders"
    assert config.tags == {"owner": "orders-team", "env": "dev"}


def test_load_stack_config_empty_json() -> None:
    config = load_stack_config({"RDS_STACK_CONFIG": "  ", "VPC_ID": VPC_ID})

    assert config == RDSStackConfig(vpc_id=VPC_ID)


def test_load_stack_config_from_process_env(monkeypatch) -> None:
    monkeypatch.setenv("RDS_STACK_CONFIG", json.dumps({"vpcID": VPC_ID, "auroraCapacityUnitsV1Max": 16}))

    config = load_stack_config()

    assert config.vpc_id == VPC_ID
    assert config.aurora_capacity_units_max == 16


@pytest.mark.parametrize(
    "raw, message",
    [
        pytest.param("{not json", "not valid JSON", id="malformed"),
        pytest.param("[1, 2]", "must be a JSON object", id="array"),
    ],
)
def test_load_stack_config_bad_json(raw: str, message: str) -> None:
    with pytest.raises(StackConfigError, match=message):
        load_stack_config({"RDS_STACK_CONFIG": raw, "VPC_ID": VPC_ID})


def test_stack_environment() -> None:
    environ = {"CDK_DEFAULT_ACCOUNT": "111111111111", "CDK_DEFAULT_REGION": "eu-west-1"}

    env = stack_environment(environ=environ)
    assert env.account == "111111111111"
    assert env.region == "eu-west-1"

    env = stack_environment(account="222222222222", region="us-west-2", environ=environ)
    assert env.account == "222222222222"
    assert env.region == "us-west-2"

    assert stack_environment(environ={}) is None


def test_stack_name() -> None:
    assert stack_name({"STACK_NAME": "orders-db"}) == "orders-db"
    assert stack_name({"STACK_NAME": ""}) is None
    assert stack_name({}) is None
