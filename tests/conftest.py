import pytest
from aws_cdk import App, Environment
from aws_cdk.assertions import Template

from aurora_mysql_serverless_stack import AuroraMysqlServerlessStack
from rds_stack_config import RDSStackConfig

TEST_ENV = Environment(account="123456789012", region="us-east-1")
TEST_VPC_ID = "vpc-0123456789abcdef0"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "RDS_STACK_CONFIG",
        "VPC_ID",
        "STACK_TAGS",
        "STACK_NAME",
        "CDK_DEFAULT_ACCOUNT",
        "CDK_DEFAULT_REGION",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_config():
    def _make(**overrides) -> RDSStackConfig:
        overrides.setdefault("vpc_id", TEST_VPC_ID)
        return RDSStackConfig(**overrides)

    return _make


@pytest.fixture
def synth(make_config):
    """Synthesize the Aurora stack for the given config overrides."""

    def _synth(**overrides) -> Template:
        stack = AuroraMysqlServerlessStack(
            App(),
            "Stack",
            config=make_config(**overrides),
            env=TEST_ENV,
        )
        return Template.from_stack(stack)

    return _synth
