#!/usr/bin/env python3
"""
CDK App for the Aurora MySQL Serverless Stack

Entry point referenced by cdk.json. The stack is configured through the
environment, see rds_stack_config for the variables.

Usage:
    # Deploy into an existing VPC with default settings
    VPC_ID=vpc-0123456789abcdef0 cdk deploy

    # Deploy with custom scaling and parameter overrides
    RDS_STACK_CONFIG='{"vpcID": "vpc-0123456789abcdef0", "auroraCapacityUnitsV1Max": 16,
                       "parameters": {"time_zone": "UTC"}}' cdk deploy

    # Pick the target account/region through context
    cdk deploy --context account=123456789012 --context region=us-east-1
"""

import logging
import os
import sys
from typing import Optional

from aws_cdk import App

from aurora_mysql_serverless_stack import AuroraMysqlServerlessStack
from rds_constructs import apply_tags, new_tagged_app
from rds_stack_config import (
    StackConfigError,
    load_stack_config,
    stack_environment,
    stack_name,
)

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def build_app(app: Optional[App] = None) -> App:
    """
    Build the CDK app holding the Aurora stack.

    Raises:
        StackConfigError: if the configuration is invalid
    """
    config = load_stack_config()
    if app is None:
        app = new_tagged_app(config.tags)
    else:
        apply_tags(app, config.tags)

    # Get account and region from context, falling back to the CDK defaults
    env = stack_environment(
        account=app.node.try_get_context("account"),
        region=app.node.try_get_context("region"),
    )

    AuroraMysqlServerlessStack(
        app,
        "Stack",
        config=config,
        stack_name=stack_name(),
        description="Aurora MySQL Serverless cluster",
        env=env,
    )
    return app


def main():
    """Main application entry point"""
    configure_logging()

    try:
        app = build_app()
    except StackConfigError as e:
        logger.error(f"Invalid stack configuration: {e}")
        sys.exit(1)

    app.synth()


if __name__ == "__main__":
    main()
