#!/usr/bin/env python3
"""
AWS CDK Stack for an Aurora MySQL Serverless (v1) cluster

This stack deploys into an existing VPC and creates:
- DB subnet group over the VPC's private subnets
- Security group open to the whole VPC on the MySQL port
- Admin credentials generated into Secrets Manager
- Optional cluster parameter group with overrides
- Serverless Aurora MySQL cluster, optionally restored from a snapshot

Outputs: host, port, adminusername, adminpasswordarn, clusterid
"""

import logging

from aws_cdk import (
    Aspects,
    CfnOutput,
    Duration,
    Stack,
    aws_ec2 as ec2,
    aws_rds as rds,
)
from constructs import Construct

from rds_constructs import (
    SnapshotRestoreAspect,
    allow_all_vpc_security_group,
    cluster_parameter_group,
    private_subnet_group,
    removal_policy_for,
)
from rds_stack_config import InvalidCapacityError, RDSStackConfig

logger = logging.getLogger(__name__)

DEFAULT_PORT = 3306

_CAPACITY_UNITS = {
    1: rds.AuroraCapacityUnit.ACU_1,
    2: rds.AuroraCapacityUnit.ACU_2,
    4: rds.AuroraCapacityUnit.ACU_4,
    8: rds.AuroraCapacityUnit.ACU_8,
    16: rds.AuroraCapacityUnit.ACU_16,
    32: rds.AuroraCapacityUnit.ACU_32,
    64: rds.AuroraCapacityUnit.ACU_64,
    128: rds.AuroraCapacityUnit.ACU_128,
    256: rds.AuroraCapacityUnit.ACU_256,
    384: rds.AuroraCapacityUnit.ACU_384,
}


def aurora_capacity_unit(value: int) -> rds.AuroraCapacityUnit:
    """Map a capacity unit count onto rds.AuroraCapacityUnit."""
    # bool is an int subclass and would otherwise map True to ACU_1
    if isinstance(value, bool) or value not in _CAPACITY_UNITS:
        raise InvalidCapacityError(
            "invalid ACU request must be 1, 2, 4, 8, 16, 32, 64, 128, 256, 384. "
            f"Passed in: {value}"
        )
    return _CAPACITY_UNITS[value]


def endpoint_port(socket_address: str, default: str = str(DEFAULT_PORT)) -> str:
    """Port part of a host:port address, or `default` if there is none."""
    parts = socket_address.split(":", 1)
    if len(parts) == 2:
        return parts[1]
    return default


class AuroraMysqlServerlessStack(Stack):
    """
    Stack that creates an Aurora MySQL Serverless cluster in an existing VPC
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str = "Stack",
        *,
        config: RDSStackConfig,
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.config = config
        self.engine = rds.DatabaseClusterEngine.aurora_mysql(
            version=rds.AuroraMysqlEngineVersion.of(config.engine_version)
        )

        # Validate scaling bounds before anything else is created
        min_capacity = aurora_capacity_unit(config.aurora_capacity_units_min)
        max_capacity = aurora_capacity_unit(config.aurora_capacity_units_max)

        self.vpc = ec2.Vpc.from_lookup(self, "VPC", vpc_id=config.vpc_id)

        self.subnet_group = private_subnet_group(self, "SubnetGroup", self.vpc)
        self.security_group = allow_all_vpc_security_group(
            self,
            "SG",
            "Generated RDS security group.",
            self.vpc,
            DEFAULT_PORT,
        )

        self.credentials = rds.Credentials.from_generated_secret(config.admin_username)

        self.parameter_group = None
        if config.parameters:
            logger.info(f"Attaching parameter group with {len(config.parameters)} override(s)")
            self.parameter_group = cluster_parameter_group(
                self, "ParameterGroup", config, self.engine
            )

        removal_policy = removal_policy_for(config)
        logger.info(
            f"Aurora capacity {config.aurora_capacity_units_min}-{config.aurora_capacity_units_max} ACU, "
            f"auto pause after {config.auto_pause_duration_minutes} minutes, removal policy {removal_policy.value}"
        )

        self.cluster = rds.ServerlessCluster(
            self,
            "Cluster",
            engine=self.engine,
            default_database_name=config.database_name,
            copy_tags_to_snapshot=True,
            deletion_protection=config.deletion_protection,
            removal_policy=removal_policy,
            credentials=self.credentials,
            vpc=self.vpc,
            scaling=rds.ServerlessScalingOptions(
                auto_pause=Duration.minutes(config.auto_pause_duration_minutes),
                min_capacity=min_capacity,
                max_capacity=max_capacity,
            ),
            subnet_group=self.subnet_group,
            security_groups=[self.security_group],
            parameter_group=self.parameter_group,
        )

        if config.restore_snapshot_arn:
            Aspects.of(self.cluster).add(SnapshotRestoreAspect(config.restore_snapshot_arn))

        self.create_outputs()

    def create_outputs(self) -> None:
        """Create CloudFormation outputs"""
        endpoint = self.cluster.cluster_endpoint

        CfnOutput(
            self,
            "host",
            value=endpoint.hostname,
            description="Aurora cluster endpoint hostname",
        )

        CfnOutput(
            self,
            "port",
            value=endpoint_port(endpoint.socket_address),
            description="Aurora cluster endpoint port",
        )

        CfnOutput(
            self,
            "adminusername",
            value=self.credentials.username,
            description="Admin username",
        )

        CfnOutput(
            self,
            "adminpasswordarn",
            value=self.cluster.secret.secret_arn,
            description="ARN of the secret containing the admin credentials",
        )

        CfnOutput(
            self,
            "clusterid",
            value=self.cluster.cluster_identifier,
            description="Aurora cluster identifier",
        )
