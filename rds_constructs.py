"""
Shared construct helpers for RDS stacks.

Small building blocks used by the Aurora stack: a tagged CDK app, the
private subnet group, the VPC-wide security group, the cluster parameter
group, removal policy selection and the snapshot restore aspect.
"""

import logging
from typing import Mapping, Optional

import jsii
from aws_cdk import (
    App,
    IAspect,
    RemovalPolicy,
    Tags,
    aws_ec2 as ec2,
    aws_rds as rds,
)
from constructs import Construct, IConstruct

from rds_stack_config import RDSStackConfig

logger = logging.getLogger(__name__)

_REMOVAL_POLICIES = {
    "retain": RemovalPolicy.RETAIN,
    "destroy": RemovalPolicy.DESTROY,
    "snapshot": RemovalPolicy.SNAPSHOT,
}


def apply_tags(scope: IConstruct, tags: Mapping[str, str]) -> None:
    for key, value in tags.items():
        Tags.of(scope).add(key, value)


def new_tagged_app(tags: Optional[Mapping[str, str]] = None, **kwargs) -> App:
    """Create a CDK App with the given tags applied to every construct."""
    app = App(**kwargs)
    apply_tags(app, tags or {})
    return app


def private_subnet_group(scope: Construct, construct_id: str, vpc: ec2.IVpc) -> rds.SubnetGroup:
    """DB subnet group spanning the private subnets of the VPC"""
    return rds.SubnetGroup(
        scope,
        construct_id,
        vpc=vpc,
        description="Private subnets for the RDS cluster",
        vpc_subnets=ec2.SubnetSelection(subnets=vpc.private_subnets),
    )


def allow_all_vpc_security_group(
    scope: Construct,
    construct_id: str,
    description: str,
    vpc: ec2.IVpc,
    port: int,
) -> ec2.SecurityGroup:
    """
    Security group that accepts TCP traffic on `port` from anywhere in the
    VPC and allows all outbound traffic.
    """
    security_group = ec2.SecurityGroup(
        scope,
        construct_id,
        vpc=vpc,
        description=description,
        allow_all_outbound=True,
    )
    security_group.add_ingress_rule(
        ec2.Peer.ipv4(vpc.vpc_cidr_block),
        ec2.Port.tcp(port),
        f"Allow port {port} from within the VPC",
    )
    return security_group


def cluster_parameter_group(
    scope: Construct,
    construct_id: str,
    config: RDSStackConfig,
    engine: rds.IClusterEngine,
) -> rds.ParameterGroup:
    return rds.ParameterGroup(
        scope,
        construct_id,
        engine=engine,
        description="Parameter overrides for the Aurora cluster",
        parameters=dict(config.parameters),
    )


def removal_policy_for(config: RDSStackConfig) -> RemovalPolicy:
    """
    Pick the removal policy for the cluster.

    An explicit removal_policy wins; otherwise the cluster is destroyed
    when skip_snapshot_on_delete is set and snapshotted when it is not.
    """
    if config.removal_policy:
        return _REMOVAL_POLICIES[config.removal_policy.lower()]
    if config.skip_snapshot_on_delete:
        return RemovalPolicy.DESTROY
    return RemovalPolicy.SNAPSHOT


@jsii.implements(IAspect)
class SnapshotRestoreAspect:
    """
    Restores every DB cluster it visits from the given snapshot.

    CloudFormation refuses MasterUsername and MasterUserPassword together
    with SnapshotIdentifier, so both are removed from the template.
    """

    def __init__(self, snapshot_arn: str) -> None:
        self.snapshot_arn = snapshot_arn

    def visit(self, node: IConstruct) -> None:
        if isinstance(node, rds.CfnDBCluster):
            node.snapshot_identifier = self.snapshot_arn
            node.add_property_deletion_override("MasterUsername")
            node.add_property_deletion_override("MasterUserPassword")
            logger.info(f"Restoring {node.node.path} from snapshot {self.snapshot_arn}")
