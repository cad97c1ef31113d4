from __future__ import annotations

import dataclasses
import pathlib
import typing

import click
import yaml

import albstack
from albstack.annotations import AnnotationParser, Suffixes
from albstack.builder import ModelBuilder
from albstack.config import BuilderConfig, load_builder_config
from albstack.k8s import Group, GroupID, Member, Service, ServiceIndex
from albstack.resolvers import (
    ACMCertificateResolver,
    EC2SubnetResolver,
    StaticCertificateResolver,
    StaticSubnetResolver,
)
from albstack.stack import dump_stack

if typing.TYPE_CHECKING:
    import collections.abc


def iter_manifest_objects(
    paths: collections.abc.Iterable[pathlib.Path],
) -> collections.abc.Iterator[dict[str, typing.Any]]:
    for path in paths:
        for doc in yaml.safe_load_all(path.read_text()):
            if not doc:
                continue
            if doc.get("kind") == "List":
                yield from (item for item in doc.get("items", []) or [] if item)
            else:
                yield doc


def load_manifests(paths: collections.abc.Iterable[pathlib.Path]) -> tuple[list[Member], list[Service]]:
    members: list[Member] = []
    services: list[Service] = []
    for obj in iter_manifest_objects(paths):
        kind = obj.get("kind")
        if kind == "Ingress":
            members.append(Member.from_manifest(obj))
        elif kind == "Service":
            services.append(Service.from_manifest(obj))
    return members, services


def group_members(members: list[Member], parser: AnnotationParser) -> Group:
    """Form the single group the given Ingresses describe.

    Ingresses sharing a ``group.name`` form an explicit group; a lone Ingress
    without one is its own implicit group.
    """
    if not members:
        msg = "no Ingress objects found in manifests"
        raise click.UsageError(msg)

    group_names = {parser.parse_string(Suffixes.GROUP_NAME, m.annotations) for m in members}
    if len(group_names) == 1 and None not in group_names:
        return Group(id=GroupID.explicit(group_names.pop()), members=tuple(members))
    if len(members) == 1:
        return Group(id=GroupID(namespace=members[0].namespace, name=members[0].name), members=tuple(members))

    msg = f"{len(members)} Ingress objects must share one {parser.key(Suffixes.GROUP_NAME)} annotation"
    raise click.UsageError(msg)


@click.group()
def cli():
    """Compile Kubernetes Ingress groups into ALB resource stacks."""


@cli.command()
@click.argument(
    "manifests",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=pathlib.Path),
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=pathlib.Path),
    help="Builder config YAML with a top-level spec mapping.",
)
@click.option("--cluster-name", default=None, help="Cluster name, overriding the config file.")
@click.option("--subnet", "subnets", multiple=True, help="Subnet id to attach when not discovering.")
@click.option("--certificate", "certificates", multiple=True, help="Certificate ARN to use when not discovering.")
@click.option("--discover", is_flag=True, default=False, help="Look up subnets and certificates with AWS APIs.")
@click.option("--output", "output_format", type=click.Choice(["json", "yaml"]), default="json", show_default=True)
def build(
    manifests: tuple[pathlib.Path, ...],
    config_path: pathlib.Path | None,
    cluster_name: str | None,
    subnets: tuple[str, ...],
    certificates: tuple[str, ...],
    discover: bool,
    output_format: str,
):
    """Build the stack for the Ingress group found in MANIFESTS."""
    try:
        if config_path is not None:
            config = load_builder_config(config_path)
            if cluster_name:
                config = dataclasses.replace(config, cluster_name=cluster_name)
        elif cluster_name:
            config = BuilderConfig(cluster_name=cluster_name)
        else:
            msg = "either --config or --cluster-name is required"
            raise click.UsageError(msg)

        members, services = load_manifests(manifests)
        builder = ModelBuilder(
            config=config,
            services=ServiceIndex(services),
            subnet_resolver=(
                EC2SubnetResolver(config.cluster_name, config.vpc_id, config.region)
                if discover
                else StaticSubnetResolver(subnets)
            ),
            certificate_resolver=(
                ACMCertificateResolver(config.region) if discover else StaticCertificateResolver(certificates)
            ),
        )
        stack = builder.build(group_members(members, builder.parser))
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    click.echo(dump_stack(stack, output_format))
    click.secho(
        f"∙ {stack.id}: {len(stack.list_resources(albstack.ResourceKind.TARGET_GROUP))} target group(s)",
        fg="green",
        bold=True,
        err=True,
    )
