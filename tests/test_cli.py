import json
import pathlib

import click
import pytest
from click.testing import CliRunner

from albstack.annotations import AnnotationParser
from albstack.cli import cli, group_members, load_manifests
from albstack.k8s import GroupID, Member

SERVICE = """
apiVersion: v1
kind: Service
metadata:
  namespace: ns-1
  name: svc-1
spec:
  ports:
    - name: http
      port: 80
      targetPort: 8080
      nodePort: 32768
"""

INGRESS = """
apiVersion: networking.k8s.io/v1
kind: Ingress
metadata:
  namespace: ns-1
  name: ing-1
spec:
  rules:
    - host: app-1.example.com
      http:
        paths:
          - path: /svc-1
            pathType: Prefix
            backend:
              service:
                name: svc-1
                port:
                  name: http
"""


def stack_document(output: str) -> dict:
    """Pull the JSON stack out of CLI output that may also carry log lines."""
    lines = output.splitlines()
    start = lines.index("{")
    end = lines.index("}", start)
    return json.loads("\n".join(lines[start : end + 1]))


@pytest.fixture
def manifests(tmp_path: pathlib.Path) -> pathlib.Path:
    path = tmp_path / "manifests.yaml"
    path.write_text(f"{SERVICE}\n---\n{INGRESS}")
    return path


class TestLoadManifests:
    def test_multi_document(self, manifests):
        members, services = load_manifests([manifests])
        assert [m.key for m in members] == ["ns-1/ing-1"]
        assert [s.key for s in services] == ["ns-1/svc-1"]

    def test_list_kind(self, tmp_path: pathlib.Path):
        path = tmp_path / "list.yaml"
        path.write_text(
            """
apiVersion: v1
kind: List
items:
  - apiVersion: v1
    kind: Service
    metadata: {namespace: ns-1, name: svc-1}
    spec: {ports: [{port: 80}]}
  - apiVersion: v1
    kind: ConfigMap
    metadata: {namespace: ns-1, name: ignored}
"""
        )
        members, services = load_manifests([path])
        assert members == []
        assert [s.key for s in services] == ["ns-1/svc-1"]


class TestGroupMembers:
    parser = AnnotationParser()

    def test_single_implicit(self):
        group = group_members([Member("ns-1", "ing-1")], self.parser)
        assert group.id == GroupID("ns-1", "ing-1")

    def test_shared_group_name(self):
        annotations = {"alb.ingress.kubernetes.io/group.name": "g"}
        group = group_members(
            [Member("ns-2", "ing-1", annotations=annotations), Member("ns-1", "ing-2", annotations=annotations)],
            self.parser,
        )
        assert group.id == GroupID.explicit("g")
        assert [m.key for m in group.members] == ["ns-1/ing-2", "ns-2/ing-1"]

    def test_mixed_groups(self):
        with pytest.raises(click.UsageError, match="must share one alb.ingress.kubernetes.io/group.name"):
            group_members([Member("ns-1", "ing-1"), Member("ns-1", "ing-2")], self.parser)

    def test_no_members(self):
        with pytest.raises(click.UsageError, match="no Ingress objects"):
            group_members([], self.parser)


class TestBuildCommand:
    def test_json(self, manifests):
        result = CliRunner().invoke(
            cli,
            ["build", str(manifests), "--cluster-name", "cluster-name", "--subnet", "subnet-a", "--subnet", "subnet-b"],
        )

        assert result.exit_code == 0, result.output
        doc = stack_document(result.output)
        assert doc["id"] == "ns-1/ing-1"
        lb = doc["resources"]["AWS::ElasticLoadBalancingV2::LoadBalancer"]["LoadBalancer"]["spec"]
        assert lb["subnetMapping"] == [{"subnetID": "subnet-a"}, {"subnetID": "subnet-b"}]
        assert "ns-1/ing-1: 1 target group(s)" in result.output

    def test_yaml(self, manifests):
        result = CliRunner().invoke(
            cli,
            ["build", str(manifests), "--cluster-name", "cluster-name", "--subnet", "subnet-a", "--output", "yaml"],
        )

        assert result.exit_code == 0, result.output
        assert "id: ns-1/ing-1" in result.output
        assert "AWS::ElasticLoadBalancingV2::TargetGroup:" in result.output

    def test_config_file(self, manifests, tmp_path: pathlib.Path):
        config = tmp_path / "albstack.yaml"
        config.write_text("spec:\n  cluster_name: from-config\n  default_scheme: internet-facing\n")

        result = CliRunner().invoke(cli, ["build", str(manifests), "--config", str(config), "--subnet", "subnet-a"])

        assert result.exit_code == 0, result.output
        lb = stack_document(result.output)["resources"]["AWS::ElasticLoadBalancingV2::LoadBalancer"]
        assert lb["LoadBalancer"]["spec"]["scheme"] == "internet-facing"

    def test_cluster_name_required(self, manifests):
        result = CliRunner().invoke(cli, ["build", str(manifests)])

        assert result.exit_code == 2
        assert "either --config or --cluster-name is required" in result.output

    def test_build_error_is_reported(self, manifests):
        """Errors from the build surface as a CLI error, not a traceback."""
        result = CliRunner().invoke(cli, ["build", str(manifests), "--cluster-name", "cluster-name"])

        assert result.exit_code == 1
        assert "no subnets configured for internal load balancer" in result.output
