import pathlib

import pytest

import albstack
from albstack.config import BuilderConfig, load_builder_config


def write_config(tmp_path: pathlib.Path, body: str) -> pathlib.Path:
    path = tmp_path / "albstack.yaml"
    path.write_text(body)
    return path


class TestBuilderConfig:
    def test_defaults(self):
        config = BuilderConfig(cluster_name="cluster-name")
        assert config.default_ssl_policy == "ELBSecurityPolicy-2016-08"
        assert config.default_scheme == albstack.Scheme.INTERNAL
        assert config.default_target_type == albstack.TargetType.INSTANCE
        assert config.default_ip_address_type == albstack.IPAddressType.IPV4
        assert config.default_backend_protocol == albstack.Protocol.HTTP
        assert config.annotation_prefix == "alb.ingress.kubernetes.io"

    def test_empty_cluster_name(self):
        with pytest.raises(ValueError, match="cluster_name must not be empty"):
            BuilderConfig(cluster_name="")


class TestLoadBuilderConfig:
    def test_load(self, tmp_path: pathlib.Path):
        path = write_config(
            tmp_path,
            """
spec:
  cluster_name: cluster-name
  vpc-id: vpc-123
  default-scheme: internet-facing
  default_target_type: ip
""",
        )
        config = load_builder_config(path)

        assert config.cluster_name == "cluster-name"
        assert config.vpc_id == "vpc-123"
        assert config.default_scheme == albstack.Scheme.INTERNET_FACING
        assert config.default_target_type == albstack.TargetType.IP
        assert config.region == "us-east-2"

    def test_deprecated_ssl_policy(self, tmp_path: pathlib.Path):
        path = write_config(
            tmp_path,
            """
spec:
  cluster_name: cluster-name
  ssl_policy: ELBSecurityPolicy-TLS13-1-2-2021-06
""",
        )
        with pytest.warns(UserWarning, match="spec.default_ssl_policy"):
            config = load_builder_config(path)

        assert config.default_ssl_policy == "ELBSecurityPolicy-TLS13-1-2-2021-06"

    def test_missing_cluster_name(self, tmp_path: pathlib.Path):
        path = write_config(tmp_path, "spec:\n  vpc_id: vpc-123\n")
        with pytest.raises(ValueError, match="'spec.cluster_name' is required"):
            load_builder_config(path)

    def test_unknown_keys(self, tmp_path: pathlib.Path):
        path = write_config(tmp_path, "spec:\n  cluster_name: c\n  flavor: vanilla\n")
        with pytest.raises(ValueError, match="Unknown builder config keys: flavor"):
            load_builder_config(path)

    def test_bad_enum(self, tmp_path: pathlib.Path):
        path = write_config(tmp_path, "spec:\n  cluster_name: c\n  default_scheme: public\n")
        with pytest.raises(ValueError, match="Invalid value for 'default_scheme'"):
            load_builder_config(path)
