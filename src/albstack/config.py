from __future__ import annotations

import dataclasses
import typing
import warnings

import deepmerge  # type: ignore
import yaml

import albstack

if typing.TYPE_CHECKING:
    import pathlib

_ENUM_FIELDS: dict[str, type] = {
    "default_scheme": albstack.Scheme,
    "default_target_type": albstack.TargetType,
    "default_ip_address_type": albstack.IPAddressType,
    "default_backend_protocol": albstack.Protocol,
}


@dataclasses.dataclass(frozen=True)
class BuilderConfig:
    cluster_name: str
    vpc_id: str = ""
    region: str = "us-east-2"
    annotation_prefix: str = albstack.ANNOTATION_PREFIX
    default_ssl_policy: str = albstack.DEFAULT_SSL_POLICY
    default_scheme: albstack.Scheme = albstack.Scheme.INTERNAL
    default_target_type: albstack.TargetType = albstack.TargetType.INSTANCE
    default_ip_address_type: albstack.IPAddressType = albstack.IPAddressType.IPV4
    default_backend_protocol: albstack.Protocol = albstack.Protocol.HTTP

    def __post_init__(self):
        if not self.cluster_name:
            msg = "cluster_name must not be empty"
            raise ValueError(msg)


def load_builder_config(path: pathlib.Path) -> BuilderConfig:
    cfg_dict = yaml.safe_load(path.read_text()) or {}
    raw_spec = cfg_dict.get("spec", {}) or {}

    for key in list(raw_spec.keys()):
        raw_spec[key.replace("-", "_")] = raw_spec.pop(key)

    if "ssl_policy" in raw_spec:
        warnings.warn(
            "'spec.ssl_policy' found in builder config; this should be at 'spec.default_ssl_policy'",
            stacklevel=2,
        )
        raw_spec.setdefault("default_ssl_policy", raw_spec.pop("ssl_policy"))

    spec: dict[str, typing.Any] = {
        f.name: f.default for f in dataclasses.fields(BuilderConfig) if f.default is not dataclasses.MISSING
    }
    deepmerge.always_merger.merge(spec, raw_spec)

    for name, enum_cls in _ENUM_FIELDS.items():
        try:
            spec[name] = enum_cls(str(spec[name]))
        except ValueError:
            msg = f"Invalid value for {name!r}: {spec[name]!r}"
            raise ValueError(msg) from None

    if "cluster_name" not in spec:
        msg = f"'spec.cluster_name' is required in builder config: {path}"
        raise ValueError(msg)

    unknown = sorted(set(spec) - {f.name for f in dataclasses.fields(BuilderConfig)})
    if unknown:
        msg = f"Unknown builder config keys: {', '.join(unknown)}"
        raise ValueError(msg)

    return BuilderConfig(**spec)
