"""
Policy Schema — Pydantic models for the NOPAS scaling policy.

Two shapes describe the same policy:

- The **server shape** (``PolicyDocument``) is what the NOPAS service
  exchanges over HTTP: arrays of named records, with the provider-specific
  parameter blocks nested inside each resource. Field aliases carry the
  wire keys the service emits (``CheckingFreq``, ``N2CRatio``, ...).
- The **UI shape** (``PolicyUIState``) is what the editor mutates: the same
  records keyed by name, so a field edit is a single lookup.

Server models accept unknown keys so fields added by newer services survive
a load, edit, save cycle. The UI models keep those keys in ``passthrough``.
"""

from __future__ import annotations

import enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Provider-specific parameters. Owned by the provider editors; this layer
# only passes them through.
ParameterBlock = dict[str, Any]


# ════════════════════════════════════════════════════════════════
# Provider parameter blocks
# ════════════════════════════════════════════════════════════════


class Provider(str, enum.Enum):
    """Compute providers a resource spans."""

    NOMAD = "nomad"
    EC2 = "ec2"

    @property
    def field_name(self) -> str:
        """Name of the ResourceFields attribute holding this provider's block."""
        return f"{self.value}_params"


NOMAD_PARAMETER_KEYS = ("Address", "JobName", "NomadPath", "MaxCount", "MinCount")
EC2_PARAMETER_KEYS = ("ScalingGroupName", "Region", "MaxCount", "MinCount")

# Parameter keys holding instance counts; coerced to int on the way out.
NUMERIC_PARAMETER_KEYS = frozenset({"MaxCount", "MinCount"})


def default_parameter_block(provider: Provider) -> ParameterBlock:
    """A well-formed empty parameter block for a new resource."""
    keys = NOMAD_PARAMETER_KEYS if provider == Provider.NOMAD else EC2_PARAMETER_KEYS
    return {key: 0 if key in NUMERIC_PARAMETER_KEYS else "" for key in keys}


# ════════════════════════════════════════════════════════════════
# Server shape
# ════════════════════════════════════════════════════════════════


class ResourceRecord(BaseModel):
    """A managed resource: one Nomad job paired with one EC2 autoscaling group."""

    model_config = ConfigDict(extra="allow")

    name: str = Field(alias="Name")
    scale_in_cooldown: str = Field("", alias="ScaleInCooldown")
    scale_out_cooldown: str = Field("", alias="ScaleOutCooldown")
    ratio: float = Field(
        0.0,
        alias="N2CRatio",
        description="Nomad task count per EC2 instance",
    )
    nomad_params: ParameterBlock = Field(default_factory=dict, alias="NomadParameters")
    ec2_params: ParameterBlock = Field(default_factory=dict, alias="EC2Parameters")


class SubpolicyRecord(BaseModel):
    """A scaling subpolicy and the resources it recommends counts for."""

    model_config = ConfigDict(extra="allow")

    name: str = Field(alias="Name")
    managed_resources: list[str] = Field(default_factory=list, alias="ManagedResources")
    metadata: Any = Field(None, alias="Metadata")

    @field_validator("managed_resources", mode="before")
    @classmethod
    def null_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class PolicyDocument(BaseModel):
    """The full policy exactly as the NOPAS service stores it."""

    model_config = ConfigDict(extra="allow")

    checking_frequency: str = Field("", alias="CheckingFreq")
    ensembler: str = Field("", alias="Ensembler")
    resources: list[ResourceRecord] = Field(default_factory=list, alias="Resources")
    subpolicies: list[SubpolicyRecord] = Field(default_factory=list, alias="Subpolicies")

    @field_validator("resources", "subpolicies", mode="before")
    @classmethod
    def null_as_empty(cls, value: Any) -> Any:
        # Go encodes a nil slice as null.
        return [] if value is None else value

    def to_wire(self) -> dict[str, Any]:
        """JSON body for ``POST /update``."""
        return self.model_dump(by_alias=True, mode="json")


# ════════════════════════════════════════════════════════════════
# UI shape
# ════════════════════════════════════════════════════════════════


class ResourceFields(BaseModel):
    """Editable fields of a resource. The name is the mapping key."""

    editable_fields: ClassVar[tuple[str, ...]] = (
        "scale_in_cooldown",
        "scale_out_cooldown",
        "ratio",
    )

    scale_in_cooldown: str = ""
    scale_out_cooldown: str = ""
    # Holds the raw text while an edit is in progress
    ratio: float | str = 0.0
    nomad_params: ParameterBlock = Field(default_factory=dict)
    ec2_params: ParameterBlock = Field(default_factory=dict)
    passthrough: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def defaults(cls) -> ResourceFields:
        return cls(
            ratio=1.0,
            nomad_params=default_parameter_block(Provider.NOMAD),
            ec2_params=default_parameter_block(Provider.EC2),
        )


class SubpolicyFields(BaseModel):
    """Editable fields of a subpolicy. The name is the mapping key."""

    editable_fields: ClassVar[tuple[str, ...]] = ("metadata",)

    managed_resources: list[str] = Field(default_factory=list)
    metadata: Any = None
    passthrough: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def defaults(cls) -> SubpolicyFields:
        return cls()


class PolicyUIState(BaseModel):
    """The policy as the editor holds it between refreshes."""

    checking_frequency: str = ""
    ensembler: str = ""
    resources_by_name: dict[str, ResourceFields] = Field(default_factory=dict)
    subpolicies_by_name: dict[str, SubpolicyFields] = Field(default_factory=dict)
    passthrough: dict[str, Any] = Field(default_factory=dict)
