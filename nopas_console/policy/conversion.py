"""
Conversion between the server and UI shapes of a policy.

``to_ui`` runs on every refresh; ``to_server`` runs on every send. For a
document with unique names and numeric ratios the pair round-trips:
``to_server(to_ui(doc)) == doc``.
"""

from __future__ import annotations

import copy
import logging
import math
from typing import Any

from nopas_console.policy.schema import (
    NUMERIC_PARAMETER_KEYS,
    ParameterBlock,
    PolicyDocument,
    PolicyUIState,
    ResourceFields,
    ResourceRecord,
    SubpolicyFields,
    SubpolicyRecord,
)

logger = logging.getLogger(__name__)


# ── Numeric coercion ───────────────────────────────────────────


def coerce_number(raw: Any) -> float:
    """
    Coerce a possibly half-typed numeric field to a finite float.

    Text that does not parse (``""``, ``"-"``, ``"abc"``) and non-finite
    values become ``0.0``. Never raises.
    """
    if isinstance(raw, bool):
        return float(raw)
    try:
        if isinstance(raw, (int, float)):
            value = float(raw)
        else:
            value = float(str(raw).strip())
    except (OverflowError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


def coerce_count(raw: Any) -> int:
    """Coerce an instance-count field to an int (truncating)."""
    return int(coerce_number(raw))


def _coerce_parameter_block(block: ParameterBlock) -> ParameterBlock:
    # Counts are ints on the wire; ints pass through as they are.
    return {
        key: coerce_count(value)
        if key in NUMERIC_PARAMETER_KEYS
        and (isinstance(value, bool) or not isinstance(value, int))
        else value
        for key, value in block.items()
    }


def _text(value: Any) -> str:
    return "" if value is None else str(value)


# ── Server → UI ────────────────────────────────────────────────


def to_ui(doc: PolicyDocument) -> PolicyUIState:
    """
    Build the editable UI state from a server document.

    Array order becomes mapping insertion order. Names are assumed unique;
    if the server sends a duplicate, the later record overwrites the earlier
    one in place.
    """
    resources: dict[str, ResourceFields] = {}
    for record in doc.resources:
        if record.name in resources:
            logger.warning("Duplicate resource name in server policy: %s", record.name)
        resources[record.name] = ResourceFields(
            scale_in_cooldown=record.scale_in_cooldown,
            scale_out_cooldown=record.scale_out_cooldown,
            ratio=record.ratio,
            nomad_params=dict(record.nomad_params),
            ec2_params=dict(record.ec2_params),
            passthrough=copy.deepcopy(record.model_extra or {}),
        )

    subpolicies: dict[str, SubpolicyFields] = {}
    for record in doc.subpolicies:
        if record.name in subpolicies:
            logger.warning("Duplicate subpolicy name in server policy: %s", record.name)
        subpolicies[record.name] = SubpolicyFields(
            managed_resources=list(record.managed_resources),
            metadata=copy.deepcopy(record.metadata),
            passthrough=copy.deepcopy(record.model_extra or {}),
        )

    return PolicyUIState(
        checking_frequency=doc.checking_frequency,
        ensembler=doc.ensembler,
        resources_by_name=resources,
        subpolicies_by_name=subpolicies,
        passthrough=copy.deepcopy(doc.model_extra or {}),
    )


# ── UI → Server ────────────────────────────────────────────────


def unsendable_reason(state: PolicyUIState) -> str | None:
    """Why ``state`` cannot be sent, or None if it can."""
    if not _text(state.checking_frequency).strip():
        return "Checking frequency is required"
    if not _text(state.ensembler).strip():
        return "Ensembler is required"
    if any(not name.strip() for name in state.resources_by_name):
        return "Every resource needs a name"
    if any(not name.strip() for name in state.subpolicies_by_name):
        return "Every subpolicy needs a name"
    return None


def to_server(state: PolicyUIState) -> PolicyDocument | None:
    """
    Serialize the UI state into a server document.

    Numeric fields still holding raw text are coerced here. Returns None when
    the state is not sendable (see ``unsendable_reason``); callers must not
    send in that case.
    """
    reason = unsendable_reason(state)
    if reason is not None:
        logger.debug("Policy not sendable: %s", reason)
        return None

    resources = [
        ResourceRecord.model_validate(
            {
                **copy.deepcopy(fields.passthrough),
                "Name": name,
                "ScaleInCooldown": _text(fields.scale_in_cooldown),
                "ScaleOutCooldown": _text(fields.scale_out_cooldown),
                "N2CRatio": coerce_number(fields.ratio),
                "NomadParameters": _coerce_parameter_block(fields.nomad_params),
                "EC2Parameters": _coerce_parameter_block(fields.ec2_params),
            }
        )
        for name, fields in state.resources_by_name.items()
    ]

    subpolicies = [
        SubpolicyRecord.model_validate(
            {
                **copy.deepcopy(fields.passthrough),
                "Name": name,
                "ManagedResources": [_text(r) for r in fields.managed_resources],
                "Metadata": copy.deepcopy(fields.metadata),
            }
        )
        for name, fields in state.subpolicies_by_name.items()
    ]

    return PolicyDocument.model_validate(
        {
            **copy.deepcopy(state.passthrough),
            "CheckingFreq": _text(state.checking_frequency),
            "Ensembler": _text(state.ensembler),
            "Resources": resources,
            "Subpolicies": subpolicies,
        }
    )
