"""
Tests for the Conversion Engine — server shape ↔ UI shape.

Validates:
- Round trip of a full policy
- Order preservation
- Numeric coercion of in-progress edits
- Unsendable states
- Passthrough of unknown server fields
"""

from __future__ import annotations

import copy

import pytest

from nopas_console.policy.conversion import (
    coerce_count,
    coerce_number,
    to_server,
    to_ui,
    unsendable_reason,
)
from nopas_console.policy.schema import (
    PolicyDocument,
    PolicyUIState,
    ResourceFields,
    SubpolicyFields,
)

WIRE_POLICY = {
    "CheckingFreq": "1m",
    "Ensembler": "conservative",
    "Resources": [
        {
            "Name": "web",
            "ScaleInCooldown": "60s",
            "ScaleOutCooldown": "120s",
            "N2CRatio": 1.0,
            "NomadParameters": {
                "Address": "http://nomad.service:4646",
                "JobName": "web",
                "NomadPath": "nomad/creds/web",
                "MaxCount": 10,
                "MinCount": 2,
            },
            "EC2Parameters": {
                "ScalingGroupName": "web-asg",
                "Region": "ap-southeast-1",
                "MaxCount": 5,
                "MinCount": 1,
            },
        },
        {
            "Name": "batch",
            "ScaleInCooldown": "5m",
            "ScaleOutCooldown": "1m",
            "N2CRatio": 2.5,
            "NomadParameters": {"JobName": "batch", "MaxCount": 20, "MinCount": 0},
            "EC2Parameters": {"ScalingGroupName": "batch-asg", "MaxCount": 8, "MinCount": 0},
        },
    ],
    "Subpolicies": [
        {
            "Name": "CoreRatio",
            "ManagedResources": ["web", "batch"],
            "Metadata": {"MaxThreshold": 0.8, "MinThreshold": 0.3},
        },
        {
            "Name": "OfficeHour",
            "ManagedResources": ["web"],
            "Metadata": {"Default": 2, "Schedule": [{"Begin": 900, "End": 1800, "Count": 4}]},
        },
    ],
}


def _document(**overrides) -> PolicyDocument:
    wire = copy.deepcopy(WIRE_POLICY)
    wire.update(overrides)
    return PolicyDocument.model_validate(wire)


class TestToUI:
    """Server document → editable state."""

    def test_keys_follow_array_order(self):
        state = to_ui(_document())
        assert list(state.resources_by_name) == ["web", "batch"]
        assert list(state.subpolicies_by_name) == ["CoreRatio", "OfficeHour"]

    def test_fields_copied(self):
        state = to_ui(_document())
        web = state.resources_by_name["web"]
        assert state.checking_frequency == "1m"
        assert state.ensembler == "conservative"
        assert web.scale_in_cooldown == "60s"
        assert web.ratio == 1.0
        assert web.ec2_params["ScalingGroupName"] == "web-asg"
        assert state.subpolicies_by_name["OfficeHour"].metadata["Default"] == 2

    def test_idempotent(self):
        doc = _document()
        assert to_ui(doc) == to_ui(doc)

    def test_state_does_not_alias_document(self):
        doc = _document()
        state = to_ui(doc)
        state.subpolicies_by_name["OfficeHour"].metadata["Default"] = 99
        state.resources_by_name["web"].nomad_params["MaxCount"] = 99
        assert doc.subpolicies[1].metadata["Default"] == 2
        assert doc.resources[0].nomad_params["MaxCount"] == 10

    def test_duplicate_names_later_entry_wins(self):
        doc = _document(Resources=[
            {"Name": "web", "N2CRatio": 1},
            {"Name": "web", "N2CRatio": 3},
        ])
        state = to_ui(doc)
        assert list(state.resources_by_name) == ["web"]
        assert state.resources_by_name["web"].ratio == 3.0


class TestToServer:
    """Editable state → server document."""

    def test_round_trip(self):
        doc = _document()
        assert to_server(to_ui(doc)) == doc

    def test_round_trip_wire(self):
        assert to_server(to_ui(_document())).to_wire() == WIRE_POLICY

    def test_round_trip_keeps_unknown_fields(self):
        wire = copy.deepcopy(WIRE_POLICY)
        wire["Paused"] = False
        wire["Resources"][0]["Weight"] = 3
        wire["Subpolicies"][0]["Priority"] = "high"
        doc = PolicyDocument.model_validate(wire)
        assert to_server(to_ui(doc)).to_wire() == wire

    def test_in_progress_ratio_coerced(self):
        state = to_ui(_document())
        web = state.resources_by_name["web"].model_copy(update={"ratio": "2.5"})
        state = state.model_copy(
            update={"resources_by_name": {**state.resources_by_name, "web": web}}
        )
        doc = to_server(state)
        assert doc.resources[0].ratio == 2.5

    def test_in_progress_counts_coerced(self):
        state = PolicyUIState(
            checking_frequency="1m",
            ensembler="max",
            resources_by_name={
                "web": ResourceFields(
                    ratio="",
                    nomad_params={"JobName": "web", "MaxCount": "12", "MinCount": "x"},
                ),
            },
        )
        record = to_server(state).resources[0]
        assert record.ratio == 0.0
        assert record.nomad_params == {"JobName": "web", "MaxCount": 12, "MinCount": 0}

    def test_fractional_counts_become_ints(self):
        state = PolicyUIState(
            checking_frequency="1m",
            ensembler="max",
            resources_by_name={
                "web": ResourceFields(ec2_params={"MaxCount": 2.5, "MinCount": 3.0}),
            },
        )
        block = to_server(state).resources[0].ec2_params
        assert block == {"MaxCount": 2, "MinCount": 3}
        assert all(type(v) is int for v in block.values())

    def test_oversized_ratio_does_not_raise(self):
        state = to_ui(_document())
        web = state.resources_by_name["web"].model_copy(update={"ratio": 10**400})
        state = state.model_copy(
            update={"resources_by_name": {**state.resources_by_name, "web": web}}
        )
        assert to_server(state).resources[0].ratio == 0.0

    def test_order_follows_insertion(self):
        state = PolicyUIState(
            checking_frequency="1m",
            ensembler="max",
            resources_by_name={"z": ResourceFields(), "a": ResourceFields(), "m": ResourceFields()},
        )
        assert [r.name for r in to_server(state).resources] == ["z", "a", "m"]

    @pytest.mark.parametrize(
        "update, reason",
        [
            ({"checking_frequency": ""}, "Checking frequency is required"),
            ({"ensembler": "  "}, "Ensembler is required"),
            ({"resources_by_name": {"": ResourceFields()}}, "Every resource needs a name"),
            ({"subpolicies_by_name": {"": SubpolicyFields()}}, "Every subpolicy needs a name"),
        ],
    )
    def test_unsendable(self, update, reason):
        state = to_ui(_document()).model_copy(update=update)
        assert to_server(state) is None
        assert unsendable_reason(state) == reason

    def test_sendable_has_no_reason(self):
        assert unsendable_reason(to_ui(_document())) is None


class TestCoercion:
    """Numeric coercion never raises."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("2.5", 2.5),
            ("1.", 1.0),
            (" 3 ", 3.0),
            (4, 4.0),
            ("", 0.0),
            ("-", 0.0),
            ("abc", 0.0),
            ("inf", 0.0),
            ("nan", 0.0),
            (None, 0.0),
            (10**400, 0.0),
        ],
    )
    def test_coerce_number(self, raw, expected):
        assert coerce_number(raw) == expected

    def test_coerce_count_truncates(self):
        assert coerce_count("7") == 7
        assert coerce_count("2.9") == 2
        assert coerce_count("") == 0
