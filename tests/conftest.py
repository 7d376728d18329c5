"""Shared fixtures: a sample policy and an in-memory NOPAS service."""

from __future__ import annotations

import copy
import json
from typing import Any

import httpx
import pytest

SAMPLE_POLICY: dict[str, Any] = {
    "CheckingFreq": "1m",
    "Ensembler": "conservative",
    "Resources": [
        {
            "Name": "web",
            "ScaleInCooldown": "60s",
            "ScaleOutCooldown": "120s",
            "N2CRatio": 1.0,
            "NomadParameters": {"JobName": "web", "MaxCount": 10, "MinCount": 2},
            "EC2Parameters": {"ScalingGroupName": "web-asg", "MaxCount": 5, "MinCount": 1},
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
        {"Name": "CoreRatio", "ManagedResources": ["web", "batch"], "Metadata": None},
        {
            "Name": "OfficeHour",
            "ManagedResources": ["web"],
            "Metadata": {"Default": 2, "Schedule": [{"Begin": 900, "End": 1800, "Count": 4}]},
        },
    ],
}


class FakeNopasService:
    """
    In-memory NOPAS service for httpx.MockTransport.

    Paths listed in ``failing`` answer HTTP 500; ``unreachable`` paths raise
    a connection error.
    """

    def __init__(self) -> None:
        self.policy: Any = copy.deepcopy(SAMPLE_POLICY)
        self.predefined: Any = ["CoreRatio", "OfficeHour"]
        self.failing: set[str] = set()
        self.unreachable: set[str] = set()
        self.requests: list[tuple[str, str]] = []
        self.posted: list[Any] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append((request.method, path))
        if path in self.unreachable:
            raise httpx.ConnectError("connection refused", request=request)
        if path in self.failing:
            return httpx.Response(500, text="internal error")

        if request.method == "GET" and path == "/predefined":
            return httpx.Response(200, json=self.predefined)
        if request.method == "GET" and path == "/state":
            return httpx.Response(200, json=self.policy)
        if request.method == "POST" and path == "/update":
            body = json.loads(request.content)
            self.posted.append(body)
            self.policy = body
            return httpx.Response(200, json={"status": "ok"})
        return httpx.Response(404, text="not found")

    def paths(self) -> list[str]:
        return [path for _, path in self.requests]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def fake_service() -> FakeNopasService:
    return FakeNopasService()


@pytest.fixture
def sample_policy() -> dict[str, Any]:
    return copy.deepcopy(SAMPLE_POLICY)
