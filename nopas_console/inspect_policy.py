"""
Policy inspection tool — print the policy the NOPAS service is running.

Fetches ``/state`` directly (no editor, no dashboard) and renders the
summary, resources and subpolicies as tables.

Usage:
    python -m nopas_console.inspect_policy
    python -m nopas_console.inspect_policy --endpoint http://nopas:8080
    python -m nopas_console.inspect_policy --verbose
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

import httpx
from rich.console import Console
from rich.table import Table

from nopas_console.config import settings
from nopas_console.integrations.nopas_client import Err, NopasClient
from nopas_console.policy.schema import PolicyDocument

console = Console()


async def _fetch(client: NopasClient):
    try:
        return await client.get_state()
    finally:
        await client.close()


def run_inspect(
    endpoint: str,
    verbose: bool = False,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """
    Fetch and print the current policy.

    Args:
        endpoint: Base URL of the NOPAS service.
        verbose: Also print each resource's provider parameters.
        transport: Optional httpx transport override.

    Returns:
        True if the policy was fetched, False otherwise.
    """
    console.print(f"\n[bold blue]═══ NOPAS Policy @ {endpoint} ═══[/bold blue]\n")

    client = NopasClient(endpoint, timeout=settings.request_timeout_seconds, transport=transport)
    result = asyncio.run(_fetch(client))

    if isinstance(result, Err):
        console.print(f"[bold red]✗ FAILED[/bold red] {result.reason}")
        return False

    doc: PolicyDocument = result.body
    console.print(f"  Checking frequency: [bold]{doc.checking_frequency}[/bold]")
    console.print(f"  Ensembler: [bold]{doc.ensembler}[/bold]")

    resources = Table(title="Resources", show_lines=True)
    resources.add_column("Name", style="cyan")
    resources.add_column("Scale-In", style="green")
    resources.add_column("Scale-Out", style="green")
    resources.add_column("N2C Ratio", style="yellow")
    for r in doc.resources:
        resources.add_row(r.name, r.scale_in_cooldown, r.scale_out_cooldown, f"{r.ratio:g}")
    console.print(resources)

    subpolicies = Table(title="Subpolicies", show_lines=True)
    subpolicies.add_column("Name", style="cyan")
    subpolicies.add_column("Managed Resources", style="green")
    for sp in doc.subpolicies:
        subpolicies.add_row(sp.name, ", ".join(sp.managed_resources) or "—")
    console.print(subpolicies)

    if verbose:
        console.print("\n[bold]Provider Parameters:[/bold]")
        for r in doc.resources:
            console.print(f"  [cyan]{r.name}[/cyan]")
            console.print(f"    Nomad: {json.dumps(r.nomad_params, sort_keys=True)}")
            console.print(f"    EC2:   {json.dumps(r.ec2_params, sort_keys=True)}")

    return True


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Show the scaling policy currently held by a NOPAS service"
    )
    parser.add_argument(
        "--endpoint",
        default=None,
        help="NOPAS base URL (defaults to .env settings)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show provider parameters for each resource",
    )
    args = parser.parse_args()

    ok = run_inspect(args.endpoint or settings.nopas_endpoint, verbose=args.verbose)
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
