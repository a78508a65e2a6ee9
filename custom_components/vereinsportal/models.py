"""Runtime data models for the Vereinsportal integration."""

from __future__ import annotations

from dataclasses import dataclass

from vereinsportal_api import Member, VereinsportalClient

from .coordinator import VereinsportalCoordinator


@dataclass
class VereinsportalRuntimeData:
    """Data stored in config_entry.runtime_data."""

    client: VereinsportalClient
    member: Member
    coordinator: VereinsportalCoordinator
