"""Simulation settings loaded from keyword arguments, environment or ``.env``."""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Dict, FrozenSet, List, Optional, Union

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..flows.types import UDP_PROTOCOL


class SimulationSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CELLSIM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        # list-like values are parsed by the validators below
        enable_decoding=False,
    )

    # ----- Attribution -----
    entity_count: int = Field(5, ge=1)
    base_port: int = Field(5000, ge=1, le=65535)
    protocols: FrozenSet[int] = frozenset({UDP_PROTOCOL})
    # entity id -> addresses owned by that entity
    entity_addresses: Dict[int, List[str]] = {}

    # ----- Telemetry -----
    tick_interval_seconds: float = Field(1.0, gt=0)
    baseline_on_first_sight: bool = True

    # ----- Handover -----
    handover_interval_seconds: float = Field(1.0, gt=0)
    distance_threshold_meters: float = Field(500.0, gt=0)
    min_dwell_seconds: Optional[float] = Field(None, ge=0)
    handover_delay_seconds: float = Field(0.0, ge=0)
    # outstanding requests without an outcome expire after this long
    pending_timeout_seconds: Optional[float] = Field(None, gt=0)

    # ----- Run -----
    simulation_duration_seconds: float = Field(10.0, gt=0)

    @field_validator("protocols", mode="before")
    def parse_protocols(cls, v: Union[str, int, List[int], FrozenSet[int], None]):
        if v is None or v == "":
            return frozenset()
        if isinstance(v, int):
            return frozenset({v})
        if isinstance(v, str):
            if v.startswith("["):
                return frozenset(int(p) for p in json.loads(v))
            return frozenset(int(p.strip()) for p in v.split(",") if p.strip())
        return v

    @field_validator("entity_addresses", mode="before")
    def parse_entity_addresses(cls, v):
        if isinstance(v, str):
            v = json.loads(v) if v else {}
        if isinstance(v, dict):
            return {
                int(k): [addr] if isinstance(addr, str) else list(addr)
                for k, addr in v.items()
            }
        return v

    @model_validator(mode="after")
    def check_port_range(self) -> "SimulationSettings":
        if self.base_port + self.entity_count > 65536:
            raise ValueError(
                f"port range {self.base_port}+{self.entity_count} exceeds 65535"
            )
        return self

    @property
    def dwell_seconds(self) -> float:
        """Minimum dwell time, defaulting to the handover tick period."""
        if self.min_dwell_seconds is None:
            return self.handover_interval_seconds
        return self.min_dwell_seconds

    @property
    def pending_timeout(self) -> float:
        """Request expiry, defaulting to three dwell or handover periods.

        The default never expires a request before its handover delay plus one
        handover period has passed.
        """
        if self.pending_timeout_seconds is None:
            period = max(self.dwell_seconds, self.handover_interval_seconds)
            return max(3.0 * period, self.handover_delay_seconds + self.handover_interval_seconds)
        return self.pending_timeout_seconds


@lru_cache()
def get_settings() -> SimulationSettings:
    """Return process-wide settings built from the environment."""
    return SimulationSettings()


__all__ = ["SimulationSettings", "get_settings"]
