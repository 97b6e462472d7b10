# src/tokenlaunch/runtime/launch_config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from tokenlaunch.ledger.constants import (
    BPS_DENOMINATOR,
    DEFAULT_VIRTUAL_SOL_RESERVES,
    DEFAULT_VIRTUAL_TOKEN_RESERVES,
    MAX_PERIOD_SECONDS,
    MIN_PERIOD_SECONDS,
    MINIMUM_AMOUNT,
    U64_MAX,
)
from tokenlaunch.runtime.reserve_ledger import FeePolicy

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


def _as_bool(v: Any, default: bool) -> bool:
    if v is None:
        return bool(default)
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in {"1", "true", "yes", "y", "on"}:
        return True
    if s in {"0", "false", "no", "n", "off"}:
        return False
    return bool(default)


@dataclass(frozen=True)
class LaunchConfig:
    """Launch-wide defaults, passed explicitly into every launch and lock."""

    mode: str  # "dev" | "testnet" | "prod"

    # Single SQLite DB file path for record persistence.
    db_path: str

    fee_basis_points: int
    fee_recipient: str

    initial_virtual_sol_reserves: int
    initial_virtual_token_reserves: int
    # 0 means "the whole supply is tradable"
    initial_real_token_reserves: int

    minimum_amount: int
    min_period_seconds: int
    max_period_seconds: int
    require_future_vesting_start: bool

    api_host: str
    api_port: int

    log_level: str

    def fee_policy(self) -> FeePolicy:
        return FeePolicy(basis_points=int(self.fee_basis_points), recipient=str(self.fee_recipient))


_ALLOWED_MODES = {"dev", "testnet", "prod"}


def validate_launch_config(cfg: LaunchConfig) -> None:
    """Fail-fast validation for operator config."""

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {_ALLOWED_MODES}; got: {cfg.mode!r}")

    if not isinstance(cfg.db_path, str) or not cfg.db_path.strip():
        raise ValueError("db_path must be a non-empty string")

    if not (0 <= int(cfg.fee_basis_points) <= BPS_DENOMINATOR):
        raise ValueError(f"fee_basis_points must be 0..{BPS_DENOMINATOR}; got: {cfg.fee_basis_points}")
    if int(cfg.fee_basis_points) > 0 and not str(cfg.fee_recipient or "").strip():
        raise ValueError("fee_recipient is required when fee_basis_points > 0")

    for name, v in (
        ("initial_virtual_sol_reserves", cfg.initial_virtual_sol_reserves),
        ("initial_virtual_token_reserves", cfg.initial_virtual_token_reserves),
    ):
        if not (0 < int(v) <= U64_MAX):
            raise ValueError(f"{name} must be a positive u64; got: {v}")
    if not (0 <= int(cfg.initial_real_token_reserves) <= U64_MAX):
        raise ValueError(f"initial_real_token_reserves must be a u64; got: {cfg.initial_real_token_reserves}")

    if int(cfg.minimum_amount) <= 0:
        raise ValueError(f"minimum_amount must be > 0; got: {cfg.minimum_amount}")
    if int(cfg.min_period_seconds) <= 0:
        raise ValueError(f"min_period_seconds must be > 0; got: {cfg.min_period_seconds}")
    if int(cfg.max_period_seconds) < int(cfg.min_period_seconds):
        raise ValueError(
            f"max_period_seconds must be >= min_period_seconds; got: {cfg.max_period_seconds} < {cfg.min_period_seconds}"
        )

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")


def default_launch_config() -> LaunchConfig:
    return LaunchConfig(
        mode="prod",
        db_path="./data/tokenlaunch.db",
        fee_basis_points=0,
        fee_recipient="",
        initial_virtual_sol_reserves=DEFAULT_VIRTUAL_SOL_RESERVES,
        initial_virtual_token_reserves=DEFAULT_VIRTUAL_TOKEN_RESERVES,
        initial_real_token_reserves=0,
        minimum_amount=MINIMUM_AMOUNT,
        min_period_seconds=MIN_PERIOD_SECONDS,
        max_period_seconds=MAX_PERIOD_SECONDS,
        require_future_vesting_start=True,
        api_host="127.0.0.1",
        api_port=8080,
        log_level="INFO",
    )


def _read_raw(p: Path) -> Any:
    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in {".yaml", ".yml"}:
        return yaml.safe_load(text)
    return json.loads(text)


def launch_config_from_dict(raw: Json) -> LaunchConfig:
    if not isinstance(raw, dict):
        raise ValueError("launch config must be a mapping")

    d = default_launch_config()

    cfg = LaunchConfig(
        mode=_as_str(raw.get("mode"), d.mode).strip().lower(),
        db_path=_as_str(raw.get("db_path"), d.db_path),
        fee_basis_points=_as_int(raw.get("fee_basis_points"), d.fee_basis_points),
        fee_recipient=_as_str(raw.get("fee_recipient"), d.fee_recipient),
        initial_virtual_sol_reserves=_as_int(raw.get("initial_virtual_sol_reserves"), d.initial_virtual_sol_reserves),
        initial_virtual_token_reserves=_as_int(
            raw.get("initial_virtual_token_reserves"), d.initial_virtual_token_reserves
        ),
        initial_real_token_reserves=_as_int(raw.get("initial_real_token_reserves"), d.initial_real_token_reserves),
        minimum_amount=_as_int(raw.get("minimum_amount"), d.minimum_amount),
        min_period_seconds=_as_int(raw.get("min_period_seconds"), d.min_period_seconds),
        max_period_seconds=_as_int(raw.get("max_period_seconds"), d.max_period_seconds),
        require_future_vesting_start=_as_bool(
            raw.get("require_future_vesting_start"), d.require_future_vesting_start
        ),
        api_host=_as_str(raw.get("api_host"), d.api_host),
        api_port=_as_int(raw.get("api_port"), d.api_port),
        log_level=_as_str(raw.get("log_level"), d.log_level).strip().upper(),
    )

    validate_launch_config(cfg)
    return cfg


def read_launch_config_file(path: str) -> LaunchConfig:
    """Read a JSON or YAML (.yaml/.yml) launch config; missing keys take defaults."""
    raw = _read_raw(Path(path))
    return launch_config_from_dict(raw)


def load_launch_config(*, config_path: Optional[str] = None) -> LaunchConfig:
    p = config_path or os.environ.get("TOKENLAUNCH_CONFIG_PATH")
    if p:
        return read_launch_config_file(p)

    cfg = default_launch_config()
    validate_launch_config(cfg)
    return cfg
