"""
SDK configuration: ledger and worker endpoints, gas defaults, polling and
retry behaviour, and the pinned worker identity.

- Loads sane defaults and supports overrides via environment variables (CONCLAVE_*).
- Provides helpers for building HTTP headers and validating endpoints.
- No module-level default instance: build a `ClientConfig` and hand it to
  the components that need it.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

from .version import user_agent as _default_user_agent

_DEFAULT_LEDGER = "http://127.0.0.1:9545"
_DEFAULT_WORKER = "http://127.0.0.1:3346"

_HTTP_SCHEMES = ("http://", "https://")


def _parse_int(val: Any, default: int) -> int:
    """int, decimal string or 0x-hex string; empty or missing gives `default`."""
    if isinstance(val, int):
        return val
    text = "" if val is None else str(val).strip()
    if not text:
        return int(default)
    return int(text, 16) if text[:2].lower() == "0x" else int(text, 10)


def _parse_status_codes(val: Optional[str]) -> Dict[str, int]:
    """
    "RECORD_CREATED=0,IN_PROGRESS=1,RECEIPT_VERIFIED=2,FAILED=3" -> dict.
    Only the names present are overridden.
    """
    out: Dict[str, int] = {}
    if not val:
        return out
    for item in val.split(","):
        item = item.strip()
        if not item:
            continue
        name, _, code = item.partition("=")
        if not code:
            raise ValueError(f"status code entry must be NAME=INT, got {item!r}")
        out[name.strip().upper()] = _parse_int(code, 0)
    return out


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def _check_endpoint(url: str, what: str) -> None:
    if not url.lower().startswith(_HTTP_SCHEMES):
        raise ValueError(f"{what} must be an http(s) URL, got {url!r}")


@dataclass
class ClientConfig:
    # Endpoints
    ledger_url: str = _DEFAULT_LEDGER
    worker_url: str = _DEFAULT_WORKER
    contract_address: Optional[str] = None
    chain_id: int = 4447
    # HTTP behaviour
    request_timeout: float = 10.0
    max_retries: int = 3
    backoff_base: float = 0.25
    backoff_max: float = 4.0
    # Status polling
    poll_interval: float = 1.0
    poll_max_attempts: int = 60
    poll_backoff: float = 1.0
    poll_max_interval: float = 10.0
    # Gas defaults (grains)
    default_gas_limit: int = 1_000_000
    default_gas_price: int = 10**8
    # Worker identity (hex SEC1 public keys)
    worker_signing_key: Optional[str] = None
    worker_encryption_key: Optional[str] = None
    # Ledger status numbering, keyed by name
    status_codes: Dict[str, int] = field(default_factory=dict)
    # Headers / identity
    user_agent: str = field(default_factory=_default_user_agent)

    def __post_init__(self) -> None:
        _check_endpoint(self.ledger_url, "ledger_url")
        _check_endpoint(self.worker_url, "worker_url")
        if self.poll_interval < 0 or self.poll_max_interval < 0:
            raise ValueError("poll intervals must be non-negative")
        if self.poll_max_attempts < 1:
            raise ValueError("poll_max_attempts must be >= 1")
        if self.poll_backoff < 1.0:
            raise ValueError("poll_backoff must be >= 1.0 (1.0 = fixed interval)")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

    @classmethod
    def from_env(cls, prefix: str = "CONCLAVE_") -> "ClientConfig":
        """
        Create config from environment variables:

        CONCLAVE_LEDGER_URL           (http/https)
        CONCLAVE_WORKER_URL           (http/https)
        CONCLAVE_CONTRACT_ADDRESS     (0x-hex)
        CONCLAVE_CHAIN_ID             (int or 0x-hex)
        CONCLAVE_TIMEOUT              (float seconds, HTTP)
        CONCLAVE_MAX_RETRIES          (int)
        CONCLAVE_BACKOFF              (float seconds, first retry delay)
        CONCLAVE_POLL_INTERVAL        (float seconds)
        CONCLAVE_POLL_ATTEMPTS        (int)
        CONCLAVE_POLL_BACKOFF         (float multiplier, 1.0 = fixed)
        CONCLAVE_GAS_LIMIT            (int)
        CONCLAVE_GAS_PRICE            (int grains)
        CONCLAVE_WORKER_SIGNING_KEY   (hex)
        CONCLAVE_WORKER_ENCRYPTION_KEY(hex) optional
        CONCLAVE_STATUS_CODES         ("NAME=INT,...") optional
        CONCLAVE_USER_AGENT           (str)
        """
        d = cls()
        return cls(
            ledger_url=_env(f"{prefix}LEDGER_URL", d.ledger_url) or d.ledger_url,
            worker_url=_env(f"{prefix}WORKER_URL", d.worker_url) or d.worker_url,
            contract_address=_env(f"{prefix}CONTRACT_ADDRESS"),
            chain_id=_parse_int(_env(f"{prefix}CHAIN_ID"), d.chain_id),
            request_timeout=float(_env(f"{prefix}TIMEOUT", str(d.request_timeout))),
            max_retries=int(_env(f"{prefix}MAX_RETRIES", str(d.max_retries))),
            backoff_base=float(_env(f"{prefix}BACKOFF", str(d.backoff_base))),
            poll_interval=float(_env(f"{prefix}POLL_INTERVAL", str(d.poll_interval))),
            poll_max_attempts=int(_env(f"{prefix}POLL_ATTEMPTS", str(d.poll_max_attempts))),
            poll_backoff=float(_env(f"{prefix}POLL_BACKOFF", str(d.poll_backoff))),
            default_gas_limit=_parse_int(_env(f"{prefix}GAS_LIMIT"), d.default_gas_limit),
            default_gas_price=_parse_int(_env(f"{prefix}GAS_PRICE"), d.default_gas_price),
            worker_signing_key=_env(f"{prefix}WORKER_SIGNING_KEY"),
            worker_encryption_key=_env(f"{prefix}WORKER_ENCRYPTION_KEY"),
            status_codes=_parse_status_codes(_env(f"{prefix}STATUS_CODES")),
            user_agent=_env(f"{prefix}USER_AGENT", d.user_agent) or d.user_agent,
        )

    @classmethod
    def with_overrides(
        cls, base: Optional["ClientConfig"] = None, **overrides: Any
    ) -> "ClientConfig":
        """Copy of `base` (default: from_env()) with the non-None keyword overrides applied; unknown names are dropped."""
        data = (base or cls.from_env()).to_dict()
        for key, value in overrides.items():
            if value is None or key not in data:
                continue
            data[key] = _parse_int(value, data[key]) if key == "chain_id" else value
        return cls(**data)

    def http_headers(self) -> Dict[str, str]:
        """Extra headers for RPC clients; JSON content headers are added by the client."""
        return {"User-Agent": self.user_agent}

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


__all__ = ["ClientConfig"]
