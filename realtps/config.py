"""
config.py - RPC endpoint and delay configuration.

Loaded once at startup from a YAML file:

    chains:
      ethereum: https://eth.example.org
      solana: https://api.mainnet-beta.solana.com
    delays:
      rescan: 30
"""

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, Iterable, List, Union

import yaml

from realtps.chains import Chain
from realtps.delay import Delays
from realtps.errors import ConfigError

logger = logging.getLogger("config")

DEFAULT_CONFIG_PATH = "rpc_config.yaml"


@dataclass
class RpcConfig:
    chains: Dict[Chain, str] = field(default_factory=dict)
    delays: Delays = field(default_factory=Delays)

    def get_rpc_url(self, chain: Chain) -> str:
        url = self.chains.get(chain)
        if not url:
            raise ConfigError(f"no RPC endpoint configured for {chain}")
        return url

    def require(self, chains: Iterable[Chain]) -> List[Chain]:
        """Return ``chains`` as a list, failing if any lacks an endpoint."""
        chains = list(chains)
        missing = [c.value for c in chains if c not in self.chains]
        if missing:
            raise ConfigError(f"no RPC endpoint configured for: {', '.join(missing)}")
        return chains


def parse_rpc_config(raw: dict) -> RpcConfig:
    if not isinstance(raw, dict):
        raise ConfigError("RPC configuration must be a mapping")

    chains_raw = raw.get("chains") or {}
    if not isinstance(chains_raw, dict):
        raise ConfigError("'chains' must be a mapping of chain name to URL")
    chains: Dict[Chain, str] = {}
    for name, url in chains_raw.items():
        try:
            chain = Chain.parse(str(name))
        except ValueError as e:
            raise ConfigError(str(e)) from e
        if not isinstance(url, str) or not url.strip():
            raise ConfigError(f"RPC URL for {chain} must be a non-empty string")
        chains[chain] = url.strip()

    delays_raw = raw.get("delays") or {}
    if not isinstance(delays_raw, dict):
        raise ConfigError("'delays' must be a mapping of delay name to seconds")
    known = {f.name for f in fields(Delays)}
    values = {}
    for name, value in delays_raw.items():
        if name not in known:
            raise ConfigError(f"Unknown delay: {name}")
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            raise ConfigError(f"Delay {name} must be a non-negative number of seconds")
        values[name] = float(value)

    return RpcConfig(chains=chains, delays=Delays(**values))


def load_rpc_config(path: Union[str, Path] = DEFAULT_CONFIG_PATH) -> RpcConfig:
    path = Path(path)
    try:
        raw = yaml.safe_load(path.read_text()) or {}
    except OSError as e:
        raise ConfigError(f"unable to load RPC configuration from {path}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"unable to parse RPC configuration {path}") from e

    config = parse_rpc_config(raw)
    logger.info("Loaded RPC configuration for %d chains from %s", len(config.chains), path)
    return config
