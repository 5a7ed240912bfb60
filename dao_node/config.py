# dao_node/config.py
import logging
import os
from typing import Any, Dict, Optional

import yaml

from .dao_runtime.params import GOVERNANCE_PARAMS, GovernanceParams

log = logging.getLogger(__name__)

CONFIG_FILENAME = "dao_config.yaml"

# -------- Defaults (non-secret) --------
_DEFAULT: Dict[str, Any] = {
    "governance": dict(GOVERNANCE_PARAMS),
    "admin": {
        # Identity bootstrapped as owner + first member on a fresh state.
        "owner": "owner",
    },
    "persistence": {
        "enabled": True,
        "data_dir": "data",
        "filename": "dao_state.json",
        "keep_backups": 2,
    },
    "logging": {"level": "INFO"},
    "server": {
        "host": "127.0.0.1",
        "port": 8000,
    },
}

# -------- ENV overrides --------
_ENV_MAP = {
    ("governance", "voting_period_sec"): ("DAO_VOTING_PERIOD_SEC", int),
    ("governance", "min_quorum_pct"): ("DAO_MIN_QUORUM_PCT", int),
    ("governance", "max_voting_power"): ("DAO_MAX_VOTING_POWER", int),
    ("governance", "min_stake"): ("DAO_MIN_STAKE", int),
    ("governance", "min_proposal_amount"): ("DAO_MIN_PROPOSAL_AMOUNT", int),
    ("admin", "owner"): ("DAO_OWNER", str),
    ("persistence", "data_dir"): ("DAO_DATA_DIR", str),
    ("logging", "level"): ("DAO_LOG_LEVEL", str),
    ("server", "host"): ("DAO_HOST", str),
    ("server", "port"): ("DAO_PORT", int),
}


def _deep_merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(base)
    for k, v in (overlay or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _apply_env_overrides(cfg: Dict[str, Any]) -> Dict[str, Any]:
    for (section, key), (env_name, cast) in _ENV_MAP.items():
        val = os.getenv(env_name)
        if val is None:
            continue
        try:
            casted = cast(val)
        except ValueError:
            raise ValueError(f"{env_name}={val!r} is not a valid {cast.__name__}") from None
        cfg.setdefault(section, {})
        cfg[section][key] = casted
    return cfg


def load_config(repo_root: Optional[str] = None, path: Optional[str] = None) -> Dict[str, Any]:
    """
    Loads YAML config from ``path`` or repo_root/dao_config.yaml, merged over
    the defaults, then applies ENV overrides.

    A missing file yields the defaults. A file that does not parse is logged
    and ignored.
    """
    if path is None:
        path = os.getenv("DAO_CONFIG_PATH") or os.path.join(repo_root or os.getcwd(), CONFIG_FILENAME)

    cfg = _deep_merge(_DEFAULT, {})

    if os.path.exists(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            log.warning("ignoring unparsable config %s: %s", path, e)
            data = {}
        if not isinstance(data, dict):
            log.warning("ignoring config %s: top level must be a mapping", path)
            data = {}
        cfg = _deep_merge(cfg, data)

    return _apply_env_overrides(cfg)


# -------- Small helpers used by the app --------
def governance_params_from_config(cfg: Dict[str, Any]) -> GovernanceParams:
    return GovernanceParams.from_mapping(cfg.get("governance", {}))


def get_owner(cfg: Dict[str, Any]) -> str:
    return str(cfg.get("admin", {}).get("owner") or "owner")


def get_log_level(cfg: Dict[str, Any]) -> int:
    name = str(cfg.get("logging", {}).get("level", "INFO")).upper()
    return getattr(logging, name, logging.INFO)


def get_bind_host(cfg: Dict[str, Any]) -> str:
    return str(cfg.get("server", {}).get("host", "127.0.0.1"))


def get_bind_port(cfg: Dict[str, Any]) -> int:
    return int(cfg.get("server", {}).get("port", 8000))


def persistence_enabled(cfg: Dict[str, Any]) -> bool:
    return bool(cfg.get("persistence", {}).get("enabled", True))
