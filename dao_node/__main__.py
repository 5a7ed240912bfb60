# dao_node/__main__.py
"""
Entry point for running the DAO node as a module:
    python -m dao_node [--host 127.0.0.1] [--port 8000] [--state ./data]
                       [--owner alice] [--config ./dao_config.yaml]
                       [--no-persist] [--log-level INFO]

Flags override dao_config.yaml, which overrides the built-in defaults.
DAO_* environment variables apply on top of the YAML file.
"""

from __future__ import annotations

import argparse
import logging

from .config import get_bind_host, get_bind_port, get_log_level, load_config


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        prog="dao-node",
        description="Run the DAO governance node (HTTP API)",
    )
    p.add_argument("--config", default=None, help="Path to dao_config.yaml")
    p.add_argument("--host", default=None, help="Bind address (default from config: 127.0.0.1)")
    p.add_argument("--port", type=int, default=None, help="Port (default from config: 8000)")
    p.add_argument("--state", default=None, help="Directory holding dao_state.json")
    p.add_argument("--owner", default=None, help="Owner identity bootstrapped on a fresh state")
    p.add_argument("--no-persist", action="store_true", help="Keep state in memory only")
    p.add_argument("--log-level", default=None, help="Logging level (default from config: INFO)")
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    cfg = load_config(path=args.config)
    if args.host:
        cfg["server"]["host"] = args.host
    if args.port:
        cfg["server"]["port"] = args.port
    if args.state:
        cfg["persistence"]["data_dir"] = args.state
    if args.owner:
        cfg["admin"]["owner"] = args.owner
    if args.no_persist:
        cfg["persistence"]["enabled"] = False
    if args.log_level:
        cfg["logging"]["level"] = args.log_level

    logging.basicConfig(level=get_log_level(cfg), format="%(asctime)s [%(levelname)s] %(message)s")

    import uvicorn

    from .dao_api import create_app
    from .dao_executor import build_executor, set_executor

    ex = build_executor(cfg)
    set_executor(ex)
    app = create_app(ex)

    uvicorn.run(app, host=get_bind_host(cfg), port=get_bind_port(cfg))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
