"""
main.py - Process entry point.

Commands:
 - run        import every chain and recalculate TPS (default)
 - import     import only
 - calculate  recalculate TPS only
 - web        serve the read-only status API

Usage:
    python -m realtps [run|import|calculate|web] [--config rpc_config.yaml]
        [--db-path data/realtps.db] [--chain ethereum --chain solana]
        [--simulate] [--api-port 8080] [--verbose]
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

import uvicorn

from realtps.chain_simulator import make_simulated_clients
from realtps.chains import Chain, all_chains
from realtps.clients import close_all, make_all_clients
from realtps.config import DEFAULT_CONFIG_PATH, RpcConfig, load_rpc_config
from realtps.errors import ConfigError, RealTpsError, log_error_chain
from realtps.importer import Importer
from realtps.jobs import Command, JobScheduler, init_jobs
from realtps.monitoring import StatusService
from realtps.storage import StorageManager
from realtps.web import create_app

logger = logging.getLogger("realtps")

EXIT_NO_MORE_JOBS = 1
EXIT_STARTUP_FAILED = 2


def configure_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(name)-10s] %(levelname)-5s %(message)s",
        datefmt="%H:%M:%S",
    )


def parse_chains(names: Optional[List[str]]) -> List[Chain]:
    if not names:
        return all_chains()
    chains = []
    for name in names:
        try:
            chain = Chain.parse(name)
        except ValueError as e:
            raise ConfigError(str(e)) from e
        if chain not in chains:
            chains.append(chain)
    return chains


def load_config(args) -> RpcConfig:
    if args.simulate and not Path(args.config).exists():
        logger.info("No RPC configuration at %s; simulating with default delays", args.config)
        return RpcConfig()
    return load_rpc_config(args.config)


async def open_storage(db_path: str) -> StorageManager:
    db_dir = os.path.dirname(db_path)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)
    storage = StorageManager(db_path)
    await storage.initialize()
    return storage


async def run_jobs(command: Command, args) -> int:
    config = load_config(args)
    chains = parse_chains(args.chain)
    storage = await open_storage(args.db_path)
    try:
        if args.simulate:
            clients = make_simulated_clients(chains)
        else:
            clients = await make_all_clients(config, chains)
        try:
            importer = Importer(storage, clients, config.delays)
            scheduler = JobScheduler(importer.do_job)
            await scheduler.run(init_jobs(command, chains))
        finally:
            await close_all(clients.values())
    finally:
        await storage.close()
    return EXIT_NO_MORE_JOBS


async def serve_api(args) -> int:
    storage = await open_storage(args.db_path)
    try:
        app = create_app(StatusService(storage))
        config = uvicorn.Config(app, host=args.api_host, port=args.api_port, log_level="info")
        server = uvicorn.Server(config)
        logger.info("REST API starting on %s:%d", args.api_host, args.api_port)
        await server.serve()
    finally:
        await storage.close()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Multi-chain block importer and TPS calculator")
    parser.add_argument(
        "command", nargs="?", default="run",
        choices=[c.value for c in Command] + ["web"],
        help="what to run (default: run)",
    )
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help=f"RPC configuration file (default: {DEFAULT_CONFIG_PATH})")
    parser.add_argument("--db-path", default="data/realtps.db", help="SQLite database path (default: data/realtps.db)")
    parser.add_argument("--chain", action="append", metavar="NAME", help="only this chain; repeatable (default: all chains)")
    parser.add_argument("--simulate", action="store_true", help="use in-process simulated chains instead of RPC nodes")
    parser.add_argument("--api-host", default="0.0.0.0", help="status API bind address (default: 0.0.0.0)")
    parser.add_argument("--api-port", type=int, default=8080, help="status API port (default: 8080)")
    parser.add_argument("--verbose", "-v", action="store_true", help="debug logging")
    return parser


def main(argv: Optional[List[str]] = None):
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    try:
        if args.command == "web":
            code = asyncio.run(serve_api(args))
        else:
            code = asyncio.run(run_jobs(Command(args.command), args))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
        code = 0
    except RealTpsError as e:
        log_error_chain(logger, e)
        logger.error("startup failed")
        code = EXIT_STARTUP_FAILED
    sys.exit(code)


if __name__ == "__main__":
    main()
