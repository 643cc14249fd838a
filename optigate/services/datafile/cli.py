from __future__ import annotations

import argparse
import asyncio
import logging

from optigate.foundation.common.tracing import setup_tracing
from optigate.foundation.config import UnifiedConfig, find_config_file, load_config

from .api import create_app
from .errors import ConfigurationError


def _log_config_source(cfg_path: str | None, *, cli_override: str | None) -> None:
    if cli_override:
        logging.info("optigate configuration loaded from %s (--config)", cli_override)
    elif cfg_path:
        logging.info("optigate configuration loaded from %s", cfg_path)
    else:
        logging.info("optigate configuration file not provided; using built-in defaults")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="optigate",
        description="Serve the datafile and webhook routes.",
    )
    parser.add_argument("--config", help="Path to configuration file")
    parser.add_argument("--host", help="Bind address (overrides server.host)")
    parser.add_argument("--port", type=int, help="Bind port (overrides server.port)")
    parser.add_argument("--sdk-key", dest="sdk_key", help="Datafile SDK key")
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Root log level (DEBUG, INFO, WARNING, ERROR)",
    )
    return parser


def _load_config(parser: argparse.ArgumentParser, args: argparse.Namespace) -> UnifiedConfig:
    cfg_path = args.config or find_config_file()
    _log_config_source(cfg_path, cli_override=args.config)
    config = UnifiedConfig()
    if cfg_path:
        config = load_config(cfg_path)
        if "datafile" not in config.present_sections and not args.sdk_key:
            parser.error(
                f"configuration file {cfg_path} does not define the 'datafile' section"
            )
    if args.host:
        config.server.host = args.host
    if args.port:
        config.server.port = args.port
    if args.sdk_key:
        config.datafile.sdk_key = args.sdk_key
    return config


async def _main(argv: list[str] | None = None) -> None:
    """Run the optigate HTTP server."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    config = _load_config(parser, args)
    setup_tracing("optigate", exporter_endpoint=config.telemetry.otel_exporter_endpoint)

    try:
        app = create_app(
            config.datafile,
            datafile_path=config.server.datafile_path,
            webhook_path=config.server.webhook_path,
            enable_otel=config.telemetry.enable_fastapi_otel,
        )
    except ConfigurationError as exc:
        parser.error(str(exc))

    import uvicorn

    server = uvicorn.Server(uvicorn.Config(app, host=config.server.host, port=config.server.port))
    try:
        await server.serve()
    except asyncio.CancelledError:
        server.should_exit = True
        raise


def main(argv: list[str] | None = None) -> None:
    asyncio.run(_main(argv))


if __name__ == "__main__":  # pragma: no cover - CLI entry
    main()
