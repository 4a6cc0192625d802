#!/usr/bin/env python3
"""
Registrar entry point.

``--mode cli`` hands every remaining argument to the registrar CLI.
``--mode api`` serves the REST API over either the configured database or
the CSV files in ``--data-dir``.
"""
import argparse
import logging
import os

from registrar.cli import main as cli_main
from registrar.cli import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Enrollment Registrar',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument('--mode', choices=['cli', 'api'], default='cli',
                        help='Run a registrar command or serve the REST API')

    server = parser.add_argument_group('api mode')
    server.add_argument('--host', default=os.environ.get('REGISTRAR_HOST', '127.0.0.1'),
                        help='Interface the API server binds to')
    server.add_argument('--port', type=int, default=int(os.environ.get('REGISTRAR_PORT', 5000)),
                        help='Port the API server listens on')
    server.add_argument('--data-dir', default=None,
                        help='Serve the CSV files in this directory instead of the configured store')
    server.add_argument('--debug', action='store_true',
                        help='Run Flask with the reloader and debugger')
    return parser


def serve(args) -> None:
    from registrar.api import create_app
    from registrar.service import create_service

    setup_logging('DEBUG' if args.debug else 'INFO')
    app = create_app(create_service(args.data_dir))

    logger.info(f"Registrar API listening on {args.host}:{args.port}")
    app.run(host=args.host, port=args.port, debug=args.debug)


def main(argv=None):
    args, remaining = build_parser().parse_known_args(argv)

    if args.mode == 'api':
        serve(args)
    else:
        cli_main(remaining)


if __name__ == '__main__':
    main()
