"""
Command line entry point for the IDSE sign-in tooling.
Converts CER+KEY pairs into containers, validates and signs with containers,
signs in to the portal and hosts containers for remote consumers.
"""

import argparse
import getpass
import logging
import os
import signal
import sys
import threading
import uuid
from pathlib import Path
from typing import Optional

from .app import ContainerHostApp
from .exceptions import IdseSignerError
from .models.config import Config
from .models.credentials import to_portal_text
from .security.container import ContainerReader, inspect_container_bags
from .security.converter import CredentialConverter
from .security.signing import SignedMessageBuilder, verify_signed_message
from .services.config_service import ConfigService, ENV_PASSWORD
from .services.container_store import ContainerStore
from .services.logging_service import LoggingService
from .services.material_sources import source_from_location
from .services.portal_client import PortalClient


class IdseSignerApplication:
    """Wires configuration, logging and services for one CLI invocation."""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or self._get_default_config_path()
        self.logger = logging.getLogger(__name__)
        self.config_service = ConfigService()
        self.config: Optional[Config] = None
        self.logging_service: Optional[LoggingService] = None
        self.store: Optional[ContainerStore] = None
        self.host_app: Optional[ContainerHostApp] = None
        self._shutdown_event = threading.Event()

    def _get_default_config_path(self) -> str:
        """Get the default configuration file path."""
        possible_paths = [
            "config/idse_signer.properties",
            "idse_signer.properties",
            os.path.expanduser("~/.idse_signer/config.properties"),
        ]

        for path in possible_paths:
            if os.path.exists(path):
                return path

        return possible_paths[0]

    def initialize(self, console_logging: bool = True) -> None:
        """
        Load configuration and set up logging.

        A missing configuration file falls back to defaults; an invalid one
        raises ValueError.
        """
        if os.path.exists(self.config_path):
            self.config = self.config_service.load_config(self.config_path)
        else:
            self.config = Config()

        self.logging_service = LoggingService(self.config, console=console_logging)
        self.store = ContainerStore(self.config.host_base_url)
        self.logger.info(f"Configuration loaded from {self.config_path if os.path.exists(self.config_path) else 'defaults'}")

    def convert(self, cert_location: str, key_location: str, password: str,
                output: str, cipher: Optional[str] = None) -> bytes:
        converter = CredentialConverter()
        timeout = self.config.material_timeout_seconds
        with self.logging_service.measure_performance('convert'):
            container = converter.convert_sources(
                source_from_location(cert_location, timeout=timeout),
                source_from_location(key_location, timeout=timeout),
                password,
                cipher or self.config.container_cipher,
            )
        Path(output).write_bytes(container)
        self.logger.info(f"Container written to {output} ({len(container)} bytes)")
        return container

    def validate(self, container_location: str, password: str) -> Optional[bytes]:
        """Return the container bytes when they open with the password, else None."""
        data = source_from_location(container_location, timeout=self.config.material_timeout_seconds).read()
        if not ContainerReader().validate(data, password):
            return None
        return data

    def sign(self, container_location: str, password: str, payload: bytes) -> str:
        data = source_from_location(container_location, timeout=self.config.material_timeout_seconds).read()
        with self.logging_service.measure_performance('sign'):
            message = SignedMessageBuilder().sign(data, password, payload)
        if not verify_signed_message(message):
            self.logger.warning("Generated signature did not verify")
        return message.pem

    def login(self) -> PortalClient:
        credentials = self.config_service.load_credentials_from_env(store=self.store)
        client = PortalClient(
            credentials,
            config=self.config,
            performance_monitor=self.logging_service.performance_monitor,
        )
        client.ensure_authenticated()
        return client

    def serve(self, containers) -> None:
        """Host the given containers until interrupted."""
        for location in containers:
            data = source_from_location(location, timeout=self.config.material_timeout_seconds).read()
            container_id = uuid.uuid4().hex
            url = self.store.put(container_id, data)
            print(f"{location} -> {url}")

        self.host_app = ContainerHostApp(self.store, self.config)
        self._setup_signal_handlers()
        self.host_app.start()
        self._shutdown_event.wait()
        self.shutdown()

    def _setup_signal_handlers(self):
        def signal_handler(signum, frame):
            self.logger.info(f"Received {signal.Signals(signum).name} signal, shutting down...")
            self._shutdown_event.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def shutdown(self):
        if self.host_app:
            self.host_app.shutdown()
        if self.store:
            self.store.clear()
        self.logger.info("Shutdown completed")


def _resolve_password(args) -> str:
    password = args.password or os.environ.get(ENV_PASSWORD)
    if not password:
        password = getpass.getpass("Password: ")
    return password


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='idse-signer', description='IDSE certificate and sign-in tooling')
    parser.add_argument('--config', '-c', help='Configuration file path')
    parser.add_argument('--quiet', '-q', action='store_true', help='Do not log to the console')
    subparsers = parser.add_subparsers(dest='command', required=True)

    convert = subparsers.add_parser('convert', help='Build a container from a certificate and a private key')
    convert.add_argument('--cert', required=True, help='Certificate path or URL (PEM or DER)')
    convert.add_argument('--key', required=True, help='Private key path or URL')
    convert.add_argument('--password', '-p', help='Key password, reused for the container')
    convert.add_argument('--cipher', choices=['tripleDES', 'aes256'], help='Container cipher')
    convert.add_argument('--output', '-o', required=True, help='Where to write the container')

    validate = subparsers.add_parser('validate', help='Check a container opens with a password')
    validate.add_argument('container', help='Container path or URL')
    validate.add_argument('--password', '-p', help='Container password')

    sign = subparsers.add_parser('sign', help='Sign a payload with a container')
    sign.add_argument('container', help='Container path or URL')
    sign.add_argument('--password', '-p', help='Container password')
    payload = sign.add_mutually_exclusive_group(required=True)
    payload.add_argument('--text', help='Payload text')
    payload.add_argument('--file', help='Payload file')
    sign.add_argument('--portal', action='store_true', help='Print the single-line portal form')

    subparsers.add_parser('login', help='Sign in with IDSE_USER, IDSE_PASSWORD and IDSE_PFX_URL')

    serve = subparsers.add_parser('serve', help='Host containers at ephemeral URLs')
    serve.add_argument('containers', nargs='*', help='Container paths or URLs to host')

    subparsers.add_parser('init-config', help='Write a default configuration file')

    return parser


def main(argv=None) -> int:
    """Main entry point for the command line."""
    parser = build_parser()
    args = parser.parse_args(argv)

    app = IdseSignerApplication(config_path=args.config)

    if args.command == 'init-config':
        app.config_service.create_default_config_file(app.config_path)
        print(f"Default configuration written to {app.config_path}")
        return 0

    try:
        app.initialize(console_logging=not args.quiet)
    except (ValueError, OSError) as e:
        print(f"Failed to initialize: {e}", file=sys.stderr)
        return 1

    try:
        if args.command == 'convert':
            app.convert(args.cert, args.key, _resolve_password(args), args.output, args.cipher)
            print(f"Container written to {args.output}")
        elif args.command == 'validate':
            password = _resolve_password(args)
            data = app.validate(args.container, password)
            if data is None:
                print("Container is NOT valid for this password")
                return 1
            key_bags, cert_bags = inspect_container_bags(data, password)
            print(f"Container is valid ({key_bags} key bag(s), {cert_bags} certificate bag(s))")
        elif args.command == 'sign':
            payload_bytes = Path(args.file).read_bytes() if args.file else args.text.encode('utf-8')
            pem = app.sign(args.container, _resolve_password(args), payload_bytes)
            if args.portal:
                pem = to_portal_text(pem)
            print(pem)
        elif args.command == 'login':
            client = app.login()
            print(f"Signed in, session token {client.token}")
            client.close()
        elif args.command == 'serve':
            app.serve(args.containers)
    except IdseSignerError as e:
        print(f"{type(e).__name__}: {e}", file=sys.stderr)
        return 2
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
