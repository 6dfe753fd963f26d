"""
Flask application hosting stored containers at ephemeral URLs.
"""
from flask import Flask, Response
import logging
import threading
from typing import Optional

from werkzeug.serving import make_server

from .models.config import Config
from .services.container_store import ContainerStore


class ContainerHostApp:
    """Serves ``GET /pfx/<id>`` from a ContainerStore."""

    def __init__(self, store: ContainerStore, config: Optional[Config] = None):
        """Initialize the container host application."""
        self.app = Flask(__name__)
        self.store = store
        self.config = config or Config()
        self.logger = logging.getLogger(__name__)
        self._server = None
        self._thread: Optional[threading.Thread] = None

        self._setup_routes()
        self._setup_error_handlers()
        self._setup_headers()

    def _setup_routes(self):
        """Set up container and health routes."""

        @self.app.route('/', methods=['GET'])
        def health():
            """Plain-text health check with the number of stored containers."""
            return Response(
                f"Container host running\nActive files: {len(self.store)}",
                mimetype='text/plain'
            )

        @self.app.route('/pfx/<container_id>', methods=['GET'])
        def get_container(container_id):
            try:
                data = self.store.get(container_id)
            except KeyError:
                self.logger.warning(f"Requested unknown container {container_id}")
                return Response('Container not found', status=404, mimetype='text/plain')

            self.logger.info(f"Serving container {container_id} ({len(data)} bytes)")
            return Response(data, mimetype='application/x-pkcs12')

    def _setup_error_handlers(self):
        """Set up error handlers."""

        @self.app.errorhandler(404)
        def not_found(error):
            return Response('Not found', status=404, mimetype='text/plain')

        @self.app.errorhandler(405)
        def method_not_allowed(error):
            return Response('Method not allowed', status=405, mimetype='text/plain')

    def _setup_headers(self):

        @self.app.after_request
        def add_headers(response):
            response.headers['Cache-Control'] = 'no-store'
            response.headers['X-Content-Type-Options'] = 'nosniff'
            if response.mimetype == 'application/x-pkcs12':
                response.headers['Access-Control-Allow-Origin'] = '*'
            response.headers.pop('Server', None)
            return response

    def run(self, host: Optional[str] = None, port: Optional[int] = None, debug: bool = False):
        """Run the host in the foreground."""
        host = host or self.config.host_address
        port = port or self.config.host_port
        self.logger.info(f"Starting container host on http://{host}:{port}")
        self.app.run(host=host, port=port, debug=debug)

    def start(self, host: Optional[str] = None, port: Optional[int] = None) -> str:
        """
        Serve in a background thread.

        Returns:
            Base URL the host listens on
        """
        if self._server is not None:
            raise RuntimeError("Container host already started")

        host = host or self.config.host_address
        port = self.config.host_port if port is None else port
        self._server = make_server(host, port, self.app, threaded=True)
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()

        base_url = f"http://{host}:{self._server.server_port}"
        self.logger.info(f"Container host listening on {base_url}")
        return base_url

    def shutdown(self):
        """Stop the background server if it is running."""
        if self._server is None:
            return
        self._server.shutdown()
        self._thread.join(timeout=5)
        self._server = None
        self._thread = None
        self.logger.info("Container host stopped")

    def get_app(self) -> Flask:
        """Get the Flask application instance."""
        return self.app
