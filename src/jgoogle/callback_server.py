"""
OAuth callback listener for the interactive browser flow.

Runs a small Flask app on a loopback port chosen by the OS. The listener
accepts exactly one terminal callback (a code or an error); later callbacks
are answered with 410 Gone. Use it as a context manager so the socket is
released on every exit path.
"""

import html
import logging
import threading
from dataclasses import dataclass
from queue import Empty, Queue
from typing import Optional

from flask import Flask, request
from werkzeug.serving import BaseWSGIServer, make_server

from .errors import AuthorizationError

logger = logging.getLogger(__name__)

LOOPBACK_HOST = "127.0.0.1"
CALLBACK_PATH = "/oauth2callback"

SUCCESS_PAGE = """
<h1>Authorization Successful!</h1>
<p>jgoogle received the authorization code. You can close this window and return to the terminal.</p>
<script>setTimeout(function() { window.close(); }, 1000);</script>
"""


@dataclass
class CallbackResult:
    """Outcome of the provider redirect."""

    code: Optional[str] = None
    error: Optional[str] = None
    error_description: Optional[str] = None


class CallbackServer:
    """
    Single-shot OAuth callback server.

    Runs the Flask app in a background thread and hands the first callback
    to `wait_for_callback`.
    """

    def __init__(
        self,
        port: int = 0,
        callback_path: str = CALLBACK_PATH,
        timeout: int = 300,
        expected_state: Optional[str] = None,
        host: str = LOOPBACK_HOST,
    ):
        """
        Initialize callback server.

        Args:
            port: Port to listen on (default: 0, any free port)
            callback_path: URL path for callback
            timeout: Seconds to wait for callback (default: 300)
            expected_state: State value the callback must echo back
            host: Interface to bind (default: loopback)
        """
        self.host = host
        self.port = port
        self.callback_path = callback_path
        self.timeout = timeout
        self.expected_state = expected_state

        self.app = Flask(__name__)
        self.server: Optional[BaseWSGIServer] = None
        self.server_thread: Optional[threading.Thread] = None
        self.result_queue: "Queue[CallbackResult]" = Queue()
        self._handled = threading.Event()

        self._setup_routes()

    def _setup_routes(self) -> None:
        """Setup Flask routes for callback handling."""

        @self.app.route(self.callback_path)
        def callback():
            """Handle OAuth callback"""
            if self._handled.is_set():
                return "<h1>Authorization already handled</h1>", 410

            code = request.args.get("code")
            error = request.args.get("error")
            error_description = request.args.get("error_description")

            if code and not error:
                if self.expected_state and request.args.get("state") != self.expected_state:
                    error = "state_mismatch"
                    error_description = "State parameter did not match this login attempt"
                else:
                    self._finish(CallbackResult(code=code))
                    return SUCCESS_PAGE

            error = error or "invalid_request"
            error_description = error_description or "No authorization code in callback"
            self._finish(CallbackResult(error=error, error_description=error_description))

            # Escape HTML to prevent XSS attacks
            return (
                f"""
                <h1>Authorization Failed</h1>
                <p>Error: {html.escape(error)}</p>
                <p>Description: {html.escape(error_description)}</p>
                <p>You can close this window and return to the terminal.</p>
                """,
                400,
            )

    def _finish(self, result: CallbackResult) -> None:
        self._handled.set()
        self.result_queue.put(result)

    def start(self) -> None:
        """Start the callback server in a background thread."""
        if self.server_thread and self.server_thread.is_alive():
            return  # Already running

        # Request lines from the dev server would interleave with CLI output
        logging.getLogger("werkzeug").setLevel(logging.WARNING)

        self.server = make_server(self.host, self.port, self.app)
        self.port = self.server.server_port
        self.server_thread = threading.Thread(
            target=self.server.serve_forever, daemon=True
        )
        self.server_thread.start()
        logger.debug("Callback server listening on %s", self.redirect_uri)

    def stop(self) -> None:
        """Stop the callback server and wait for cleanup."""
        if self.server:
            self.server.shutdown()
            self.server.server_close()

        if self.server_thread:
            self.server_thread.join(timeout=5)
            if self.server_thread.is_alive():
                logger.warning("Callback server thread did not stop within timeout")

        self.server = None
        self.server_thread = None

    def wait_for_callback(self, timeout: Optional[float] = None) -> CallbackResult:
        """
        Block until the provider redirects back to the listener.

        Args:
            timeout: Seconds to wait (default: use instance timeout)

        Returns:
            CallbackResult with either a code or an error

        Raises:
            AuthorizationError: If nothing arrives before the timeout
        """
        timeout = timeout if timeout is not None else self.timeout

        try:
            return self.result_queue.get(timeout=timeout)
        except Empty:
            # Anything arriving after this point is rejected
            self._handled.set()
            raise AuthorizationError(
                "timeout", f"No authorization callback received within {timeout} seconds"
            ) from None

    @property
    def redirect_uri(self) -> str:
        """Redirect URI for the authorization request, e.g. http://127.0.0.1:53682/oauth2callback"""
        return f"http://{self.host}:{self.port}{self.callback_path}"

    def __enter__(self) -> "CallbackServer":
        """Context manager entry - start server."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - stop server."""
        self.stop()
