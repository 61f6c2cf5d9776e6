"""
Authorization-code flows that turn user consent into a refresh token.

Two modes:
- browser: local loopback listener receives the redirect
- manual: user opens the URL anywhere and pastes the code back

Each call runs one complete, independent exchange. A failed exchange is not
retried; the caller starts over.
"""

import logging
import secrets
import webbrowser
from typing import Callable

import click

from .callback_server import CallbackServer
from .errors import AuthorizationError, InputError
from .oauth import OOB_REDIRECT_URI, OAuthClient, PKCEPair, TokenInfo

logger = logging.getLogger(__name__)


def _prompt_for_code() -> str:
    return click.prompt("Paste the authorization code", type=str)


def _open_browser(url: str) -> bool:
    try:
        return webbrowser.open(url)
    except webbrowser.Error:
        return False


def _show(message: str) -> None:
    click.echo(message, err=True)


class AuthorizationFlow:
    """Runs the OAuth2 authorization-code grant against Google."""

    def __init__(
        self,
        client: OAuthClient,
        callback_timeout: int = 300,
        open_browser: Callable[[str], bool] = _open_browser,
        prompt: Callable[[], str] = _prompt_for_code,
        show: Callable[[str], None] = _show,
    ):
        """
        Initialize the flow.

        Args:
            client: Token endpoint client
            callback_timeout: Seconds the browser flow waits for the redirect
            open_browser: Opens a URL, returns False if no browser was available
            prompt: Reads the pasted authorization code in manual mode
            show: Prints a URL or instruction for the user
        """
        self.client = client
        self.callback_timeout = callback_timeout
        self.open_browser = open_browser
        self.prompt = prompt
        self.show = show

    def authorize(self, manual: bool = False) -> TokenInfo:
        """
        Run the selected flow.

        Returns:
            TokenInfo; `refresh_token` is always set

        Raises:
            AuthorizationError: On consent denial, rejected exchange or timeout
            InputError: If an empty code is pasted in manual mode
        """
        if manual:
            return self.authorize_manual()
        return self.authorize_browser()

    def authorize_browser(self) -> TokenInfo:
        """Authorize via the default browser and a loopback listener."""
        pkce = PKCEPair()
        state = secrets.token_urlsafe(24)

        with CallbackServer(
            timeout=self.callback_timeout, expected_state=state
        ) as server:
            redirect_uri = server.redirect_uri
            url = self.client.config.get_authorization_url(
                redirect_uri, state=state, code_challenge=pkce.challenge
            )

            self.show("Opening browser for Google sign-in...")
            if not self.open_browser(url):
                self.show("Could not open a browser. Visit this URL to continue:")
                self.show(url)

            result = server.wait_for_callback()

        if result.error or not result.code:
            raise AuthorizationError(result.error or "invalid_request", result.error_description)

        logger.debug("Received authorization code via %s", redirect_uri)
        return self.client.exchange_code(result.code, redirect_uri, pkce.verifier)

    def authorize_manual(self) -> TokenInfo:
        """Authorize by printing the URL and reading the pasted code."""
        pkce = PKCEPair()
        url = self.client.config.get_authorization_url(
            OOB_REDIRECT_URI, code_challenge=pkce.challenge
        )

        self.show("Open this URL in a browser and approve access:")
        self.show(url)
        code = (self.prompt() or "").strip()
        if not code:
            raise InputError("No authorization code entered")

        return self.client.exchange_code(code, OOB_REDIRECT_URI, pkce.verifier)