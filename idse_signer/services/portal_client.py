"""
Client for protected portal operations.
"""
import logging
from typing import Dict, Optional

import requests

from ..exceptions import NetworkError
from ..models.config import Config
from ..models.credentials import LoginCredentials, SessionToken
from ..security.signing import SignedMessageBuilder
from .authentication_session import AuthenticationSession


class PortalClient:
    """
    Owns the re-login policy for one set of credentials.

    Every protected operation first makes sure a live session exists; when
    the current one is missing or failed, a fresh AuthenticationSession runs
    the handshake again.
    """

    def __init__(self,
                 credentials: LoginCredentials,
                 config: Optional[Config] = None,
                 signer: Optional[SignedMessageBuilder] = None,
                 session_factory=None,
                 performance_monitor=None):
        self.credentials = credentials
        self.config = config or Config()
        self.signer = signer or SignedMessageBuilder()
        self.session_factory = session_factory or self._new_session
        self.performance_monitor = performance_monitor
        self.session: Optional[AuthenticationSession] = None
        self.logger = logging.getLogger(__name__)

    def _new_session(self) -> AuthenticationSession:
        return AuthenticationSession(
            self.credentials,
            config=self.config,
            signer=self.signer,
            performance_monitor=self.performance_monitor,
        )

    @property
    def token(self) -> Optional[SessionToken]:
        if self.session is not None and self.session.is_authenticated():
            return self.session.token
        return None

    def ensure_authenticated(self) -> SessionToken:
        """Return the current token, signing in on a fresh session if needed."""
        if self.token is not None:
            return self.token

        self.logger.info("No live portal session, signing in")
        self.session = self.session_factory()
        return self.session.login()

    def post(self, path: str, data: Dict[str, str], referer: Optional[str] = None) -> str:
        """
        POST a form to a protected page and return the response text.

        Raises:
            NetworkError: On transport failure or an error status
        """
        token = self.ensure_authenticated()
        url = f"{self.config.portal_base_url.rstrip('/')}/{path.lstrip('/')}"
        headers = dict(self.session.login_headers)
        headers['Cookie'] = token.cookie_header()
        if referer:
            headers['Referer'] = referer

        self.logger.info(f"POST {url}")
        try:
            response = self.session.http_session.post(
                url,
                data=data,
                headers=headers,
                timeout=self.config.request_timeout_seconds,
            )
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            raise NetworkError(f"Request to {path} timed out") from e
        except requests.exceptions.HTTPError as e:
            raise NetworkError(f"Request to {path} failed: HTTP {e.response.status_code}") from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Request to {path} failed: {e}") from e

        return response.text

    def close(self) -> None:
        if self.session is not None:
            self.session.http_session.close()
            self.session = None
