"""
Challenge/response sign-in against the IDSE portal.
"""
import logging
from contextlib import nullcontext
from enum import Enum
from typing import Dict, Optional
from urllib.parse import urlparse

import requests
from requests.adapters import HTTPAdapter

from ..exceptions import (
    AuthenticationRejectedError,
    CredentialError,
    IdseSignerError,
    NetworkError,
    SigningError,
)
from ..models.config import Config
from ..models.credentials import LoginCredentials, SessionToken, SignedMessage
from ..security.signing import SignedMessageBuilder

# The portal checks these two names but never reads the file contents.
CONTAINER_FIELD_VALUE = "CERT.pfx"


class SessionState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    CHALLENGE_FETCHED = "challenge-fetched"
    SIGNED = "signed"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


class AuthenticationSession:
    """
    One sign-in attempt for one set of credentials.

    The handshake runs challenge, sign and submit in order. Any failure moves
    the session to FAILED, which is terminal; a new attempt needs a new
    session.
    """

    def __init__(self,
                 credentials: LoginCredentials,
                 config: Optional[Config] = None,
                 signer: Optional[SignedMessageBuilder] = None,
                 http_session: Optional[requests.Session] = None,
                 performance_monitor=None):
        """
        Initialize the session.

        Args:
            credentials: Portal user, password and container source
            config: Portal endpoints and timeouts, defaults when omitted
            signer: Builder used to sign the challenge
            http_session: Pre-configured requests session, one without retries is created otherwise
            performance_monitor: Optional PerformanceMonitor timing each step
        """
        self.credentials = credentials
        self.config = config or Config()
        self.signer = signer or SignedMessageBuilder()
        self.http_session = http_session or self._create_session()
        self.performance_monitor = performance_monitor
        self.logger = logging.getLogger(__name__)

        self.state = SessionState.UNAUTHENTICATED
        self.error: Optional[IdseSignerError] = None
        self.token: Optional[SessionToken] = None
        self.challenge: Optional[bytes] = None
        self.signed_message: Optional[SignedMessage] = None
        self._cancelled = False

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        adapter = HTTPAdapter(max_retries=0)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    @property
    def _origin(self) -> str:
        parsed = urlparse(self.config.portal_base_url)
        return f"{parsed.scheme}://{parsed.netloc}"

    @property
    def challenge_headers(self) -> Dict[str, str]:
        return {
            'Content-Type': 'application/x-www-form-urlencoded; charset=UTF-8',
            'Accept': '*/*',
            'Accept-Language': 'es-MX,es-419;q=0.9,es;q=0.8',
            'Origin': self._origin,
            'Referer': self.config.location,
            'User-Agent': self.config.user_agent,
            'Sec-Fetch-Site': 'same-origin',
            'Sec-Fetch-Mode': 'cors',
            'Sec-Fetch-Dest': 'empty',
        }

    @property
    def login_headers(self) -> Dict[str, str]:
        return {
            'Content-Type': 'application/x-www-form-urlencoded',
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
            'Accept-Language': 'en-US,en;q=0.9',
            'Origin': self._origin,
            'Referer': self.config.location,
            'User-Agent': self.config.user_agent,
            'Sec-Fetch-Site': 'same-origin',
            'Sec-Fetch-Mode': 'navigate',
            'Sec-Fetch-Dest': 'document',
        }

    def login(self) -> SessionToken:
        """
        Run the full handshake.

        Returns:
            The session token granted by the portal

        Raises:
            RuntimeError: If this session already ran a handshake
            NetworkError: Transport failure, error status, empty challenge or cancellation
            CredentialError: The container or key could not sign the challenge
            AuthenticationRejectedError: The portal answered without a session cookie
        """
        if self.state != SessionState.UNAUTHENTICATED:
            raise RuntimeError(f"Session is not fresh (state: {self.state.value})")

        self.logger.info(f"Starting sign-in for user {self.credentials.username}")
        self.fetch_challenge()
        self.sign_challenge()
        token = self.submit()
        self.logger.info(f"Sign-in succeeded for user {self.credentials.username}")
        return token

    def fetch_challenge(self) -> bytes:
        """POST the site id and location; the response body is the challenge."""
        self._require_state(SessionState.UNAUTHENTICATED)
        with self._measure('challenge'):
            try:
                self._check_cancelled()
                response = self.http_session.post(
                    self.config.challenge_url,
                    data={'siteId': self.config.site_id, 'location': self.config.location},
                    headers=self.challenge_headers,
                    timeout=self.config.request_timeout_seconds,
                )
                if not response.ok:
                    raise NetworkError(f"Challenge request failed: HTTP {response.status_code}")
                if not response.content.strip():
                    raise NetworkError("Challenge response was empty or blank")
            except requests.exceptions.Timeout as e:
                self._fail(NetworkError("Challenge request timed out"), e)
            except requests.exceptions.RequestException as e:
                self._fail(NetworkError(f"Challenge request failed: {e}"), e)
            except NetworkError as e:
                self._fail(e)

        self.challenge = response.content
        self.state = SessionState.CHALLENGE_FETCHED
        self.logger.debug(f"Challenge received ({len(self.challenge)} bytes)")
        return self.challenge

    def sign_challenge(self) -> SignedMessage:
        """Read the container and sign the exact challenge bytes."""
        self._require_state(SessionState.CHALLENGE_FETCHED)
        with self._measure('sign'):
            try:
                self._check_cancelled()
                source = self.credentials.container_source
                self.logger.debug(f"Reading container from {source.describe()}")
                container = source.read()
            except NetworkError as e:
                self._fail(e)
            except OSError as e:
                self._fail(NetworkError(f"Could not read container: {e}"), e)
            except Exception as e:
                self._fail(SigningError(f"Could not read container: {e}"), e)

            try:
                message = self.signer.sign(container, self.credentials.password, self.challenge)
            except (CredentialError, SigningError) as e:
                self._fail(e)
            except (ValueError, TypeError) as e:
                self._fail(CredentialError(CredentialError.CORRUPT_CONTAINER), e)
            except Exception as e:
                self._fail(SigningError(f"Unexpected error while signing: {e}"), e)

        self.signed_message = message
        self.state = SessionState.SIGNED
        return message

    def submit(self) -> SessionToken:
        """POST the login form; a Set-Cookie header on the answer is the session."""
        self._require_state(SessionState.SIGNED)
        form = {
            'siteId': self.config.site_id,
            'pkcs7': self.signed_message.to_portal_text(),
            'certificado': CONTAINER_FIELD_VALUE,
            'llave': CONTAINER_FIELD_VALUE,
            'idUsuario': self.credentials.username,
            'password': self.credentials.password,
        }
        with self._measure('submit'):
            try:
                self._check_cancelled()
                response = self.http_session.post(
                    self.config.login_url,
                    data=form,
                    headers=self.login_headers,
                    timeout=self.config.request_timeout_seconds,
                    allow_redirects=False,
                )
            except requests.exceptions.Timeout as e:
                self._fail(NetworkError("Login request timed out"), e)
            except requests.exceptions.RequestException as e:
                self._fail(NetworkError(f"Login request failed: {e}"), e)
            except NetworkError as e:
                self._fail(e)

            if response.status_code >= 400:
                self._fail(NetworkError(f"Login request failed: HTTP {response.status_code}"))

            cookie = response.headers.get('Set-Cookie')
            if not cookie:
                self._fail(AuthenticationRejectedError(
                    "Login answered without a session cookie; credentials were likely rejected"
                ))

        self.token = SessionToken(cookie)
        self.state = SessionState.AUTHENTICATED
        return self.token

    def is_authenticated(self) -> bool:
        return self.token is not None and self.state == SessionState.AUTHENTICATED

    def cancel(self) -> None:
        """Close the HTTP session; the next step fails with NetworkError."""
        self._cancelled = True
        self.http_session.close()
        self.logger.info("Sign-in session cancelled")

    def _check_cancelled(self):
        if self._cancelled:
            raise NetworkError("Session was cancelled")

    def _require_state(self, expected: SessionState):
        if self.state != expected:
            raise RuntimeError(
                f"Expected session state {expected.value}, found {self.state.value}"
            )

    def _fail(self, error: IdseSignerError, cause: Optional[BaseException] = None):
        self.state = SessionState.FAILED
        self.error = error
        self.logger.error(f"Sign-in failed for user {self.credentials.username}: {error}")
        if cause is not None:
            raise error from cause
        raise error

    def _measure(self, step: str):
        if self.performance_monitor is None:
            return nullcontext()
        return self.performance_monitor.measure_operation(f"login.{step}")
