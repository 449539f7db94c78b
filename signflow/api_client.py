"""
Signing Platform API Client

Thin wrapper around the platform's REST API. One method per endpoint;
handles authentication headers, timeouts, retries and error translation.

Read endpoints (mailbox listing, envelope status, archive download) are
idempotent and retried with exponential backoff. Write endpoints are
never retried: a repeated envelope submission creates a duplicate
envelope and notifies every signer twice.
"""

import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from .config import SigningConfig
from .exceptions import (
    AuthError,
    ConfigurationError,
    NotFound,
    SigningAPIError,
    TransientError,
    UnknownOutcomeError,
)
from .session import Session
from .types import FieldStrategy, QuickSendRecipient

logger = logging.getLogger(__name__)

# Status codes worth retrying on idempotent reads
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

# Raised by requests before anything is sent
PRE_SEND_ERRORS = (
    requests.exceptions.MissingSchema,
    requests.exceptions.InvalidSchema,
    requests.exceptions.InvalidURL,
    requests.exceptions.InvalidHeader,
)


class SigningAPIClient:
    """
    Client for signing platform API operations.

    Provides methods for:
        - Listing mailboxes
        - Uploading documents
        - Sending envelopes (template descriptors or quick-send)
        - Reading envelope status and listing recent envelopes
        - Downloading the signed archive
    """

    def __init__(
        self,
        session: Session,
        config: Optional[SigningConfig] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.session = session
        self.config = config or SigningConfig()
        self._sleep = sleep

    def _url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/{path.lstrip('/')}"

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    def list_mailboxes(self) -> List[Dict[str, Any]]:
        """
        List mailboxes owned by the authenticated identity.

        Returns:
            Mailbox dicts in the platform's order
        """
        result = self._read_json('mailboxes')
        if isinstance(result, dict):
            result = result.get('mailboxes', [])
        return list(result or [])

    def upload_document(
        self,
        mailbox_id: str,
        file_name: str,
        file_bytes: bytes,
        field_strategy: FieldStrategy
    ) -> Dict[str, Any]:
        """
        Upload a file to a mailbox.

        Uploads are content-addressed, so a failed upload can be redone
        without creating duplicates; timeouts surface as TransientError.

        Returns:
            Upload data with 'id' and 'hash'
        """
        response = self._write(
            'POST',
            f"mailboxes/{mailbox_id}/documents",
            context=f"upload {file_name}",
            files={'file': (file_name, file_bytes, 'application/pdf')},
            data={'field_strategy': field_strategy.value},
            timeout=self.config.upload_timeout,
        )
        return self._json(response, f"upload {file_name}")

    def send_template(
        self,
        mailbox_id: str,
        template_descriptor: str,
        envelope_descriptor: str,
        subject: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Create an envelope from serialized template and envelope descriptors.

        Creates the envelope and notifies signers in one call. Not idempotent.

        Raises:
            UnknownOutcomeError: If the transport failed after the request may have been sent
        """
        response = self._write(
            'POST',
            f"mailboxes/{mailbox_id}/envelopes",
            context="send envelope",
            json={
                'template': template_descriptor,
                'envelope': envelope_descriptor,
            },
            timeout=self.config.upload_timeout,
            submission=(mailbox_id, subject),
        )
        return self._json(response, "send envelope")

    def quick_send(
        self,
        mailbox_id: str,
        files: List[Tuple[str, bytes]],
        recipients: List[QuickSendRecipient],
        subject: Optional[str] = None,
        message: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Send raw files to a flat recipient list.

        The platform synthesizes one signature field per signer. Not idempotent.

        Args:
            mailbox_id: Sending mailbox
            files: (file name, bytes) pairs
            recipients: Flat recipient list
            subject: Optional email subject
            message: Optional email message
        """
        data = {'recipients': json.dumps([r.to_dict() for r in recipients])}
        if subject:
            data['subject'] = subject
        if message:
            data['message'] = message

        response = self._write(
            'POST',
            f"mailboxes/{mailbox_id}/quicksend",
            context="quick-send",
            files=[('files', (name, content, 'application/pdf')) for name, content in files],
            data=data,
            timeout=self.config.upload_timeout,
            submission=(mailbox_id, subject),
        )
        return self._json(response, "quick-send")

    def get_envelope(self, mailbox_id: str, envelope_id: str) -> Dict[str, Any]:
        """Get the status payload of an envelope."""
        return self._read_json(f"mailboxes/{mailbox_id}/envelopes/{envelope_id}")

    def list_envelopes(self, mailbox_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        """List the most recent envelopes of a mailbox, newest first."""
        result = self._read_json(
            f"mailboxes/{mailbox_id}/envelopes",
            params={'limit': limit, 'order': 'desc'}
        )
        if isinstance(result, dict):
            result = result.get('envelopes', [])
        return list(result or [])

    def download_archive(self, mailbox_id: str, envelope_id: str) -> bytes:
        """Download the archive of signed documents and audit artifacts."""
        response = self._read(f"mailboxes/{mailbox_id}/envelopes/{envelope_id}/archive")
        return response.content

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _read_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = self._read(path, params=params)
        return self._json(response, f"GET {path}")

    def _read(self, path: str, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        """
        Perform an idempotent GET with retry and exponential backoff.

        Raises:
            TransientError: If every attempt failed on network errors or
                retryable status codes
            ConfigurationError: If the request cannot be built (bad base URL)
        """
        url = self._url(path)
        attempts = max(1, int(self.config.max_retries))
        last_error = None

        for attempt in range(attempts):
            try:
                logger.debug(f"GET {url} (attempt {attempt + 1}/{attempts})")
                response = requests.request(
                    'GET',
                    url,
                    headers=self.session.auth_headers(),
                    params=params,
                    timeout=self.config.timeout
                )
            except PRE_SEND_ERRORS as e:
                raise ConfigurationError(f"GET {path} could not be sent: {e}")
            except requests.exceptions.RequestException as e:
                last_error = f"{type(e).__name__}: {e}"
            else:
                if response.status_code not in RETRYABLE_STATUS_CODES:
                    self._raise_for_status(response, f"GET {path}")
                    return response
                last_error = f"HTTP {response.status_code}"

            logger.warning(f"API request failed (attempt {attempt + 1}/{attempts}): {last_error}")
            if attempt < attempts - 1:
                self._sleep(self.config.retry_delay * (2 ** attempt))

        raise TransientError(f"GET {path} failed after {attempts} attempt(s): {last_error}")

    def _write(
        self,
        method: str,
        path: str,
        context: str,
        timeout: float,
        submission: Optional[Tuple[str, Optional[str]]] = None,
        **kwargs
    ) -> requests.Response:
        """
        Perform a single non-retried write.

        Args:
            submission: (mailbox id, subject) for envelope-creating calls;
                transport failures after the request may have gone out become
                UnknownOutcomeError instead of TransientError
        """
        url = self._url(path)
        logger.debug(f"{method} {url}")

        try:
            response = requests.request(
                method,
                url,
                headers=self.session.auth_headers(),
                timeout=timeout,
                **kwargs
            )
        except requests.exceptions.ConnectTimeout as e:
            # The connection was never established, so nothing was sent.
            raise TransientError(f"{context} failed before the request was sent: {e}")
        except PRE_SEND_ERRORS as e:
            raise ConfigurationError(f"{context} could not be sent: {e}")
        except requests.exceptions.RequestException as e:
            # Timeouts, dropped connections and truncated or undecodable
            # responses: the request may have been processed.
            if submission is None:
                raise TransientError(f"{context} failed: {e}")
            mailbox_id, subject = submission
            logger.error(f"Outcome of {context} is unknown: {e}")
            raise UnknownOutcomeError(
                f"{context} outcome unknown; check recent envelopes before retrying: {e}",
                mailbox_id=mailbox_id,
                subject=subject
            )

        if submission is not None and response.status_code == 504:
            mailbox_id, subject = submission
            logger.error(f"Outcome of {context} is unknown: gateway timeout")
            raise UnknownOutcomeError(
                f"{context} outcome unknown (HTTP 504); check recent envelopes before retrying",
                mailbox_id=mailbox_id,
                subject=subject
            )

        self._raise_for_status(response, context)
        return response

    @staticmethod
    def _raise_for_status(response: requests.Response, context: str) -> None:
        """Translate HTTP error responses into client exceptions."""
        status_code = response.status_code
        if status_code < 400:
            return

        error_body = response.text or None

        if status_code in (401, 403):
            logger.error(f"{context} rejected credential: HTTP {status_code}")
            raise AuthError(f"{context} was not authorized (HTTP {status_code})")

        if status_code == 404:
            raise NotFound(f"{context}: not found")

        logger.error(f"{context} failed: HTTP {status_code}")
        if error_body:
            logger.error(f"Response body: {error_body}")

        raise SigningAPIError(
            f"{context} failed with HTTP {status_code}",
            status_code=status_code,
            response_body=error_body
        )

    @staticmethod
    def _json(response: requests.Response, context: str) -> Any:
        try:
            return response.json()
        except ValueError:
            raise SigningAPIError(
                f"{context} returned a non-JSON body",
                status_code=response.status_code,
                response_body=response.text
            )
