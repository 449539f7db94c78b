"""
Status Poller / Completion Check

Reads envelope status, waits for a terminal status with backoff, and
downloads the signed archive once an envelope is completed.

Declined, voided and expired envelopes are returned as statuses, not
raised: they are definitive answers from the platform. A deadline that
passes while the envelope is still pending raises PollTimeout instead.
"""

import logging
import threading
import time
from typing import Callable, Dict, Optional

from .api_client import SigningAPIClient
from .config import SigningConfig
from .exceptions import (
    ConfigurationError,
    PollTimeout,
    PreconditionError,
    SigningAPIError,
    TransientError,
)
from .types import EnvelopeState, EnvelopeStatus, Mailbox

logger = logging.getLogger(__name__)


class StatusPoller:
    """
    Observes envelope state.

    Keeps the last observed state per envelope so that a terminal status
    never reverts and so fetch_signed_result() can check completion
    without a network call. Safe to share between threads polling
    different envelopes.
    """

    def __init__(
        self,
        api: SigningAPIClient,
        config: Optional[SigningConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.api = api
        self.config = config or api.config
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._observed: Dict[str, EnvelopeState] = {}

    def get_state(self, envelope_id: str, mailbox: Mailbox) -> EnvelopeState:
        """
        Fetch the full status payload of an envelope.

        If a terminal status was observed earlier, it is kept even if the
        platform now reports something else.
        """
        data = self.api.get_envelope(mailbox.mailbox_id, envelope_id)
        state = EnvelopeState.from_dict(envelope_id, data)
        return self._record(envelope_id, state)

    def get_status(self, envelope_id: str, mailbox: Mailbox) -> EnvelopeStatus:
        """Get the current status of an envelope."""
        return self.get_state(envelope_id, mailbox).status

    def last_observed(self, envelope_id: str) -> Optional[EnvelopeStatus]:
        """The most recent status seen for an envelope, without calling the platform."""
        with self._lock:
            state = self._observed.get(envelope_id)
        return state.status if state else None

    def forget(self, envelope_id: str) -> None:
        """Drop the recorded state of an envelope that is no longer tracked."""
        with self._lock:
            self._observed.pop(envelope_id, None)

    def fetch_signed_result(self, envelope_id: str, mailbox: Mailbox) -> bytes:
        """
        Download the signed archive of a completed envelope.

        Only valid once get_status() has observed `completed`.

        Returns:
            Archive bytes (signed documents plus audit artifacts)

        Raises:
            PreconditionError: If completion has not been observed; no request is made
            SigningAPIError: If the platform returns an empty archive
        """
        status = self.last_observed(envelope_id)
        if status is not EnvelopeStatus.COMPLETED:
            observed = status.value if status else 'not yet polled'
            raise PreconditionError(
                f"Envelope {envelope_id} is not completed (status: {observed})"
            )

        archive = self.api.download_archive(mailbox.mailbox_id, envelope_id)
        if not archive:
            raise SigningAPIError(f"Archive for envelope {envelope_id} is empty")

        logger.info(f"Downloaded archive for envelope {envelope_id} ({len(archive)} bytes)")
        return archive

    def wait_for_terminal(
        self,
        envelope_id: str,
        mailbox: Mailbox,
        timeout: float,
        interval: Optional[float] = None,
        backoff: Optional[float] = None,
        max_interval: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> Optional[EnvelopeStatus]:
        """
        Poll until the envelope reaches a terminal status.

        Args:
            envelope_id: Envelope to watch
            mailbox: Mailbox the envelope belongs to
            timeout: Seconds before giving up
            interval: First delay between polls (config default)
            backoff: Delay multiplier per poll (config default)
            max_interval: Upper bound for the delay (config default)
            cancel_event: Set it to stop polling; the envelope itself is untouched

        Returns:
            The terminal status, or the last observed status if cancelled

        Raises:
            PollTimeout: If the deadline passes first
            ConfigurationError: If interval or backoff would poll without pausing
        """
        delay = self.config.poll_interval if interval is None else interval
        backoff = self.config.poll_backoff if backoff is None else backoff
        max_interval = self.config.poll_max_interval if max_interval is None else max_interval
        if delay <= 0 or backoff < 1:
            raise ConfigurationError(
                f"Polling needs interval > 0 and backoff >= 1 (got {delay}, {backoff})"
            )
        deadline = self._clock() + timeout

        while True:
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Stopped polling envelope {envelope_id}")
                return self.last_observed(envelope_id)

            try:
                status = self.get_status(envelope_id, mailbox)
            except TransientError as e:
                logger.warning(f"Status check for envelope {envelope_id} failed: {e}")
            else:
                if status.is_terminal:
                    return status

            remaining = deadline - self._clock()
            if remaining <= 0:
                last_status = self.last_observed(envelope_id)
                raise PollTimeout(
                    f"Envelope {envelope_id} not finished after {timeout}s "
                    f"(last status: {last_status.value if last_status else 'unknown'})",
                    envelope_id=envelope_id,
                    last_status=last_status
                )

            self._sleep(min(delay, remaining))
            delay = min(delay * backoff, max_interval) if max_interval else delay * backoff

    def _record(self, envelope_id: str, state: EnvelopeState) -> EnvelopeState:
        with self._lock:
            previous = self._observed.get(envelope_id)
            if previous is not None and previous.status.is_terminal:
                if state.status is not previous.status:
                    logger.warning(
                        f"Envelope {envelope_id} reported {state.status.value} after "
                        f"terminal {previous.status.value}; keeping {previous.status.value}"
                    )
                return previous

            if previous is None or previous.status is not state.status:
                logger.info(f"Envelope {envelope_id} is {state.status.value}")
            self._observed[envelope_id] = state
            return state
