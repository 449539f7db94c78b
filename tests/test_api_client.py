"""
API client transport tests: auth headers, retries, error translation.
"""

from dataclasses import replace

import pytest
import requests

from signflow import (
    AuthError,
    ConfigurationError,
    FieldStrategy,
    NotFound,
    Session,
    SigningAPIClient,
    SigningAPIError,
    TransientError,
    UnknownOutcomeError,
)

from conftest import make_response


class TestReads:
    """Idempotent GET endpoints."""

    def test_list_mailboxes_sends_bearer_token(self, api, platform):
        platform.add('GET', 'mailboxes', make_response(200, [{'id': 'mb-1'}]))

        assert api.list_mailboxes() == [{'id': 'mb-1'}]

        headers = platform.calls_to('GET', 'mailboxes')[0]['headers']
        assert headers['Authorization'] == 'Bearer test-token'

    def test_list_mailboxes_accepts_wrapped_payload(self, api, platform):
        platform.add('GET', 'mailboxes', make_response(200, {'mailboxes': [{'id': 'mb-2'}]}))
        assert api.list_mailboxes() == [{'id': 'mb-2'}]

    def test_read_retries_transient_failures(self, api, platform):
        """Connection errors and 503s are retried until a success."""
        platform.add(
            'GET', 'mailboxes/mb-1/envelopes/env-1',
            requests.exceptions.ConnectionError('reset'),
            make_response(503),
            make_response(200, {'id': 'env-1', 'status': 'sent'}),
        )

        assert api.get_envelope('mb-1', 'env-1')['status'] == 'sent'
        assert len(platform.calls_to('GET', 'mailboxes/mb-1/envelopes/env-1')) == 3

    def test_read_gives_up_with_transient_error(self, api, platform):
        platform.add('GET', 'mailboxes', requests.exceptions.ReadTimeout('slow'))

        with pytest.raises(TransientError):
            api.list_mailboxes()
        assert len(platform.calls_to('GET', 'mailboxes')) == 3

    def test_backoff_delays_double(self, session, config, platform):
        delays = []
        client = SigningAPIClient(session, replace(config, retry_delay=0.5), sleep=delays.append)
        platform.add('GET', 'mailboxes', make_response(502))

        with pytest.raises(TransientError):
            client.list_mailboxes()
        assert delays == [0.5, 1.0]

    def test_unauthorized_is_auth_error(self, api, platform):
        platform.add('GET', 'mailboxes', make_response(401, {'error': 'bad token'}))
        with pytest.raises(AuthError):
            api.list_mailboxes()
        assert len(platform.calls) == 1

    def test_missing_envelope_is_not_found(self, api, platform):
        with pytest.raises(NotFound):
            api.get_envelope('mb-1', 'nope')

    def test_client_error_is_api_error(self, api, platform):
        platform.add('GET', 'mailboxes', make_response(400, {'error': 'bad'}))
        with pytest.raises(SigningAPIError) as exc_info:
            api.list_mailboxes()
        assert exc_info.value.status_code == 400
        assert 'bad' in exc_info.value.response_body

    def test_non_json_body_is_api_error(self, api, platform):
        platform.add('GET', 'mailboxes', make_response(200, content=b'<html>'))
        with pytest.raises(SigningAPIError):
            api.list_mailboxes()

    def test_download_returns_bytes(self, api, platform):
        platform.add('GET', 'mailboxes/mb-1/envelopes/env-1/archive', make_response(200, content=b'PK\x03\x04'))
        assert api.download_archive('mb-1', 'env-1') == b'PK\x03\x04'

    def test_missing_credential_fails_before_request(self, config, platform):
        client = SigningAPIClient(Session(), config, sleep=lambda s: None)
        with pytest.raises(AuthError):
            client.list_mailboxes()
        assert platform.calls == []


class TestWrites:
    """Non-idempotent POST endpoints are sent exactly once."""

    def test_upload_sends_field_strategy(self, api, platform):
        platform.add('POST', 'mailboxes/mb-1/documents', make_response(200, {'id': 'doc-1', 'hash': 'h'}))

        result = api.upload_document('mb-1', 'a.pdf', b'%PDF', FieldStrategy.DELETE)

        assert result['id'] == 'doc-1'
        call = platform.calls_to('POST', 'mailboxes/mb-1/documents')[0]
        assert call['data'] == {'field_strategy': 'delete'}
        assert call['files']['file'][0] == 'a.pdf'

    def test_upload_timeout_is_transient(self, api, platform):
        platform.add('POST', 'mailboxes/mb-1/documents', requests.exceptions.ReadTimeout('slow'))
        with pytest.raises(TransientError):
            api.upload_document('mb-1', 'a.pdf', b'%PDF', FieldStrategy.KEEP)

    def test_send_timeout_is_unknown_outcome_without_retry(self, api, platform):
        platform.add('POST', 'mailboxes/mb-1/envelopes', requests.exceptions.ReadTimeout('slow'))

        with pytest.raises(UnknownOutcomeError) as exc_info:
            api.send_template('mb-1', 'template', 'envelope', subject='Sign me')

        assert exc_info.value.mailbox_id == 'mb-1'
        assert exc_info.value.subject == 'Sign me'
        assert len(platform.calls_to('POST', 'mailboxes/mb-1/envelopes')) == 1

    def test_send_gateway_timeout_is_unknown_outcome(self, api, platform):
        platform.add('POST', 'mailboxes/mb-1/envelopes', make_response(504))
        with pytest.raises(UnknownOutcomeError):
            api.send_template('mb-1', 'template', 'envelope')

    def test_send_connect_timeout_is_transient(self, api, platform):
        """A connect timeout means nothing was sent."""
        platform.add('POST', 'mailboxes/mb-1/envelopes', requests.exceptions.ConnectTimeout('down'))
        with pytest.raises(TransientError):
            api.send_template('mb-1', 'template', 'envelope')

    def test_send_server_error_is_not_retried(self, api, platform):
        platform.add('POST', 'mailboxes/mb-1/envelopes', make_response(500, {'error': 'boom'}))
        with pytest.raises(SigningAPIError):
            api.send_template('mb-1', 'template', 'envelope')
        assert len(platform.calls) == 1

    def test_send_truncated_response_is_unknown_outcome(self, api, platform):
        """A broken response body arrives after the envelope may exist."""
        platform.add('POST', 'mailboxes/mb-1/envelopes', requests.exceptions.ChunkedEncodingError('cut off'))
        with pytest.raises(UnknownOutcomeError):
            api.send_template('mb-1', 'template', 'envelope')
        assert len(platform.calls) == 1

    def test_quick_send_undecodable_response_is_unknown_outcome(self, api, platform):
        platform.add('POST', 'mailboxes/mb-1/quicksend', requests.exceptions.ContentDecodingError('gzip'))
        with pytest.raises(UnknownOutcomeError):
            api.quick_send('mb-1', [('a.pdf', b'%PDF')], [])

    def test_upload_transport_failure_is_transient(self, api, platform):
        platform.add('POST', 'mailboxes/mb-1/documents', requests.exceptions.ChunkedEncodingError('cut off'))
        with pytest.raises(TransientError):
            api.upload_document('mb-1', 'a.pdf', b'%PDF', FieldStrategy.KEEP)

    def test_invalid_base_url_is_configuration_error(self, session, config, platform):
        platform.add('POST', 'mailboxes/mb-1/envelopes', requests.exceptions.MissingSchema('no scheme'))
        api = SigningAPIClient(session, config, sleep=lambda seconds: None)
        with pytest.raises(ConfigurationError):
            api.send_template('mb-1', 'template', 'envelope')


class TestReadTransportFailures:

    def test_truncated_read_is_retried(self, api, platform):
        platform.add(
            'GET', 'mailboxes',
            requests.exceptions.ChunkedEncodingError('cut off'),
            make_response(200, [{'id': 'mb-1'}]),
        )
        assert api.list_mailboxes() == [{'id': 'mb-1'}]
        assert len(platform.calls) == 2

    def test_repeated_read_failures_become_transient(self, api, platform):
        platform.add('GET', 'mailboxes', requests.exceptions.ContentDecodingError('gzip'))
        with pytest.raises(TransientError):
            api.list_mailboxes()
        assert len(platform.calls) == 3
