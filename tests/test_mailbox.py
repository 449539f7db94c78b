"""
Mailbox resolver tests.
"""

import pytest
import requests

from signflow import MailboxResolver, NotFound

from conftest import make_response


class TestMailboxResolver:

    def test_first_mailbox_is_default(self, api, platform):
        platform.add('GET', 'mailboxes', make_response(200, [
            {'id': 'mb-1', 'email': 'me@org.com', 'name': 'Me'},
            {'id': 'mb-2', 'email': 'team@org.com', 'name': 'Team'},
        ]))

        mailbox = MailboxResolver(api).resolve_default_mailbox()

        assert mailbox.mailbox_id == 'mb-1'
        assert mailbox.email == 'me@org.com'
        assert mailbox.display_name == 'Me'

    def test_empty_list_is_not_found(self, api, platform):
        platform.add('GET', 'mailboxes', make_response(200, []))
        with pytest.raises(NotFound):
            MailboxResolver(api).resolve_default_mailbox()

    def test_default_is_cached(self, api, platform):
        platform.add('GET', 'mailboxes', make_response(200, [{'id': 'mb-1'}]))
        resolver = MailboxResolver(api)

        resolver.resolve_default_mailbox()
        resolver.resolve_default_mailbox()

        assert len(platform.calls) == 1

    def test_refresh_asks_again(self, api, platform):
        platform.add(
            'GET', 'mailboxes',
            make_response(200, [{'id': 'mb-1'}]),
            make_response(200, [{'id': 'mb-9'}]),
        )
        resolver = MailboxResolver(api)

        resolver.resolve_default_mailbox()
        assert resolver.resolve_default_mailbox(refresh=True).mailbox_id == 'mb-9'

    def test_transient_failure_is_retried(self, api, platform):
        """Mailbox lookup is idempotent, so network errors are retried."""
        platform.add(
            'GET', 'mailboxes',
            requests.exceptions.ConnectionError('reset'),
            make_response(200, [{'id': 'mb-1'}]),
        )
        assert MailboxResolver(api).resolve_default_mailbox().mailbox_id == 'mb-1'

    def test_get_mailbox_by_id(self, api, platform):
        platform.add('GET', 'mailboxes', make_response(200, [{'id': 'mb-1'}, {'id': 42}]))
        resolver = MailboxResolver(api)

        assert resolver.get_mailbox('42').mailbox_id == '42'
        with pytest.raises(NotFound):
            resolver.get_mailbox('missing')
