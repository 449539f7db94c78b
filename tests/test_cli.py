"""
Command line tests, run against the fake platform.
"""

import json

import pytest

from signflow import SigningWorkflow, StatusPoller
from signflow.cli import main

from conftest import make_response

DEFINITION = """
schema_version: '1.0'
slug: nda
subject: Please sign the NDA
roles:
  - {role_id: client, order: 1, kind: assignee, signer: true}
fields:
  - {kind: signature, role_id: client, page: 0, x: 0.1, y: 0.8, width: 0.3, height: 0.05}
"""


@pytest.fixture
def workflow(config, session, api, clock, platform):
    platform.add('GET', 'mailboxes', make_response(200, [
        {'id': 'mb-1', 'email': 'sender@org.com', 'name': 'Sender'},
    ]))
    poller = StatusPoller(api, config, clock=clock, sleep=clock.sleep)
    return SigningWorkflow(config, session=session, api=api, poller=poller)


class TestReadCommands:

    def test_mailbox(self, workflow, capsys):
        assert main(['mailbox'], workflow=workflow) == 0
        assert capsys.readouterr().out.strip() == 'mb-1\tsender@org.com\tSender'

    def test_status(self, workflow, platform, capsys):
        platform.add('GET', 'mailboxes/mb-1/envelopes/env-1', make_response(200, {'status': 'in_progress'}))
        assert main(['status', 'env-1'], workflow=workflow) == 0
        assert capsys.readouterr().out.strip() == 'in-progress'

    def test_wait(self, workflow, platform, capsys):
        platform.add(
            'GET', 'mailboxes/mb-1/envelopes/env-1',
            make_response(200, {'status': 'sent'}),
            make_response(200, {'status': 'completed'}),
        )
        assert main(['wait', 'env-1', '--timeout', '60'], workflow=workflow) == 0
        assert capsys.readouterr().out.strip() == 'completed'

    def test_wait_timeout_exits_nonzero(self, workflow, platform, capsys):
        platform.add('GET', 'mailboxes/mb-1/envelopes/env-1', make_response(200, {'status': 'sent'}))
        assert main(['wait', 'env-1', '--timeout', '5'], workflow=workflow) == 1
        assert 'Error' in capsys.readouterr().err


class TestDownload:

    def test_download_completed(self, workflow, platform, tmp_path):
        platform.add('GET', 'mailboxes/mb-1/envelopes/env-1', make_response(200, {'status': 'completed'}))
        platform.add('GET', 'mailboxes/mb-1/envelopes/env-1/archive', make_response(200, content=b'PK-zip'))
        output = tmp_path / 'signed.zip'

        assert main(['download', 'env-1', '-o', str(output)], workflow=workflow) == 0
        assert output.read_bytes() == b'PK-zip'

    def test_download_pending_refused(self, workflow, platform, tmp_path, capsys):
        platform.add('GET', 'mailboxes/mb-1/envelopes/env-1', make_response(200, {'status': 'sent'}))
        output = tmp_path / 'signed.zip'

        assert main(['download', 'env-1', '-o', str(output)], workflow=workflow) == 1
        assert not output.exists()
        assert platform.calls_to('GET', 'mailboxes/mb-1/envelopes/env-1/archive') == []


class TestSendCommands:

    def test_quick_send(self, workflow, platform, tmp_path, capsys):
        pdf = tmp_path / 'contract.pdf'
        pdf.write_bytes(b'%PDF-1.7')
        platform.add('POST', 'mailboxes/mb-1/quicksend', make_response(201, {'id': 'env-q'}))

        code = main(
            ['quick-send', str(pdf), '--signer', 'bob@example.com', '--cc', 'sender@org.com', '--eink'],
            workflow=workflow
        )

        assert code == 0
        assert capsys.readouterr().out.strip() == 'env-q'
        call = platform.calls_to('POST', 'mailboxes/mb-1/quicksend')[0]
        assert json.loads(call['data']['recipients']) == [
            {'contact': 'sender@org.com', 'signer': False, 'eink': False},
            {'contact': 'bob@example.com', 'signer': True, 'eink': True},
        ]

    def test_quick_send_without_signer_fails(self, workflow, platform, tmp_path):
        pdf = tmp_path / 'contract.pdf'
        pdf.write_bytes(b'%PDF-1.7')

        assert main(['quick-send', str(pdf), '--cc', 'sender@org.com'], workflow=workflow) == 1
        assert platform.calls_to('POST', 'mailboxes/mb-1/quicksend') == []

    def test_send_with_definition(self, workflow, platform, tmp_path, capsys):
        pdf = tmp_path / 'nda.pdf'
        pdf.write_bytes(b'%PDF-nda')
        definition = tmp_path / 'nda.yml'
        definition.write_text(DEFINITION)
        platform.add('POST', 'mailboxes/mb-1/documents', make_response(200, {
            'id': 'doc-1', 'hash': 'h-nda',
        }))
        platform.add('POST', 'mailboxes/mb-1/envelopes', make_response(201, {'id': 'env-s'}))

        code = main(
            ['send', str(definition), str(pdf), '--contact', 'client=alice@example.com', '--delete-fields'],
            workflow=workflow
        )

        assert code == 0
        assert capsys.readouterr().out.strip() == 'env-s'
        upload = platform.calls_to('POST', 'mailboxes/mb-1/documents')[0]
        assert upload['data']['field_strategy'] == 'delete'

    def test_bad_contact_is_usage_error(self, workflow, platform, tmp_path):
        definition = tmp_path / 'nda.yml'
        definition.write_text(DEFINITION)
        pdf = tmp_path / 'nda.pdf'
        pdf.write_bytes(b'%PDF-nda')

        with pytest.raises(SystemExit) as exc_info:
            main(['send', str(definition), str(pdf), '--contact', 'alice'], workflow=workflow)

        assert exc_info.value.code == 2
        assert platform.calls_to('POST', 'mailboxes/mb-1/documents') == []
