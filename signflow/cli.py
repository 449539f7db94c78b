"""
signflow command line

Examples:
  signflow mailbox
  signflow quick-send contract.pdf --signer bob@example.com --cc sender@org.com
  signflow send definitions/consulting.yml contract.pdf --contact client=alice@example.com
  signflow wait 8f2c... --timeout 3600
  signflow download 8f2c... -o signed.zip
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .exceptions import SigningError
from .loader import PackageDefinitionLoader
from .submitter import QuickSendStrategy
from .types import FieldStrategy, QuickSendRecipient
from .workflow import SigningWorkflow

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='signflow',
        description='Send documents for signature and collect the results',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')
    commands = parser.add_subparsers(dest='command', required=True)

    commands.add_parser('mailbox', help='Show the default mailbox')

    status = commands.add_parser('status', help='Show the status of an envelope')
    status.add_argument('envelope_id')

    wait = commands.add_parser('wait', help='Wait for an envelope to finish')
    wait.add_argument('envelope_id')
    wait.add_argument('--timeout', type=float, default=3600, help='Seconds to wait (default: 3600)')

    download = commands.add_parser('download', help='Download the signed archive')
    download.add_argument('envelope_id')
    download.add_argument('-o', '--output', required=True, help='Archive file to write')

    quick = commands.add_parser('quick-send', help='Send files without field layout')
    quick.add_argument('files', nargs='+', type=Path)
    quick.add_argument('--signer', action='append', default=[], help='Signer email (repeatable)')
    quick.add_argument('--cc', action='append', default=[], help='Non-signing recipient (repeatable)')
    quick.add_argument('--eink', action='store_true', help='Signers use handwritten-style input')
    quick.add_argument('--subject')
    quick.add_argument('--message')

    send = commands.add_parser('send', help='Send files using a package definition')
    send.add_argument('definition', type=Path)
    send.add_argument('files', nargs='+', type=Path)
    send.add_argument(
        '--contact',
        action='append',
        default=[],
        metavar='ROLE=CONTACT',
        help='Bind a role to a contact (repeatable)'
    )
    send.add_argument('--delete-fields', action='store_true', help='Strip existing form fields on upload')
    send.add_argument('--subject')
    send.add_argument('--message')

    return parser


def _parse_contacts(values: List[str]) -> dict:
    contacts = {}
    for value in values:
        role_id, sep, contact = value.partition('=')
        if not sep or not role_id or not contact:
            raise argparse.ArgumentTypeError(f"Expected ROLE=CONTACT, got {value!r}")
        contacts[role_id] = contact
    return contacts


def run(args: argparse.Namespace, workflow: SigningWorkflow) -> int:
    if args.command == 'mailbox':
        mailbox = workflow.mailbox
        print(f"{mailbox.mailbox_id}\t{mailbox.email or ''}\t{mailbox.display_name or ''}")

    elif args.command == 'status':
        print(workflow.poller.get_status(args.envelope_id, workflow.mailbox).value)

    elif args.command == 'wait':
        status = workflow.poller.wait_for_terminal(args.envelope_id, workflow.mailbox, args.timeout)
        print(status.value)

    elif args.command == 'download':
        workflow.poller.get_status(args.envelope_id, workflow.mailbox)
        archive = workflow.poller.fetch_signed_result(args.envelope_id, workflow.mailbox)
        Path(args.output).write_bytes(archive)
        print(f"Wrote {len(archive)} bytes to {args.output}")

    elif args.command == 'quick-send':
        recipients = [QuickSendRecipient(c) for c in args.cc]
        recipients += [QuickSendRecipient(s, is_signer=True, use_eink_signature=args.eink) for s in args.signer]
        files = [(path.name, path.read_bytes()) for path in args.files]
        strategy = QuickSendStrategy(files, recipients, subject=args.subject, message=args.message)
        print(workflow.build_and_submit(strategy))

    elif args.command == 'send':
        contacts = _parse_contacts(args.contact)
        definition = PackageDefinitionLoader().load_file(args.definition)
        strategy = FieldStrategy.DELETE if args.delete_fields else FieldStrategy.KEEP
        documents = [workflow.upload(path.read_bytes(), strategy, path.name) for path in args.files]
        package = definition.build(
            workflow.builder,
            documents,
            contacts=contacts,
            subject=args.subject,
            message=args.message,
        )
        print(workflow.submitter.submit(workflow.mailbox, package))

    return 0


def main(argv: Optional[List[str]] = None, workflow: Optional[SigningWorkflow] = None) -> int:
    """Main entry point with CLI argument parsing."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    try:
        return run(args, workflow or SigningWorkflow())
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))
    except SigningError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
