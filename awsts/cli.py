"""
Command-line interface for awsts.
"""

import argparse
import logging
import sys

from .config import PROGRAM_NAME, CliConfig
from .errors import AwstsError
from .sts import fetch_role_credentials, format_exports, login


def build_parser():
    parser = argparse.ArgumentParser(
        prog=PROGRAM_NAME,
        description="Managed access to AWS roles via STS",
        epilog="Examples:\n"
        "  awsts config --serial-number arn:aws:iam::123456789012:mfa/jane\n"
        "  awsts role add prod arn:aws:iam::123456789012:role/Prod\n"
        "  awsts login                      # Fetch a session token with your MFA code\n"
        "  eval \"$(awsts fetch prod)\"       # Export role credentials into the shell",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log debug output to stderr",
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    config_parser = subparsers.add_parser(
        "config",
        help="Show or change the MFA serial, session name and region",
    )
    config_parser.add_argument("--serial-number", help="ARN or serial of the MFA device")
    config_parser.add_argument("--session-name", help="Session name used when assuming roles")
    config_parser.add_argument("--region", help="STS region (default: us-east-1)")

    login_parser = subparsers.add_parser(
        "login",
        help="Fetch a session token using an MFA code",
    )
    login_parser.add_argument(
        "--profile",
        default=None,
        help="AWS profile to authenticate with (defaults to the standard credential chain)",
    )

    role_parser = subparsers.add_parser("role", help="Manage role aliases")
    role_commands = role_parser.add_subparsers(dest="role_command", metavar="ACTION")
    role_commands.required = True
    role_commands.add_parser("list", help="List role aliases")
    add_parser = role_commands.add_parser("add", help="Add or replace a role alias")
    add_parser.add_argument("name", help="Short alias for the role")
    add_parser.add_argument("arn", help="Role ARN")
    remove_parser = role_commands.add_parser("remove", help="Remove a role alias")
    remove_parser.add_argument("name", help="Alias to remove")

    fetch_parser = subparsers.add_parser(
        "fetch",
        help="Print export statements with credentials for a role",
    )
    fetch_parser.add_argument("name", help="Role alias")

    return parser


def print_roles(roles):
    print(f"{'Name':10} ARN")
    for name in sorted(roles):
        print(f"{name:10} {roles[name]}")


def run_config(config, args):
    changed = False
    if args.serial_number is not None:
        config.set_mfa(args.serial_number)
        changed = True
    if args.session_name is not None:
        config.set_session_name(args.session_name)
        changed = True
    if args.region is not None:
        config.set_region(args.region)
        changed = True

    if not changed:
        print(f"MFA serial:   {config.get_mfa() or '(not set)'}")
        print(f"Session name: {config.get_session_name()}")
        print(f"Region:       {config.get_region()}")


def run_role(config, args):
    if args.role_command == "list":
        print_roles(config.get_roles())
    elif args.role_command == "add":
        config.add_role(args.name, args.arn)
    elif args.role_command == "remove":
        config.remove_role(args.name)


def run(args):
    config = CliConfig.load(PROGRAM_NAME)

    if args.command == "config":
        run_config(config, args)
    elif args.command == "login":
        credentials = login(config, args.profile)
        print(f"✓ Session token expires at: {credentials.expiration}", file=sys.stderr)
    elif args.command == "role":
        run_role(config, args)
    elif args.command == "fetch":
        credentials = fetch_role_credentials(config, args.name)
        for line in format_exports(credentials):
            print(line)


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        run(args)
    except AwstsError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
