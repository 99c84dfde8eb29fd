"""
Command-line interface for mfasession.
"""

import argparse
import logging
import sys

from . import __version__
from .core import (
    DEFAULT_DURATION_SECONDS,
    SessionClient,
    get_aws_credentials_path,
    run,
)
from .exceptions import MfaSessionError


def setup_logging(debug=False):
    """Configure the mfasession logger; step tracing goes to stderr in debug mode."""
    logger = logging.getLogger("mfasession")
    logger.setLevel(logging.DEBUG if debug else logging.WARNING)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
        logger.addHandler(handler)
    return logger


def show_mfa_serial(mfa_serial):
    print(f"MFA serial number: {mfa_serial}")


def format_expiration(expiration):
    """Render an expiration datetime in local time."""
    if hasattr(expiration, "astimezone"):
        return expiration.astimezone().strftime("%Y-%m-%d %H:%M:%S %Z")
    return str(expiration)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="aws-mfa-session",
        description="Exchange a long-term AWS profile and an MFA code for temporary "
        "credentials and store them in another profile",
        epilog="Examples:\n"
        "  aws-mfa-session -p dev -o dev-mfa                 # Prompt for the MFA code\n"
        "  aws-mfa-session -p dev -o dev-mfa -c 123456       # MFA code on the command line\n"
        "  aws-mfa-session -p dev -o dev-mfa -d 3600         # 1-hour credentials",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-p",
        "--profile",
        required=True,
        help="AWS profile that contains the long-term access key",
    )
    parser.add_argument(
        "-o",
        "--output-profile",
        required=True,
        help="AWS profile to contain the temporary credentials",
    )
    parser.add_argument(
        "-c",
        "--mfa-code",
        default=None,
        help="MFA code (prompted for when omitted)",
    )
    parser.add_argument(
        "-d",
        "--duration-seconds",
        type=int,
        default=DEFAULT_DURATION_SECONDS,
        help="The duration, in seconds, that the credentials should remain valid "
        f"(default: {DEFAULT_DURATION_SECONDS})",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Show detailed step tracing on stderr",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv=None):
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    logger = setup_logging(args.debug)
    creds_file = get_aws_credentials_path()

    try:
        session = run(
            args.profile,
            args.output_profile,
            mfa_code=args.mfa_code,
            duration_seconds=args.duration_seconds,
            credentials_path=creds_file,
            client=SessionClient(logger=logger),
            on_serial=show_mfa_serial,
            logger=logger,
        )
    except MfaSessionError as e:
        logger.debug("Error occurred: %s", e)
        print(f"Error: {e.message}", file=sys.stderr)
        if e.details:
            print(f"Details: {e.details}", file=sys.stderr)
        return 1
    except (KeyboardInterrupt, EOFError):
        print("\nAborted", file=sys.stderr)
        return 130

    print(f"✓ Temporary credentials have been written to {creds_file}")
    print(f"✓ Profile: [{args.output_profile}]")
    print(f"✓ Expires: {format_expiration(session.expiration)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
