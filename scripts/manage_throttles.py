#!/usr/bin/env python3
"""
Throttle and Lockout Management Tool

Command-line interface for operators to inspect and clear throttle counters
and account lockouts. Runs against the database configured for the current
ENVIRONMENT.

Usage examples:

# List open throttle windows, optionally filtered
python manage_throttles.py list
python manage_throttles.py list --action otp_request --identifier user@example.com

# Clear one throttle counter
python manage_throttles.py reset login_attempt 203.0.113.7

# Delete every record whose window has lapsed
python manage_throttles.py purge

# Show the lockout fields of an account
python manage_throttles.py lockout-status 6f1c2a9e-0d4b-4c55-9a57-2b5f0b0d8c11

# Unlock an account without recording a login
python manage_throttles.py unlock 6f1c2a9e-0d4b-4c55-9a57-2b5f0b0d8c11
"""

import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from authguard import app, lockout_tracker, sweeper, throttle_ledger  # noqa: E402
from authguard.errors import InvalidThrottleRequest, StoreUnavailable  # noqa: E402


def list_throttles(action=None, identifier=None):
    """List throttle records whose window is still open"""
    records = throttle_ledger.list_active(action=action, identifier=identifier)

    if not records:
        print("No active throttle records.")
        return True

    print(f"\nActive Throttle Records ({len(records)} total)")
    print("=" * 90)
    print(f"{'Action':<20} {'Identifier':<40} {'Count':<6} {'Expires At'}")
    print("-" * 90)

    for record in records:
        policy = throttle_ledger.policy_for(record.action)
        identifier_display = (
            record.identifier[:36] + "..."
            if len(record.identifier) > 39
            else record.identifier
        )
        count = f"{record.count}/{policy.max_requests}"
        print(
            f"{record.action:<20} {identifier_display:<40} {count:<6} "
            f"{record.expires_at.isoformat()}"
        )

    return True


def reset_throttle(action, identifier):
    """Clear the throttle counter for one (action, identifier) pair"""
    if throttle_ledger.reset(identifier, action):
        print(f"Cleared {action} throttle for '{identifier}'")
    else:
        print(f"No {action} throttle record for '{identifier}'")
    return True


def purge_expired():
    """Delete throttle records whose window has lapsed"""
    purged = sweeper.purge_expired()
    print(f"Purged {purged} expired throttle records")
    return True


def lockout_status(account_id):
    """Show the lockout fields for an account"""
    state = lockout_tracker.get_state(account_id)
    if state is None:
        print(f"Account '{account_id}' not found")
        return False

    locked = lockout_tracker.is_locked(account_id)
    print(f"\nLockout Status for Account: {state.account_id}")
    print("=" * 50)
    print(f"Failed Login Attempts: {state.failed_login_attempts}")
    print(f"Locked: {'Yes' if locked else 'No'}")
    if state.account_locked_until:
        print(f"Locked Until: {state.account_locked_until.isoformat()} UTC")
    if locked:
        minutes = lockout_tracker.minutes_remaining(account_id)
        print(f"Minutes Remaining: {minutes}")
    if state.last_login_at:
        print(f"Last Login: {state.last_login_at.isoformat()} UTC")

    return True


def unlock_account(account_id):
    """Reset the failure counter and lock of an account"""
    if not lockout_tracker.clear_lockout(account_id):
        print(f"Account '{account_id}' not found")
        return False

    print(f"Cleared lockout for account '{account_id}'")
    return True


def build_parser():
    parser = argparse.ArgumentParser(
        description="Inspect and clear throttle counters and account lockouts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    list_parser = subparsers.add_parser("list", help="List open throttle windows")
    list_parser.add_argument("--action", help="Only show this action")
    list_parser.add_argument("--identifier", help="Only show this identifier")

    reset_parser = subparsers.add_parser("reset", help="Clear one throttle counter")
    reset_parser.add_argument("action", help="Throttle action, e.g. otp_request")
    reset_parser.add_argument("identifier", help="Email, IP address or account id")

    subparsers.add_parser("purge", help="Delete lapsed throttle records")

    status_parser = subparsers.add_parser(
        "lockout-status", help="Show lockout fields for an account"
    )
    status_parser.add_argument("account_id", help="Account UUID")

    unlock_parser = subparsers.add_parser("unlock", help="Unlock an account")
    unlock_parser.add_argument("account_id", help="Account UUID")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    # Use the existing Flask app instance
    with app.app_context():
        try:
            if args.command == "list":
                ok = list_throttles(args.action, args.identifier)

            elif args.command == "reset":
                ok = reset_throttle(args.action, args.identifier)

            elif args.command == "purge":
                ok = purge_expired()

            elif args.command == "lockout-status":
                ok = lockout_status(args.account_id)

            else:
                ok = unlock_account(args.account_id)

        except InvalidThrottleRequest as e:
            print(f"Invalid request: {e.message}")
            return 1

        except StoreUnavailable as e:
            print(f"Store unavailable: {e.message}")
            return 1

    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
