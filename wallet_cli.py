#!/usr/bin/env python3
"""
Wallet Administration CLI

Command-line tool for managing wallet accounts from the server terminal.

Usage:
    python wallet_cli.py create-user <email> <password> <full_name> <phone>
    python wallet_cli.py reset-password <email> <new_password>
    python wallet_cli.py list-users
    python wallet_cli.py show-user <email> [--limit N]
"""
import sys
import argparse
import asyncio
from pathlib import Path

# Add project root to path (file is in root)
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.config import get_settings
from backend.app.db.session import async_engine, create_schema
from backend.app.services import user_service
from backend.app.services.transaction_service import TransactionService


async def cmd_create_user(email: str, password: str, full_name: str, phone: str) -> bool:
    """Create a new wallet user with a zero balance."""
    async with AsyncSession(async_engine, expire_on_commit=False) as session:
        user, error = await user_service.create_user(session, email, password, full_name, phone)

        if user:
            print(f"✅ User '{user.email}' created with ID {user.id}")
            return True
        print(f"❌ {error}")
        return False


async def cmd_reset_password(email: str, new_password: str) -> bool:
    """Reset a user's password."""
    async with AsyncSession(async_engine, expire_on_commit=False) as session:
        success, error = await user_service.reset_password(session, email, new_password)

        if success:
            print(f"✅ Password reset for user '{email}'")
        else:
            print(f"❌ {error}")
        return success


async def cmd_list_users() -> None:
    """List all users with their balance."""
    currency = get_settings().WALLET_CURRENCY

    async with AsyncSession(async_engine, expire_on_commit=False) as session:
        users = await user_service.list_users(session)

        if not users:
            print("No users found")
            return

        print(f"\n{'ID':<38} {'Email':<30} {'Name':<22} {'Balance':>14}")
        print("-" * 107)

        for user in users:
            print(f"{user.id:<38} {user.email:<30} {user.full_name:<22} {user.balance:>10.2f} {currency}")

        print(f"\nTotal: {len(users)} user(s)")


async def cmd_show_user(email: str, limit: int) -> bool:
    """Show one user's profile and latest transactions."""
    currency = get_settings().WALLET_CURRENCY

    async with AsyncSession(async_engine, expire_on_commit=False) as session:
        user = await user_service.get_user_by_email(session, email)
        if not user:
            print(f"❌ User '{email}' not found")
            return False

        print(f"\n{user.full_name} <{user.email}>  phone: {user.phone}")
        print(f"Balance: {user.balance:.2f} {currency}\n")

        txs = await TransactionService(session).list_user_transactions(user.id, limit=limit)
        if not txs:
            print("No transactions")
            return True

        print(f"{'Reference':<26} {'Type':<11} {'Amount':>12} {'Status':<10} {'Provider':<18} {'Created'}")
        print("-" * 100)
        for tx in txs:
            sign = "+" if tx.type.value == "deposit" else "-"
            print(
                f"{tx.reference:<26} {tx.type.value:<11} {sign}{tx.amount:>11.2f} "
                f"{tx.status.value:<10} {tx.provider:<18} {tx.created_at:%Y-%m-%d %H:%M}"
            )
        return True


def main():
    parser = argparse.ArgumentParser(
        description="MoMo Wallet Administration CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python wallet_cli.py create-user ama@example.com secretpass "Ama Mensah" 0241234567
  python wallet_cli.py reset-password ama@example.com newpassword123
  python wallet_cli.py list-users
  python wallet_cli.py show-user ama@example.com --limit 5
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    create_parser = subparsers.add_parser("create-user", help="Create a wallet user")
    create_parser.add_argument("email", help="Email address")
    create_parser.add_argument("password", help="Password")
    create_parser.add_argument("full_name", help="Full name")
    create_parser.add_argument("phone", help="Phone number")

    reset_parser = subparsers.add_parser("reset-password", help="Reset user password")
    reset_parser.add_argument("email", help="Email address")
    reset_parser.add_argument("new_password", help="New password")

    subparsers.add_parser("list-users", help="List all users")

    show_parser = subparsers.add_parser("show-user", help="Show balance and latest transactions")
    show_parser.add_argument("email", help="Email address")
    show_parser.add_argument("--limit", type=int, default=10, help="Number of transactions (default: 10)")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    create_schema()

    if args.command == "create-user":
        ok = asyncio.run(cmd_create_user(args.email, args.password, args.full_name, args.phone))
    elif args.command == "reset-password":
        ok = asyncio.run(cmd_reset_password(args.email, args.new_password))
    elif args.command == "list-users":
        asyncio.run(cmd_list_users())
        ok = True
    else:
        ok = asyncio.run(cmd_show_user(args.email, args.limit))

    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
