"""Command-line interface for the microfeed core."""

from __future__ import annotations
import argparse
import logging
import os
import sys
from getpass import getpass
from pathlib import Path
from typing import Callable, Sequence

from microfeed.config import CONFIG_ENV_VAR, DB_PATH_ENV_VAR, Settings, load_settings, resolve_config_path
from microfeed.errors import MicrofeedError, NotFoundError, ValidationError
from microfeed.models import Micropost, User
from microfeed.service import Microfeed, create_service

logger = logging.getLogger("microfeed.main")

PasswordPrompt = Callable[[str], str]


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Microfeed administration utilities")
    parser.add_argument(
        "--config",
        default=None,
        help=f"Path to a YAML settings file (defaults to ${CONFIG_ENV_VAR})",
    )
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database, overriding the configured location",
    )
    subparsers = parser.add_subparsers(dest="command")
    parser.set_defaults(command="init-db")

    subparsers.add_parser("init-db", help="Initialise the database")

    create_parser = subparsers.add_parser("create-user", help="Register a new user")
    create_parser.add_argument("name", help="Display name for the user")
    create_parser.add_argument("email", help="Unique email address for login")
    create_parser.add_argument("--admin", action="store_true", help="Grant administrative rights")

    auth_parser = subparsers.add_parser("authenticate", help="Check an email/password pair")
    auth_parser.add_argument("email")

    delete_parser = subparsers.add_parser("delete-user", help="Remove a user and everything they own")
    delete_parser.add_argument("email")

    admin_parser = subparsers.add_parser("set-admin", help="Grant or revoke administrative rights")
    admin_parser.add_argument("email")
    admin_parser.add_argument("--revoke", action="store_true", help="Revoke instead of grant")

    for command, help_text in (("follow", "Follow a user"), ("unfollow", "Stop following a user")):
        edge_parser = subparsers.add_parser(command, help=help_text)
        edge_parser.add_argument("follower", help="Email of the following user")
        edge_parser.add_argument("followed", help="Email of the followed user")

    for command, help_text in (
        ("following", "List the users someone follows"),
        ("followers", "List the followers of a user"),
    ):
        list_parser = subparsers.add_parser(command, help=help_text)
        list_parser.add_argument("email")

    post_parser = subparsers.add_parser("post", help="Publish a micropost")
    post_parser.add_argument("email")
    post_parser.add_argument("content")

    for command, help_text in (
        ("posts", "Show a user's microposts"),
        ("feed", "Show a user's status feed"),
    ):
        page_parser = subparsers.add_parser(command, help=help_text)
        page_parser.add_argument("email")
        page_parser.add_argument("--limit", type=int, default=None, help="Maximum number of posts")
        page_parser.add_argument("--offset", type=int, default=0, help="Number of posts to skip")

    return parser.parse_args(list(argv) if argv is not None else sys.argv[1:])


def _load_settings(args: argparse.Namespace) -> Settings:
    config_path = Path(args.config).expanduser() if args.config else resolve_config_path(os.getenv(CONFIG_ENV_VAR))
    environ = dict(os.environ)
    if args.db_path:
        environ[DB_PATH_ENV_VAR] = args.db_path
    return load_settings(config_path, environ)


def _prompt_for_password(prompt: PasswordPrompt = getpass) -> tuple[str, str]:
    password = prompt("Password: ")
    confirmation = prompt("Confirm password: ")
    return password, confirmation


def _resolve_user(service: Microfeed, email: str) -> User:
    user = service.get_user_by_email(email)
    if user is None:
        raise NotFoundError(f"No user registered with email {email}")
    return user


def _format_user(user: User) -> str:
    suffix = " [admin]" if user.admin else ""
    return f"#{user.id}: {user.name} <{user.email}>{suffix}"


def _format_post(post: Micropost, author: User | None) -> str:
    name = author.name if author is not None else f"user {post.user_id}"
    return f"{post.created_at:%Y-%m-%d @ %H:%M} {name}: {post.content}"


def _print_posts(service: Microfeed, posts: Sequence[Micropost]) -> None:
    if not posts:
        print("No microposts.")
        return
    authors: dict[int, User | None] = {}
    for post in posts:
        if post.user_id not in authors:
            authors[post.user_id] = service.get_user(post.user_id)
        print(_format_post(post, authors[post.user_id]))


def _run_command(
    service: Microfeed,
    args: argparse.Namespace,
    settings: Settings,
    prompt: PasswordPrompt,
) -> int:
    command = args.command

    if command == "init-db":
        print("Database initialisation complete.")
    elif command == "create-user":
        password, confirmation = _prompt_for_password(prompt)
        user = service.create_user(
            args.name.strip(), args.email, password, confirmation, admin=args.admin
        )
        print(f"Created user {_format_user(user)}")
    elif command == "authenticate":
        user = service.authenticate(args.email, prompt("Password: "))
        if user is None:
            logger.warning("Failed sign-in attempt for %s", args.email)
            print("Invalid email/password combination.", file=sys.stderr)
            return 1
        print(f"Signed in as {_format_user(user)}")
    elif command == "delete-user":
        user = _resolve_user(service, args.email)
        service.destroy_user(user.id)
        print(f"Deleted user #{user.id}")
    elif command == "set-admin":
        user = _resolve_user(service, args.email)
        user = service.set_admin(user.id, not args.revoke)
        print(f"Updated {_format_user(user)}")
    elif command in ("follow", "unfollow"):
        follower = _resolve_user(service, args.follower)
        followed = _resolve_user(service, args.followed)
        if command == "follow":
            service.follow(follower.id, followed.id)
            print(f"{follower.name} is now following {followed.name}")
        else:
            service.unfollow(follower.id, followed.id)
            print(f"{follower.name} is no longer following {followed.name}")
    elif command in ("following", "followers"):
        user = _resolve_user(service, args.email)
        users = service.following(user.id) if command == "following" else service.followers(user.id)
        if not users:
            print("Nobody yet.")
        for entry in users:
            print(_format_user(entry))
    elif command == "post":
        user = _resolve_user(service, args.email)
        post = service.create_post(user.id, args.content)
        print(f"Micropost #{post.id} created")
    elif command in ("posts", "feed"):
        user = _resolve_user(service, args.email)
        limit = args.limit if args.limit is not None else settings.feed_page_size
        if command == "posts":
            posts = service.user_posts(user.id, limit=limit, offset=args.offset)
        else:
            posts = service.feed(user.id, limit=limit, offset=args.offset)
        _print_posts(service, posts)
    return 0


def main(argv: Sequence[str] | None = None, *, prompt: PasswordPrompt = getpass) -> int:
    """Entry point for CLI usage."""

    args = _parse_args(argv)
    try:
        settings = _load_settings(args)
    except (OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    logging.basicConfig(level=settings.log_level, format="%(asctime)s [%(levelname)s] %(message)s")
    service = create_service(settings)

    try:
        return _run_command(service, args, settings, prompt)
    except ValidationError as exc:
        for message in exc.messages:
            print(f"Error: {message}", file=sys.stderr)
        return 1
    except MicrofeedError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
