"""CLI interface for jgoogle.

Usage:
    jgoogle accounts list
    jgoogle accounts add you@gmail.com [--manual]
    jgoogle accounts remove you@gmail.com
    jgoogle you@gmail.com mail search "in:inbox is:unread"
    jgoogle you@gmail.com cal events
    jgoogle you@gmail.com drive ls
"""

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape

from . import __version__
from .accounts import Account, AccountStore, OAuth2Credentials, validate_email
from .config import Config
from .errors import (
    AuthenticationError,
    ExitCode,
    InputError,
    JGoogleError,
)
from .flow import AuthorizationFlow
from .formatting import echo_next_page, echo_table, format_date, format_size
from .log import configure_logging
from .oauth import OAuthClient, OAuthConfig
from .services import CalendarService, DriveService, GmailService
from .session import AuthSession

err_console = Console(stderr=True)


@dataclass
class AppContext:
    """Per-invocation state shared by all commands."""

    config: Config
    email: Optional[str] = None
    _store: Optional[AccountStore] = None

    @property
    def store(self) -> AccountStore:
        if self._store is None:
            self._store = AccountStore(self.config.state_dir)
        return self._store

    @property
    def session(self) -> AuthSession:
        return AuthSession(self.store, self.config.scopes)

    def gmail(self) -> GmailService:
        return GmailService(self.session, self.email)

    def calendar(self) -> CalendarService:
        return CalendarService(self.session, self.email)

    def drive(self) -> DriveService:
        return DriveService(self.session, self.email, self.config.downloads_dir)


def split_list(value: Optional[str]) -> list[str]:
    """Split a comma-separated option value."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class JGoogleGroup(click.Group):
    """Top-level group.

    Routes ``jgoogle <email> <service> ...`` to the per-account group and
    turns errors into stable exit codes.
    """

    def resolve_command(self, ctx, args):
        if args and args[0] not in self.commands and not args[0].startswith("-"):
            return "account", self.commands["account"], args
        return super().resolve_command(ctx, args)

    def make_context(self, info_name, args, parent=None, **extra):
        try:
            return super().make_context(info_name, args, parent=parent, **extra)
        except click.UsageError as e:
            e.exit_code = ExitCode.INVALID_INPUT
            raise

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except click.UsageError as e:
            e.exit_code = ExitCode.INVALID_INPUT
            raise
        except JGoogleError as e:
            err_console.print(f"[red]Error:[/red] {escape(str(e))}")
            if isinstance(e, AuthenticationError):
                err_console.print(escape(e.hint))
            ctx.exit(e.exit_code)
        except OSError as e:
            err_console.print(f"[red]Storage error:[/red] {escape(str(e))}")
            ctx.exit(ExitCode.STORAGE_ERROR)


@click.group(cls=JGoogleGroup)
@click.version_option(__version__, prog_name="jgoogle")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """jgoogle - Google CLI (Gmail, Calendar, Drive).

    \b
    Account management:  jgoogle accounts list|add|remove
    Service commands:    jgoogle <email> mail|cal|drive <command> ...

    Account tokens are stored in ~/.jgoogle/accounts.json
    (override with JGOOGLE_HOME).
    """
    config = Config.from_env()
    configure_logging("DEBUG" if verbose else config.log_level, config.log_file)
    ctx.obj = AppContext(config)


# --- accounts -----------------------------------------------------------


@cli.group()
def accounts() -> None:
    """Manage stored Google accounts."""


@accounts.command("list")
@click.pass_obj
def accounts_list(app: AppContext) -> None:
    """List configured accounts."""
    stored = app.store.list()
    if not stored:
        err_console.print("No accounts configured. Run: jgoogle accounts add <email>")
        return
    for acc in stored:
        click.echo(acc.email)


@accounts.command("add")
@click.argument("email")
@click.option("--manual", is_flag=True, help="Paste the code instead of using a local browser redirect")
@click.pass_obj
def accounts_add(app: AppContext, email: str, manual: bool) -> None:
    """Authorize a Google account and store its refresh token."""
    email = validate_email(email)
    if app.store.exists(email):
        raise InputError(f"Account '{email}' already exists")

    config = app.config
    config.require_client()
    client = OAuthClient(OAuthConfig(config.client_id, config.client_secret, config.scopes))
    flow = AuthorizationFlow(client, callback_timeout=config.callback_timeout)

    try:
        token = flow.authorize(manual=manual)
    except AuthenticationError as e:
        e.account = email
        raise

    app.store.upsert(
        Account(
            email=email,
            oauth2=OAuth2Credentials(
                client_id=config.client_id,
                client_secret=config.client_secret,
                refresh_token=token.refresh_token,
                access_token=token.token,
                expires_at=token.expires_at,
            ),
        )
    )
    err_console.print(f"[green]Account '{escape(email)}' added[/green]")


@accounts.command("remove")
@click.argument("email")
@click.pass_obj
def accounts_remove(app: AppContext, email: str) -> None:
    """Remove a stored account."""
    email = validate_email(email)
    if not app.store.remove(email):
        raise InputError(f"Account '{email}' not found")
    err_console.print(f"Account '{escape(email)}' removed")


# --- per-account services -----------------------------------------------


@cli.group("account", hidden=True)
@click.argument("email")
@click.pass_obj
def account(app: AppContext, email: str) -> None:
    """Commands for one account: jgoogle <email> mail|cal|drive ..."""
    email = validate_email(email)
    if not app.store.exists(email):
        raise AuthenticationError(f"Account '{email}' not found", account=email)
    app.email = email


# --- mail ---------------------------------------------------------------


@account.group()
def mail() -> None:
    """Gmail operations."""


@mail.command("search")
@click.argument("query")
@click.option("--max", "max_results", type=int, default=10, show_default=True)
@click.option("--page", "page_token", help="Page token from a previous search")
@click.pass_obj
def mail_search(app: AppContext, query: str, max_results: int, page_token: Optional[str]) -> None:
    """Search threads (Gmail query syntax)."""
    result = app.gmail().search_threads(query, max_results, page_token)
    echo_table(
        ["ID", "DATE", "FROM", "SUBJECT", "LABELS"],
        (
            [t.id, format_date(t.date), t.sender, t.subject, ",".join(t.labels)]
            for t in result.threads
        ),
    )
    echo_next_page(result.next_page_token)


@mail.command("thread")
@click.argument("thread_id")
@click.pass_obj
def mail_thread(app: AppContext, thread_id: str) -> None:
    """Show a thread with all its messages."""
    thread = app.gmail().get_thread(thread_id)
    click.echo(f"Thread: {thread.id}\n")
    for msg in thread.messages:
        click.echo(f"--- Message {msg.id} ---")
        click.echo(f"From: {msg.sender}")
        click.echo(f"To: {msg.to}")
        click.echo(f"Date: {msg.date}")
        click.echo(f"Subject: {msg.subject}")
        click.echo(f"Labels: {', '.join(msg.labels)}")
        if msg.attachments:
            click.echo(f"Attachments: {', '.join(msg.attachments)}")
        click.echo(f"\n{msg.body}\n")


@mail.command("labels")
@click.argument("thread_ids", nargs=-1, required=True)
@click.option("--add", help="Comma-separated labels to add")
@click.option("--remove", help="Comma-separated labels to remove")
@click.pass_obj
def mail_labels(app: AppContext, thread_ids: tuple[str, ...], add: Optional[str], remove: Optional[str]) -> None:
    """List labels (`labels list`) or modify labels on threads."""
    gmail = app.gmail()
    if thread_ids == ("list",):
        echo_table(["ID", "NAME", "TYPE"], ([label.id, label.name, label.type] for label in gmail.list_labels()))
        return
    gmail.modify_labels(list(thread_ids), split_list(add), split_list(remove))
    err_console.print("Labels modified")


@mail.group("drafts")
def mail_drafts() -> None:
    """Manage drafts."""


@mail_drafts.command("list")
@click.pass_obj
def drafts_list(app: AppContext) -> None:
    echo_table(["ID", "MESSAGE_ID"], ([d.id, d.message_id or ""] for d in app.gmail().list_drafts()))


@mail_drafts.command("delete")
@click.argument("draft_id")
@click.pass_obj
def drafts_delete(app: AppContext, draft_id: str) -> None:
    app.gmail().delete_draft(draft_id)
    err_console.print("Draft deleted")


@mail_drafts.command("send")
@click.argument("draft_id")
@click.pass_obj
def drafts_send(app: AppContext, draft_id: str) -> None:
    click.echo(f"Sent: {app.gmail().send_draft(draft_id)}")


@mail.command("send")
@click.option("--to", required=True, help="Comma-separated recipients")
@click.option("--subject", required=True)
@click.option("--body", required=True)
@click.option("--cc", help="Comma-separated CC recipients")
@click.option("--bcc", help="Comma-separated BCC recipients")
@click.option("--attach", multiple=True, type=click.Path(dir_okay=False, path_type=Path))
@click.option("--reply-to", "reply_to", help="Message id to reply to")
@click.pass_obj
def mail_send(
    app: AppContext,
    to: str,
    subject: str,
    body: str,
    cc: Optional[str],
    bcc: Optional[str],
    attach: tuple[Path, ...],
    reply_to: Optional[str],
) -> None:
    """Send an email."""
    message_id = app.gmail().send_message(
        split_list(to),
        subject,
        body,
        cc=split_list(cc),
        bcc=split_list(bcc),
        attachments=list(attach),
        reply_to_message_id=reply_to,
    )
    click.echo(f"Sent: {message_id}")


@mail.command("url")
@click.argument("thread_ids", nargs=-1, required=True)
@click.pass_obj
def mail_url(app: AppContext, thread_ids: tuple[str, ...]) -> None:
    """Print Gmail web URLs for threads."""
    gmail = app.gmail()
    for thread_id in thread_ids:
        click.echo(gmail.thread_url(thread_id))


# --- calendar -----------------------------------------------------------


@account.group("cal")
def cal() -> None:
    """Calendar operations."""


@cal.command("calendars")
@click.pass_obj
def cal_calendars(app: AppContext) -> None:
    echo_table(["ID", "NAME", "ROLE"], ([c.id, c.name, c.role] for c in app.calendar().list_calendars()))


@cal.command("acl")
@click.argument("calendar_id", default="primary")
@click.pass_obj
def cal_acl(app: AppContext, calendar_id: str) -> None:
    echo_table(
        ["ID", "ROLE", "SCOPE"],
        ([r.id, r.role, f"{r.scope_type}:{r.scope_value}"] for r in app.calendar().get_acl(calendar_id)),
    )


@cal.command("events")
@click.argument("calendar_id", default="primary")
@click.option("--max", "max_results", type=int, default=10, show_default=True)
@click.option("--page", "page_token")
@click.option("--from", "time_min", help="RFC 3339 start (default: now)")
@click.option("--to", "time_max", help="RFC 3339 end")
@click.option("--q", "query", help="Free-text filter")
@click.pass_obj
def cal_events(
    app: AppContext,
    calendar_id: str,
    max_results: int,
    page_token: Optional[str],
    time_min: Optional[str],
    time_max: Optional[str],
    query: Optional[str],
) -> None:
    """List upcoming events."""
    result = app.calendar().list_events(
        calendar_id, max_results, page_token, time_min, time_max, query
    )
    echo_table(["ID", "START", "END", "SUMMARY"], ([e.id, e.start, e.end, e.summary] for e in result.events))
    echo_next_page(result.next_page_token)


@cal.command("event")
@click.argument("calendar_id")
@click.argument("event_id")
@click.pass_obj
def cal_event(app: AppContext, calendar_id: str, event_id: str) -> None:
    event = app.calendar().get_event(calendar_id, event_id)
    click.echo(f"ID: {event.id}")
    click.echo(f"Summary: {event.summary}")
    click.echo(f"Start: {event.start}")
    click.echo(f"End: {event.end}")
    if event.location:
        click.echo(f"Location: {event.location}")
    if event.description:
        click.echo(f"Description: {event.description}")
    if event.attendees:
        click.echo(
            "Attendees: "
            + ", ".join(f"{a.email} ({a.response_status})" for a in event.attendees)
        )
    if event.html_link:
        click.echo(f"Link: {event.html_link}")


def event_options(required: bool):
    """Options shared by `cal create` and `cal update`."""

    def decorator(f):
        for option in reversed(
            [
                click.option("--title", required=required),
                click.option("--start", required=required, help="RFC 3339 time or YYYY-MM-DD with --allday"),
                click.option("--end", required=required),
                click.option("--description"),
                click.option("--location"),
                click.option("--attendees", help="Comma-separated emails"),
                click.option("--allday", is_flag=True),
            ]
        ):
            f = option(f)
        return f

    return decorator


@cal.command("create")
@click.argument("calendar_id")
@event_options(required=True)
@click.pass_obj
def cal_create(app: AppContext, calendar_id: str, title, start, end, description, location, attendees, allday) -> None:
    """Create an event."""
    event = app.calendar().create_event(
        calendar_id,
        title,
        start,
        end,
        description=description,
        location=location,
        attendees=split_list(attendees) or None,
        all_day=allday,
    )
    click.echo(f"Created: {event.id}")
    if event.html_link:
        click.echo(f"Link: {event.html_link}")


@cal.command("update")
@click.argument("calendar_id")
@click.argument("event_id")
@event_options(required=False)
@click.pass_obj
def cal_update(app: AppContext, calendar_id: str, event_id: str, title, start, end, description, location, attendees, allday) -> None:
    """Update fields of an event."""
    event = app.calendar().update_event(
        calendar_id,
        event_id,
        summary=title,
        start=start,
        end=end,
        description=description,
        location=location,
        attendees=split_list(attendees) if attendees is not None else None,
        all_day=allday,
    )
    click.echo(f"Updated: {event.id}")


@cal.command("delete")
@click.argument("calendar_id")
@click.argument("event_id")
@click.pass_obj
def cal_delete(app: AppContext, calendar_id: str, event_id: str) -> None:
    app.calendar().delete_event(calendar_id, event_id)
    err_console.print("Event deleted")


@cal.command("freebusy")
@click.argument("calendar_ids", nargs=-1, required=True)
@click.option("--start", required=True)
@click.option("--end", required=True)
@click.pass_obj
def cal_freebusy(app: AppContext, calendar_ids: tuple[str, ...], start: str, end: str) -> None:
    """Show busy periods for calendars."""
    result = app.calendar().free_busy(list(calendar_ids), start, end)
    for calendar_id, busy in result.items():
        click.echo(f"\n{calendar_id}:")
        if not busy:
            click.echo("  Free")
        for period in busy:
            click.echo(f"  Busy: {period.start} - {period.end}")


# --- drive --------------------------------------------------------------

FILE_HEADER = ["ID", "NAME", "TYPE", "SIZE", "MODIFIED"]


def _file_rows(files):
    for f in files:
        yield [
            f.id,
            f.name,
            "folder" if f.is_folder else "file",
            format_size(f.size),
            format_date(f.modified_time),
        ]


@account.group()
def drive() -> None:
    """Drive operations."""


@drive.command("ls")
@click.argument("folder_id", required=False)
@click.option("--max", "max_results", type=int, default=20, show_default=True)
@click.option("--page", "page_token")
@click.option("--query", help="Extra Drive query clause")
@click.pass_obj
def drive_ls(app: AppContext, folder_id: Optional[str], max_results: int, page_token: Optional[str], query: Optional[str]) -> None:
    """List files in a folder (default: root)."""
    result = app.drive().list_files(folder_id, max_results, page_token, query)
    echo_table(FILE_HEADER, _file_rows(result.files))
    echo_next_page(result.next_page_token)


@drive.command("search")
@click.argument("query")
@click.option("--max", "max_results", type=int, default=20, show_default=True)
@click.option("--page", "page_token")
@click.pass_obj
def drive_search(app: AppContext, query: str, max_results: int, page_token: Optional[str]) -> None:
    """Full-text search."""
    result = app.drive().search(query, max_results, page_token)
    echo_table(FILE_HEADER, _file_rows(result.files))
    echo_next_page(result.next_page_token)


@drive.command("get")
@click.argument("file_id")
@click.pass_obj
def drive_get(app: AppContext, file_id: str) -> None:
    f = app.drive().get_file(file_id)
    click.echo(f"ID: {f.id}")
    click.echo(f"Name: {f.name}")
    click.echo(f"Type: {f.mime_type}")
    click.echo(f"Size: {format_size(f.size)}")
    click.echo(f"Modified: {f.modified_time}")
    if f.description:
        click.echo(f"Description: {f.description}")
    if f.web_view_link:
        click.echo(f"Link: {f.web_view_link}")


@drive.command("download")
@click.argument("file_id")
@click.argument("dest", required=False, type=click.Path())
@click.pass_obj
def drive_download(app: AppContext, file_id: str, dest: Optional[str]) -> None:
    """Download a file (default destination: ~/.jgoogle/downloads/).

    DEST ending in "/" is treated as a directory and created if missing.
    """
    result = app.drive().download(file_id, dest)
    click.echo(f"Downloaded: {result.path} ({format_size(result.size)})")


@drive.command("permissions")
@click.argument("file_id")
@click.pass_obj
def drive_permissions(app: AppContext, file_id: str) -> None:
    echo_table(
        ["ID", "TYPE", "ROLE", "EMAIL"],
        ([p.id, p.type, p.role, p.email] for p in app.drive().list_permissions(file_id)),
    )


@drive.command("url")
@click.argument("file_ids", nargs=-1, required=True)
@click.pass_obj
def drive_url(app: AppContext, file_ids: tuple[str, ...]) -> None:
    drive_service = app.drive()
    for file_id in file_ids:
        click.echo(drive_service.file_url(file_id))


def main() -> None:
    cli(prog_name="jgoogle")


if __name__ == "__main__":
    sys.exit(main())
