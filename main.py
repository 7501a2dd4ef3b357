from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import click
from rich.console import Console
from rich.table import Table

from models.email_message import EmailMessage
from models.processing_result import BatchResult
from services.auth_service import AuthService
from services.email_processor import EmailProcessor
from services.filter_engine import FilterEngine
from services.gmail_service import GmailService
from services.pacing import build_pacing
from services.response_generator import ResponseGenerator
from services.rule_store import RuleStore
from services.rules_admin import RulesAdmin
from services.scheduler_service import SchedulerService
from services.statistics_service import StatisticsService
from utils.config import AppConfig, load_config
from utils.errors import EmailAutomationError
from utils.logger import configure_logging


LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class AppContext:
    config: AppConfig
    rule_store: RuleStore
    rules_admin: RulesAdmin
    stats: StatisticsService
    console: Console
    _gmail: Optional[GmailService] = field(default=None, repr=False)

    @property
    def gmail(self) -> GmailService:
        # built lazily so rule management works without Gmail credentials
        if self._gmail is None:
            self._gmail = GmailService(self.config, AuthService(self.config))
        return self._gmail

    def build_processor(self) -> EmailProcessor:
        return EmailProcessor(
            mailbox=self.gmail,
            filter_engine=FilterEngine(self.rule_store),
            generator=ResponseGenerator.from_config(self.config),
            pacing=build_pacing(self.config),
            mark_as_read=self.config.mark_as_read_after_reply,
        )


def build_context(env_file: str) -> AppContext:
    config = load_config(env_file)
    configure_logging(config.log_dir, config.log_level, config.processor_log_level)
    return AppContext(
        config=config,
        rule_store=RuleStore(config.rules_file),
        rules_admin=RulesAdmin(config.rules_file),
        stats=StatisticsService(config.stats_file),
        console=Console(),
    )


@click.group()
@click.option("--env-file", default=".env", show_default=True, help="Path to the .env file")
@click.pass_context
def cli(ctx: click.Context, env_file: str) -> None:
    """Gmail auto-reply assistant driven by keyword rules."""

    try:
        ctx.obj = build_context(env_file)
    except EmailAutomationError as exc:
        raise click.ClickException(str(exc)) from exc


@cli.command("fetch")
@click.option("--max-results", type=int, default=None, help="Maximum number of emails to fetch")
@click.pass_obj
def fetch_emails(app: AppContext, max_results: int | None) -> None:
    """List unread emails without replying to them."""

    limit = max_results or app.config.fetch_batch_size
    try:
        emails = app.gmail.fetch_unread_messages(limit)
    except EmailAutomationError as exc:
        raise click.ClickException(str(exc)) from exc
    if emails:
        app.console.print(_build_fetch_table(emails))
    else:
        app.console.print("[bold green]No unread emails found.[/bold green]")


@cli.command("process")
@click.option("--max-results", type=int, default=None, help="Maximum number of emails to process")
@click.pass_obj
def process_now(app: AppContext, max_results: int | None) -> None:
    """Run one processing batch immediately."""

    limit = max_results or app.config.fetch_batch_size
    try:
        result = app.build_processor().process_unread_emails(limit)
    except EmailAutomationError as exc:
        raise click.ClickException(str(exc)) from exc
    app.stats.record_batch(result)
    if result.total == 0:
        app.console.print("[bold green]No unread emails to process.[/bold green]")
        return
    app.console.print(_build_batch_table(result))


@cli.command("schedule")
@click.option("--interval", type=int, default=None, help="Interval in minutes")
@click.option("--max-results", type=int, default=None, help="Limit emails per run")
@click.option(
    "--reload-each-run/--keep-rules",
    default=False,
    help="Re-read the rules file before every cycle",
)
@click.pass_obj
def schedule_processing(
    app: AppContext, interval: int | None, max_results: int | None, reload_each_run: bool
) -> None:
    """Process unread emails on an interval until interrupted."""

    interval = interval or app.config.processing_interval_minutes
    try:
        processor = app.build_processor()
    except EmailAutomationError as exc:
        raise click.ClickException(str(exc)) from exc
    scheduler = SchedulerService(
        processor,
        app.stats,
        interval_minutes=interval,
        batch_size=max_results or app.config.fetch_batch_size,
        rule_store=app.rule_store,
        reload_rules=reload_each_run,
    )
    app.console.print(f"Processing emails every {interval} minute(s). Press Ctrl+C to stop.")
    scheduler.start()
    try:
        scheduler.run_forever()
    except KeyboardInterrupt:
        app.console.print("Scheduler stopped.")


@cli.command("rules")
@click.pass_obj
def list_rules(app: AppContext) -> None:
    """Show the configured rules and ignore lists."""

    try:
        rule_set = app.rule_store.load_rules()
    except EmailAutomationError as exc:
        raise click.ClickException(str(exc)) from exc

    table = Table(title=f"Rules ({app.config.rules_file.name})")
    table.add_column("ID")
    table.add_column("Enabled")
    table.add_column("Match")
    table.add_column("Keywords")
    table.add_column("Context")
    for rule in rule_set.rules:
        table.add_row(
            rule.id,
            "yes" if rule.enabled else "no",
            rule.match_mode.value,
            ", ".join(rule.keywords) or "-",
            rule.context,
        )
    app.console.print(table)

    ignore = rule_set.ignore_rules
    app.console.print(f"Ignored senders: {', '.join(ignore.ignore_senders) or '-'}")
    app.console.print(f"Ignored subjects: {', '.join(ignore.ignore_subject_contains) or '-'}")


@cli.command("check-rules")
@click.pass_obj
def check_rules(app: AppContext) -> None:
    """Validate the rules file."""

    try:
        rule_set = app.rule_store.reload()
    except EmailAutomationError as exc:
        raise click.ClickException(str(exc)) from exc
    enabled = sum(1 for rule in rule_set.rules if rule.enabled)
    app.console.print(f"[bold green]OK[/bold green] {len(rule_set.rules)} rule(s), {enabled} enabled.")


@cli.command("toggle-rule")
@click.argument("rule_id")
@click.option("--enable/--disable", "enabled", required=True, help="Enable or disable the rule")
@click.pass_obj
def toggle_rule(app: AppContext, rule_id: str, enabled: bool) -> None:
    """Enable or disable a rule."""

    try:
        app.rules_admin.toggle_rule(rule_id, enabled)
    except EmailAutomationError as exc:
        raise click.ClickException(str(exc)) from exc
    state = "enabled" if enabled else "disabled"
    app.console.print(f'Rule "{rule_id}" is now {state}.')
    _print_reload_hint(app)


@cli.command("update-rule")
@click.argument("rule_id")
@click.option("--keyword", "keywords", multiple=True, help="Replace the rule keywords (repeatable)")
@click.option("--clear-keywords", is_flag=True, help="Remove all keywords, so the rule never matches")
@click.option("--context", default=None, help="Replace the rule context")
@click.pass_obj
def update_rule(
    app: AppContext,
    rule_id: str,
    keywords: Sequence[str],
    clear_keywords: bool,
    context: str | None,
) -> None:
    """Update a rule's keywords or context."""

    if keywords and clear_keywords:
        raise click.UsageError("--keyword and --clear-keywords are mutually exclusive")
    new_keywords = [] if clear_keywords else (list(keywords) or None)
    if new_keywords is None and context is None:
        raise click.UsageError("Provide --keyword, --clear-keywords and/or --context")
    try:
        rule = app.rules_admin.update_rule(rule_id, keywords=new_keywords, context=context)
    except EmailAutomationError as exc:
        raise click.ClickException(str(exc)) from exc
    conditions = rule.get("conditions", {})
    app.console.print(
        f'Rule "{rule_id}" updated: keywords={conditions.get("keywords", [])} context={rule.get("context", "")!r}'
    )
    _print_reload_hint(app)


@cli.command("show")
@click.argument("message_id")
@click.pass_obj
def show_email(app: AppContext, message_id: str) -> None:
    """Show one message and how the rules treat it."""

    try:
        email = app.gmail.get_message(message_id)
        filter_engine = FilterEngine(app.rule_store)
        ignored = filter_engine.is_ignored(email)
        matches = filter_engine.matching_rules(email)
    except EmailAutomationError as exc:
        raise click.ClickException(str(exc)) from exc

    table = Table(title=f"Message {email.id}", show_header=False)
    table.add_column("Field")
    table.add_column("Value", overflow="fold")
    table.add_row("From", email.sender)
    table.add_row("To", email.to or "-")
    table.add_row("Subject", email.subject)
    table.add_row("Received", email.received_at.isoformat() if email.received_at else "-")
    table.add_row("Labels", ", ".join(email.labels) or "-")
    table.add_row("Ignored", "yes" if ignored else "no")
    table.add_row("Matching rules", ", ".join(rule.id for rule in matches) or "-")
    app.console.print(table)
    app.console.print(email.body or email.snippet)


@cli.command("reply")
@click.argument("message_id")
@click.option("--text", "reply_text", required=True, help="Reply body to send")
@click.pass_obj
def reply_to_email(app: AppContext, message_id: str, reply_text: str) -> None:
    """Send a manual reply in the message's thread."""

    try:
        email = app.gmail.get_message(message_id)
        app.gmail.send_reply(email, reply_text)
    except EmailAutomationError as exc:
        raise click.ClickException(str(exc)) from exc
    app.console.print(f"Reply sent to {email.sender}.")


@cli.command("mark-read")
@click.argument("message_id")
@click.pass_obj
def mark_read(app: AppContext, message_id: str) -> None:
    """Remove the UNREAD label from a message."""

    try:
        app.gmail.mark_as_read(message_id)
    except EmailAutomationError as exc:
        raise click.ClickException(str(exc)) from exc
    app.console.print(f"Marked {message_id} as read.")


@cli.command("label")
@click.argument("message_id")
@click.argument("label_name")
@click.pass_obj
def label_email(app: AppContext, message_id: str, label_name: str) -> None:
    """Attach a label to a message, creating the label if needed."""

    if not app.gmail.add_label(message_id, label_name):
        raise click.ClickException(f"Could not add label {label_name} to {message_id}; see the log")
    app.console.print(f"Added label {label_name} to {message_id}.")


@cli.command("status")
@click.pass_obj
def status(app: AppContext) -> None:
    """Display scheduler state and processing statistics."""

    snapshot = app.stats.snapshot()
    scheduler = snapshot.get("scheduler", {})

    table = Table(title="System status")
    table.add_column("Metric")
    table.add_column("Value")
    table.add_row("Scheduler running", "yes" if scheduler.get("running") else "no")
    table.add_row(
        "Interval (minutes)",
        str(scheduler.get("interval_minutes", app.config.processing_interval_minutes)),
    )
    table.add_row("Runs", str(snapshot.get("runs", 0)))
    table.add_row("Runs today", str(app.stats.runs_today()))
    table.add_row("Last run", snapshot.get("last_run") or "never")
    table.add_row("Total processed", str(snapshot.get("total_processed", 0)))
    table.add_row("Total skipped", str(snapshot.get("total_skipped", 0)))
    table.add_row("Total failed", str(snapshot.get("total_failed", 0)))
    app.console.print(table)


def main() -> None:
    cli(standalone_mode=True)


def _print_reload_hint(app: AppContext) -> None:
    app.console.print(
        "[dim]A running scheduler picks this up on its next reload (use --reload-each-run).[/dim]"
    )


def _build_fetch_table(emails: List[EmailMessage]) -> Table:
    table = Table(title="Unread emails", show_lines=False)
    table.add_column("ID", overflow="fold")
    table.add_column("Received")
    table.add_column("Sender")
    table.add_column("Subject")
    for email in emails:
        received = email.received_at.strftime("%Y-%m-%d %H:%M") if email.received_at else "-"
        table.add_row(email.id, received, email.sender, email.subject)
    return table


def _build_batch_table(result: BatchResult) -> Table:
    table = Table(title="Batch result")
    table.add_column("Total")
    table.add_column("Processed")
    table.add_column("Skipped")
    table.add_column("Failed")
    table.add_row(str(result.total), str(result.processed), str(result.skipped), str(result.failed))
    return table


if __name__ == "__main__":
    main()
