from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape

from .config import AppConfig, ConfigError, load_config
from .ingestion.aggregate import fetch_all_records, fetch_job_index
from .ingestion.store_api import StoreClient, StoreError
from .moderation.dispatch import FlowMessageSender
from .moderation.workflow import ModerationError, ModerationWorkflow
from .normalize.dates import to_iso, utc_now
from .pipeline.session import SessionContext
from .pipeline.view import CommunicationsService, RecordSource, SnapshotRecordSource, StoreRecordSource
from .utils.json_utils import write_json

load_dotenv()  # automatically load variables from .env if present
console = Console()


def _load_config_or_exit(config_path: Path, required: bool = True) -> AppConfig:
    if not required and not config_path.exists():
        return AppConfig(raw={})
    try:
        return load_config(config_path)
    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(2)
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {e}")
        sys.exit(2)
    except Exception as e:  # unexpected
        console.print(f"[red]Unexpected error loading config:[/red] {e}")
        sys.exit(1)


def _store_client(cfg: AppConfig) -> StoreClient:
    cfg.validate_store()
    return StoreClient(
        project_id=cfg.project_id,
        api_key=cfg.api_key(),
        base_url=cfg.base_url,
        timeout_s=cfg.timeout_s,
    )


def _record_source(cfg: AppConfig, input_path: Optional[str]) -> RecordSource:
    if input_path:
        return SnapshotRecordSource(Path(input_path))
    return StoreRecordSource(_store_client(cfg), cfg)


def _service(cfg: AppConfig, args: argparse.Namespace) -> CommunicationsService:
    return CommunicationsService(
        _record_source(cfg, args.input),
        default_page_size=cfg.default_page_size,
        max_page_size=cfg.max_page_size,
    )


def cmd_conversations(args: argparse.Namespace) -> int:
    cfg = _load_config_or_exit(Path(args.config), required=not args.input)
    service = _service(cfg, args)
    ctx = SessionContext()
    view = service.load_view(ctx, page=args.page, limit=args.limit, search=args.search, client_text=args.filter)
    if view is None:
        return 1

    if args.output:
        write_json(Path(args.output), view.model_dump())
        console.print(f"[bold]View written:[/bold] {args.output}")
        return 0

    info = view.page_info
    console.print(f"[bold]{escape(view.message)}[/bold]")
    console.print(
        f"Page {info.page}/{info.total_pages} ({info.total_count} matching) | "
        f"total={view.stats.total} with_messages={view.stats.with_messages} "
        f"without_messages={view.stats.without_messages}"
    )
    for conv in view.conversations:
        unread = f" [magenta]({conv.unread_count} unread)[/magenta]" if conv.unread_count else ""
        console.print(
            f"[cyan]{escape(conv.candidate_id)}[/cyan] {escape(conv.display_name)} | {escape(conv.job_title)} | "
            f"{conv.message_count} msg{unread} | {conv.last_message_time or '-'}"
        )
        console.print(f"    {escape(conv.last_message[:120])}")
    return 0


def cmd_prompts(args: argparse.Namespace) -> int:
    cfg = _load_config_or_exit(Path(args.config), required=not args.input)
    service = _service(cfg, args)
    ctx = SessionContext()
    view = service.load_view(ctx, page=args.page, limit=args.limit, search=args.search)
    if view is None:
        return 1
    if not view.pending_prompts:
        console.print("[yellow]No pending crafted messages on this page.[/yellow]")
        return 0
    for candidate_id, prompts in view.pending_prompts.items():
        for prompt in prompts:
            console.print(f"[cyan]{escape(candidate_id)}[/cyan] {escape(prompt.candidate_name)} [bold]{prompt.channel}[/bold]")
            console.print(f"    {escape(prompt.content)}")
    return 0


def cmd_moderate(args: argparse.Namespace) -> int:
    cfg = _load_config_or_exit(Path(args.config))
    try:
        client = _store_client(cfg)
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {e}")
        return 2
    if not cfg.message_sender_flow_id:
        console.print("[red]Config error:[/red] moderation.message_sender_flow_id is not set")
        return 2

    service = _service(cfg, args)
    ctx = SessionContext()
    if service.load_candidate(ctx, args.candidate_id) is None:
        console.print(f"[red]Candidate not found:[/red] {args.candidate_id}")
        return 1

    sender = FlowMessageSender(
        client=client,
        message_sender_flow_id=cfg.message_sender_flow_id,
        whatsapp_flow_id=cfg.whatsapp_flow_id,
        executed_by=cfg.executed_by,
    )
    workflow = ModerationWorkflow(ctx, sender)
    try:
        if args.decision == "approve":
            outcome = workflow.approve(args.candidate_id, args.channel)
        else:
            outcome = workflow.reject(args.candidate_id, args.channel)
    except ModerationError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        return 1

    if not outcome.applied:
        console.print(
            f"[yellow]Nothing to moderate[/yellow] for {args.candidate_id}/{args.channel} (state={outcome.state or 'none'})"
        )
        return 0
    console.print(f"[bold green]{outcome.state.capitalize()}[/bold green] {args.candidate_id}/{args.channel}")
    if not outcome.delivered:
        console.print("[yellow]The message sender call did not succeed; see warnings above.[/yellow]")
    return 0


def cmd_snapshot(args: argparse.Namespace) -> int:
    cfg = _load_config_or_exit(Path(args.config))
    try:
        client = _store_client(cfg)
        state = fetch_all_records(
            client,
            cfg.candidates_table_id,
            page_size=cfg.page_size,
            concurrency=cfg.concurrency,
            sort_key=cfg.sort_key,
        )
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {e}")
        return 2
    except StoreError as e:
        console.print(f"[red]Store fetch failed:[/red] {e}")
        return 1

    snapshot = {
        "fetched_at": to_iso(utc_now()),
        "reported_total": state.reported_total,
        "failed_pages": state.failed_pages,
        "records": state.collected,
        "jobs": fetch_job_index(client, cfg.jobs_table_id),
    }
    write_json(Path(args.output), snapshot)
    console.print(f"[bold]Snapshot:[/bold] {args.output} ({len(state.collected)} records)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="comms",
        description="Recruiter communications CLI: candidate conversations and crafted message moderation.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", type=str, default="config.yml", help="Path to config.yml")
        p.add_argument("--input", type=str, help="Read candidates from a local snapshot instead of the store")

    def add_paging(p: argparse.ArgumentParser) -> None:
        p.add_argument("--page", type=int, default=1, help="Page number (1-based)")
        p.add_argument("--limit", type=int, help="Page size (max 100)")
        p.add_argument("--search", type=str, default="", help="Substring query over name, email, phone, title, employer")

    p_conv = sub.add_parser("conversations", help="Show one page of candidate conversations")
    add_common(p_conv)
    add_paging(p_conv)
    p_conv.add_argument("--filter", type=str, default="", help="Narrow the page by name or candidate id")
    p_conv.add_argument("--output", type=str, help="Write the view as JSON instead of printing it")
    p_conv.set_defaults(func=cmd_conversations)

    p_prompts = sub.add_parser("prompts", help="List pending crafted messages on one page")
    add_common(p_prompts)
    add_paging(p_prompts)
    p_prompts.set_defaults(func=cmd_prompts)

    p_mod = sub.add_parser("moderate", help="Approve or reject one crafted message")
    add_common(p_mod)
    p_mod.add_argument("--candidate-id", type=str, required=True, help="Candidate id")
    p_mod.add_argument("--channel", choices=["mail", "linkedin", "whatsapp"], required=True)
    p_mod.add_argument("--decision", choices=["approve", "reject"], required=True)
    p_mod.set_defaults(func=cmd_moderate)

    p_snap = sub.add_parser("snapshot", help="Write every candidate record of the store to a JSON file")
    p_snap.add_argument("--config", type=str, default="config.yml", help="Path to config.yml")
    p_snap.add_argument("--output", type=str, required=True, help="Snapshot file to write")
    p_snap.set_defaults(func=cmd_snapshot)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return args.func(args)
    except SystemExit:
        raise
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {e}")
        return 2
    except StoreError as e:
        console.print(f"[red]Store fetch failed:[/red] {e}")
        return 1
    except Exception as e:
        console.print(f"[red]Unexpected error:[/red] {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
