from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from rich.console import Console
from rich.markup import escape

from ..config import AppConfig
from ..ingestion.aggregate import fetch_all_records, fetch_job_index
from ..ingestion.store_api import StoreClient
from ..io.load_raw import extract_jobs, extract_records, load_snapshot
from ..moderation.workflow import pending_prompts_for
from ..normalize.dates import utc_now
from ..normalize.fields import normalize_candidates
from ..schemas.models import CanonicalCandidate, CommunicationsView, Conversation
from .assemble import build_conversations
from .session import SessionContext
from .sort_filter import clamp_limit, clamp_page, client_filter, compute_stats, paginate, server_filter, sort_pairs

console = Console()


class RecordSource(Protocol):
    def load_records(self) -> List[Dict[str, Any]]:
        ...

    def job_index(self) -> Dict[str, Dict[str, str]]:
        ...


@dataclass
class StoreRecordSource:
    client: StoreClient
    cfg: AppConfig

    def load_records(self) -> List[Dict[str, Any]]:
        state = fetch_all_records(
            self.client,
            self.cfg.candidates_table_id,
            page_size=self.cfg.page_size,
            concurrency=self.cfg.concurrency,
            sort_key=self.cfg.sort_key,
        )
        return state.collected

    def job_index(self) -> Dict[str, Dict[str, str]]:
        return fetch_job_index(self.client, self.cfg.jobs_table_id)


@dataclass
class SnapshotRecordSource:
    path: Path
    _dataset: Any = field(default=None, init=False, repr=False)

    def _load(self) -> Any:
        if self._dataset is None:
            self._dataset = load_snapshot(self.path)
        return self._dataset

    def load_records(self) -> List[Dict[str, Any]]:
        return extract_records(self._load())

    def job_index(self) -> Dict[str, Dict[str, str]]:
        return extract_jobs(self._load())


def _summary(count: int, search: str) -> str:
    if search:
        return f"Found {count} candidates matching '{search}'"
    return "All candidates fetched successfully"


class CommunicationsService:
    """
    Builds the paginated communications view from the full candidate set.
    """

    def __init__(
        self,
        source: RecordSource,
        default_page_size: int = 10,
        max_page_size: int = 100,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.source = source
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size
        self.clock = clock

    def build_view(
        self,
        ctx: SessionContext,
        records: List[Dict[str, Any]],
        job_index: Optional[Dict[str, Dict[str, str]]] = None,
        page: Optional[int] = 1,
        limit: Optional[int] = None,
        search: str = "",
        client_text: str = "",
    ) -> Tuple[CommunicationsView, List[CanonicalCandidate]]:
        now = self.clock()
        page = clamp_page(page)
        limit = clamp_limit(limit, default=self.default_page_size, maximum=self.max_page_size)
        search = (search or "").strip()

        candidates = normalize_candidates(records, job_index=job_index, now=now)
        pairs = build_conversations(candidates, now=now)
        stats = compute_stats(conv for _, conv in pairs)

        ordered = sort_pairs(server_filter(pairs, search))
        page_pairs, page_info = paginate(ordered, page, limit)

        visible: List[Conversation] = client_filter([conv for _, conv in page_pairs], client_text)
        visible_ids = {c.candidate_id for c in visible}
        visible_candidates = [cand for cand, _ in page_pairs if cand.id in visible_ids]

        view = CommunicationsView(
            conversations=visible,
            page_info=page_info,
            stats=stats,
            pending_prompts=pending_prompts_for(ctx, visible_candidates),
            message=_summary(page_info.total_count, search),
        )
        return view, visible_candidates

    def load_view(
        self,
        ctx: SessionContext,
        page: Optional[int] = 1,
        limit: Optional[int] = None,
        search: str = "",
        client_text: str = "",
    ) -> Optional[CommunicationsView]:
        """
        Fetch, build and install a view; None when a newer request superseded this one.
        """
        token = ctx.begin_request()
        records = self.source.load_records()
        job_index = self.source.job_index()
        view, visible_candidates = self.build_view(
            ctx, records, job_index, page=page, limit=limit, search=search, client_text=client_text
        )
        if not ctx.apply_view(token, view, visible_candidates):
            return None
        console.print(
            f"[green]{escape(view.message)}[/green] page={view.page_info.page}/{view.page_info.total_pages} "
            f"showing={len(view.conversations)} total={view.stats.total}"
        )
        return view

    def load_candidate(self, ctx: SessionContext, candidate_id: str) -> Optional[CommunicationsView]:
        """
        Install the page holding `candidate_id`, narrowed to that candidate.
        """
        token = ctx.begin_request()
        records = self.source.load_records()
        job_index = self.source.job_index()
        page = 1
        while True:
            view, visible_candidates = self.build_view(
                ctx, records, job_index, page=page, limit=self.max_page_size, client_text=candidate_id
            )
            match = [c for c in visible_candidates if c.id == candidate_id]
            if match:
                narrowed = view.model_copy(
                    update={
                        "conversations": [c for c in view.conversations if c.candidate_id == candidate_id],
                        "pending_prompts": {k: v for k, v in view.pending_prompts.items() if k == candidate_id},
                    }
                )
                return narrowed if ctx.apply_view(token, narrowed, match) else None
            if page >= view.page_info.total_pages:
                return None
            page += 1
