from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from rich.console import Console

from .store_api import StoreError, StoreFetchError, page_records, reported_total

console = Console()


class PageSource(Protocol):
    def fetch_page(self, table_id: str, page: int, limit: int, query: str = "", sort_key: str = "_id") -> Dict[str, Any]:
        ...


@dataclass
class AggregationState:
    collected: List[Dict[str, Any]] = field(default_factory=list)
    reported_total: int = 0
    effective_page_size: int = 1
    pages_fetched: int = 0
    failed_pages: List[int] = field(default_factory=list)


def effective_page_size(first_page_count: int, requested_size: int) -> int:
    # Upstream may silently cap or ignore the requested size
    return max(1, first_page_count or requested_size)


def total_pages(total: int, page_size: int) -> int:
    if total <= 0:
        return 0
    return math.ceil(total / max(1, page_size))


def _fetch_or_empty(source: PageSource, table_id: str, page: int, limit: int, query: str, sort_key: str) -> Optional[List[Any]]:
    try:
        body = source.fetch_page(table_id, page, limit, query=query, sort_key=sort_key)
    except StoreError as e:
        console.print(f"[yellow]Store page {page} failed, substituting an empty page:[/yellow] {e}")
        return None
    return page_records(body)


def fetch_all_records(
    source: PageSource,
    table_id: str,
    page_size: int = 100,
    concurrency: int = 8,
    query: str = "",
    sort_key: str = "_id",
) -> AggregationState:
    """
    Read every record of a table from the paginated store.

    Page 1 is fetched first to learn the reported total and the page size the
    store actually honoured; the remaining pages are fetched concurrently and
    joined in page order. A failed page is replaced by an empty one.
    """
    try:
        first = source.fetch_page(table_id, 1, page_size, query=query, sort_key=sort_key)
    except StoreError as e:
        raise StoreFetchError(f"Store fetch failed for table {table_id}: {e}") from e

    first_records = page_records(first)
    state = AggregationState(pages_fetched=1)
    state.reported_total = reported_total(first, fallback=len(first_records))
    state.effective_page_size = effective_page_size(len(first_records), page_size)
    pages = total_pages(state.reported_total, state.effective_page_size)

    collected: List[Any] = list(first_records)
    remaining = list(range(2, pages + 1))
    if remaining:
        console.print(
            f"[cyan]Store[/cyan]: table={table_id} total={state.reported_total} "
            f"page_size={state.effective_page_size} fetching {len(remaining)} more page(s)"
        )
        with ThreadPoolExecutor(max_workers=max(1, min(concurrency, len(remaining)))) as pool:
            # map() yields in submission order, which keeps page order
            results = pool.map(
                lambda p: _fetch_or_empty(source, table_id, p, page_size, query, sort_key),
                remaining,
            )
            for page_no, records in zip(remaining, results):
                state.pages_fetched += 1
                if records is None:
                    state.failed_pages.append(page_no)
                    continue
                collected.extend(records)

    if len(collected) > state.reported_total:
        console.print(
            f"[yellow]Store over-delivered[/yellow]: got {len(collected)} records, "
            f"truncating to reported total {state.reported_total}"
        )
    state.collected = [r for r in collected[: state.reported_total] if isinstance(r, dict)]
    console.print(f"[green]Store aggregation complete[/green]: table={table_id} records={len(state.collected)}")
    return state


def fetch_job_index(source: Any, jobs_table_id: Optional[str]) -> Dict[str, Dict[str, str]]:
    """
    Map job id -> {"title", "company_name"} from the jobs table; empty on any failure.
    """
    if not jobs_table_id:
        return {}
    try:
        body = source.fetch_table(jobs_table_id)
    except StoreError as e:
        console.print(f"[yellow]Failed to fetch jobs for candidate enrichment:[/yellow] {e}")
        return {}
    index: Dict[str, Dict[str, str]] = {}
    for rec in page_records(body):
        if not isinstance(rec, dict):
            continue
        jid = rec.get("job_id") or rec.get("_id")
        if not jid:
            continue
        index[str(jid)] = {
            "title": str(rec.get("job_title") or rec.get("Job_Title") or rec.get("title") or "Job Title"),
            "company_name": str(rec.get("company_name") or rec.get("Company_Name") or rec.get("companyName") or "Company"),
        }
    return index
