from __future__ import annotations

import re

from bs4 import BeautifulSoup

_SPACES_RE = re.compile(r" {2,}")
_TRAILING_WS_RE = re.compile(r"[ \t]+$", re.MULTILINE)
_MANY_NEWLINES_RE = re.compile(r"\n{3,}")

_BLOCK_TAGS = ["p", "div", "tr", "ul", "ol", "h1", "h2", "h3", "h4", "h5", "h6"]


def collapse_newlines(text: str) -> str:
    return _MANY_NEWLINES_RE.sub("\n\n", text)


def html_to_plain_text(value: str | None) -> str:
    """
    Decode embedded markup into readable plain text.

    Line breaks and paragraphs become newlines, list items become bulleted
    lines, table rows become lines with tab-separated cells. Script and
    style content is dropped, other tags are unwrapped and entities decoded.
    """
    if not value:
        return ""
    soup = BeautifulSoup(str(value).replace("\r\n", "\n"), "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for hr in soup.find_all("hr"):
        hr.replace_with("\n---\n")
    for li in soup.find_all("li"):
        li.insert(0, "• ")
        li.append("\n")
    for cell in soup.find_all(["td", "th"]):
        cell.append("\t")
    for block in soup.find_all(_BLOCK_TAGS):
        if block.name in ("ul", "ol"):
            block.insert_before("\n")
        block.append("\n")

    text = soup.get_text().replace("\u00a0", " ")
    text = _SPACES_RE.sub(" ", text)
    text = _TRAILING_WS_RE.sub("", text)
    text = collapse_newlines(text)
    return text.strip()
