"""
Job description normalization: board HTML becomes readable text.
"""
import html
import re
from typing import Optional, Tuple

from bs4 import BeautifulSoup

HTML_TAG_PATTERN = re.compile(r"<[a-z][\s\S]*>", re.IGNORECASE)
MARKDOWN_PATTERNS = (
    re.compile(r"^#{1,6}\s+", re.MULTILINE),
    re.compile(r"\*\*.*?\*\*"),
    re.compile(r"\[.*?\]\(.*?\)"),
    re.compile(r"^[-*+]\s+", re.MULTILINE),
    re.compile(r"^\d+\.\s+", re.MULTILINE),
)
BLOCK_TAGS = ("p", "div", "h1", "h2", "h3", "h4", "h5", "h6", "tr", "ul", "ol")


def contains_html(text: str) -> bool:
    return bool(HTML_TAG_PATTERN.search(text))


def html_to_text(markup: str) -> str:
    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for li in soup.find_all("li"):
        li.insert_before("\n- ")
    for block in soup.find_all(BLOCK_TAGS):
        block.insert_after("\n\n")

    text = soup.get_text()
    text = re.sub(r"[ \t\xa0]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def process_description(content: Optional[str], source_format: str = "plain") -> Tuple[Optional[str], str]:
    """
    Normalize a raw description.

    Returns (text, format) where format is "markdown" or "plain". Entity
    encoded HTML (as Greenhouse serves it) is decoded before conversion.
    """
    if not content or not content.strip():
        return None, "plain"

    if source_format == "html" or contains_html(content):
        decoded = html.unescape(content)
        if contains_html(decoded):
            return html_to_text(decoded), "markdown"
        content = decoded

    if any(pattern.search(content) for pattern in MARKDOWN_PATTERNS):
        return content, "markdown"
    return content, "plain"
