"""Render XHTML sections to Markdown."""

import re
import warnings

from bs4 import BeautifulSoup, UnicodeDammit, XMLParsedAsHTMLWarning
from markdownify import MarkdownConverter

# Suppress XML parsing warnings - EPUB files often use XHTML
warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)

# Embedded media kept as raw HTML in the Markdown output
MEDIA_TAGS = ("img", "video", "audio")

# Tags without a markdownify converter whose content is rendered as usual.
# Anything else without a converter is emitted verbatim.
CONTENT_TAGS = frozenset(
    {
        "[document]", "html", "head", "body", "div", "span", "section",
        "article", "main", "header", "footer", "aside", "nav", "figure",
        "figcaption", "small", "big", "cite", "abbr", "acronym", "dfn",
        "time", "mark", "u", "ins", "label", "center", "font", "address",
        "bdi", "bdo", "data", "q", "var", "samp", "kbd", "wbr", "hgroup",
        "details", "summary", "ruby", "rb", "rt", "rp", "colgroup", "col",
        "thead", "tbody", "tfoot",
        "title", "meta", "link", "source", "track", "picture", "noscript",
    }
)

_BLANK_LINE_RUN = re.compile(r"\n{3,}")


def normalize_blank_lines(text: str) -> str:
    """Collapse runs of three or more newlines into one blank line."""
    return _BLANK_LINE_RUN.sub("\n\n", text)


def decode_markup(content: bytes) -> str:
    """Decode section bytes, honoring the document's declared encoding."""
    decoded = UnicodeDammit(content, ["utf-8"], is_html=True).unicode_markup
    if decoded is None:
        return content.decode("utf-8", errors="replace")
    return decoded


def parse_markup(content: str | bytes) -> BeautifulSoup:
    """Parse (X)HTML leniently."""
    return BeautifulSoup(content, "lxml")


class _PolicyConverter(MarkdownConverter):
    """markdownify converter that keeps some tags as raw HTML."""

    def __init__(self, preserve_tags: frozenset[str], **options):
        self.preserve_tags = preserve_tags
        super().__init__(**options)

    def get_conv_fn(self, tag_name):
        if tag_name in self.preserve_tags:
            return self._convert_verbatim

        convert_fn = super().get_conv_fn(tag_name)
        if (
            convert_fn is None
            and tag_name not in CONTENT_TAGS
            and self.should_convert_tag(tag_name)
        ):
            return self._convert_verbatim
        return convert_fn

    def _convert_verbatim(self, el, text, parent_tags):
        return str(el)


class MarkdownRenderer:
    """Convert section markup to Markdown."""

    def __init__(self, preserve_tags: tuple[str, ...] = MEDIA_TAGS):
        self.preserve_tags = frozenset(preserve_tags)
        self._converter = _PolicyConverter(
            self.preserve_tags,
            heading_style="ATX",
            bullets="-",
        )

    def render(self, markup: str | bytes | BeautifulSoup) -> str:
        """Convert markup (or an already parsed document) to Markdown."""
        soup = markup if isinstance(markup, BeautifulSoup) else parse_markup(markup)

        for tag in soup(["script", "style"]):
            tag.decompose()

        body = soup.body or soup
        markdown = self._converter.convert_soup(body)
        return normalize_blank_lines(markdown).strip()
