"""HTML cleaning service for converting raw HTML into markdown."""
import re
from typing import List, Optional

import html2text
from bs4 import BeautifulSoup, NavigableString, Tag

from ..utils.logger import logger


class HTMLCleaner:
    """Service for converting HTML pages into agent-readable markdown."""

    # Tags that never carry readable content
    REMOVE_TAGS = [
        'script', 'style', 'noscript', 'template', 'iframe', 'object', 'embed',
        'svg', 'canvas', 'head', 'link', 'meta',
    ]

    # Page chrome dropped when only the main content is wanted
    BOILERPLATE_TAGS = [
        'nav', 'header', 'footer', 'aside', 'menu',
        'form', 'button', 'input', 'select', 'textarea',
    ]

    # class/id tokens that indicate navigation/UI elements
    NAV_CLASSES = {
        'nav', 'navbar', 'navigation', 'menu', 'header', 'footer', 'sidebar',
        'breadcrumb', 'breadcrumbs', 'pagination', 'cookie', 'cookies', 'banner',
        'modal', 'popup', 'overlay', 'share', 'social', 'ad', 'ads', 'advert',
        'advertisement', 'newsletter', 'subscribe',
    }

    # Primary content containers, most specific first
    MAIN_CONTENT_SELECTORS = [
        'main', 'article', '[role="main"]', '#content', '#main', '#main-content',
    ]

    EMPHASIS_TAGS = ['strong', 'b', 'em', 'i']

    _CLASS_TOKEN = re.compile(r'[^a-z0-9]+')
    _BACKTICK_RUN = re.compile(r'`+')
    # Alphanumeric so html2text passes it through untouched
    CODE_TOKEN = 'PULSEFETCHCODE{index}BLOCK'
    _CODE_TOKEN_PATTERN = re.compile(r'PULSEFETCHCODE(\d+)BLOCK')
    # Blockquote markers, then an optional list marker, at the start of a line
    _LINE_LEAD = re.compile(r'^(\s*(?:>\s*)*)(?:(?:\d+\.|[-*+])\s+)?')

    def to_markdown(
        self, html: str, base_url: str = "", main_content_only: bool = False
    ) -> str:
        """Convert HTML to markdown.

        Args:
            html: Raw HTML string
            base_url: Page URL used to resolve relative links
            main_content_only: Drop navigation/boilerplate and keep the primary content container

        Returns:
            Markdown text. If the markup cannot be converted at all the raw
            input is returned unchanged.
        """
        if html is None:
            return ""
        if not isinstance(html, str):
            html = str(html)
        if not html.strip():
            return ""

        try:
            soup = BeautifulSoup(html, 'lxml')

            for tag_name in self.REMOVE_TAGS:
                for tag in soup.find_all(tag_name):
                    tag.decompose()

            root = self._select_root(soup, main_content_only)
            blocks = self._prepare(root)
            markdown = self._converter(base_url).handle(str(root))
            markdown = self._tidy(self._restore_code_blocks(markdown, blocks))

            if markdown.strip():
                return markdown

            # Nothing structural survived; fall back to whatever text exists
            fallback = soup.get_text(separator=' ', strip=True)
            return fallback or html.strip()

        except Exception as e:
            logger.warning(f"Error converting HTML to markdown, returning raw content: {e}")
            return html

    def _converter(self, base_url: str) -> html2text.HTML2Text:
        """Build an html2text converter for one page."""
        h = html2text.HTML2Text(baseurl=base_url or "")
        h.ignore_links = False
        h.ignore_images = False
        h.ignore_emphasis = False
        h.ignore_tables = False
        h.body_width = 0  # No line wrapping
        h.unicode_snob = True
        h.skip_internal_links = True
        h.ul_item_mark = '-'
        h.emphasis_mark = '*'
        return h

    def _prepare(self, root: Tag) -> List[str]:
        """Rewrite the constructs html2text renders poorly before conversion.

        Returns:
            Code block contents, in the order of their placeholder tokens
        """
        for img in root.find_all('img'):
            if (img.get('src') or '').strip().startswith('data:'):
                img.decompose()

        for link in root.find_all('a'):
            if (link.get('href') or '').strip().lower().startswith('javascript:'):
                link.unwrap()

        # Whitespace at the edge of an emphasis run belongs outside the markers
        for tag in root.find_all(self.EMPHASIS_TAGS):
            text = tag.get_text()
            if not text.strip():
                continue
            if text[0].isspace():
                tag.insert_before(NavigableString(' '))
            if text[-1].isspace():
                tag.insert_after(NavigableString(' '))

        # html2text indents <pre> instead of fencing it; fences are restored after conversion
        blocks: List[str] = []
        for pre in root.find_all('pre'):
            if pre.decomposed:
                continue
            code = pre.get_text().strip('\n')
            if not code.strip():
                pre.decompose()
                continue
            pre.replace_with(NavigableString(self.CODE_TOKEN.format(index=len(blocks))))
            blocks.append(code)

        # Inline code containing backticks needs a longer fence than html2text emits
        for code in root.find_all('code'):
            text = code.get_text()
            if '`' not in text:
                continue
            fence = '`' * (self._longest_backtick_run(text) + 1)
            code.replace_with(NavigableString(f"{fence} {text} {fence}"))

        return blocks

    def _restore_code_blocks(self, markdown: str, blocks: List[str]) -> str:
        """Replace placeholder tokens with fenced code, nested under any list item or quote."""
        if not blocks:
            return markdown

        lines: List[str] = []
        for line in markdown.split('\n'):
            match = self._CODE_TOKEN_PATTERN.search(line)
            if not match:
                lines.append(line)
                continue

            prefix = line[:match.start()]
            lead = self._LINE_LEAD.match(prefix)
            head = lead.group(0)
            indent = lead.group(1) + ' ' * (len(head) - len(lead.group(1)))

            if prefix[len(head):].strip():
                lines.append(prefix.rstrip())
                first = indent
            else:
                first = head

            code = blocks[int(match.group(1))]
            fence = '`' * max(3, self._longest_backtick_run(code) + 1)
            lines.append(first + fence)
            lines.extend(indent + code_line if code_line else indent for code_line in code.split('\n'))
            lines.append(indent + fence)

            rest = line[match.end():].strip()
            if rest:
                lines.extend(self._restore_code_blocks(indent + rest, blocks).split('\n'))

        return '\n'.join(lines)

    def _longest_backtick_run(self, text: str) -> int:
        return max((len(run) for run in self._BACKTICK_RUN.findall(text)), default=0)

    def _select_root(self, soup: BeautifulSoup, main_content_only: bool) -> Tag:
        """Pick the subtree to convert."""
        body = soup.body or soup
        if not main_content_only:
            return body

        main = self._find_main_content(soup)

        for tag_name in self.BOILERPLATE_TAGS:
            for tag in body.find_all(tag_name):
                if tag.decomposed:
                    continue
                if main is not None:
                    # Ancestors of the landmark, and an article's own header, stay
                    if tag is main or tag in main.parents:
                        continue
                    if tag_name == 'header' and main in tag.parents:
                        continue
                tag.decompose()

        for element in body.find_all(True):
            if element.decomposed:
                continue
            if main is not None:
                if element is main or element in main.parents:
                    continue
                if element.name == 'header' and main in element.parents:
                    continue
            if self._is_navigation_element(element):
                element.decompose()

        if main is not None and not main.decomposed and main.get_text(strip=True):
            return main
        return body

    def _find_main_content(self, soup: BeautifulSoup) -> Optional[Tag]:
        """Locate the primary content landmark, if the page has one."""
        for selector in self.MAIN_CONTENT_SELECTORS:
            candidate = soup.select_one(selector)
            if candidate is not None and candidate.get_text(strip=True):
                return candidate
        return None

    def _is_navigation_element(self, element: Tag) -> bool:
        """Check if element is a navigation/UI element.

        Args:
            element: BeautifulSoup Tag

        Returns:
            True if element should be removed
        """
        if not isinstance(element, Tag) or element.attrs is None:
            return False

        # Never remove structural elements
        if element.name in ('html', 'body', 'main', 'article'):
            return False

        classes = element.get('class') or []
        if isinstance(classes, str):
            classes = [classes]
        raw = ' '.join(classes + [str(element.get('id') or ''), str(element.get('role') or '')])
        tokens = set(self._CLASS_TOKEN.split(raw.lower()))

        return bool(tokens & self.NAV_CLASSES)

    def _tidy(self, text: str) -> str:
        """Drop trailing spaces and collapse runs of blank lines."""
        lines = [line.rstrip() for line in text.split('\n')]
        tidied = re.sub(r'\n{3,}', '\n\n', '\n'.join(lines))
        return tidied.strip('\n')


# Global HTML cleaner instance
html_cleaner = HTMLCleaner()
