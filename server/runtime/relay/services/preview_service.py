"""
Ephemeral Chat Relay - Link Preview Service

Fetches a page and extracts Open Graph / HTML metadata for link cards.
Any failure degrades to host-derived defaults.
"""

import ipaddress
import logging
import socket
from html.parser import HTMLParser
from typing import Callable, Dict, List, Optional
from urllib.parse import urljoin, urlsplit

import httpx

from relay.config import Settings
from relay.errors import UpstreamUnavailable
from relay.sanitize import escape_html, is_http_url

logger = logging.getLogger(__name__)

MAX_PAGE_BYTES = 512 * 1024
USER_AGENT = "EphemeralChatRelay/1.0 (link preview)"
MAX_REDIRECTS = 5


class _MetaParser(HTMLParser):
    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.meta: Dict[str, str] = {}
        self.title = ""
        self._in_title = False

    def handle_starttag(self, tag, attrs):
        if tag == "title":
            self._in_title = True
        elif tag == "meta":
            values = dict(attrs)
            key = (values.get("property") or values.get("name") or "").strip().lower()
            content = values.get("content")
            if key and content and key not in self.meta:
                self.meta[key] = content.strip()

    def handle_endtag(self, tag):
        if tag == "title":
            self._in_title = False

    def handle_data(self, data):
        if self._in_title:
            self.title += data


def _is_private_host(host: str) -> bool:
    if host == "localhost" or host.endswith(".localhost"):
        return True
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return False
    return (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_reserved
        or address.is_unspecified
    )


def resolve_host(host: str) -> List[str]:
    """Addresses a hostname resolves to; empty when it does not resolve"""
    try:
        infos = socket.getaddrinfo(host, None)
    except (socket.gaierror, UnicodeError):
        return []
    # Drop IPv6 zone suffixes such as "%eth0"
    return [info[4][0].split("%")[0] for info in infos]


class LinkPreviewService:
    """Builds ``{title, description, image, host}`` cards for URLs"""

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.BaseTransport] = None,
        resolver: Callable[[str], List[str]] = resolve_host,
    ):
        self.timeout = settings.OUTBOUND_TIMEOUT_SECONDS
        self.transport = transport
        self.resolver = resolver

    def _is_blocked(self, host: str) -> bool:
        """Private, loopback or otherwise internal, literally or once resolved"""
        if _is_private_host(host):
            return True
        return any(_is_private_host(address) for address in self.resolver(host))

    def preview(self, url: str) -> Dict[str, str]:
        url = (url or "").strip()
        host = (urlsplit(url).hostname or "") if is_http_url(url) else ""
        card = {"title": host or url[:200], "description": "", "image": "", "host": host}
        if not host or self._is_blocked(host):
            return card

        try:
            html = self._fetch(url)
        except UpstreamUnavailable as e:
            logger.warning("Link preview for %s unavailable: %s", host, e)
            return card

        parser = _MetaParser()
        parser.feed(html)
        meta = parser.meta

        title = meta.get("og:title") or meta.get("twitter:title") or parser.title.strip()
        description = meta.get("og:description") or meta.get("description") or ""
        image = meta.get("og:image") or meta.get("twitter:image") or ""
        if image:
            image = urljoin(url, image)
            if not is_http_url(image):
                image = ""

        card["title"] = escape_html(" ".join(title.split())[:200]) or card["title"]
        card["description"] = escape_html(" ".join(description.split())[:300])
        card["image"] = image
        return card

    def _fetch(self, url: str) -> str:
        """
        GET an HTML page, following at most MAX_REDIRECTS redirects.

        Every redirect target is checked before it is requested.

        Raises:
            UpstreamUnavailable: request failed, redirected somewhere
                internal, or the response is not HTML
        """
        try:
            with httpx.Client(
                timeout=self.timeout,
                transport=self.transport,
                follow_redirects=False,
                headers={"User-Agent": USER_AGENT},
            ) as client:
                for _ in range(MAX_REDIRECTS + 1):
                    with client.stream("GET", url) as response:
                        if response.is_redirect:
                            url = self._redirect_target(url, response.headers.get("location", ""))
                            continue
                        return self._read_html(response)
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(str(e)) from e
        raise UpstreamUnavailable(f"more than {MAX_REDIRECTS} redirects")

    def _redirect_target(self, url: str, location: str) -> str:
        target = urljoin(url, location.strip())
        host = (urlsplit(target).hostname or "") if is_http_url(target) else ""
        if not host or self._is_blocked(host):
            raise UpstreamUnavailable("redirect to a disallowed address")
        return target

    def _read_html(self, response: httpx.Response) -> str:
        response.raise_for_status()
        content_type = response.headers.get("content-type", "")
        if "html" not in content_type:
            raise UpstreamUnavailable(f"not an html page ({content_type or 'no content type'})")
        body = b""
        for chunk in response.iter_bytes():
            body += chunk
            if len(body) >= MAX_PAGE_BYTES:
                break
        body = body[:MAX_PAGE_BYTES]
        try:
            return body.decode(response.encoding or "utf-8", errors="replace")
        except LookupError:
            return body.decode("utf-8", errors="replace")
