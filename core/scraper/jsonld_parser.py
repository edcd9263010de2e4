"""
JSON-LD Site Parser - Reads schema.org JobPosting data embedded in pages.

Most Bulgarian and international job boards publish `JobPosting` objects in
`<script type="application/ld+json">` blocks for search engines. Parsing
those keeps the pipeline independent of each site's CSS layout.
"""
import json
import logging
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional
from urllib.parse import urljoin, urlparse, urlencode

from bs4 import BeautifulSoup

from core.config_loader import ScraperSiteConfig
from core.scraper.interfaces import DetailInfo, ListingOptions, RawPosting, SiteParser
from core.utils import normalize_location, normalize_technologies

logger = logging.getLogger(__name__)


def _iter_json_ld(soup: BeautifulSoup) -> Iterator[Dict[str, Any]]:
    """Yield every JSON object found in ld+json blocks, flattening @graph and lists."""
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = script.string or script.get_text() or ""
        if not raw.strip():
            continue
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.debug(f"Skipping malformed JSON-LD block: {e}")
            continue

        stack = data if isinstance(data, list) else [data]
        for item in stack:
            if not isinstance(item, dict):
                continue
            if "@graph" in item:
                yield from (node for node in item["@graph"] if isinstance(node, dict))
            else:
                yield item


def _has_type(node: Dict[str, Any], type_name: str) -> bool:
    node_type = node.get("@type")
    if isinstance(node_type, list):
        return type_name in node_type
    return node_type == type_name


def _job_postings(soup: BeautifulSoup) -> List[Dict[str, Any]]:
    postings = []
    for node in _iter_json_ld(soup):
        if _has_type(node, "JobPosting"):
            postings.append(node)
        elif _has_type(node, "ItemList"):
            for element in node.get("itemListElement") or []:
                if not isinstance(element, dict):
                    continue
                item = element.get("item", element)
                if isinstance(item, dict) and _has_type(item, "JobPosting"):
                    postings.append(item)
    return postings


def _html_to_text(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    text = BeautifulSoup(value, "html.parser").get_text("\n", strip=True)
    return text or None


def page_text(html: Optional[str]) -> str:
    """Visible text of a full page, without scripts and styles."""
    soup = BeautifulSoup(html or "", "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    return soup.get_text("\n", strip=True)


def _parse_date(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"Unparsable datePosted: {value}")
        return None


def _identifier(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        value = value.get("value") or value.get("@id")
    if value is None or value == "":
        return None
    return str(value)


def _salary_text(base_salary: Any) -> Optional[str]:
    """Render schema.org MonetaryAmount as '<min> - <max> <CUR>'."""
    if not isinstance(base_salary, dict):
        return str(base_salary) if base_salary else None
    currency = base_salary.get("currency") or ""
    value = base_salary.get("value")
    if isinstance(value, dict):
        low = value.get("minValue")
        high = value.get("maxValue")
        if low is not None and high is not None:
            return f"{low} - {high} {currency}".strip()
        single = value.get("value")
        if single is not None:
            return f"{single} {currency}".strip()
    elif value is not None:
        return f"{value} {currency}".strip()
    return None


class JsonLdSiteParser(SiteParser):
    """
    Generic SiteParser for boards that publish schema.org JobPosting JSON-LD.

    Organization URLs on the board's own domains are treated as company
    profile pages; anything else is treated as the company's own website.
    """

    def __init__(self, site_name: str, site_config: ScraperSiteConfig):
        self.site_name = site_name
        self.config = site_config
        base_host = urlparse(site_config.base_url).hostname or ""
        self.board_domains = [d.lower() for d in (site_config.board_domains or [base_host]) if d]

    def listing_urls(self, options: ListingOptions) -> List[str]:
        max_pages = max(1, min(options.max_pages, self.config.max_pages))
        first = urljoin(self.config.base_url, self.config.listing_path)
        urls = [first]
        for page in range(2, max_pages + 1):
            separator = "&" if "?" in first else "?"
            urls.append(f"{first}{separator}{urlencode({self.config.page_param: page})}")
        return urls

    def can_handle(self, url: str) -> bool:
        hostname = (urlparse(url).hostname or "").lower()
        return any(hostname == d or hostname.endswith("." + d) for d in self.board_domains)

    def parse_listing(self, html: str, base_url: str) -> List[RawPosting]:
        soup = BeautifulSoup(html or "", "html.parser")
        postings = []
        for node in _job_postings(soup):
            raw = self._to_raw_posting(node, base_url)
            if raw:
                postings.append(raw)
        logger.info(f"[{self.site_name}] Parsed {len(postings)} postings from {base_url}")
        return postings

    def parse_detail(self, html: str) -> DetailInfo:
        soup = BeautifulSoup(html or "", "html.parser")
        nodes = _job_postings(soup)
        if not nodes:
            body = soup.find("main") or soup.body
            text = body.get_text("\n", strip=True) if body else None
            return DetailInfo(description=text or None)

        node = nodes[0]
        profile_url, website = self._organization_urls(node.get("hiringOrganization"), self.config.base_url)
        return DetailInfo(
            description=_html_to_text(node.get("description")),
            company_profile_url=profile_url,
            company_website=website,
        )

    def _organization_urls(self, organization: Any, base_url: str):
        if not isinstance(organization, dict):
            return None, None

        candidates = []
        for key in ("url", "sameAs"):
            value = organization.get(key)
            if isinstance(value, list):
                candidates.extend(v for v in value if isinstance(v, str))
            elif isinstance(value, str):
                candidates.append(value)

        profile_url = website = None
        for candidate in candidates:
            absolute = urljoin(base_url, candidate)
            if self.can_handle(absolute):
                profile_url = profile_url or absolute
            else:
                website = website or absolute
        return profile_url, website

    def _to_raw_posting(self, node: Dict[str, Any], base_url: str) -> Optional[RawPosting]:
        title = (node.get("title") or node.get("name") or "").strip()
        organization = node.get("hiringOrganization")
        company_name = ""
        if isinstance(organization, dict):
            company_name = (organization.get("name") or "").strip()
        elif isinstance(organization, str):
            company_name = organization.strip()

        url = node.get("url") or node.get("@id")
        if not title or not company_name or not url:
            logger.debug(f"[{self.site_name}] Skipping incomplete JobPosting: {title or url}")
            return None

        location = node.get("jobLocation")
        if isinstance(location, list):
            location = location[0] if location else None
        if isinstance(location, dict):
            location = location.get("address", location)
        if node.get("jobLocationType") == "TELECOMMUTE" and not location:
            location = "Remote"

        skills = node.get("skills") or node.get("programmingLanguage") or []
        profile_url, website = self._organization_urls(organization, base_url)

        return RawPosting(
            title=title,
            company_name=company_name,
            source_url=urljoin(base_url, url),
            source_site=self.site_name,
            location=normalize_location(location),
            external_id=_identifier(node.get("identifier")),
            technologies=normalize_technologies(skills),
            salary_text=_salary_text(node.get("baseSalary")),
            posted_at=_parse_date(node.get("datePosted")),
            description=_html_to_text(node.get("description")),
            company_profile_url=profile_url,
            company_website=website,
        )
