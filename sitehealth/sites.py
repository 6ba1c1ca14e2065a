from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional
import os
import re


@dataclass(frozen=True)
class SiteConfig:
    id: str
    name: str
    slug: str
    domain: str
    locale: str = "en"  # en | ar
    status: str = "active"  # active | development | planned | paused

    @property
    def base_url(self) -> str:
        return f"https://www.{self.domain}"


SITES: Dict[str, SiteConfig] = {
    "yalla-london": SiteConfig("yalla-london", "Yalla London", "yalla-london", "yalla-london.com"),
    "arabaldives": SiteConfig("arabaldives", "Arabaldives", "arabaldives", "arabaldives.com", locale="ar", status="planned"),
    "french-riviera": SiteConfig("french-riviera", "Yalla Riviera", "yallariviera", "yallariviera.com", status="planned"),
    "istanbul": SiteConfig("istanbul", "Yalla Istanbul", "yallaistanbul", "yallaistanbul.com", status="planned"),
    "thailand": SiteConfig("thailand", "Yalla Thailand", "yallathailand", "yallathailand.com", status="planned"),
}

DEFAULT_SITE_ID = "yalla-london"


def get_site(site_id: str, sites: Optional[Dict[str, SiteConfig]] = None) -> Optional[SiteConfig]:
    return (sites if sites is not None else SITES).get(site_id)


def active_sites(sites: Optional[Dict[str, SiteConfig]] = None) -> List[SiteConfig]:
    return [s for s in (sites if sites is not None else SITES).values() if s.status == "active"]


def site_url(site_id: Optional[str], sites: Optional[Dict[str, SiteConfig]] = None) -> str:
    """
    Resolve a site id to its base URL. Unknown ids fall back to
    SITEHEALTH_SITE_URL, then to the default site.
    """
    registry = sites if sites is not None else SITES
    site = registry.get(site_id or "")
    if site:
        return site.base_url
    env = os.getenv("SITEHEALTH_SITE_URL")
    if env:
        return env.rstrip("/")
    fallback = registry.get(DEFAULT_SITE_ID) or next(iter(registry.values()), None)
    return fallback.base_url if fallback else "https://www.yalla-london.com"


def internal_link_pattern(sites: Optional[Dict[str, SiteConfig]] = None) -> re.Pattern:
    """Match <a href> tags that are root-relative or point at any registered domain/slug."""
    registry = sites if sites is not None else SITES
    names = []
    for key, s in registry.items():
        for n in (key, s.slug, s.domain):
            if n and n not in names:
                names.append(n)
    alt = "|".join(re.escape(n) for n in names) or r"(?!)"
    return re.compile(
        r"""<a[^>]+href=["'](?:/|https?://(?:www\.)?(?:""" + alt + r"""))[^"']*["'][^>]*>""",
        re.IGNORECASE,
    )
