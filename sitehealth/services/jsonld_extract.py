from __future__ import annotations
from typing import List, Dict, Any, Iterable
from bs4 import BeautifulSoup
import json

def extract_onpage_jsonld(html: str) -> List[Any]:
    """
    Return the parsed payload of every <script type="application/ld+json"> block.
    One entry per block (a block may hold an object, an array or an @graph);
    malformed blocks are skipped.
    """
    soup = BeautifulSoup(html or "", "lxml")
    out: List[Any] = []
    for tag in soup.find_all("script", attrs={"type": "application/ld+json"}):
        try:
            payload = json.loads(tag.string or tag.text or "")
        except ValueError:
            continue
        if isinstance(payload, (dict, list)):
            out.append(payload)
    return out

def collect_schema_urls(node: Any, keys: Iterable[str]) -> List[str]:
    """
    Walk a JSON-LD payload and collect URL-looking strings (absolute or
    root-relative) stored under any of `keys`, including string lists.
    Order of first appearance is kept; duplicates are dropped.
    """
    wanted = set(keys)
    found: List[str] = []

    def _add(val: Any) -> None:
        if isinstance(val, str) and (val.startswith("http") or val.startswith("/")):
            if val not in found:
                found.append(val)

    def _walk(obj: Any) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                if k in wanted:
                    if isinstance(v, list):
                        for item in v:
                            _add(item)
                    else:
                        _add(v)
                if isinstance(v, (dict, list)):
                    _walk(v)
        elif isinstance(obj, list):
            for item in obj:
                _walk(item)

    _walk(node)
    return found
