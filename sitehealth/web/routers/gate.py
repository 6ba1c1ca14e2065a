from __future__ import annotations
from typing import Any, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from sitehealth.db import get_session
from sitehealth.services.gate import ContentItem, PrePublicationGate
from sitehealth.services.settings import load_standards

router = APIRouter()


class ContentIn(BaseModel):
    title_en: Optional[str] = None
    title_ar: Optional[str] = None
    meta_title_en: Optional[str] = None
    meta_description_en: Optional[str] = None
    content_en: Optional[str] = None
    content_ar: Optional[str] = None
    locale: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    seo_score: Optional[float] = None
    author_id: Optional[str] = None
    keywords_json: Any = None


class GateRequest(BaseModel):
    target_url: str
    content: ContentIn
    site_url: Optional[str] = None
    skip_route_check: bool = False


@router.post("/gate")
async def run_gate(body: GateRequest, session: AsyncSession = Depends(get_session)):
    gate = PrePublicationGate(standards=await load_standards(session))
    c = body.content
    item = ContentItem(
        title_en=c.title_en, title_ar=c.title_ar,
        meta_title_en=c.meta_title_en, meta_description_en=c.meta_description_en,
        content_en=c.content_en, content_ar=c.content_ar, locale=c.locale,
        tags=list(c.tags), seo_score=c.seo_score, author_id=c.author_id,
        keywords_json=c.keywords_json,
    )
    result = await gate.run(body.target_url, item, site_url=body.site_url, skip_route_check=body.skip_route_check)
    return result.to_dict()
