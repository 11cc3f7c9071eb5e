from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, List, Literal, Optional, Union

import requests
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from loguru import logger
from pydantic import BaseModel, Field

from config import Configuration
from models import FilterCriteria, RestaurantRecord, Review
from services.classifier import KeywordSets, load_keywords
from services.details import DetailView, build_detail_view
from services.feed import FeedView
from services.location import resolve_location
from services.places import PlacesClient
from services.preferences import parse_dining_preferences
from services.review_summary import RemoteSummarizer, build_remote
from services.session import SessionManager
from services.session_utils import open_session, reset_session, session_language
from services.summarizer import LLMSummarizer, summarize_reviews_endpoint
from utils import format_distance, format_duration


app = FastAPI(title="Restaurant Finder")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@dataclass
class AppContext:
    cfg: Configuration
    client: PlacesClient
    keywords: KeywordSets
    sessions: SessionManager
    remote: Optional[RemoteSummarizer] = None
    llm: Optional[LLMSummarizer] = None


@lru_cache(maxsize=1)
def get_context() -> AppContext:
    cfg = Configuration.from_env()
    logger.info("cfg: {}", cfg.log_summary())
    return AppContext(
        cfg=cfg,
        client=PlacesClient(cfg),
        keywords=load_keywords(cfg.keywords_file),
        sessions=SessionManager(ttl_sec=cfg.session_ttl_sec),
        remote=build_remote(cfg),
        llm=LLMSummarizer(cfg) if cfg.llm_enabled() else None,
    )


def _require_places(ctx: AppContext) -> None:
    try:
        ctx.cfg.require_places()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@app.get("/favicon.ico")
def favicon() -> Response:
    # Avoid noisy 404 in logs if browser asks for favicon
    return Response(status_code=204)


# ---- payloads ----

class LocationRequest(BaseModel):
    lat: Optional[float] = Field(None, description="Browser latitude; fallback location when missing")
    lng: Optional[float] = Field(None, description="Browser longitude; fallback location when missing")


class PreferencesRequest(BaseModel):
    raw: Optional[Union[str, Dict[str, Any]]] = Field(None, description="Persisted diningPreferences blob")


class FilterUpdate(BaseModel):
    meal_type: Optional[Literal["main", "drinking"]] = None
    dietary_restriction: Optional[Literal["none", "vegetarian", "vegan", "glutenFree", "halal"]] = None
    dietary_preferences: Optional[Dict[str, bool]] = None
    sort_key: Optional[Literal["distance", "rating", "priceAsc", "priceDesc"]] = None
    price_levels: Optional[List[int]] = None
    price_min: Optional[int] = None
    price_max: Optional[int] = None
    min_rating: Optional[float] = None
    open_now_only: Optional[bool] = None
    max_walk_minutes: Optional[int] = None


class LanguageRequest(BaseModel):
    language: Optional[str] = None


class ReviewPayload(BaseModel):
    author_name: str = ""
    rating: float = 0
    text: str = ""
    time: int = 0
    relative_time_description: str = ""


class SummarizeRequest(BaseModel):
    reviews: List[ReviewPayload] = []
    language: str = "en"


class RestaurantPayload(BaseModel):
    id: str
    place_id: Optional[str] = None
    name: str
    vicinity: str = ""
    rating: Optional[float] = None
    user_ratings_total: int = 0
    price_level: Optional[int] = None
    types: List[str] = []
    open_now: Optional[bool] = None
    distance_meters: Optional[float] = None
    duration_seconds: Optional[float] = None
    distance_text: str = ""
    duration_text: str = ""
    lat: Optional[float] = None
    lng: Optional[float] = None
    is_drinking_establishment: bool = False
    dietary_match: Dict[str, bool] = {}


class ReviewOut(BaseModel):
    author_name: str
    rating: float
    text: str
    time: int
    relative_time_description: str


class SummaryPayload(BaseModel):
    summary: str
    cuisine: str
    atmosphere: str
    service: str


class FeedResponse(BaseModel):
    restaurants: List[RestaurantPayload]
    total_fetched: int
    has_more: bool
    loading: bool
    notice: Optional[str] = None
    auto_loaded_pages: int = 0
    filters: Dict[str, Any]
    language: str
    location: Optional[Dict[str, float]] = None
    used_fallback_location: bool = False


class DetailResponse(BaseModel):
    restaurant: RestaurantPayload
    photos: List[str]
    reviews: List[ReviewOut]
    review_sort: str
    language: str
    summary: SummaryPayload
    review_summaries: List[str] = []
    stale: bool = False


# ---- converters ----

def _restaurant_payload(rec: RestaurantRecord) -> RestaurantPayload:
    derived = rec.derived
    return RestaurantPayload(
        id=rec.id,
        place_id=rec.place_id,
        name=rec.name,
        vicinity=rec.vicinity,
        rating=rec.rating,
        user_ratings_total=rec.user_ratings_total,
        price_level=rec.price_level,
        types=list(rec.types),
        open_now=rec.open_now,
        distance_meters=rec.distance_meters,
        duration_seconds=rec.duration_seconds,
        distance_text=format_distance(rec.distance_meters),
        duration_text=format_duration(rec.duration_seconds),
        lat=rec.location.lat if rec.location else None,
        lng=rec.location.lng if rec.location else None,
        is_drinking_establishment=rec.is_drinking,
        dietary_match=derived.dietary_match.as_dict() if derived else {},
    )


def _review_payload(review: Review) -> ReviewOut:
    return ReviewOut(
        author_name=review.author,
        rating=review.rating,
        text=review.text,
        time=review.timestamp_seconds,
        relative_time_description=review.relative_time_label,
    )


def _filters_payload(criteria: FilterCriteria) -> Dict[str, Any]:
    return {
        "meal_type": criteria.meal_type,
        "dietary_restriction": criteria.dietary_restriction,
        "dietary_preferences": criteria.dietary_preferences.as_dict(),
        "price_levels": sorted(criteria.price_levels),
        "min_rating": criteria.min_rating,
        "open_now_only": criteria.open_now_only,
        "sort_key": criteria.sort_key,
        "max_walk_minutes": criteria.max_walk_minutes,
    }


def _feed_response(view: FeedView, criteria: FilterCriteria, language: str, feed_location=None, used_fallback: bool = False) -> FeedResponse:
    return FeedResponse(
        restaurants=[_restaurant_payload(r) for r in view.restaurants],
        total_fetched=view.total_fetched,
        has_more=view.has_more,
        loading=view.loading,
        notice=view.notice,
        auto_loaded_pages=view.auto_loaded_pages,
        filters=_filters_payload(criteria),
        language=language,
        location={"lat": feed_location.lat, "lng": feed_location.lng} if feed_location else None,
        used_fallback_location=used_fallback,
    )


def _detail_response(view: DetailView) -> DetailResponse:
    return DetailResponse(
        restaurant=_restaurant_payload(view.record),
        photos=view.photos,
        reviews=[_review_payload(r) for r in view.reviews],
        review_sort=view.review_sort,
        language=view.language,
        summary=SummaryPayload(**view.summary.as_dict()),
        review_summaries=view.review_summaries,
        stale=view.stale,
    )


# ---- health ----

@app.get("/healthz")
def healthz(ctx: AppContext = Depends(get_context)) -> dict:
    logger.info("cfg: {}", ctx.cfg.log_summary())
    return {"status": "ok", "sessions": len(ctx.sessions)}


@app.get("/health/llm")
def health_llm(ctx: AppContext = Depends(get_context)) -> dict:
    cfg = ctx.cfg
    provider = (cfg.llm_provider or "").lower()
    ok = False
    detail = None
    try:
        if provider == "ollama":
            r = requests.get(f"{cfg.ollama_base_url.rstrip('/')}/api/tags", timeout=5)
            ok = r.ok
            if r.ok:
                detail = r.json().get("models", [])
        elif cfg.llm_base_url:
            # OpenAI-compatible servers list models here
            r = requests.get(f"{cfg.llm_base_url.rstrip('/')}/models", timeout=5)
            ok = r.ok
    except (requests.RequestException, ValueError) as exc:
        ok = False
        detail = str(exc)
    return {"ok": ok, "provider": provider or "unset", "detail": detail}


# ---- sessions ----

@app.post("/sessions/{session_id}/location", response_model=FeedResponse)
def set_location(session_id: str, req: LocationRequest, ctx: AppContext = Depends(get_context)) -> FeedResponse:
    _require_places(ctx)
    session = open_session(ctx.sessions, session_id, ctx.cfg, ctx.client, ctx.keywords)
    location, used_fallback = resolve_location(ctx.cfg, req.lat, req.lng)
    session.feed.set_location(location)
    view = session.feed.view()
    logger.info(
        "session={} location=({:.4f},{:.4f}) fallback={} fetched={} shown={}",
        session_id,
        location.lat,
        location.lng,
        used_fallback,
        view.total_fetched,
        len(view.restaurants),
    )
    return _feed_response(view, session.feed.criteria, session.language.value, location, used_fallback)


@app.post("/sessions/{session_id}/preferences")
def load_preferences(session_id: str, req: PreferencesRequest, ctx: AppContext = Depends(get_context)) -> dict:
    session = open_session(ctx.sessions, session_id, ctx.cfg, ctx.client, ctx.keywords)
    prefs = parse_dining_preferences(req.raw)
    applied = session.feed.hydrate(prefs)
    return {"applied": applied, "filters": _filters_payload(session.feed.criteria)}


@app.patch("/sessions/{session_id}/filters", response_model=FeedResponse)
def update_filters(session_id: str, req: FilterUpdate, ctx: AppContext = Depends(get_context)) -> FeedResponse:
    session = open_session(ctx.sessions, session_id, ctx.cfg, ctx.client, ctx.keywords)
    try:
        session.feed.update_filters(req.model_dump(exclude_none=True))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    view = session.feed.view()
    return _feed_response(view, session.feed.criteria, session.language.value, session.feed.location)


@app.post("/sessions/{session_id}/more", response_model=FeedResponse)
def load_more(session_id: str, ctx: AppContext = Depends(get_context)) -> FeedResponse:
    _require_places(ctx)
    session = open_session(ctx.sessions, session_id, ctx.cfg, ctx.client, ctx.keywords)
    session.feed.load_more()
    view = session.feed.view()
    return _feed_response(view, session.feed.criteria, session.language.value, session.feed.location)


@app.get("/sessions/{session_id}/restaurants", response_model=FeedResponse)
def list_restaurants(session_id: str, ctx: AppContext = Depends(get_context)) -> FeedResponse:
    session = open_session(ctx.sessions, session_id, ctx.cfg, ctx.client, ctx.keywords)
    view = session.feed.view()
    return _feed_response(view, session.feed.criteria, session.language.value, session.feed.location)


@app.put("/sessions/{session_id}/language")
def set_language(session_id: str, req: LanguageRequest, ctx: AppContext = Depends(get_context)) -> dict:
    session = open_session(ctx.sessions, session_id, ctx.cfg, ctx.client, ctx.keywords)
    return {"language": session.language.set(req.language or "")}


@app.delete("/sessions/{session_id}")
def delete_session(session_id: str, ctx: AppContext = Depends(get_context)) -> dict:
    return {"reset": reset_session(ctx.sessions, session_id)}


# ---- details & summaries ----

@app.get("/restaurants/{place_id}", response_model=DetailResponse)
def restaurant_detail(
    place_id: str,
    session_id: Optional[str] = None,
    review_sort: Literal["recent", "helpful"] = "recent",
    language: Optional[str] = None,
    review_summaries: bool = False,
    ctx: AppContext = Depends(get_context),
) -> DetailResponse:
    _require_places(ctx)
    session = ctx.sessions.get(session_id) if session_id else None
    if session is not None:
        view = session.open_detail(
            ctx.cfg,
            ctx.client,
            place_id,
            review_sort=review_sort,
            keywords=ctx.keywords,
            remote=ctx.remote,
            with_review_summaries=review_summaries,
        )
    else:
        view = build_detail_view(
            ctx.cfg,
            ctx.client,
            place_id,
            review_sort=review_sort,
            language=language or session_language(ctx.sessions, session_id, ctx.cfg.lang_default),
            keywords=ctx.keywords,
            remote=ctx.remote,
            with_review_summaries=review_summaries,
        )
    if view is None:
        raise HTTPException(status_code=404, detail="restaurant not found")
    return _detail_response(view)


@app.post("/summarize-reviews")
def summarize_reviews(req: SummarizeRequest, ctx: AppContext = Depends(get_context)):
    reviews = [
        Review(
            author=r.author_name,
            rating=r.rating,
            text=r.text,
            timestamp_seconds=r.time,
            relative_time_label=r.relative_time_description,
        )
        for r in req.reviews
    ]
    try:
        summary = summarize_reviews_endpoint(ctx.cfg, reviews, req.language, summarizer=ctx.llm)
    except Exception as exc:
        logger.warning("summarize-reviews failed: {}", exc)
        return JSONResponse(status_code=400, content={"error": str(exc)})
    return summary.as_dict()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8010, reload=True)
