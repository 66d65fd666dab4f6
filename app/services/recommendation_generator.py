"""
AI Content Recommendation Generator

Prompts the LLM with scored search opportunities and existing blog titles,
then validates the returned JSON into Recommendation records. Anything that
goes wrong degrades to an empty list: recommendations are advisory.
"""
import asyncio
import json
import re
import uuid
from typing import Any, Iterable, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from app.config import get_settings
from app.errors import GenerationFailure
from app.services.llm_service import LLMService
from app.services.opportunity_scorer import Opportunity
from app.utils.logger import log

settings = get_settings()

RECOMMENDATION_TYPES = ("new_post", "optimize", "quick_win", "long_tail")

# Greedy: first "[" to last "]", tolerating prose or code fences around it
JSON_ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")


class Recommendation(BaseModel):
    """A content recommendation.

    Accepts the camelCase keys the model is asked to emit; unknown keys are
    dropped.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: Literal["new_post", "optimize", "quick_win", "long_tail"]
    title: str = Field(min_length=1)
    target_keyword: str = Field(min_length=1)
    suggested_title: Optional[str] = None
    explanation: str = ""
    estimated_opportunity: int = 0
    confidence: Literal["high", "medium", "low"]
    priority: Literal["high", "medium", "low"]
    related_queries: List[str] = Field(default_factory=list)
    existing_post_id: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower().replace("-", "_").replace(" ", "_")
        return v

    @field_validator("confidence", "priority", mode="before")
    @classmethod
    def _normalize_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("title", "target_keyword", "explanation", mode="before")
    @classmethod
    def _strip_text(cls, v: Any) -> Any:
        if v is None:
            return ""
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("suggested_title", "existing_post_id", mode="before")
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("estimated_opportunity", mode="before")
    @classmethod
    def _coerce_opportunity(cls, v: Any) -> int:
        try:
            return max(0, int(round(float(v))))
        except (TypeError, ValueError):
            return 0

    @field_validator("related_queries", mode="before")
    @classmethod
    def _coerce_queries(cls, v: Any) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        if not isinstance(v, (list, tuple)):
            return []
        return [str(q).strip() for q in v if q is not None and str(q).strip()]

    def to_dict(self) -> dict:
        """API shape: optional fields are omitted rather than null"""
        return self.model_dump(exclude_none=True)


SYSTEM_INSTRUCTION = """You are an SEO content strategist for Herbarium Dyeworks, a hand-dyed wool e-commerce business.
Your role is to analyze search data and generate actionable content recommendations that will improve organic traffic.

Key business context:
- Artisan hand-dyed wool products
- Natural dye processes (indigo, madder, weld, etc.)
- Target audience: knitters, fiber artists, sustainable fashion enthusiasts
- Voice: Educational, personal, storytelling-focused (not hard-sell)

Recommendation types:
- "new_post": Create entirely new content for untapped keywords
- "optimize": Improve existing content for better rankings
- "quick_win": Low-hanging fruit (high impressions, poor CTR, positions 4-10)
- "long_tail": Specific, niche queries with commercial intent

Priority assessment:
- "high": >500 impressions/month OR position 4-7 with >100 impressions
- "medium": 100-500 impressions OR position 8-15
- "low": <100 impressions OR position >15

Confidence levels:
- "high": Clear search intent, strong commercial value, good keyword volume
- "medium": Moderate search volume, indirect commercial value
- "low": Low volume but strategic importance"""


def build_prompt(opportunities: List[Opportunity], existing_titles: List[str], limit: int) -> str:
    """User prompt embedding the top opportunities and existing post titles"""
    query_lines = []
    for i, opp in enumerate(opportunities[:limit], start=1):
        query_lines.append(
            f'{i}. "{opp.query}"\n'
            f"   - {opp.impressions} impressions, {opp.clicks} clicks\n"
            f"   - Position {opp.position:.1f}, CTR {opp.ctr * 100:.1f}%\n"
            f"   - Potential: +{opp.estimated_potential} clicks"
        )

    if existing_titles:
        titles = "\n".join(f"{i}. {t}" for i, t in enumerate(existing_titles, start=1))
    else:
        titles = "No existing blog posts"

    return f"""Analyze these top search queries and existing blog content to generate content recommendations.

TOP SEARCH QUERIES (last {settings.opportunity_lookback_days} days):
{chr(10).join(query_lines)}

EXISTING BLOG POSTS:
{titles}

TASK:
Generate 8-12 content recommendations based on this data. Focus on:
1. Content gaps (queries with high impressions but no matching content)
2. Quick wins (positions 4-10 that could reach top 3 with optimization)
3. Long-tail opportunities (specific, convertible queries)
4. Optimization for existing posts (if queries suggest better content)

OUTPUT FORMAT (valid JSON array only, no markdown):
[
  {{
    "type": "new_post" | "optimize" | "quick_win" | "long_tail",
    "title": "Brief recommendation title",
    "targetKeyword": "Primary keyword to target",
    "suggestedTitle": "Suggested blog post title (SEO-optimized H1)",
    "explanation": "Why this is valuable (1-2 sentences)",
    "estimatedOpportunity": <impressions number>,
    "confidence": "high" | "medium" | "low",
    "priority": "high" | "medium" | "low",
    "relatedQueries": ["related keyword 1", "related keyword 2"]
  }}
]"""


def extract_json_array(raw: str) -> List[Any]:
    """
    Pull the JSON array out of a model response.

    Raises:
        GenerationFailure: no array found, invalid JSON, or not a list
    """
    match = JSON_ARRAY_PATTERN.search(raw or "")
    if not match:
        raise GenerationFailure("No JSON array found in model response")

    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise GenerationFailure(f"Model response is not valid JSON: {e}") from e

    if not isinstance(parsed, list):
        raise GenerationFailure("Model response JSON is not an array")
    return parsed


def parse_recommendations(raw: str) -> List[Recommendation]:
    """
    Validate every array item into a Recommendation with a fresh id.

    Items that fail validation are skipped; the rest are kept.

    Raises:
        GenerationFailure: the response holds no usable JSON array
    """
    items = extract_json_array(raw)
    recommendations = []
    skipped = 0

    for item in items:
        if not isinstance(item, dict):
            skipped += 1
            continue
        # Identifiers are always assigned here, never taken from the model
        data = {k: v for k, v in item.items() if k != "id"}
        try:
            recommendations.append(Recommendation.model_validate(data))
        except ValidationError as e:
            skipped += 1
            log.warning(f"Skipping invalid recommendation: {e.error_count()} error(s), keys={sorted(data)}")

    if skipped:
        log.warning(f"Skipped {skipped} of {len(items)} recommendations from model output")
    return recommendations


class RecommendationGenerator:
    """Turns scored opportunities into AI content recommendations"""

    def __init__(
        self,
        llm: LLMService,
        prompt_limit: Optional[int] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.llm = llm
        self.prompt_limit = prompt_limit or settings.recommendation_prompt_limit
        self.max_tokens = max_tokens or settings.llm_max_tokens
        self.timeout = timeout or settings.request_timeout_seconds

    async def generate(
        self,
        opportunities: Iterable[Opportunity],
        existing_titles: Iterable[str],
    ) -> List[Recommendation]:
        """
        Generate recommendations; never raises to the caller.

        Extraction, validation and model errors are logged and produce an
        empty list, which callers cache like any other result.
        """
        opportunities = list(opportunities)
        existing_titles = [t for t in existing_titles if t]

        if not opportunities:
            log.info("No search opportunities to analyze, skipping recommendation generation")
            return []

        if not self.llm.is_available():
            log.info("LLM unavailable, returning no recommendations")
            return []

        prompt = build_prompt(opportunities, existing_titles, self.prompt_limit)

        try:
            raw = await asyncio.wait_for(
                self.llm.generate_content(
                    prompt,
                    system_instruction=SYSTEM_INSTRUCTION,
                    max_tokens=self.max_tokens,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            log.error(f"AI recommendation request timed out after {self.timeout}s")
            return []
        except Exception as e:
            log.error(f"Error generating AI recommendations: {str(e)}")
            return []

        try:
            recommendations = parse_recommendations(raw)
        except GenerationFailure as e:
            excerpt = (raw or "")[:200].replace("\n", " ")
            log.error(f"Failed to parse AI recommendations: {e} | response starts: {excerpt!r}")
            return []

        log.info(f"Generated {len(recommendations)} AI content recommendations")
        return recommendations
