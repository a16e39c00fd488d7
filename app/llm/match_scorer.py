"""
AI provider gateway for job matching.

Builds the scoring prompt from a candidate profile and one job (or a batch
of jobs), calls the LLM provider and returns validated ``MatchResult``s.
Failures surface as ``ProviderError`` with an error type the retry policy
understands.
"""
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from app.llm.openai_provider import OpenAIProvider
from app.llm.provider import LLMProvider, ProviderError
from app.resilience.errors import ErrorType

logger = logging.getLogger(__name__)

SINGLE_DESCRIPTION_LIMIT = 6000
BATCH_DESCRIPTION_LIMIT = 3000

SYSTEM_PROMPT = (
    "You are a technical recruiter scoring how well a candidate fits job openings. "
    "Be calibrated: 80-100 strong fit, 60-79 good fit, 40-59 partial fit, below 40 poor fit. "
    "Always answer with a single JSON object and nothing else."
)


class MatchResult(BaseModel):
    """Validated score for one job."""
    score: float = Field(..., description="Match score 0-100")
    reasons: List[str] = Field(default_factory=list, description="Why the score is what it is")
    matched_skills: List[str] = Field(default_factory=list, description="Profile skills the job asks for")
    missing_skills: List[str] = Field(default_factory=list, description="Job requirements the profile lacks")
    recommendations: List[str] = Field(default_factory=list, description="How to improve the fit")

    @field_validator("score", mode="before")
    @classmethod
    def clamp_score(cls, value):
        return max(0.0, min(100.0, float(value)))

    @field_validator("reasons", "matched_skills", "missing_skills", "recommendations", mode="before")
    @classmethod
    def coerce_list(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return [str(item) for item in value]


class BatchMatchResult(MatchResult):
    job_id: int


@dataclass
class JobSnapshot:
    """Plain copy of the job fields the prompt needs; safe to hand to worker threads."""
    id: int
    title: str
    company_name: Optional[str] = None
    location: Optional[str] = None
    location_type: Optional[str] = None
    department: Optional[str] = None
    salary: Optional[str] = None
    employment_type: Optional[str] = None
    description: Optional[str] = None


@dataclass
class ProfileSnapshot:
    full_name: Optional[str] = None
    headline: Optional[str] = None
    summary: Optional[str] = None
    skills: List[str] = field(default_factory=list)
    experience: Optional[str] = None
    preferences: Optional[str] = None


def _truncate(text: Optional[str], limit: int) -> str:
    if not text:
        return "(no description)"
    return text if len(text) <= limit else text[:limit] + "\n[truncated]"


def format_profile(profile: ProfileSnapshot) -> str:
    lines = [
        f"Name: {profile.full_name or 'n/a'}",
        f"Headline: {profile.headline or 'n/a'}",
        f"Skills: {', '.join(profile.skills) if profile.skills else 'n/a'}",
        f"Summary: {profile.summary or 'n/a'}",
        f"Experience:\n{profile.experience or 'n/a'}",
    ]
    if profile.preferences:
        lines.append(f"Preferences: {profile.preferences}")
    return "\n".join(lines)


def format_job(job: JobSnapshot, description_limit: int) -> str:
    details = [
        f"Job ID: {job.id}",
        f"Title: {job.title}",
        f"Company: {job.company_name or 'n/a'}",
        f"Location: {job.location or 'n/a'} ({job.location_type or 'unknown'})",
    ]
    for label, value in (("Department", job.department), ("Salary", job.salary), ("Employment type", job.employment_type)):
        if value:
            details.append(f"{label}: {value}")
    details.append(f"Description:\n{_truncate(job.description, description_limit)}")
    return "\n".join(details)


RESULT_FIELDS = (
    '"score": number 0-100, "reasons": [string], "matched_skills": [string], '
    '"missing_skills": [string], "recommendations": [string]'
)


def build_single_messages(job: JobSnapshot, profile: ProfileSnapshot) -> List[Dict[str, str]]:
    prompt = (
        f"CANDIDATE PROFILE\n{format_profile(profile)}\n\n"
        f"JOB\n{format_job(job, SINGLE_DESCRIPTION_LIMIT)}\n\n"
        f"Return JSON with keys: {{{RESULT_FIELDS}}}"
    )
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]


def build_batch_messages(jobs: List[JobSnapshot], profile: ProfileSnapshot) -> List[Dict[str, str]]:
    job_blocks = "\n\n---\n\n".join(format_job(job, BATCH_DESCRIPTION_LIMIT) for job in jobs)
    prompt = (
        f"CANDIDATE PROFILE\n{format_profile(profile)}\n\n"
        f"JOBS ({len(jobs)})\n{job_blocks}\n\n"
        f'Score every job. Return JSON: {{"results": [{{"job_id": number, {RESULT_FIELDS}}}]}} '
        f"with exactly one entry per Job ID above."
    )
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]


def parse_json_object(text: str):
    """Parse the JSON object in a model reply, tolerating code fences and chatter."""
    fenced = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", text, re.DOTALL)
    candidate = fenced.group(1) if fenced else text.strip()
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        pass

    braces = re.search(r"\{.*\}", text, re.DOTALL)
    if braces:
        try:
            return json.loads(braces.group())
        except json.JSONDecodeError:
            pass
    raise ProviderError(f"Model reply is not valid JSON: {text[:100]!r}", error_type=ErrorType.JSON_PARSE)


class MatchScorer:

    def __init__(
        self,
        provider: Optional[LLMProvider] = None,
        provider_factory: Callable[[], LLMProvider] = OpenAIProvider,
    ):
        self._provider = provider
        self._provider_factory = provider_factory

    @property
    def provider(self) -> LLMProvider:
        # Created lazily so a missing API key fails the jobs, not the app
        if self._provider is None:
            self._provider = self._provider_factory()
        return self._provider

    @property
    def provider_name(self) -> str:
        if self._provider is not None:
            return self._provider.name
        return getattr(self._provider_factory, "name", "provider")

    def score(self, job: JobSnapshot, profile: ProfileSnapshot, model: str, timeout_ms: Optional[int] = None) -> MatchResult:
        response = self.provider.chat(
            messages=build_single_messages(job, profile),
            model=model,
            timeout=timeout_ms / 1000 if timeout_ms else None,
            json_mode=True,
        )
        data = parse_json_object(response.content)
        try:
            return MatchResult.model_validate(data)
        except ValidationError as e:
            raise ProviderError(f"Invalid match result: {e.errors()[0]['msg']}", error_type=ErrorType.VALIDATION) from e

    def score_batch(
        self,
        jobs: List[JobSnapshot],
        profile: ProfileSnapshot,
        model: str,
        timeout_ms: Optional[int] = None,
    ) -> Dict[int, MatchResult]:
        """
        Score several jobs in one call.

        Returns results keyed by job id; ids the model left out are simply
        absent and the caller decides what that means.
        """
        response = self.provider.chat(
            messages=build_batch_messages(jobs, profile),
            model=model,
            timeout=timeout_ms / 1000 if timeout_ms else None,
            max_tokens=800 * len(jobs),
            json_mode=True,
        )
        data = parse_json_object(response.content)
        entries = data.get("results") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise ProviderError("Batch reply has no results list", error_type=ErrorType.NO_OBJECT)

        requested = {job.id for job in jobs}
        results: Dict[int, MatchResult] = {}
        for entry in entries:
            try:
                parsed = BatchMatchResult.model_validate(entry)
            except ValidationError as e:
                logger.warning(f"Skipping invalid batch entry: {e.errors()[0]['msg']}")
                continue
            if parsed.job_id not in requested:
                logger.warning(f"Model returned a result for unrequested job {parsed.job_id}")
                continue
            results[parsed.job_id] = MatchResult.model_validate(parsed.model_dump(exclude={"job_id"}))
        return results
