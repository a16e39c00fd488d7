"""
Shared fixtures: databases, fake AI provider and fake job board adapter.
"""
import json
import threading

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
import app.db.models  # noqa: F401
from app.db.models.candidate_profile import CandidateProfile
from app.db.models.company import Company
from app.llm.provider import LLMProvider, LLMResponse, ProviderError
from app.resilience.errors import ErrorType
from app.scraper.platforms.base import BoardNotFoundError, DiscoveryResult, PlatformAdapter, RawPosting


@pytest.fixture
def memory_session_factory():
    """In-memory SQLite for single-threaded tests."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(tmp_path):
    """File-backed SQLite; worker threads each get their own connection."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def profile(db_session):
    row = CandidateProfile(
        full_name="Sam Rivera",
        headline="Backend engineer",
        summary="Eight years building Python services",
        skills=["python", "postgresql", "fastapi"],
        experience="Senior engineer at a payments company",
    )
    db_session.add(row)
    db_session.commit()
    return row


def make_company(db, name="Acme", platform="greenhouse", board_token=None, careers_url=None, is_active=True):
    company = Company(
        name=name,
        careers_url=careers_url or f"https://boards.greenhouse.io/{name.lower()}",
        platform=platform,
        board_token=board_token or name.lower(),
        is_active=is_active,
    )
    db.add(company)
    db.commit()
    db.refresh(company)
    return company


def make_posting(native_id, title="Software Engineer", location="Remote", description="Build things", board="acme"):
    return RawPosting(
        external_id=f"greenhouse-{board}-{native_id}",
        native_id=str(native_id),
        title=title,
        url=f"https://boards.greenhouse.io/{board}/jobs/{native_id}",
        description=description,
        location=location,
        location_type="remote" if location == "Remote" else "onsite",
    )


def match_payload(score=82, job_id=None):
    payload = {
        "score": score,
        "reasons": ["Strong Python background"],
        "matched_skills": ["python"],
        "missing_skills": ["kubernetes"],
        "recommendations": ["Mention infrastructure work"],
    }
    if job_id is not None:
        payload["job_id"] = job_id
    return payload


class FakeProvider(LLMProvider):
    """
    Scripted provider. Fails the first ``fail_first`` calls (or every call),
    otherwise answers with a fixed score. Batch prompts get one result per
    job id unless ``drop_ids`` says otherwise.
    """

    name = "fake"

    def __init__(self, fail_first=0, always_fail=False, error_type=ErrorType.SERVER_ERROR, drop_ids=(), on_call=None):
        self.fail_first = fail_first
        self.always_fail = always_fail
        self.error_type = error_type
        self.drop_ids = set(drop_ids)
        self.on_call = on_call
        self.calls = 0
        self.batch_calls = 0
        self._lock = threading.Lock()

    def chat(self, messages, model, temperature=0.2, max_tokens=None, timeout=None, json_mode=False, **kwargs):
        with self._lock:
            self.calls += 1
            call_number = self.calls
        if self.on_call is not None:
            self.on_call(call_number)
        if self.always_fail or call_number <= self.fail_first:
            raise ProviderError(f"provider failure #{call_number}", error_type=self.error_type)

        prompt = messages[-1]["content"]
        if prompt.count("Job ID: ") > 1:
            with self._lock:
                self.batch_calls += 1
            job_ids = [int(line.split(":", 1)[1]) for line in prompt.splitlines() if line.startswith("Job ID: ")]
            results = [match_payload(job_id=job_id) for job_id in job_ids if job_id not in self.drop_ids]
            return LLMResponse(content=json.dumps({"results": results}), model=model)
        return LLMResponse(content=json.dumps(match_payload()), model=model)


class FakeAdapter(PlatformAdapter):
    """
    Board contents keyed by board token. Tokens in ``missing`` raise
    BoardNotFoundError; ``on_fetch`` runs before each fetch.
    """

    platform = "greenhouse"

    def __init__(self, boards=None, missing=(), on_fetch=None, detect_token=None):
        super().__init__()
        self.boards = boards or {}
        self.missing = set(missing)
        self.on_fetch = on_fetch
        self.detect_token = detect_token
        self.fetched = []

    def matches_url(self, url):
        return "greenhouse.io" in url

    def extract_board_token(self, url):
        return self.detect_token

    def fetch_postings(self, board_token):
        self.fetched.append(board_token)
        if self.on_fetch is not None:
            self.on_fetch(board_token)
        if board_token in self.missing:
            raise BoardNotFoundError(f"greenhouse board not found: {board_token}")
        return DiscoveryResult(postings=list(self.boards.get(board_token, [])))
