"""
Tests for the scraper HTTP client and platform adapters, against a stubbed
``requests`` session (no network).
"""
from types import SimpleNamespace

import pytest
import requests

from app.resilience.errors import ErrorType, OperationTimeoutError
from app.scraper.description import process_description
from app.scraper.http_client import HttpClient, HttpClientError, HttpStatusError
from app.scraper.platforms.ashby import AshbyAdapter
from app.scraper.platforms.base import AdapterError, AdapterNetworkError, BoardNotFoundError, UnsupportedPlatformError
from app.scraper.platforms.detection import detect_platform
from app.scraper.platforms.eightfold import EightfoldAdapter
from app.scraper.platforms.greenhouse import GreenhouseAdapter
from app.scraper.platforms.lever import LeverAdapter
from app.scraper.platforms.uber import UberAdapter
from app.scraper.platforms.workday import WorkdayAdapter
from app.scraper.registry import create_default_registry


class FakeResponse:
    def __init__(self, status_code=200, payload=None, invalid_json=False):
        self.status_code = status_code
        self._payload = payload
        self._invalid_json = invalid_json

    def json(self):
        if self._invalid_json:
            raise ValueError("Expecting value")
        return self._payload


class FakeSession:
    """
    Answers requests from a route table; values may be lists (one per call),
    exceptions, or callables given the query params (GET) or JSON body (POST).
    """

    def __init__(self, routes):
        self.routes = routes
        self.requests = []
        self.bodies = []
        self.headers = []

    def get(self, url, params=None, headers=None, timeout=None):
        return self._answer(url, params, headers, params or {})

    def post(self, url, params=None, json=None, headers=None, timeout=None):
        self.bodies.append(json)
        return self._answer(url, params, headers, json)

    def _answer(self, url, params, headers, request):
        self.requests.append((url, dict(params or {})))
        self.headers.append(dict(headers or {}))
        route = self.routes.get(url)
        if route is None:
            return FakeResponse(404)
        if isinstance(route, list):
            route = route.pop(0) if len(route) > 1 else route[0]
        if callable(route) and not isinstance(route, FakeResponse):
            route = route(request)
        if isinstance(route, Exception):
            raise route
        return route


def client_for(routes, retries=3):
    session = FakeSession(routes)
    return HttpClient(session=session, retries=retries, base_delay_ms=0, max_delay_ms=0, sleep=lambda _s: None), session


GREENHOUSE_API = "https://boards-api.greenhouse.io/v1/boards/acme/jobs"
GREENHOUSE_EMBED = "https://boards.greenhouse.io/acme/embed/job_board/jobs.json"


def greenhouse_job(job_id, title="Backend Engineer"):
    return {
        "id": job_id,
        "title": title,
        "absolute_url": f"https://boards.greenhouse.io/acme/jobs/{job_id}",
        "location": {"name": "Remote - US"},
        "content": "&lt;p&gt;Build &lt;strong&gt;APIs&lt;/strong&gt;&lt;/p&gt;&lt;ul&gt;&lt;li&gt;Python&lt;/li&gt;&lt;/ul&gt;",
        "departments": [{"name": "Engineering"}],
        "updated_at": "2026-02-01T12:00:00-05:00",
    }


# ---- HTTP client ------------------------------------------------------------

def test_http_client_retries_server_errors():
    client, session = client_for({"https://x.test/a": [FakeResponse(503), FakeResponse(502), FakeResponse(200, {"ok": 1})]})

    assert client.get_json("https://x.test/a") == {"ok": 1}
    assert len(session.requests) == 3


def test_http_client_does_not_retry_client_errors():
    client, session = client_for({"https://x.test/a": FakeResponse(403)})

    with pytest.raises(HttpStatusError) as exc_info:
        client.get_json("https://x.test/a")
    assert exc_info.value.status_code == 403
    assert len(session.requests) == 1


def test_http_client_maps_timeouts_and_bad_json():
    client, _ = client_for({"https://x.test/slow": requests.Timeout("read timed out")}, retries=2)
    with pytest.raises(OperationTimeoutError):
        client.get_json("https://x.test/slow")

    client, session = client_for({"https://x.test/html": FakeResponse(200, invalid_json=True)})
    with pytest.raises(HttpClientError) as exc_info:
        client.get_json("https://x.test/html")
    assert exc_info.value.error_type == ErrorType.JSON_PARSE
    assert len(session.requests) == 1


def test_http_client_posts_json_with_the_same_retry_rules():
    client, session = client_for({"https://x.test/search": [FakeResponse(503), FakeResponse(200, {"ok": 1})]})

    assert client.post_json("https://x.test/search", {"page": 0}, headers={"x-csrf-token": "x"}) == {"ok": 1}
    assert session.bodies == [{"page": 0}, {"page": 0}]
    assert session.headers[0]["Content-Type"] == "application/json"
    assert session.headers[0]["x-csrf-token"] == "x"


# ---- Greenhouse -------------------------------------------------------------

@pytest.mark.parametrize("url,token", [
    ("https://boards.greenhouse.io/acme", "acme"),
    ("https://job-boards.greenhouse.io/acme/jobs/123", "acme"),
    ("https://acme.greenhouse.io", "acme"),
    ("https://boards-api.greenhouse.io/v1/boards", None),
])
def test_greenhouse_board_token_extraction(url, token):
    assert GreenhouseAdapter(HttpClient(session=FakeSession({}))).extract_board_token(url) == token


def test_greenhouse_discovery_normalizes_postings():
    client, session = client_for({GREENHOUSE_API: FakeResponse(200, {"jobs": [greenhouse_job(11), greenhouse_job(12)]})})
    company = SimpleNamespace(name="Acme", careers_url="https://boards.greenhouse.io/acme", board_token=None)

    result = GreenhouseAdapter(client).discover(company)

    assert result.detected_board_token == "acme"
    assert result.listing_complete
    posting = result.postings[0]
    assert posting.external_id == "greenhouse-acme-11"
    assert posting.location_type == "remote"
    assert posting.department == "Engineering"
    assert posting.description_format == "markdown"
    assert "APIs" in posting.description and "<" not in posting.description
    assert posting.posted_date.hour == 17
    assert session.requests[0][1] == {"content": "true"}


def test_greenhouse_falls_back_to_embed_endpoint():
    client, session = client_for({GREENHOUSE_EMBED: FakeResponse(200, {"jobs": [greenhouse_job(5)]})})
    company = SimpleNamespace(name="Acme", careers_url="", board_token="acme")

    result = GreenhouseAdapter(client).discover(company)

    assert [p.native_id for p in result.postings] == ["5"]
    assert [url for url, _ in session.requests] == [GREENHOUSE_API, GREENHOUSE_EMBED]


def test_greenhouse_missing_board_and_missing_token():
    client, _ = client_for({})
    adapter = GreenhouseAdapter(client)

    with pytest.raises(BoardNotFoundError):
        adapter.discover(SimpleNamespace(name="Gone", careers_url="", board_token="gone"))
    with pytest.raises(BoardNotFoundError) as exc_info:
        adapter.discover(SimpleNamespace(name="Acme", careers_url="https://acme.com/careers", board_token=None))
    assert "board token required" in str(exc_info.value)


def test_greenhouse_network_failure_is_distinct_from_not_found():
    client, _ = client_for({GREENHOUSE_API: requests.ConnectionError("refused")}, retries=2)

    with pytest.raises(AdapterNetworkError) as exc_info:
        GreenhouseAdapter(client).discover(SimpleNamespace(name="Acme", careers_url="", board_token="acme"))
    assert exc_info.value.error_type == ErrorType.NETWORK


# ---- Lever ------------------------------------------------------------------

def lever_job(index):
    return {
        "id": f"lv-{index}",
        "text": f"Engineer {index}",
        "hostedUrl": f"https://jobs.lever.co/acme/lv-{index}",
        "categories": {"location": "Toronto", "team": "Platform", "commitment": "Full Time"},
        "descriptionPlain": "Ship features",
        "createdAt": 1767225600000,
        "salaryRange": {"currency": "CAD", "interval": "per-year-salary", "min": 120000, "max": 150000},
    }


def test_lever_pages_until_short_page():
    def page(params):
        skip = params["skip"]
        count = 100 if skip == 0 else 30
        return FakeResponse(200, [lever_job(skip + i) for i in range(count)])

    client, session = client_for({"https://api.lever.co/v0/postings/acme": page})
    company = SimpleNamespace(name="Acme", careers_url="https://jobs.lever.co/acme", board_token=None)

    result = LeverAdapter(client).discover(company)

    assert len(result.postings) == 130
    assert result.listing_complete
    assert [params["skip"] for _, params in session.requests] == [0, 100]
    posting = result.postings[0]
    assert posting.salary == "CAD 120,000 - 150,000 per year salary"
    assert posting.employment_type == "full-time"
    assert posting.location_type == "onsite"


def test_lever_truncated_listing_is_incomplete():
    client, _ = client_for({"https://api.lever.co/v0/postings/acme": lambda params: FakeResponse(200, [lever_job(params["skip"] + i) for i in range(100)])})
    adapter = LeverAdapter(client)
    adapter.MAX_PAGES = 2

    result = adapter.discover(SimpleNamespace(name="Acme", careers_url="", board_token="acme"))

    assert len(result.postings) == 200
    assert result.listing_complete is False


# ---- Ashby ------------------------------------------------------------------

def test_ashby_skips_unlisted_jobs():
    payload = {"jobs": [
        {"id": "a1", "title": "Designer", "location": "Remote", "isListed": True,
         "descriptionHtml": "<p>Design</p>", "compensation": {"compensationTierSummary": "$100K - $130K"}},
        {"id": "a2", "title": "Hidden", "isListed": False},
    ]}
    client, _ = client_for({"https://api.ashbyhq.com/posting-api/job-board/acme": FakeResponse(200, payload)})
    company = SimpleNamespace(name="Acme", careers_url="https://jobs.ashbyhq.com/acme", board_token=None)

    result = AshbyAdapter(client).discover(company)

    assert [p.title for p in result.postings] == ["Designer"]
    assert result.postings[0].salary == "$100K - $130K"


# ---- Workday ----------------------------------------------------------------

WORKDAY_API = "https://acme.wd5.myworkdayjobs.com/wday/cxs/acme/External"


def workday_item(index):
    return {
        "title": f"Engineer {index}",
        "externalPath": f"/job/Remote-US/Engineer_R{index}",
        "locationsText": "Remote - US",
        "postedOn": "Posted 3 Days Ago",
        "remoteType": "Remote" if index % 2 else "",
    }


@pytest.mark.parametrize("url,token", [
    ("https://acme.wd5.myworkdayjobs.com/External", "acme.wd5.myworkdayjobs.com/External"),
    ("https://acme.wd1.myworkdayjobs.com/en-US/Careers/job/123", "acme.wd1.myworkdayjobs.com/Careers"),
    ("https://acme.wd5.myworkdayjobs.com", "acme.wd5.myworkdayjobs.com/acme"),
    ("https://myworkdayjobs.com/acme/External", "myworkdayjobs.com/acme/External"),
    ("https://acme.com/careers", None),
])
def test_workday_board_token_extraction(url, token):
    assert WorkdayAdapter(HttpClient(session=FakeSession({}))).extract_board_token(url) == token


def test_workday_pages_the_list_and_reads_details():
    def page(body):
        items = [workday_item(body["offset"] + i) for i in range(20 if body["offset"] == 0 else 5)]
        return FakeResponse(200, {"total": 25 if body["offset"] == 0 else 0, "jobPostings": items})

    routes = {f"{WORKDAY_API}/jobs": page}
    for i in range(25):
        # Engineer_R7 has no detail; the list data is kept
        if i != 7:
            routes[f"{WORKDAY_API}/job/Remote-US/Engineer_R{i}"] = FakeResponse(200, {"jobPostingInfo": {
                "jobDescription": "<p>Build <b>things</b></p>",
                "timeType": "Full time",
                "externalUrl": f"https://acme.wd5.myworkdayjobs.com/External/job/Remote-US/Engineer_R{i}",
            }})
    client, session = client_for(routes)
    company = SimpleNamespace(name="Acme", careers_url="https://acme.wd5.myworkdayjobs.com/External", board_token=None)

    result = WorkdayAdapter(client).discover(company)

    assert len(result.postings) == 25
    assert result.listing_complete
    assert result.detected_board_token == "acme.wd5.myworkdayjobs.com/External"
    assert [body["offset"] for body in session.bodies] == [0, 20]
    posting = result.postings[1]
    assert posting.external_id == "workday-External-Engineer_R1"
    assert posting.location_type == "remote"
    assert posting.employment_type == "full-time"
    assert posting.description == "Build things"
    assert posting.posted_date is not None
    assert result.postings[7].description is None
    assert result.postings[7].url == "https://acme.wd5.myworkdayjobs.com/External/job/Remote-US/Engineer_R7"


def test_workday_bare_token_uses_careers_url_host():
    client, session = client_for({f"{WORKDAY_API}/jobs": FakeResponse(200, {"total": 0, "jobPostings": []})})
    company = SimpleNamespace(name="Acme", careers_url="https://acme.wd5.myworkdayjobs.com/External", board_token="acme/External")

    result = WorkdayAdapter(client).discover(company)

    assert result.postings == []
    assert result.listing_complete
    assert session.requests[0][0] == f"{WORKDAY_API}/jobs"

    with pytest.raises(BoardNotFoundError):
        WorkdayAdapter(client).discover(SimpleNamespace(name="Acme", careers_url="", board_token="acme/External"))


def test_workday_missing_list_marks_listing_incomplete():
    client, _ = client_for({f"{WORKDAY_API}/jobs": FakeResponse(200, {"errorCode": "HTTP_400"})})

    result = WorkdayAdapter(client).discover(
        SimpleNamespace(name="Acme", careers_url="", board_token="acme.wd5.myworkdayjobs.com/External")
    )

    assert result.postings == []
    assert result.listing_complete is False


# ---- Eightfold --------------------------------------------------------------

EIGHTFOLD_BASE = "https://acme.eightfold.ai/api/pcsx"


def test_eightfold_pages_search_and_merges_details():
    def search(params):
        start = params["start"]
        positions = [
            {"id": 100 + start + i, "name": f"Engineer {start + i}", "locations": ["Austin, TX"],
             "workLocationOption": "remote_local", "postedTs": 1767225600,
             "positionUrl": f"/careers/job/{100 + start + i}"}
            for i in range(10 if start == 0 else 2)
        ]
        return FakeResponse(200, {"status": 200, "data": {"positions": positions, "count": 12}})

    def details(params):
        return FakeResponse(200, {"status": 200, "data": {
            "name": "Senior Engineer", "jobDescription": "<p>Scale search</p>",
            "efcustomTextTimeType": ["Full-Time"], "department": "Search",
        }})

    client, session = client_for({f"{EIGHTFOLD_BASE}/search": search, f"{EIGHTFOLD_BASE}/position_details": details})
    company = SimpleNamespace(name="Acme", careers_url="https://acme.eightfold.ai/careers", board_token=None)

    result = EightfoldAdapter(client).discover(company)

    assert len(result.postings) == 12
    assert result.listing_complete
    assert result.detected_board_token == "acme.eightfold.ai"
    searches = [params for url, params in session.requests if url.endswith("/search")]
    assert [params["start"] for params in searches] == [0, 10]
    assert searches[0]["domain"] == "acme.com"
    posting = result.postings[0]
    assert posting.external_id == "eightfold-acme-100"
    assert posting.title == "Senior Engineer"
    assert posting.location_type == "remote"
    assert posting.employment_type == "full-time"
    assert posting.url == "https://acme.eightfold.ai/careers/job/100"
    assert posting.posted_date.year == 2026


def test_eightfold_token_may_name_the_domain():
    client, session = client_for({
        "https://careers.acme.io/api/pcsx/search": FakeResponse(200, {"status": 200, "data": {"positions": [], "count": 0}}),
    })

    result = EightfoldAdapter(client).discover(SimpleNamespace(name="Acme", careers_url="", board_token="careers.acme.io/acme.io"))

    assert result.postings == []
    assert session.requests[0][1]["domain"] == "acme.io"


# ---- Uber -------------------------------------------------------------------

UBER_API = "https://www.uber.com/api/loadSearchJobsResults"


def uber_job(job_id):
    return {
        "id": job_id,
        "title": "Software Engineer",
        "description": "Build the marketplace",
        "team": "Marketplace",
        "timeType": "Full-Time",
        "creationDate": "2026-01-01T00:00:00.000Z",
        "location": {"city": "San Francisco", "region": "California", "countryName": "United States"},
        "allLocations": None,
    }


def test_uber_pages_until_short_page():
    def search(body):
        first = body["page"] * 100 + 1
        return FakeResponse(200, {"status": "success", "data": {
            "results": [uber_job(first + i) for i in range(100 if body["page"] == 0 else 1)], "total": 101,
        }})

    client, session = client_for({UBER_API: search})
    company = SimpleNamespace(name="Uber", careers_url="https://www.uber.com/careers/list", board_token=None)

    result = UberAdapter(client).discover(company)

    assert len(result.postings) == 101
    assert result.listing_complete
    assert result.postings[0].external_id == "uber-1"
    assert result.postings[-1].external_id == "uber-101"
    assert result.postings[0].location == "San Francisco, California, United States"
    assert session.bodies[0] == {
        "page": 0,
        "limit": 100,
        "params": {"department": [], "lineOfBusinessName": [], "location": [], "programAndPlatform": [], "team": []},
    }
    assert session.bodies[1]["page"] == 1
    assert session.requests[0][1] == {"localeCode": "en"}


def test_uber_rejects_unexpected_reply():
    client, _ = client_for({UBER_API: FakeResponse(200, {"status": "failure"})})

    with pytest.raises(AdapterError) as exc_info:
        UberAdapter(client).discover(SimpleNamespace(name="Uber", careers_url="https://www.uber.com/careers", board_token=None))
    assert exc_info.value.error_type == ErrorType.VALIDATION
# ---- detection and registry -------------------------------------------------

@pytest.mark.parametrize("url,platform", [
    ("https://boards.greenhouse.io/acme", "greenhouse"),
    ("https://jobs.lever.co/acme", "lever"),
    ("https://jobs.ashbyhq.com/acme", "ashby"),
    ("https://acme.wd5.myworkdayjobs.com/External", "workday"),
    ("https://app.eightfold.ai/careers?domain=acme.com", "eightfold"),
    ("https://www.uber.com/careers/list", "uber"),
    ("https://acme.com/careers", "custom"),
    (None, "custom"),
])
def test_detect_platform(url, platform):
    assert detect_platform(url) == platform


def test_registry_rejects_platforms_without_adapter():
    registry = create_default_registry(HttpClient(session=FakeSession({})))
    company = SimpleNamespace(name="Big Co", careers_url="https://bigco.com/careers", platform=None, board_token=None)

    assert registry.supported_platforms() == ["ashby", "eightfold", "greenhouse", "lever", "uber", "workday"]
    workday = SimpleNamespace(name="Big Co", careers_url="https://bigco.wd1.myworkdayjobs.com/jobs", platform=None, board_token=None)
    assert registry.adapter_for(workday).platform == "workday"
    with pytest.raises(UnsupportedPlatformError) as exc_info:
        registry.adapter_for(company)
    assert exc_info.value.error_type == ErrorType.VALIDATION
    assert exc_info.value.retryable is False


def test_process_description_formats():
    assert process_description(None) == (None, "plain")
    assert process_description("Just text") == ("Just text", "plain")
    assert process_description("## Role\n- Python")[1] == "markdown"
    text, fmt = process_description("<p>One</p><p>Two<br>Three</p>", "html")
    assert fmt == "markdown"
    assert text == "One\n\nTwo\nThree"
