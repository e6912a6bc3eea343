import asyncio
import os
import sys
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from pydantic import ValidationError

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from graph.errors import LeadNotFoundError
from graph.models import ActivityCreate, Lead
from tools.firecrawl import FirecrawlScraper
from tools.lead_lock import LeadLock
from tools.llm import LLMClient
from tools.parsing import find_json_object, parse_json_object
from tools.research import ResearchClient
from tools.supabase_store import InMemoryStore, SupabaseStore, create_store
from tools.tavily_search import TavilySearch, format_results


class TestJsonParsing:
    """Test best-effort JSON extraction from model responses."""

    def test_object_wrapped_in_prose(self):
        result = parse_json_object('Sure! Here it is:\n{"score": 70, "reasoning": "ok"}\nLet me know.')

        assert result.ok
        assert result.value == {"score": 70, "reasoning": "ok"}

    def test_braces_inside_strings(self):
        text = 'prefix {"note": "use {curly} braces }", "n": 1} suffix {"second": true}'

        assert find_json_object(text) == '{"note": "use {curly} braces }", "n": 1}'
        assert parse_json_object(text).get("n") == 1

    def test_nested_object(self):
        result = parse_json_object('{"a": {"b": [1, 2]}, "c": "d"}')

        assert result.value["a"] == {"b": [1, 2]}

    def test_unbalanced_brace_before_object(self):
        assert parse_json_object('oops { not closed {"ok": true}').get("ok") is True

    @pytest.mark.parametrize("text,error", [
        ("", "Empty response"),
        (None, "Empty response"),
        ("no json at all", "No JSON object found in response"),
        ("[1, 2, 3]", "No JSON object found in response"),
    ])
    def test_failures(self, text, error):
        result = parse_json_object(text)

        assert not result.ok
        assert result.error == error
        assert result.get("score", 50) == 50

    def test_malformed_json(self):
        result = parse_json_object("{'score': 70}")

        assert not result.ok
        assert result.error.startswith("Invalid JSON")


class TestLLMClient:
    """Test the extraction capability."""

    def test_mock_mode_without_key(self):
        with patch.dict(os.environ, {}, clear=True):
            llm = LLMClient()

        assert llm.is_mock
        assert asyncio.run(llm.complete("system", "user")) == "{}"

    def test_extract_normalizes_confidence(self):
        llm = LLMClient(api_key="test-key")
        with patch.object(llm, "complete", AsyncMock(return_value='Result: {"title": "CTO", "confidence": "HIGH"}')):
            result = asyncio.run(llm.extract("profile text", "{}"))

        assert result.parsed
        assert result.data["title"] == "CTO"
        assert result.confidence == "high"

    def test_extract_unknown_confidence_is_low(self):
        llm = LLMClient(api_key="test-key")
        with patch.object(llm, "complete", AsyncMock(return_value='{"confidence": "certain"}')):
            result = asyncio.run(llm.extract("text", "{}"))

        assert result.confidence == "low"

    def test_extract_unparseable(self):
        llm = LLMClient(api_key="test-key")
        with patch.object(llm, "complete", AsyncMock(return_value="I could not find anything.")):
            result = asyncio.run(llm.extract("text", "{}"))

        assert not result.parsed
        assert result.data == {}
        assert result.raw == "I could not find anything."

    def test_complete_calls_openai(self):
        llm = LLMClient(api_key="test-key", model="gpt-4o-mini")
        response = MagicMock()
        response.choices = [MagicMock()]
        response.choices[0].message.content = '{"score": 60}'
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=response)
        llm._client = client

        content = asyncio.run(llm.complete("system", "user", temperature=0.3, max_tokens=500))

        assert content == '{"score": 60}'
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0.3
        assert kwargs["messages"][0] == {"role": "system", "content": "system"}


class TestResearch:
    """Test search and scraping capabilities."""

    def test_search_mock_without_key(self):
        with patch.dict(os.environ, {}, clear=True):
            research = ResearchClient(searcher=TavilySearch(), scraper=FirecrawlScraper())

        text = asyncio.run(research.search("Jane Doe Acme"))

        assert "Mock search results for Jane Doe Acme" in text

    def test_search_failure_returns_empty(self):
        searcher = TavilySearch(api_key="tvly-test")
        searcher._client = MagicMock()
        searcher._client.search = AsyncMock(side_effect=RuntimeError("quota exceeded"))

        assert asyncio.run(searcher.search("anything")) == []

    def test_search_results_are_flattened(self):
        searcher = TavilySearch(api_key="tvly-test")
        searcher._client = MagicMock()
        searcher._client.search = AsyncMock(return_value={"results": [
            {"url": "https://acme.com/team", "title": "Team", "content": "Jane Doe, VP Sales"},
            {"url": "", "title": "", "content": "Acme raises Series B"},
        ]})

        text = asyncio.run(ResearchClient(searcher=searcher, scraper=FirecrawlScraper(api_key="fc")).search("acme"))

        assert text == "Team\nJane Doe, VP Sales\nURL: https://acme.com/team\n\nAcme raises Series B"

    def test_format_results_empty(self):
        assert format_results([]) == ""

    def test_scrape_without_key_is_unavailable(self):
        with patch.dict(os.environ, {}, clear=True):
            scraper = FirecrawlScraper()

        result = asyncio.run(scraper.scrape_page("https://linkedin.com/in/janedoe"))

        assert result.success is False
        assert result.markdown is None


class TestLeadStore:
    """Test the record stores."""

    def setup_method(self):
        self.store = InMemoryStore([Lead(id="lead-1", first_name="Jane", last_name="Doe")])

    def test_update_unknown_lead(self):
        with pytest.raises(LeadNotFoundError):
            asyncio.run(self.store.update_lead("missing", {"title": "CTO"}))

    def test_update_is_validated(self):
        with pytest.raises(ValidationError):
            asyncio.run(self.store.update_lead("lead-1", {"score": 150}))

        assert self.store.leads["lead-1"].score == 0

    def test_update_returns_new_snapshot(self):
        before = self.store.leads["lead-1"]
        after = asyncio.run(self.store.update_lead("lead-1", {"title": "CTO"}))

        assert after.title == "CTO"
        assert before.title is None

    def test_recent_activities_newest_first(self):
        for i in range(7):
            asyncio.run(self.store.insert_activity(ActivityCreate(lead_id="lead-1", subject=f"a{i}")))
        asyncio.run(self.store.insert_activity(ActivityCreate(lead_id="other", subject="x")))

        recent = asyncio.run(self.store.list_activities("lead-1"))

        assert [a.subject for a in recent] == ["a6", "a5", "a4", "a3", "a2"]
        assert all(a.id for a in recent)

    def test_create_store_without_supabase(self):
        with patch.dict(os.environ, {}, clear=True):
            assert isinstance(create_store(), InMemoryStore)

    def test_supabase_requires_configuration(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValueError):
                SupabaseStore()

    def test_supabase_bad_lead_id_is_not_found(self):
        store = SupabaseStore(url="https://example.supabase.co", service_key="key")
        request = httpx.Request("GET", "https://example.supabase.co/rest/v1/leads")
        rejected = httpx.HTTPStatusError(
            "Bad Request", request=request, response=httpx.Response(400, request=request, text="invalid input syntax for type uuid")
        )

        with patch.object(SupabaseStore, "_request", AsyncMock(side_effect=rejected)):
            assert asyncio.run(store.get_lead("not-a-uuid")) is None

    def test_supabase_server_error_still_raises(self):
        store = SupabaseStore(url="https://example.supabase.co", service_key="key")
        request = httpx.Request("GET", "https://example.supabase.co/rest/v1/leads")
        failed = httpx.HTTPStatusError("Server Error", request=request, response=httpx.Response(503, request=request))

        with patch.object(SupabaseStore, "_request", AsyncMock(side_effect=failed)):
            with pytest.raises(httpx.HTTPStatusError):
                asyncio.run(store.get_lead("6f1c0c6e-0000-4000-8000-000000000000"))


class TestLeadLock:
    """Test the per-lead workflow lock."""

    def setup_method(self):
        self.lock = LeadLock(redis_url="redis://localhost:1", ttl=30)

    def test_falls_back_to_memory(self):
        asyncio.run(self.lock.connect())

        assert self.lock.backend == "memory"

    def test_acquire_release(self):
        token = asyncio.run(self.lock.acquire("lead-1"))
        assert token
        assert asyncio.run(self.lock.acquire("lead-1")) is None
        assert asyncio.run(self.lock.acquire("lead-2"))

        assert asyncio.run(self.lock.release("lead-1", token))

        assert asyncio.run(self.lock.acquire("lead-1"))

    def test_stale_token_keeps_current_holder(self):
        stale = asyncio.run(self.lock.acquire("lead-1"))
        asyncio.run(self.lock.release("lead-1", stale))
        current = asyncio.run(self.lock.acquire("lead-1"))

        assert not asyncio.run(self.lock.release("lead-1", stale))
        assert asyncio.run(self.lock.acquire("lead-1")) is None
        assert asyncio.run(self.lock.release("lead-1", current))

    def test_empty_lead_id(self):
        assert asyncio.run(self.lock.acquire("")) is None

    def test_redis_set_nx_with_token(self):
        self.lock._connected = True
        self.lock.r = MagicMock()
        self.lock.r.set = AsyncMock(return_value=True)

        token = asyncio.run(self.lock.acquire("lead-1"))

        assert token
        kwargs = self.lock.r.set.call_args.kwargs
        assert kwargs["name"] == "lead-workflow:lead-1"
        assert kwargs["value"] == token
        assert kwargs["nx"] is True
        assert kwargs["ex"] == 30

        self.lock.r.set.return_value = None
        assert asyncio.run(self.lock.acquire("lead-1")) is None

    def test_redis_release_compares_token(self):
        self.lock._connected = True
        self.lock.r = MagicMock()
        self.lock.r.eval = AsyncMock(return_value=0)

        assert not asyncio.run(self.lock.release("lead-1", "expired-token"))

        args = self.lock.r.eval.call_args.args
        assert args[1:] == (1, "lead-workflow:lead-1", "expired-token")
        assert 'redis.call("get", KEYS[1]) == ARGV[1]' in args[0]

        self.lock.r.eval.return_value = 1
        assert asyncio.run(self.lock.release("lead-1", "live-token"))
