import aiohttp
import pytest

from core.types import PhraseEntry, ScoredDocument
from services.oracle import OracleUnavailable, parse_scores, pick_best

from fakes import scores_payload

ENTRIES = [PhraseEntry("hello world"), PhraseEntry("goodbye")]


class TestParseScores:
    def test_valid_payload(self):
        scores = parse_scores(scores_payload((0, 15), (1, 30.5)), 2)
        assert scores == [ScoredDocument(0, 15.0), ScoredDocument(1, 30.5)]

    def test_partial_coverage_is_fine(self):
        assert parse_scores(scores_payload((1, 3)), 2) == [ScoredDocument(1, 3.0)]

    @pytest.mark.parametrize(
        "payload",
        [
            None,
            [],
            {},
            {"data": []},
            {"data": "nope"},
            {"data": ["x"]},
            {"data": [{"document": 2, "score": 1}]},
            {"data": [{"document": -1, "score": 1}]},
            {"data": [{"document": True, "score": 1}]},
            {"data": [{"document": 0, "score": "high"}]},
            {"data": [{"document": 0, "score": float("nan")}]},
        ],
    )
    def test_malformed_payloads_fail(self, payload):
        with pytest.raises(OracleUnavailable):
            parse_scores(payload, 2)


class TestPickBest:
    def test_highest_wins(self):
        best = pick_best([ScoredDocument(0, 15), ScoredDocument(1, 30)], 20)
        assert best == ScoredDocument(1, 30)

    def test_first_of_equal_scores_wins(self):
        scores = [ScoredDocument(2, 10), ScoredDocument(0, 40), ScoredDocument(1, 40)]
        assert pick_best(scores, 0).index == 0

    def test_below_minimum_is_discarded(self):
        assert pick_best([ScoredDocument(0, 15), ScoredDocument(1, 30)], 35) is None

    def test_minimum_is_inclusive(self):
        assert pick_best([ScoredDocument(0, 20)], 20) == ScoredDocument(0, 20)

    def test_empty(self):
        assert pick_best([], 0) is None


@pytest.mark.asyncio
async def test_rank_picks_goodbye_above_minimum(make_oracle):
    client, _ = make_oracle(scores_payload((0, 15), (1, 30)))
    assert await client.rank("see you later", ENTRIES, 20) == "goodbye"


@pytest.mark.asyncio
async def test_rank_returns_none_when_nothing_clears_minimum(make_oracle):
    client, _ = make_oracle(scores_payload((0, 15), (1, 30)))
    assert await client.rank("see you later", ENTRIES, 35) is None


@pytest.mark.asyncio
async def test_keywords_are_sent_but_phrase_text_is_returned(make_oracle):
    entries = [PhraseEntry("hello world"), PhraseEntry("see ya", ("bye", "farewell"))]
    client, session = make_oracle(scores_payload((1, 50)))
    assert await client.rank("ok bye", entries, 0) == "see ya"

    request = session.requests[0]
    assert request["url"] == "https://oracle.test/v1/engines/babbage/search"
    assert request["json"] == {"documents": ["hello world", "bye farewell"], "query": "ok bye"}
    assert request["headers"]["Authorization"] == "Bearer test-key"


@pytest.mark.asyncio
async def test_http_error_is_unavailable(make_oracle):
    client, _ = make_oracle(scores_payload((0, 1)), status=500)
    with pytest.raises(OracleUnavailable):
        await client.search("q", ["a"])


@pytest.mark.asyncio
async def test_network_error_is_unavailable(make_oracle):
    client, _ = make_oracle(None, error=aiohttp.ClientConnectionError("refused"))
    with pytest.raises(OracleUnavailable):
        await client.search("q", ["a"])


@pytest.mark.asyncio
async def test_non_json_body_is_unavailable(make_oracle):
    client, _ = make_oracle(ValueError("Expecting value"))
    with pytest.raises(OracleUnavailable):
        await client.search("q", ["a"])


@pytest.mark.asyncio
async def test_timeout_is_unavailable(make_oracle):
    client, _ = make_oracle(scores_payload((0, 1)), timeout_seconds=0.01, delay=1.0)
    with pytest.raises(OracleUnavailable, match="timed out"):
        await client.search("q", ["a"])


@pytest.mark.asyncio
async def test_empty_document_list_is_unavailable(make_oracle):
    client, session = make_oracle(scores_payload((0, 1)))
    with pytest.raises(OracleUnavailable):
        await client.search("q", [])
    assert session.requests == []


@pytest.mark.asyncio
async def test_close_leaves_injected_session_open(make_oracle):
    client, session = make_oracle(scores_payload((0, 1)))
    await client.close()
    assert not session.closed
