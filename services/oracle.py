"""
Relevance oracle client.

Sends a query and a list of documents to the external search endpoint and
turns the scores it returns into the phrase to reply with. The endpoint is
untrusted: anything other than a well-formed, non-empty score list is an
OracleUnavailable failure.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, List, Optional, Sequence

import aiohttp

from core.types import PhraseEntry, ScoredDocument
from core.utils import is_int, is_number

logger = logging.getLogger("catchphrase.oracle")


class OracleUnavailable(RuntimeError):
    pass


def parse_scores(payload: Any, document_count: int) -> List[ScoredDocument]:
    """Validate a search response body; raises OracleUnavailable."""
    if not isinstance(payload, dict):
        raise OracleUnavailable("response is not a JSON object")
    data = payload.get("data")
    if not isinstance(data, list) or not data:
        raise OracleUnavailable("response has no results")

    scores: List[ScoredDocument] = []
    for item in data:
        if not isinstance(item, dict):
            raise OracleUnavailable("result entry is not an object")
        index = item.get("document")
        score = item.get("score")
        if not is_int(index) or not 0 <= index < document_count:
            raise OracleUnavailable(f"result has invalid document index {index!r}")
        if not is_number(score):
            raise OracleUnavailable(f"result has invalid score {score!r}")
        scores.append(ScoredDocument(index=index, score=float(score)))
    return scores


def pick_best(scores: Iterable[ScoredDocument], minimum_score: float) -> Optional[ScoredDocument]:
    """
    Highest score, first one wins on a tie; None if it is under the minimum.
    """
    best: Optional[ScoredDocument] = None
    for candidate in scores:
        if best is None or best.score < candidate.score:
            best = candidate
    if best is None or best.score < minimum_score:
        return None
    return best


class RelevanceOracleClient:
    """
    Client for a document search endpoint.

    POSTs ``{"documents": [...], "query": "..."}`` to
    ``{base_url}/engines/{model}/search`` and expects
    ``{"data": [{"document": <index>, "score": <float>}, ...]}`` back.
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str,
        model: str,
        timeout_seconds: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout_seconds = timeout_seconds
        self._session = session
        self._owns_session = session is None

    @property
    def search_url(self) -> str:
        return f"{self.base_url}/engines/{self.model}/search"

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _post(self, body: dict[str, Any]) -> Any:
        session = self._get_session()
        async with session.post(self.search_url, json=body, headers=self._headers()) as resp:
            if resp.status != 200:
                text = await resp.text()
                raise OracleUnavailable(f"search returned HTTP {resp.status}: {text[:200]}")
            return await resp.json(content_type=None)

    async def search(self, query: str, documents: Sequence[str]) -> List[ScoredDocument]:
        """One scoring call, bounded by the client timeout."""
        if not documents:
            raise OracleUnavailable("no documents to score")

        body = {"documents": list(documents), "query": query}
        logger.debug("query:\n%s", query)
        try:
            payload = await asyncio.wait_for(self._post(body), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise OracleUnavailable(f"search timed out after {self.timeout_seconds}s") from exc
        except aiohttp.ClientError as exc:
            raise OracleUnavailable(f"search request failed: {exc}") from exc
        except ValueError as exc:
            raise OracleUnavailable(f"search response is not JSON: {exc}") from exc
        logger.debug("response:\n%r", payload)
        return parse_scores(payload, len(documents))

    async def rank(
        self,
        query: str,
        entries: Sequence[PhraseEntry],
        minimum_score: float,
    ) -> Optional[str]:
        """Phrase text of the best match above ``minimum_score``, if any."""
        scores = await self.search(query, [entry.document for entry in entries])
        best = pick_best(scores, minimum_score)
        if best is None:
            return None
        return entries[best.index].text
