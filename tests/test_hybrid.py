import asyncio
import logging
import threading
import time

import pytest

from tests.helpers import (
    EchoEmbedder,
    FailingEmbedder,
    StubIndex,
    StubLLM,
    StubResolver,
    StubResponse,
    make_passage,
    raw_hit,
)
from vaultsearch.retrieval.errors import EmbeddingError, IndexSearchError, RetrievalError, RetrievalTimeout
from vaultsearch.retrieval.hybrid import HybridRetriever, RetrievalTrace
from vaultsearch.retrieval.merge import DedupeKey, ExplicitFirstMergePolicy
from vaultsearch.retrieval.models import RetrievalOptions

PLAN_PATH = "work/Project Plan.md"


def plan_index(hits=None, **kwargs):
    return StubIndex(
        by_path={
            PLAN_PATH: [
                raw_hit("plan-1", "Milestone one is due May 1.", path=PLAN_PATH),
                raw_hit("plan-2", "The final deadline is June 30.", path=PLAN_PATH),
            ]
        },
        hits=hits or [],
        **kwargs,
    )


def make_retriever(index, *, embedder=None, llm=None, max_k=5, min_score=0.5, **kwargs):
    return HybridRetriever(
        resolver=StubResolver(paths={"Project Plan": PLAN_PATH}),
        index=index,
        embedder=embedder or EchoEmbedder(),
        llm=llm if llm is not None else StubLLM(),
        options=RetrievalOptions(min_similarity_score=min_score, max_k=max_k),
        **kwargs,
    )


def test_named_note_scenario_returns_only_its_passages():
    retriever = make_retriever(plan_index())

    results = retriever.retrieve_sync("What does [[Project Plan]] say about deadlines?")

    assert [r.id for r in results] == ["plan-1", "plan-2"]
    assert len({r.content for r in results}) == 2
    assert all(r.source == "explicit" for r in results)


def test_named_note_with_repeated_passage_text_keeps_every_passage():
    index = StubIndex(
        by_path={
            "n.md": [
                raw_hit("p1", "## Action items", path="n.md"),
                raw_hit("p2", "Email the venue", path="n.md"),
                raw_hit("p3", "## Action items", path="n.md"),
            ]
        }
    )
    retriever = HybridRetriever(
        resolver=StubResolver(paths={"N": "n.md"}),
        index=index,
        embedder=EchoEmbedder(),
        options=RetrievalOptions(min_similarity_score=0.5, max_k=5),
    )

    results = retriever.retrieve_sync("[[N]]", bypass_rewrite=True)

    assert [r.id for r in results] == ["p1", "p2", "p3"]


def test_explicit_passages_precede_vector_hits_and_are_deduplicated():
    index = plan_index(
        hits=[
            raw_hit("v-dup", "The final deadline is June 30.", path="journal/2024-05-02.md", score=0.97),
            raw_hit("v-new", "Budget review happens in July.", path="work/Budget.md", score=0.9),
        ]
    )
    retriever = make_retriever(index)

    results = retriever.retrieve_sync("What does [[Project Plan]] say about deadlines?")

    assert [r.id for r in results] == ["plan-1", "plan-2", "v-new"]
    contents = [r.content for r in results]
    assert len(contents) == len(set(contents))


@pytest.mark.parametrize("max_k", [1, 2, 3, 5])
def test_result_never_exceeds_max_k(max_k):
    index = plan_index(hits=[raw_hit(f"v{i}", f"vector passage {i}", score=0.9 - i * 0.01) for i in range(6)])
    retriever = make_retriever(index, max_k=max_k)

    results = retriever.retrieve_sync("[[Project Plan]] and everything else")

    assert len(results) <= max_k
    assert [r.id for r in results] == ["plan-1", "plan-2", "v0", "v1", "v2"][:max_k]


def test_hyde_rewrite_is_what_gets_embedded():
    embedder = EchoEmbedder()
    llm = StubLLM(response=StubResponse("Deadlines are listed in the project plan."))
    retriever = make_retriever(plan_index(), embedder=embedder, llm=llm)

    retriever.retrieve_sync("When is the deadline?")

    assert len(llm.prompts) == 1
    assert "When is the deadline?" in llm.prompts[0]
    assert embedder.texts == ["Deadlines are listed in the project plan."]


def test_bypass_embeds_original_query_without_model_call():
    embedder = EchoEmbedder()
    llm = StubLLM()
    retriever = make_retriever(plan_index(), embedder=embedder, llm=llm)

    retriever.retrieve_sync("What does [[Project Plan]] say?", bypass_rewrite=True)

    assert embedder.texts == ["What does [[Project Plan]] say?"]
    assert llm.prompts == []


def test_hyde_disabled_or_without_model_uses_original_query():
    embedder = EchoEmbedder()
    llm = StubLLM()
    make_retriever(plan_index(), embedder=embedder, llm=llm, use_hyde=False).retrieve_sync("plain")

    no_model = HybridRetriever(
        resolver=StubResolver(),
        index=StubIndex(),
        embedder=embedder,
        options=RetrievalOptions(min_similarity_score=0.5, max_k=3),
    )
    no_model.retrieve_sync("also plain")

    assert embedder.texts == ["plain", "also plain"]
    assert llm.prompts == []


@pytest.mark.parametrize(
    "llm",
    [
        StubLLM(error=RuntimeError("model offline")),
        StubLLM(response={"no_content": True}),
        StubLLM(response=None),
    ],
)
def test_rewrite_failure_falls_back_to_original_query(llm):
    embedder = EchoEmbedder()
    index = plan_index(hits=[raw_hit("v1", "vector passage", score=0.9)])
    retriever = make_retriever(index, embedder=embedder, llm=llm)

    results = retriever.retrieve_sync("What changed?")

    assert embedder.texts == ["What changed?"]
    assert [r.id for r in results] == ["v1"]


def test_embedding_failure_propagates_instead_of_empty_result():
    retriever = make_retriever(plan_index(), embedder=FailingEmbedder())

    with pytest.raises(EmbeddingError) as excinfo:
        retriever.retrieve_sync("What does [[Project Plan]] say?", bypass_rewrite=True)

    assert isinstance(excinfo.value, RetrievalError)
    assert excinfo.value.query == "What does [[Project Plan]] say?"


def test_index_search_failure_propagates():
    retriever = make_retriever(plan_index(search_error=TimeoutError("statement timeout")))

    with pytest.raises(IndexSearchError):
        retriever.retrieve_sync("[[Project Plan]]")


def test_explicit_fetch_failure_does_not_fail_the_call():
    index = plan_index(hits=[raw_hit("v1", "vector passage", score=0.9)], failing_paths=[PLAN_PATH])
    retriever = make_retriever(index)

    results = retriever.retrieve_sync("[[Project Plan]]")

    assert [r.id for r in results] == ["v1"]


def test_debug_trace_does_not_change_result():
    traces = []
    hits = [raw_hit("v1", "vector passage", score=0.9)]
    llm = StubLLM(response=StubResponse("hypothetical"))

    plain = make_retriever(plan_index(hits=hits), llm=llm).retrieve_sync("[[Project Plan]] deadlines")
    traced = make_retriever(plan_index(hits=hits), llm=llm, debug=True, trace_sink=traces.append).retrieve_sync(
        "[[Project Plan]] deadlines"
    )

    assert [r.id for r in traced] == [r.id for r in plain]
    assert len(traces) == 1
    trace = traces[0]
    assert isinstance(trace, RetrievalTrace)
    assert trace.note_titles == ["Project Plan"]
    assert trace.query == "[[Project Plan]] deadlines"
    assert trace.rewritten_query == "hypothetical"
    assert [p.id for p in trace.explicit] == ["plan-1", "plan-2"]
    assert [p.id for p in trace.vector] == ["v1"]
    assert [p.id for p in trace.combined] == ["plan-1", "plan-2", "v1"]
    assert trace.to_dict()["combined"][0]["id"] == "plan-1"


def test_bypassed_trace_has_no_rewritten_query():
    traces = []
    retriever = make_retriever(plan_index(), debug=True, trace_sink=traces.append)

    retriever.retrieve_sync("question", bypass_rewrite=True)

    assert traces[0].rewritten_query is None


def test_default_trace_sink_logs(caplog):
    retriever = make_retriever(plan_index(), debug=True)

    with caplog.at_level(logging.INFO, logger="vaultsearch.retrieval.hybrid"):
        retriever.retrieve_sync("[[Project Plan]]", bypass_rewrite=True)

    assert "Hybrid retriever trace" in caplog.text
    assert "plan-1" in caplog.text


def test_no_trace_without_debug():
    traces = []
    make_retriever(plan_index(), trace_sink=traces.append).retrieve_sync("[[Project Plan]]")

    assert traces == []


def test_custom_merge_policy_is_used():
    index = StubIndex(
        by_path={PLAN_PATH: [make_passage("e1", "boilerplate", path=PLAN_PATH)]},
        hits=[raw_hit("v1", "boilerplate", path="other.md", score=0.9)],
    )
    retriever = make_retriever(index, merge_policy=ExplicitFirstMergePolicy(DedupeKey.PATH_AND_CONTENT))

    results = retriever.retrieve_sync("[[Project Plan]]", bypass_rewrite=True)

    assert [r.id for r in results] == ["e1", "v1"]


def test_timeout_returns_control_without_waiting_for_the_stuck_call():
    release = threading.Event()

    class StuckEmbedder:
        def embed_query(self, text):
            release.wait(5)
            return [1.0, 0.0]

    retriever = make_retriever(plan_index(), embedder=StuckEmbedder())

    started = time.monotonic()
    try:
        with pytest.raises(RetrievalTimeout):
            retriever.retrieve_sync("q", bypass_rewrite=True, timeout=0.1)
        elapsed = time.monotonic() - started
    finally:
        release.set()

    assert elapsed < 2.0


def test_concurrent_calls_do_not_interfere():
    index = StubIndex(
        by_path={
            "a.md": [make_passage("a1", "alpha", path="a.md")],
            "b.md": [make_passage("b1", "beta", path="b.md")],
        }
    )
    retriever = HybridRetriever(
        resolver=StubResolver(paths={"A": "a.md", "B": "b.md"}),
        index=index,
        embedder=EchoEmbedder(),
        options=RetrievalOptions(min_similarity_score=0.5, max_k=5),
    )

    async def run_both():
        return await asyncio.gather(retriever.retrieve("[[A]]"), retriever.retrieve("[[B]]"))

    first, second = asyncio.run(run_both())

    assert [r.id for r in first] == ["a1"]
    assert [r.id for r in second] == ["b1"]
