"""End-to-end runtime tests.

Drives NarrativeRuntime with stub fetchers and a scripted transport through
the full pipeline: fetch, store, derive, aggregate, synthesize and validate.
"""

import asyncio
import json

import pytest

from config import RunConfig
from core.errors import MalformedProposal, RunCancelled, SynthesisFailed, TransportError
from core.runtime import NarrativeRuntime
from schemas.result import RejectionReason
from schemas.signal import Category, SignalSource
from stubs import FailingFetcher, ScriptedTransport, StaticFetcher, idea_proposal, standard_fetchers


def make_runtime(transport=None, config=None, fetchers=None):
    runtime = NarrativeRuntime(config or RunConfig(), transport)
    for fetcher in fetchers if fetchers is not None else standard_fetchers():
        runtime.register(fetcher)
    return runtime


def narrative(title, cited, confidence=80):
    return {
        "title": title,
        "categories": ["DeFi"],
        "confidence": confidence,
        "trend": "Accelerating",
        "cited_signal_indices": cited,
        "rationale": "Grounded in the cited signals.",
    }


def idea(title, narrative_id):
    return idea_proposal(title, narrative_id)


# ── Collection ────────────────────────────────────────────────────────────────

class TestCollect:
    async def test_store_layout_and_derivations(self):
        collection = await make_runtime().collect()
        store = collection.store

        assert store.frozen
        assert len(store) == 10
        assert store.get(4).metric_name == "jupiter_tx_per_hour"
        assert store.get(4).value == pytest.approx(212_766, abs=1)
        assert store.get(5).value == pytest.approx(25_000)
        assert store.get(6).metric_name == "jupiter_raydium_tx_ratio"
        assert store.get(6).value == pytest.approx(8.51, abs=0.01)

    async def test_source_status_in_registration_order(self):
        collection = await make_runtime().collect()
        assert [(s.source, s.ok) for s in collection.source_status] == [
            ("github", True),
            ("solana_rpc", True),
            ("blog", False),
            ("defillama", False),
        ]
        assert any("blog" in note for note in collection.notes)

    async def test_aggregates_follow_provenance(self):
        collection = await make_runtime().collect()
        defi = collection.aggregates[0]
        assert defi.category == Category.DEFI
        assert defi.raw_sources == [SignalSource.GITHUB, SignalSource.SOLANA_RPC]
        assert defi.signal_count == 10

    async def test_storage_order_independent_of_completion_order(self):
        fetchers = standard_fetchers()
        fetchers[0] = StaticFetcher("github", SignalSource.GITHUB, fetchers[0]._signals, delay=0.05)
        collection = await make_runtime(fetchers=fetchers).collect()
        assert collection.store.get(0).source == SignalSource.GITHUB

    async def test_collect_needs_no_transport(self):
        collection = await make_runtime(transport=None).collect()
        assert len(collection.store) == 10


# ── Full runs ─────────────────────────────────────────────────────────────────

class TestExecute:
    async def test_accepts_grounded_and_rejects_single_source(self):
        transport = ScriptedTransport(
            narratives=[[
                narrative("Aggregators win", [0, 2]),
                narrative("Repo hype only", [0, 1]),
            ]],
            ideas=[[idea("Route explorer", 1)]],
        )
        result = await make_runtime(transport).execute()

        assert [n.title for n in result.narratives] == ["Aggregators win"]
        assert result.narratives[0].id == 1
        assert result.rejections[0].reason == RejectionReason.INSUFFICIENT_CORROBORATION
        assert [i.title for i in result.ideas] == ["Route explorer"]
        assert result.finished_at is not None

    async def test_high_confidence_rules(self):
        transport = ScriptedTransport(
            narratives=[[
                narrative("Ratio backed", [6, 0], confidence=95),
                narrative("Rate backed", [0, 4], confidence=95),
            ]],
            ideas=[[]],
        )
        result = await make_runtime(transport).execute()

        by_title = {n.title: n for n in result.narratives}
        assert by_title["Ratio backed"].confidence == 95
        assert by_title["Rate backed"].confidence == 90
        assert by_title["Rate backed"].confidence_adjusted_from == 95
        assert any("clamped to 90" in note for note in result.notes)

    async def test_dangling_citation(self):
        transport = ScriptedTransport(
            narratives=[[narrative("Invented", [9999, 0]), narrative("Real", [0, 2])]],
            ideas=[[]],
        )
        result = await make_runtime(transport).execute()

        assert [n.title for n in result.narratives] == ["Real"]
        assert result.rejections[0].reason == RejectionReason.DANGLING_CITATION

    async def test_orphan_idea(self):
        transport = ScriptedTransport(
            narratives=[[narrative("Aggregators win", [0, 2])]],
            ideas=[[idea("Kept", 1), idea("Orphan", 7)]],
        )
        result = await make_runtime(transport).execute()

        assert [i.title for i in result.ideas] == ["Kept"]
        assert result.rejections[-1].reason == RejectionReason.ORPHAN_IDEA

    async def test_result_contains_every_signal(self):
        transport = ScriptedTransport(narratives=[[narrative("A", [0, 2])]], ideas=[[]])
        result = await make_runtime(transport).execute()
        assert [s.index for s in result.signals] == list(range(10))

    async def test_context_cites_store_indices(self):
        transport = ScriptedTransport(narratives=[[narrative("A", [0, 2])]], ideas=[[]])
        await make_runtime(transport).execute()

        context = json.loads(transport.narrative_contexts[0])
        indices = {s["index"] for c in context["categories"] for s in c["signals"]}
        assert indices == set(range(10))
        assert context["total_signals"] == 10


# ── Retries ───────────────────────────────────────────────────────────────────

class TestRetries:
    async def test_malformed_then_valid_succeeds(self):
        bad = narrative("Missing confidence", [0, 2])
        del bad["confidence"]
        transport = ScriptedTransport(
            narratives=[[bad], [narrative("Fixed", [0, 2])]],
            ideas=[[]],
        )
        result = await make_runtime(transport, RunConfig(synthesis_retries=1)).execute()

        assert [n.title for n in result.narratives] == ["Fixed"]
        assert len(transport.narrative_contexts) == 2

    async def test_exhausted_retries_raise_synthesis_failed(self):
        bad = narrative("Missing confidence", [0, 2])
        del bad["confidence"]
        transport = ScriptedTransport(narratives=[[bad], [bad]])

        with pytest.raises(SynthesisFailed) as info:
            await make_runtime(transport, RunConfig(synthesis_retries=1)).execute()

        assert info.value.stage == "narrative"
        assert info.value.attempts == 2
        assert isinstance(info.value.last_error, MalformedProposal)
        contexts = transport.narrative_contexts
        assert len(contexts) == 2 and contexts[0] == contexts[1]

    async def test_transport_errors_are_retried(self):
        transport = ScriptedTransport(
            narratives=[TransportError("503"), [narrative("A", [0, 2])]],
            ideas=[TransportError("timeout"), [idea("I", 1)]],
        )
        result = await make_runtime(transport, RunConfig(synthesis_retries=1)).execute()
        assert len(result.ideas) == 1
        assert len(transport.idea_contexts) == 2

    async def test_idea_missing_scope_is_retried(self):
        terse = idea("Route explorer", 1)
        del terse["mvp_scope"]
        transport = ScriptedTransport(
            narratives=[[narrative("A", [0, 2])]],
            ideas=[[terse], [idea("Route explorer", 1)]],
        )
        result = await make_runtime(transport, RunConfig(synthesis_retries=1)).execute()

        assert [i.mvp_scope for i in result.ideas] == ["Single dashboard page backed by public RPC data"]
        assert len(transport.idea_contexts) == 2

    async def test_idea_stage_failure(self):
        transport = ScriptedTransport(
            narratives=[[narrative("A", [0, 2])]],
            ideas=[TransportError("down")] * 3,
        )
        with pytest.raises(SynthesisFailed) as info:
            await make_runtime(transport).execute()
        assert info.value.stage == "idea"
        assert info.value.attempts == 3

    async def test_rejections_are_not_retried(self):
        transport = ScriptedTransport(narratives=[[narrative("Weak", [0, 1])]])
        result = await make_runtime(transport).execute()

        assert result.narratives == []
        assert len(transport.narrative_contexts) == 1
        assert transport.idea_contexts == []
        assert any("idea synthesis skipped" in note for note in result.notes)


# ── Degenerate runs ───────────────────────────────────────────────────────────

class TestDegenerate:
    async def test_no_signals_skips_synthesis(self):
        fetchers = [
            FailingFetcher("github", SignalSource.GITHUB),
            FailingFetcher("solana_rpc", SignalSource.SOLANA_RPC),
        ]
        transport = ScriptedTransport()
        result = await make_runtime(transport, fetchers=fetchers).execute()

        assert result.signals == [] and result.narratives == []
        assert transport.narrative_contexts == []
        assert any("synthesis skipped" in note for note in result.notes)

    async def test_execute_without_transport_raises(self):
        with pytest.raises(ValueError, match="transport"):
            await make_runtime(transport=None).execute()

    async def test_cancel_before_start(self):
        cancel = asyncio.Event()
        cancel.set()
        transport = ScriptedTransport()
        fetchers = standard_fetchers()

        with pytest.raises(RunCancelled):
            await make_runtime(transport, fetchers=fetchers).execute(cancel_event=cancel)
        assert fetchers[0].calls == 0

    async def test_duplicate_fetcher_name_rejected(self):
        runtime = make_runtime()
        with pytest.raises(ValueError):
            runtime.register(StaticFetcher("github", SignalSource.GITHUB, []))

    async def test_runs_are_independent(self):
        transport = ScriptedTransport(
            narratives=[[narrative("A", [0, 2])], [narrative("A", [0, 2])]],
            ideas=[[], []],
        )
        runtime = make_runtime(transport)
        first = await runtime.execute()
        second = await runtime.execute()

        assert first.run_id != second.run_id
        assert len(first.signals) == len(second.signals) == 10
        assert transport.narrative_contexts[0] == transport.narrative_contexts[1]
