"""Validator tests.

NarrativeValidator and IdeaValidator against a frozen store built from
the stub fetchers' signal layout. Fully deterministic, no LLM.
"""

import pytest

from core.errors import MalformedProposal
from core.store import SignalStore
from derivation.deriver import MetricDeriver
from judge.idea_judge import IdeaValidator, judge_idea, parse_idea_proposals
from judge.narrative_judge import NarrativeValidator, judge_narrative, parse_narrative_proposals
from schemas.narrative import Narrative, NarrativeProposal, TrendDirection
from schemas.result import RejectionReason
from schemas.signal import Category, Signal, SignalSource
from stubs import FIXED_TIME, github_repo_signals, idea_proposal, program_tx_signal


@pytest.fixture
def store():
    """0-1 GitHub, 2-3 SolanaRPC, 4-5 rates, 6 ratio, 7-9 velocity."""
    s = SignalStore()
    s.extend(github_repo_signals())
    s.extend([program_tx_signal("jupiter", 1_000_000), program_tx_signal("raydium", 117_500)])
    MetricDeriver().derive(s)
    s.freeze()
    return s


def make_proposal(title="Aggregators absorb DEX flow", cited=None, confidence=80, **extra):
    data = {
        "title": title,
        "categories": ["DeFi"],
        "confidence": confidence,
        "trend": "Accelerating",
        "cited_signal_indices": cited if cited is not None else [0, 2],
        "rationale": "Repo activity and onchain volume agree.",
    }
    data.update(extra)
    return data


def make_narrative(id=1, accepted=True):
    return Narrative(
        id=id,
        title=f"Narrative {id}",
        categories=[Category.DEFI],
        confidence=70,
        trend=TrendDirection.EMERGING,
        cited_signal_indices=[0, 2],
        rationale="r",
        accepted=accepted,
    )


def make_idea(narrative_id=1, title="Swap route explorer"):
    return idea_proposal(title, narrative_id, "Explain each aggregator route.")


# ── Narrative schema check ────────────────────────────────────────────────────

class TestParseNarrativeProposals:
    def test_valid_batch(self):
        proposals = parse_narrative_proposals([make_proposal(), make_proposal(title="Other")])
        assert [p.title for p in proposals] == ["Aggregators absorb DEX flow", "Other"]

    def test_one_bad_proposal_fails_the_batch(self):
        bad = make_proposal()
        del bad["confidence"]
        with pytest.raises(MalformedProposal) as info:
            parse_narrative_proposals([make_proposal(), bad])
        assert any("proposal 1" in e and "confidence" in e for e in info.value.errors)

    def test_all_errors_collected(self):
        bad_a = make_proposal()
        del bad_a["title"]
        bad_b = "not an object"
        with pytest.raises(MalformedProposal) as info:
            parse_narrative_proposals([bad_a, bad_b], response="raw text")
        assert len(info.value.errors) == 2
        assert info.value.raw == "raw text"

    def test_empty_batch_is_valid(self):
        assert parse_narrative_proposals([]) == []


# ── Narrative grounding ───────────────────────────────────────────────────────

class TestJudgeNarrative:
    def _judge(self, store, **kwargs):
        return judge_narrative(NarrativeProposal.model_validate(make_proposal(**kwargs)), store)

    def test_two_sources_accepted(self, store):
        verdict = self._judge(store, cited=[0, 2])
        assert verdict.accepted
        assert verdict.raw_sources == [SignalSource.GITHUB, SignalSource.SOLANA_RPC]
        assert verdict.adjusted_from is None

    def test_single_source_rejected(self, store):
        verdict = self._judge(store, cited=[0, 1])
        assert not verdict.accepted
        assert verdict.rejection.reason == RejectionReason.INSUFFICIENT_CORROBORATION
        assert "GitHub" in verdict.rejection.detail

    def test_derived_chain_counts_as_underlying_source(self, store):
        verdict = self._judge(store, cited=[6, 4, 5])
        assert verdict.rejection.reason == RejectionReason.INSUFFICIENT_CORROBORATION

    def test_dangling_citation_rejected(self, store):
        verdict = self._judge(store, cited=[0, 2, 9999])
        assert verdict.rejection.reason == RejectionReason.DANGLING_CITATION
        assert "9999" in verdict.rejection.detail
        assert "store holds 10 signals" in verdict.rejection.detail

    def test_negative_index_is_dangling(self, store):
        verdict = self._judge(store, cited=[-1, 0])
        assert verdict.rejection.reason == RejectionReason.DANGLING_CITATION

    def test_high_confidence_with_ratio_kept(self, store):
        verdict = self._judge(store, cited=[6, 0], confidence=95)
        assert verdict.accepted
        assert verdict.confidence == 95
        assert verdict.note is None

    def test_high_confidence_with_three_sources_kept(self):
        diverse = SignalStore()
        diverse.extend(github_repo_signals())
        diverse.extend([
            Signal(source=SignalSource.BLOG, category=Category.DEFI, metric_name="article",
                   value="Aggregators now route most Solana swaps", timestamp=FIXED_TIME),
            Signal(source=SignalSource.DEFILLAMA, category=Category.DEFI, metric_name="jupiter_tvl",
                   value=2.1e9, unit="USD", timestamp=FIXED_TIME),
        ])
        diverse.freeze()

        verdict = judge_narrative(
            NarrativeProposal.model_validate(make_proposal(cited=[0, 2, 3], confidence=97)), diverse,
        )
        assert verdict.accepted
        assert verdict.raw_sources == [SignalSource.GITHUB, SignalSource.BLOG, SignalSource.DEFILLAMA]
        assert verdict.confidence == 97
        assert verdict.adjusted_from is None
        assert verdict.note is None

    def test_high_confidence_two_sources_without_ratio_clamped(self, store):
        verdict = self._judge(store, cited=[0, 4], confidence=95)
        assert verdict.accepted
        assert verdict.confidence == 90
        assert verdict.adjusted_from == 95
        assert "clamped to 90" in verdict.note

    def test_confidence_above_100_clamped(self, store):
        verdict = self._judge(store, cited=[6, 0], confidence=140)
        assert verdict.confidence == 100
        assert verdict.adjusted_from == 140

    def test_negative_confidence_clamped_to_zero(self, store):
        verdict = self._judge(store, cited=[0, 2], confidence=-5)
        assert verdict.confidence == 0
        assert "outside [0, 100]" in verdict.note


class TestNarrativeValidator:
    def test_ids_assigned_to_accepted_only(self, store):
        outcome = NarrativeValidator().validate([
            make_proposal(title="A", cited=[0, 2]),
            make_proposal(title="B", cited=[0, 1]),
            make_proposal(title="C", cited=[6, 1]),
        ], store)

        assert [(n.id, n.title) for n in outcome.narratives] == [(1, "A"), (2, "C")]
        assert all(n.accepted for n in outcome.narratives)
        assert [r.title for r in outcome.rejections] == ["B"]

    def test_every_citation_resolves_in_accepted_output(self, store):
        outcome = NarrativeValidator().validate([make_proposal(cited=[6, 0, 8])], store)
        narrative = outcome.narratives[0]
        assert all(store.get(i) is not None for i in narrative.cited_signal_indices)
        assert len(narrative.raw_sources) >= 2

    def test_clamp_note_recorded(self, store):
        outcome = NarrativeValidator().validate([make_proposal(cited=[0, 4], confidence=95)], store)
        assert outcome.narratives[0].confidence == 90
        assert outcome.narratives[0].confidence_adjusted_from == 95
        assert len(outcome.notes) == 1

    def test_deterministic(self, store):
        batch = [make_proposal(title="A"), make_proposal(title="B", cited=[1, 3])]
        first = NarrativeValidator().validate(batch, store)
        second = NarrativeValidator().validate(batch, store)
        assert first.narratives == second.narratives
        assert first.rejections == second.rejections

    def test_store_not_modified(self, store):
        before = store.all()
        NarrativeValidator().validate([make_proposal()], store)
        assert store.all() == before


# ── Ideas ─────────────────────────────────────────────────────────────────────

class TestIdeaValidator:
    def test_idea_for_accepted_narrative_kept(self):
        outcome = IdeaValidator().validate([make_idea(1)], [make_narrative(1)])
        assert [(i.id, i.narrative_id) for i in outcome.ideas] == [(1, 1)]
        assert outcome.rejections == []

    def test_orphan_idea_rejected(self):
        outcome = IdeaValidator().validate(
            [make_idea(1, "Kept"), make_idea(7, "Orphan")],
            [make_narrative(1)],
        )
        assert [i.title for i in outcome.ideas] == ["Kept"]
        rejection = outcome.rejections[0]
        assert rejection.reason == RejectionReason.ORPHAN_IDEA
        assert rejection.stage == "idea"
        assert "7" in rejection.detail

    def test_unaccepted_narrative_does_not_anchor_ideas(self):
        outcome = IdeaValidator().validate([make_idea(1)], [make_narrative(1, accepted=False)])
        assert outcome.ideas == []

    def test_idea_ids_sequential(self):
        outcome = IdeaValidator().validate(
            [make_idea(1, "a"), make_idea(9, "b"), make_idea(2, "c")],
            [make_narrative(1), make_narrative(2)],
        )
        assert [(i.id, i.title) for i in outcome.ideas] == [(1, "a"), (2, "c")]

    def test_malformed_idea_batch_raises(self):
        with pytest.raises(MalformedProposal):
            parse_idea_proposals([{"title": "no description", "narrative_id": 1}])

    def test_idea_without_mvp_scope_is_malformed(self):
        terse = make_idea(1)
        del terse["mvp_scope"]
        with pytest.raises(MalformedProposal) as info:
            parse_idea_proposals([terse])
        assert any("mvp_scope" in error for error in info.value.errors)

    def test_judge_idea_returns_none_when_grounded(self):
        proposal = parse_idea_proposals([make_idea(3)])[0]
        assert judge_idea(proposal, {3}) is None
