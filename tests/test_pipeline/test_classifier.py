"""Tests for metric-role classification."""

import pytest

from adpulse.pipeline.classifier import (
    Classification,
    CompositeClassifier,
    LabelClassifier,
    MagnitudeClassifier,
    MetricRole,
)
from adpulse.pipeline.models import (
    Candidate,
    CandidateKind,
    ExtractionBundle,
    ScriptDatum,
    VisibleData,
)


def _count(value: float, context: str = "") -> Candidate:
    return Candidate(value=value, kind=CandidateKind.COUNT, raw_text=str(value), context_text=context or str(value))


def _currency(value: float, context: str = "") -> Candidate:
    return Candidate(value=value, kind=CandidateKind.CURRENCY, raw_text=f"${value}", context_text=context or f"${value}")


def _bundle(counts=(), currencies=(), script=()) -> ExtractionBundle:
    return ExtractionBundle(
        script=list(script),
        visible=VisibleData(metrics=list(counts), currencies=list(currencies)),
    )


class TestMagnitudeClassifier:
    def test_one_candidate_per_band(self):
        bundle = _bundle(counts=[_count(250), _count(472278), _count(15959)])
        result = MagnitudeClassifier().classify(bundle)
        assert result.get(MetricRole.IMPRESSIONS) == 472278
        assert result.get(MetricRole.CLICKS) == 15959
        assert result.get(MetricRole.LEADS) == 250

    def test_each_band_filled_once(self):
        bundle = _bundle(counts=[_count(500000), _count(300000), _count(2000), _count(1500)])
        result = MagnitudeClassifier().classify(bundle)
        assert result.get(MetricRole.IMPRESSIONS) == 500000
        assert result.get(MetricRole.CLICKS) == 2000
        assert not result.has(MetricRole.LEADS)

    def test_candidate_never_reused(self):
        counts = [_count(472278), _count(15959), _count(250)]
        result = MagnitudeClassifier().classify(_bundle(counts=counts))
        assert len(result.consumed) == 3
        assert len(set(result.values.values())) == 3

    def test_out_of_band_values_ignored(self):
        result = MagnitudeClassifier().classify(_bundle(counts=[_count(100000), _count(5)]))
        assert result.values == {}

    def test_band_lower_bounds_inclusive(self):
        result = MagnitudeClassifier().classify(_bundle(counts=[_count(1000), _count(10)]))
        assert result.get(MetricRole.CLICKS) == 1000
        assert result.get(MetricRole.LEADS) == 10

    def test_largest_currency_is_revenue(self):
        result = MagnitudeClassifier().classify(_bundle(currencies=[_currency(9168), _currency(10967), _currency(12)]))
        assert result.get(MetricRole.REVENUE) == 10967
        assert result.get(MetricRole.AD_SPEND) == 9168

    def test_single_currency_leaves_ad_spend_empty(self):
        result = MagnitudeClassifier().classify(_bundle(currencies=[_currency(10967)]))
        assert result.get(MetricRole.REVENUE) == 10967
        assert not result.has(MetricRole.AD_SPEND)


class TestLabelClassifier:
    def test_script_assignment_key(self):
        bundle = _bundle(script=[ScriptDatum(key="fb_revenue", shape="assignment", value=156)])
        result = LabelClassifier().classify(bundle)
        assert result.get(MetricRole.FB_REVENUE) == 156

    def test_script_object_keys(self):
        datum = ScriptDatum(key="object_0", shape="object", value={"Impressions": 1229, "reach": 683, "label": "x"})
        result = LabelClassifier().classify(_bundle(script=[datum]))
        assert result.get(MetricRole.IMPRESSIONS) == 1229
        assert result.get(MetricRole.REACH) == 683

    def test_non_finite_script_value_ignored(self):
        datum = ScriptDatum(key="object_0", shape="object", value={"impressions": float("inf"), "clicks": float("nan")})
        result = LabelClassifier().classify(_bundle(script=[datum]))
        assert not result.has(MetricRole.IMPRESSIONS)
        assert not result.has(MetricRole.CLICKS)

    def test_visible_context_keyword(self):
        bundle = _bundle(currencies=[_currency(9168, "Ad Spend: $9,168"), _currency(10967, "Revenue: $10,967")])
        result = LabelClassifier().classify(bundle)
        assert result.get(MetricRole.AD_SPEND) == 9168
        assert result.get(MetricRole.REVENUE) == 10967

    def test_ambiguous_context_is_skipped(self):
        bundle = _bundle(counts=[_count(5000, "Clicks and Leads 5,000")])
        result = LabelClassifier().classify(bundle)
        assert result.values == {}

    def test_kind_must_match_role(self):
        bundle = _bundle(counts=[_count(5000, "Revenue 5,000")])
        result = LabelClassifier().classify(bundle)
        assert not result.has(MetricRole.REVENUE)


class TestCompositeClassifier:
    def test_labels_take_precedence_over_magnitude(self):
        # The smaller currency is labelled revenue; magnitude alone would swap them
        bundle = _bundle(currencies=[_currency(20000, "Ad Spend $20,000"), _currency(15000, "Revenue $15,000")])
        result = CompositeClassifier().classify(bundle)
        assert result.get(MetricRole.REVENUE) == 15000
        assert result.get(MetricRole.AD_SPEND) == 20000

    def test_magnitude_fills_remaining_roles(self):
        bundle = _bundle(counts=[_count(472278, "Impressions 472,278"), _count(15959), _count(250)])
        result = CompositeClassifier().classify(bundle)
        assert result.get(MetricRole.IMPRESSIONS) == 472278
        assert result.get(MetricRole.CLICKS) == 15959
        assert result.get(MetricRole.LEADS) == 250

    def test_labelled_candidate_not_reused_by_magnitude(self):
        bundle = _bundle(counts=[_count(472278, "Impressions 472,278"), _count(350000)])
        result = CompositeClassifier().classify(bundle)
        assert result.get(MetricRole.IMPRESSIONS) == 472278
        assert not result.has(MetricRole.CLICKS)

    def test_custom_stages(self):
        result = CompositeClassifier(stages=[MagnitudeClassifier()]).classify(
            _bundle(currencies=[_currency(20000, "Ad Spend $20,000"), _currency(15000, "Revenue $15,000")])
        )
        assert result.get(MetricRole.REVENUE) == 20000


class TestClassification:
    def test_get_default(self):
        assert Classification().get(MetricRole.CLICKS, 7) == 7

    @pytest.mark.parametrize("role", [MetricRole.CLICKS, MetricRole.REVENUE])
    def test_assign_marks_candidate_consumed(self, role):
        candidate = _count(1500)
        result = Classification()
        result.assign(role, 1500, candidate)
        assert result.has(role)
        assert not result.is_free(candidate)
