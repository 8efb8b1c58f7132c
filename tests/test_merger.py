from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from orgdedup.config.policies import DeduplicationPolicy
from orgdedup.entities.core import (
    DataQuality,
    DataSourceReference,
    Organisation,
    OrganisationLocation,
    OrganisationStatus,
)
from orgdedup.pipeline.deduplication.merger import EmptyClusterError, RecordMerger
from orgdedup.pipeline.deduplication.quality import (
    TRACKED_FIELDS,
    compute_completeness,
    is_populated,
    merge_confidence,
)

RETRIEVED = datetime(2024, 3, 1, tzinfo=timezone.utc)


def source(name: str, source_id: str | None, confidence: float = 0.8) -> DataSourceReference:
    return DataSourceReference(
        source=name,
        source_id=source_id,
        retrieved_at=RETRIEVED,
        confidence=confidence,
    )


def make_org(record_id: str, name: str = "Department of Health", **fields) -> Organisation:
    fields.setdefault("sources", [source("gov_uk_api", record_id)])
    fields.setdefault("kind", "ministerial_department")
    return Organisation(id=record_id, name=name, **fields)


def test_merge_empty_cluster_fails_fast() -> None:
    with pytest.raises(EmptyClusterError):
        RecordMerger(DeduplicationPolicy()).merge([])


def test_merge_singleton_returns_record_unchanged() -> None:
    record = make_org("a")
    outcome = RecordMerger(DeduplicationPolicy()).merge([record])
    assert outcome.merged is record
    assert outcome.confidence == 1.0
    assert outcome.conflicts == []
    assert not outcome.is_merge


def test_merge_deduplicates_sources_but_averages_every_member_source() -> None:
    first = make_org("a", sources=[source("gov_uk_api", "x1", 0.7)])
    second = make_org("b", sources=[source("gov_uk_api", "x1", 0.9), source("ons", "o1", 0.8)])

    outcome = RecordMerger(DeduplicationPolicy()).merge([first, second])

    merged_sources = [(item.source, item.source_id, item.confidence) for item in outcome.merged.sources]
    assert merged_sources == [("gov_uk_api", "x1", 0.9), ("ons", "o1", 0.8)]
    assert outcome.conflicts == []
    assert outcome.confidence == pytest.approx((0.7 + 0.9 + 0.8) / 3)


def test_sources_without_origin_id_collapse_per_source() -> None:
    first = make_org("a", sources=[source("manual_entry", None, 0.6)])
    second = make_org("b", sources=[source("manual_entry", None, 0.5)])

    outcome = RecordMerger(DeduplicationPolicy()).merge([first, second])

    assert len(outcome.merged.sources) == 1
    assert outcome.merged.sources[0].confidence == 0.6


def test_merge_assigns_new_id_only_when_tracking_provenance() -> None:
    cluster = [make_org("a"), make_org("b")]

    tracked = RecordMerger(DeduplicationPolicy()).merge(cluster)
    untracked = RecordMerger(DeduplicationPolicy(track_provenance=False)).merge(cluster)

    assert tracked.merged.id not in {"a", "b"}
    assert untracked.merged.id == "a"
    assert tracked.member_ids == ["a", "b"]


def test_merge_records_conflicts_and_merges_aliases() -> None:
    first = make_org("a", "Department of Health", alternative_names=["DoH"])
    second = make_org(
        "b",
        "Department of Health and Social Care",
        alternative_names=["DHSC"],
        sources=[source("ons", "b")],
    )

    outcome = RecordMerger(DeduplicationPolicy()).merge([first, second])
    merged = outcome.merged

    assert merged.name == "Department of Health and Social Care"
    assert merged.alternative_names == ["DoH", "Department of Health", "DHSC"]
    assert [conflict.field for conflict in outcome.conflicts] == ["name", "alternative_names"]

    name_conflict = outcome.conflicts[0]
    assert name_conflict.organisation_id == merged.id
    assert [(value.source, value.value) for value in name_conflict.values] == [
        ("gov_uk_api", "Department of Health"),
        ("ons", "Department of Health and Social Care"),
    ]
    assert name_conflict.values[0].retrieved_at == RETRIEVED
    assert name_conflict.resolution is not None
    assert name_conflict.resolution.strategy == "most_complete"
    assert name_conflict.resolution.resolved_value == "Department of Health and Social Care"

    assert first.alternative_names == ["DoH"]
    assert second.name == "Department of Health and Social Care"


def test_merge_skips_absent_values_when_detecting_conflicts() -> None:
    first = make_org("a", classification="health", establishment_date=date(2018, 1, 8))
    second = make_org("b", classification=None, alternative_names=[])

    outcome = RecordMerger(DeduplicationPolicy()).merge([first, second])

    assert outcome.conflicts == []
    assert outcome.merged.classification == "health"
    assert outcome.merged.establishment_date == date(2018, 1, 8)


def test_structurally_equal_locations_do_not_conflict() -> None:
    first = make_org("a", location=OrganisationLocation(address="39 Victoria Street", country="UK"))
    second = make_org("b", location=OrganisationLocation(address="39 Victoria Street", country="UK"))
    third = make_org("c", location=OrganisationLocation(address="1 Horse Guards Road", country="UK"))

    merger = RecordMerger(DeduplicationPolicy())
    assert merger.merge([first, second]).conflicts == []
    conflicts = merger.merge([first, third]).conflicts
    assert [conflict.field for conflict in conflicts] == ["location"]


def test_merge_additional_properties_later_member_wins() -> None:
    first = make_org("a", additional_properties={"ons_code": "E1", "website": "https://a.gov.uk"})
    second = make_org("b", additional_properties={"ons_code": "E2"})

    merged = RecordMerger(DeduplicationPolicy()).merge([first, second]).merged

    assert merged.additional_properties == {"ons_code": "E2", "website": "https://a.gov.uk"}
    assert first.additional_properties["ons_code"] == "E1"


def test_merge_recomputes_quality_and_flags_low_completeness() -> None:
    outcome = RecordMerger(DeduplicationPolicy()).merge([make_org("a"), make_org("b")])
    quality = outcome.merged.data_quality

    assert quality.completeness == pytest.approx(3 / len(TRACKED_FIELDS))
    assert not quality.has_conflicts
    assert quality.requires_review
    assert any("Completeness" in reason for reason in quality.review_reasons)


def test_merge_status_conflict_requires_review() -> None:
    common = {
        "classification": "health",
        "parent_organisation": "Cabinet Office",
        "controlling_unit": "DHSC",
        "establishment_date": date(2013, 4, 1),
        "location": OrganisationLocation(address="39 Victoria Street"),
        "alternative_names": ["PHE"],
    }
    first = make_org("a", "Public Health England", status=OrganisationStatus.ACTIVE, **common)
    second = make_org(
        "b",
        "Public Health England",
        status=OrganisationStatus.DISSOLVED,
        dissolution_date=date(2021, 10, 1),
        data_quality=DataQuality(completeness=0.9),
        sources=[source("ons", "b")],
        **common,
    )

    outcome = RecordMerger(DeduplicationPolicy()).merge([first, second])
    quality = outcome.merged.data_quality

    assert [conflict.field for conflict in outcome.conflicts] == ["status"]
    assert {value.value for value in outcome.conflicts[0].values} == {
        OrganisationStatus.ACTIVE,
        OrganisationStatus.DISSOLVED,
    }
    assert quality.has_conflicts
    assert quality.conflict_fields == ["status"]
    assert quality.requires_review
    assert quality.completeness == 1.0
    assert outcome.confidence == pytest.approx(0.8 - 0.1)


def test_manual_strategy_flags_review_and_keeps_first_values() -> None:
    first = make_org("a", "HM Revenue and Customs", classification="tax")
    second = make_org("b", "HM Revenue & Customs Office", classification="revenue")

    policy = DeduplicationPolicy(conflict_resolution_strategy="manual", track_provenance=False)
    outcome = RecordMerger(policy).merge([first, second])

    assert outcome.merged.id == "a"
    assert outcome.merged.name == "HM Revenue and Customs"
    assert outcome.merged.classification == "tax"
    assert any("manual" in reason for reason in outcome.merged.data_quality.review_reasons)


def test_newest_strategy_resolves_to_latest_record_values() -> None:
    older = make_org("a", "Natural England", last_updated=datetime(2020, 1, 1), classification="environment")
    newer = make_org("b", "Natural England", last_updated=datetime(2024, 1, 1), classification="nature")

    outcome = RecordMerger(DeduplicationPolicy(conflict_resolution_strategy="newest")).merge([older, newer])

    assert outcome.merged.classification == "nature"
    assert outcome.merged.last_updated > newer.last_updated


def test_confidence_bonus_for_three_members_and_clamping() -> None:
    quality = DeduplicationPolicy().quality
    sources = [source("a", "1", 0.95), source("b", "2", 0.95), source("c", "3", 0.95)]

    assert merge_confidence(sources, 0, 3, quality) == 1.0
    assert merge_confidence(sources, 0, 2, quality) == pytest.approx(0.95)
    assert merge_confidence([source("a", "1", 0.2)], 10, 2, quality) == 0.0
    assert merge_confidence([], 0, 2, quality) == 0.0


def test_is_populated_treats_empty_values_as_absent() -> None:
    assert not is_populated(None)
    assert not is_populated("  ")
    assert not is_populated([])
    assert is_populated(0)
    assert is_populated(OrganisationStatus.ACTIVE)


def test_compute_completeness_counts_tracked_fields() -> None:
    record = make_org(
        "a",
        alternative_names=["DoH"],
        classification="health",
        location=OrganisationLocation(region="London"),
    )
    assert compute_completeness(record) == pytest.approx(6 / 10)


def test_alias_order_does_not_create_conflict() -> None:
    first = make_org("a", alternative_names=["DoH", "DH"])
    second = make_org("b", alternative_names=["DH", "DoH"], sources=[source("ons", "b")])

    outcome = RecordMerger(DeduplicationPolicy()).merge([first, second])

    assert outcome.conflicts == []
    assert not outcome.merged.data_quality.has_conflicts
    assert outcome.confidence == pytest.approx(0.8)
    assert sorted(outcome.merged.alternative_names) == ["DH", "DoH"]


def test_different_alias_sets_still_conflict() -> None:
    first = make_org("a", alternative_names=["DoH", "DH"])
    second = make_org("b", alternative_names=["DoH"])

    outcome = RecordMerger(DeduplicationPolicy()).merge([first, second])

    assert [conflict.field for conflict in outcome.conflicts] == ["alternative_names"]


def test_most_complete_base_uses_stored_completeness() -> None:
    sparse = make_org("a", data_quality=DataQuality(completeness=0.9))
    rich = make_org(
        "b",
        classification="health",
        parent_organisation="DHSC",
        data_quality=DataQuality(completeness=0.1),
    )

    outcome = RecordMerger(DeduplicationPolicy(track_provenance=False)).merge([sparse, rich])

    assert outcome.merged.id == "a"
    assert outcome.merged.classification is None
    assert outcome.merged.data_quality.completeness == pytest.approx(3 / len(TRACKED_FIELDS))
