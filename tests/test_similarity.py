"""Tests for the duplicate-detection heuristic."""

import pytest
from decimal import Decimal

from subtracker.analysis.similarity import (
    GROUP_DISPLAY_SIMILARITY,
    compute_similarity,
    detect_duplicates,
    extract_domain,
    group_key,
    is_likely_duplicate,
    levenshtein_distance,
    name_similarity,
)
from subtracker.models.subscription import (
    BillingFrequency,
    SubscriptionCategory,
    SubscriptionRecord,
)


class TestStringMeasures:
    """Tests for edit distance and name similarity."""

    def test_levenshtein_classic_example(self):
        """Test kitten -> sitting needs three edits."""
        assert levenshtein_distance("kitten", "sitting") == 3

    def test_levenshtein_against_empty(self):
        """Test distance to an empty string is the other length."""
        assert levenshtein_distance("", "abc") == 3
        assert levenshtein_distance("abc", "") == 3

    def test_name_similarity_is_case_insensitive(self):
        """Test names differing only in case are identical."""
        assert name_similarity("NETFLIX", "netflix") == 1.0

    def test_name_similarity_both_empty(self):
        """Test two empty names count as a perfect match."""
        assert name_similarity("", "") == 1.0

    def test_name_similarity_one_typo(self):
        """Test a single dropped letter stays above the name threshold."""
        assert name_similarity("Netflix", "Netflx") == pytest.approx(1 - 1 / 7)


class TestExtractDomain:
    """Tests for website domain extraction."""

    def test_full_url(self):
        """Test scheme, www and path are removed."""
        assert extract_domain("https://www.netflix.com/browse") == "netflix.com"

    def test_bare_domain(self):
        """Test a bare domain is read as an https URL."""
        assert extract_domain("netflix.com") == "netflix.com"

    def test_hostname_is_lowercased(self):
        """Test hostnames compare case-insensitively."""
        assert extract_domain("http://WWW.Hulu.com") == "hulu.com"

    def test_only_leading_www_is_stripped(self):
        """Test other subdomains are kept."""
        assert extract_domain("https://app.www.example.com") == "app.www.example.com"

    def test_unparseable_falls_back_to_raw(self):
        """Test a string with no usable hostname falls back to the lower-cased input."""
        assert extract_domain("Not A URL") == "not a url"


class TestComputeSimilarity:
    """Tests for the pairwise score."""

    def test_self_similarity_without_website(self, make_record):
        """Test a record scores 1.0 against itself without a website."""
        record = make_record()
        result = compute_similarity(record, record)
        assert result.score == pytest.approx(1.0)
        assert result.reasons == [
            "Similar names",
            "Same amount",
            "Same category",
            "Same billing frequency",
        ]

    def test_self_similarity_with_website(self, make_record):
        """Test a record with a website scores 1.3 against itself."""
        record = make_record(website="https://netflix.com")
        result = compute_similarity(record, record)
        assert result.score == pytest.approx(1.3)
        assert "Same website" in result.reasons

    def test_amount_within_tolerance(self, make_record):
        """Test amounts closer than a cent count as equal."""
        a = make_record(id="a", amount="15.99")
        b = make_record(id="b", amount="15.995")
        assert "Same amount" in compute_similarity(a, b).reasons

    def test_amount_one_cent_apart_is_different(self, make_record):
        """Test the tolerance is strict."""
        a = make_record(id="a", amount="15.99")
        b = make_record(id="b", amount="16.00")
        assert "Same amount" not in compute_similarity(a, b).reasons

    def test_score_is_symmetric(self, make_record):
        """Test the score does not depend on argument order."""
        a = make_record(id="a", name="Disney+", website="disneyplus.com")
        b = make_record(id="b", name="Disney Plus", amount="7.99", website="www.disneyplus.com")
        assert compute_similarity(a, b).score == compute_similarity(b, a).score

    def test_exactly_threshold_is_not_duplicate(self, make_record):
        """Test a score of exactly 0.7 does not qualify."""
        a = make_record(id="a", name="Hulu", amount="10")
        b = make_record(
            id="b",
            name="Hulu",
            amount="10",
            category=SubscriptionCategory.MUSIC,
            billing_frequency=BillingFrequency.YEARLY,
        )
        assert compute_similarity(a, b).score == pytest.approx(0.7)
        assert is_likely_duplicate(a, b) is False


class TestDetectDuplicates:
    """Tests for grouping a snapshot into duplicate groups."""

    @pytest.fixture
    def chain(self, make_record):
        """A ~ B and B ~ C, but A is not like C."""
        a = make_record(id="a", name="Hulu", amount="10")
        b = make_record(
            id="b",
            name="Hulu",
            amount="10",
            billing_frequency=BillingFrequency.YEARLY,
            website="hulu.com",
        )
        c = make_record(
            id="c",
            name="Zzzz",
            amount="10",
            billing_frequency=BillingFrequency.YEARLY,
            website="https://www.hulu.com",
        )
        return a, b, c

    def test_netflix_typo_grouped(self, make_record):
        """Test Netflix / Netflx at the same price are one group."""
        a = make_record(id="n1", name="Netflix")
        b = make_record(id="n2", name="Netflx")

        groups = detect_duplicates([a, b])

        assert len(groups) == 1
        group = groups[0]
        assert group.key == "n1-n2"
        assert group.member_ids == ["n1", "n2"]
        assert group.similarity == GROUP_DISPLAY_SIMILARITY
        assert group.reason == "Similar names, Same amount, Same category, Same billing frequency"

    def test_unrelated_records_not_grouped(self, make_record):
        """Test different services produce no groups."""
        a = make_record(id="a", name="Netflix", amount="15.99")
        b = make_record(
            id="b",
            name="Gym Pass",
            amount="40",
            category=SubscriptionCategory.FITNESS,
            billing_frequency=BillingFrequency.YEARLY,
        )
        assert detect_duplicates([a, b]) == []

    def test_empty_and_single_snapshot(self, make_record):
        """Test no groups for fewer than two records."""
        assert detect_duplicates([]) == []
        assert detect_duplicates([make_record()]) == []

    def test_dismissed_key_excluded(self, make_record):
        """Test a dismissed group never shows up."""
        a = make_record(id="n1", name="Netflix")
        b = make_record(id="n2", name="Netflx")
        assert detect_duplicates([a, b], dismissed_keys={"n1-n2"}) == []

    def test_key_is_sorted_regardless_of_scan_order(self, make_record):
        """Test the key sorts member ids."""
        a = make_record(id="z", name="Netflix")
        b = make_record(id="m", name="Netflx")
        groups = detect_duplicates([a, b])
        assert groups[0].key == "m-z"
        assert groups[0].member_ids == ["z", "m"]

    def test_idempotent(self, make_record):
        """Test running twice over the same snapshot gives the same result."""
        records = [
            make_record(id="a", name="Netflix"),
            make_record(id="b", name="Netflx"),
            make_record(id="c", name="Spotify", amount="9.99"),
        ]
        assert detect_duplicates(records) == detect_duplicates(records)

    def test_groups_are_disjoint(self, make_record):
        """Test a record lands in at most one group."""
        records = [
            make_record(id="a", name="Netflix"),
            make_record(id="b", name="Netflx"),
            make_record(id="c", name="Netflix"),
        ]
        groups = detect_duplicates(records)
        ids = [member for group in groups for member in group.member_ids]
        assert len(ids) == len(set(ids))
        assert groups[0].member_ids == ["a", "b", "c"]

    def test_greedy_scan_depends_on_order(self, chain):
        """Test the anchor scan only groups records similar to the anchor."""
        a, b, c = chain

        assert [g.key for g in detect_duplicates([a, b, c])] == ["a-b"]
        assert [g.key for g in detect_duplicates([b, a, c])] == ["a-b-c"]

    def test_transitive_groups_chains(self, chain):
        """Test connected components join a chain the anchor scan splits."""
        a, b, c = chain

        groups = detect_duplicates([a, b, c], transitive=True)

        assert len(groups) == 1
        assert groups[0].member_ids == ["a", "b", "c"]
        assert groups[0].key == "a-b-c"

    def test_transitive_respects_dismissed(self, chain):
        """Test dismissed keys also apply in transitive mode."""
        assert detect_duplicates(list(chain), dismissed_keys={"a-b-c"}, transitive=True) == []

    def test_group_key_helper(self, make_record):
        """Test group_key joins sorted ids."""
        assert group_key([make_record(id="b"), make_record(id="a")]) == "a-b"

    def test_decimal_amounts_compare_exactly(self, make_record):
        """Test amounts stored as Decimal are compared without float drift."""
        a = make_record(id="a", amount="0.1")
        b = make_record(id="b", amount=str(Decimal("0.1") + Decimal("0.00")))
        assert "Same amount" in compute_similarity(a, b).reasons

class TestNonFiniteAmounts:
    """Tests for records carrying NaN or infinite amounts."""

    @staticmethod
    def loose_record(id, amount):
        return SubscriptionRecord.model_construct(
            id=id,
            name="Netflix",
            amount=amount,
            next_billing_date="2024-06-20",
        )

    @pytest.mark.parametrize("amount", [float("nan"), float("inf"), "NaN", Decimal("Infinity")])
    def test_compute_similarity_treats_amount_as_zero(self, amount):
        """Test non-finite amounts score like a zero amount instead of raising."""
        a = self.loose_record("a", amount)
        b = self.loose_record("b", amount)

        result = compute_similarity(a, b)

        assert "Same amount" in result.reasons
        assert result.score == pytest.approx(1.0)

    def test_infinite_against_finite(self, make_record):
        """Test an infinite amount does not match a real price."""
        a = self.loose_record("a", float("inf"))
        b = make_record(id="b", name="Netflix")
        assert "Same amount" not in compute_similarity(a, b).reasons

    def test_detect_duplicates_survives_nan(self, make_record):
        """Test a snapshot with a NaN amount is still grouped."""
        records = [
            self.loose_record("a", float("nan")),
            self.loose_record("b", "NaN"),
            make_record(id="c", name="Spotify", category=SubscriptionCategory.MUSIC),
        ]
        assert [g.key for g in detect_duplicates(records)] == ["a-b"]
