# ABOUTME: Tests for the Finebook aggregation engine
# ABOUTME: Member, category and global totals, live and as of a cutoff

import datetime as dt

from finebook.periods import Period
from finebook.stats import (
    FineStatus,
    all_donations,
    category_label,
    category_stats,
    global_totals,
    global_totals_as_of,
    macro_category_stats,
    member_donations,
    member_stats,
    member_stats_as_of,
    team_stats,
)
from finebook.types import Donation, Fine, Ledger, Member

SEPTEMBER = dt.date(2025, 9, 30)


class TestMemberStats:
    """Test per-member period totals."""

    def test_paid_view_scenario(self, ledger):
        stats = member_stats(ledger, "m1", Period.MONTHLY, FineStatus.PAID, now=SEPTEMBER)

        assert stats.total_fines == 10
        assert stats.paid_amount == 0
        assert stats.unpaid_amount == 10
        assert stats.total_ics == 1
        assert stats.paid_ics == 1
        assert stats.donations_amount == 5
        assert stats.assigned_amount == 11
        assert stats.total_paid == 6
        assert stats.total_contribution == 6

    def test_assigned_view_excludes_donations(self, ledger):
        stats = member_stats(ledger, "m1", Period.MONTHLY, FineStatus.ASSIGNED, now=SEPTEMBER)
        assert stats.total_contribution == 11
        assert stats.total_paid == 6

    def test_period_filters_fines_and_donations(self, ledger):
        stats = member_stats(ledger, "m1", Period.MONTHLY, now=dt.date(2025, 10, 5))
        assert stats.assigned_amount == 0
        assert stats.donations_amount == 0

        seasonal = member_stats(ledger, "m1", Period.SEASONAL, now=dt.date(2025, 10, 5))
        assert seasonal.assigned_amount == 11
        assert seasonal.donations_amount == 5

    def test_unknown_member_is_all_zeros(self, ledger):
        stats = member_stats(ledger, "ghost", Period.MONTHLY, now=SEPTEMBER)
        assert stats.model_dump() == {key: 0.0 for key in stats.model_dump()}

    def test_inactive_member_still_resolvable(self, ledger):
        stats = member_stats(ledger, "m3", Period.MONTHLY, now=SEPTEMBER)
        assert stats.total_fines == 10
        assert stats.paid_amount == 10

    def test_rounding_of_small_amounts(self):
        ledger = Ledger(
            members=[
                Member(
                    id="1",
                    name="A",
                    surname="B",
                    fines=[
                        Fine(category="multa", amount=0.1, date=dt.date(2025, 9, 1)),
                        Fine(category="multa", amount=0.2, date=dt.date(2025, 9, 2)),
                    ],
                )
            ]
        )
        stats = member_stats(ledger, "1", Period.MONTHLY, now=SEPTEMBER)
        assert stats.total_fines == 0.3
        assert repr(stats.total_fines) == "0.3"


class TestDonationUnion:
    """Test that member-owned and global donations are combined once."""

    def test_same_donation_in_both_lists_counts_once(self):
        donation = Donation(id="d1", donor_name="Mario", member_id="1", amount=5, date=dt.date(2025, 9, 1))
        member = Member(id="1", name="Mario", surname="Rossi", donations=[donation])
        ledger = Ledger(members=[member], global_donations=[donation.model_copy()])

        assert len(member_donations(ledger, member)) == 1
        assert len(all_donations(ledger)) == 1
        assert global_totals(ledger).total_donations == 5

    def test_member_and_global_donations_are_summed(self):
        own = Donation(id="d1", amount=5, date=dt.date(2025, 9, 1))
        attributed = Donation(id="d2", member_id="1", amount=2.5, date=dt.date(2025, 9, 2))
        other = Donation(id="d3", member_id="2", amount=100, date=dt.date(2025, 9, 2))
        member = Member(id="1", name="Mario", surname="Rossi", donations=[own])
        ledger = Ledger(members=[member], global_donations=[attributed, other])

        stats = member_stats(ledger, "1", Period.MONTHLY, now=SEPTEMBER)
        assert stats.donations_amount == 7.5


class TestMemberStatsAsOf:
    """Test point-in-time member totals."""

    def test_payment_after_cutoff_counts_as_unpaid(self):
        member = Member(
            id="1",
            name="Mario",
            surname="Rossi",
            fines=[
                Fine(category="multa", amount=10, date=dt.date(2024, 1, 1), paid=True,
                     payment_date=dt.date(2024, 6, 1)),
            ],
        )
        ledger = Ledger(members=[member])

        before = member_stats_as_of(ledger, "1", dt.date(2024, 3, 1))
        assert before.assigned_amount == 10
        assert before.paid_amount == 0
        assert before.unpaid_amount == 10

        after = member_stats_as_of(ledger, "1", dt.date(2024, 12, 31))
        assert after.paid_amount == 10
        assert after.unpaid_amount == 0

    def test_fines_after_cutoff_ignored(self, ledger):
        stats = member_stats_as_of(ledger, "m1", dt.date(2025, 9, 5))
        assert stats.assigned_amount == 10
        assert stats.total_ics == 0
        assert stats.donations_amount == 0

    def test_far_future_cutoff_matches_live_totals(self, ledger):
        live = member_stats(ledger, "m1", None)
        as_of = member_stats_as_of(ledger, "m1", dt.date(2100, 1, 1))

        assert as_of.assigned_amount == live.assigned_amount
        assert as_of.total_paid == live.total_paid
        assert as_of.donations_amount == live.donations_amount

    def test_contribution_includes_donations(self, ledger):
        stats = member_stats_as_of(ledger, "m1", SEPTEMBER)
        assert stats.paid_amount == 1
        assert stats.total_contribution == 6


class TestCategoryStats:
    """Test per-category totals."""

    def test_counts_all_members(self, ledger):
        stats = category_stats(ledger, "multa")
        assert stats.count == 2
        assert stats.total_amount == 20
        assert stats.paid_amount == 10

    def test_period_filter(self, ledger):
        assert category_stats(ledger, "multa", Period.MONTHLY, now=dt.date(2025, 10, 5)).count == 0

    def test_as_of_uses_payment_date(self, ledger):
        stats = category_stats(ledger, "ritardo_allenamento", as_of=SEPTEMBER)
        assert stats.total_amount == 2.5
        assert stats.paid_amount == 0

    def test_unknown_key_is_empty(self, ledger):
        assert category_stats(ledger, "nope").count == 0


class TestMacroCategoryStats:
    """Test the macro/micro category roll-up as of a cutoff."""

    def test_micro_categories_roll_up_into_macro(self, ledger):
        tree = macro_category_stats(ledger, SEPTEMBER)

        assert [m.key for m in tree.macros] == ["ritardi"]
        macro = tree.macros[0]
        assert macro.name == "Ritardi"
        assert (macro.count, macro.total_amount, macro.paid_amount, macro.unpaid_amount) == (
            3, 22.5, 10, 12.5,
        )
        assert [(s.key, s.total_amount, s.paid_amount) for s in macro.subcategories] == [
            ("multa", 20, 10),
            ("ritardo_allenamento", 2.5, 0),
        ]
        assert tree.ungrouped == []

    def test_ics_listed_on_its_own(self, ledger):
        tree = macro_category_stats(ledger, SEPTEMBER)
        assert (tree.ics.count, tree.ics.paid_amount, tree.ics.unpaid_amount) == (1, 1, 0)

    def test_removed_category_is_ungrouped(self, ledger):
        ledger.members[0].fines.append(
            Fine(category="old_rule", amount=7, date=dt.date(2025, 9, 8))
        )
        tree = macro_category_stats(ledger, SEPTEMBER)
        assert [(r.name, r.unpaid_amount) for r in tree.ungrouped] == [("old_rule", 7)]

    def test_cutoff_excludes_later_fines(self, ledger):
        tree = macro_category_stats(ledger, dt.date(2025, 9, 4))

        assert tree.ics is None
        assert [s.key for s in tree.macros[0].subcategories] == ["multa"]
        assert tree.macros[0].paid_amount == 10


class TestGlobalTotals:
    """Test ledger-wide totals."""

    def test_scenario_totals(self):
        member = Member(
            id="1",
            name="Mario",
            surname="Rossi",
            fines=[
                Fine(category="multa", amount=15, date=dt.date(2025, 9, 1)),
                Fine(category="multa", amount=5, date=dt.date(2025, 9, 1), paid=True),
                Fine(category="ics", amount=1, date=dt.date(2025, 9, 1), paid=True),
            ],
        )
        ledger = Ledger(
            members=[member],
            global_donations=[Donation(id="d", donor_name="Bar", amount=3, date=dt.date(2025, 9, 1))],
        )

        totals = global_totals(ledger)

        assert totals.total_fines == 20
        assert totals.paid_fines == 5
        assert totals.total_ics == 1
        assert totals.total_donations == 3
        assert totals.total_cash == 24
        assert totals.total_paid_all == 9
        assert totals.total_unpaid_all == 15

    def test_live_totals_include_inactive_members(self, ledger):
        totals = global_totals(ledger)
        assert totals.total_fines == 22.5
        assert totals.paid_fines == 12.5
        assert totals.unpaid_fines == 10
        assert totals.unpaid_ics == 0
        assert totals.total_donations == 25
        assert totals.total_cash == 48.5
        assert totals.total_paid_all == 38.5
        assert totals.total_unpaid_all == 10

    def test_idempotent(self, ledger):
        assert global_totals(ledger) == global_totals(ledger)

    def test_as_of_end_of_september(self, ledger):
        totals = global_totals_as_of(ledger, SEPTEMBER)
        assert totals.paid_fines == 10
        assert totals.unpaid_fines == 12.5
        assert totals.paid_ics == 1
        assert totals.total_donations == 25
        assert totals.total_paid_all == 36
        assert totals.total_unpaid_all == 12.5

    def test_as_of_early_cutoff(self, ledger):
        totals = global_totals_as_of(ledger, dt.date(2025, 9, 4))
        assert totals.total_fines == 20
        assert totals.total_ics == 0
        assert totals.total_donations == 0
        assert totals.total_cash == 20

    def test_empty_ledger(self):
        assert global_totals(Ledger()).total_cash == 0


class TestTeamStats:
    """Test roster counters and labels."""

    def test_counts(self, ledger):
        stats = team_stats(ledger)
        assert stats.players == 2
        assert stats.staff == 0
        assert stats.members_with_unpaid_fines == 1

    def test_category_label_falls_back_to_key(self, ledger):
        assert category_label(ledger, "multa") == "Multa"
        assert category_label(ledger, "deleted_one") == "deleted_one"
