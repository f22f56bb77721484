import pytest

from holdem.models import Player, Pot
from holdem.pots import build_side_pots, total_contributions


def contributor(player_id: str, total: int, folded: bool = False) -> Player:
    return Player(id=player_id, chips=0, total_bet=total, folded=folded)


def test_two_all_ins_for_different_amounts_make_main_and_side_pot():
    players = [contributor("A", 500), contributor("B", 1_000), contributor("C", 1_000)]
    pots = build_side_pots(players)
    assert pots == [
        Pot(1_500, frozenset({"A", "B", "C"})),
        Pot(1_000, frozenset({"B", "C"})),
    ]
    assert sum(pot.amount for pot in pots) == 2_500


def test_equal_contributions_make_a_single_pot():
    players = [contributor("A", 100), contributor("B", 100), contributor("C", 100)]
    assert build_side_pots(players) == [Pot(300, frozenset({"A", "B", "C"}))]


def test_folded_chips_stay_in_the_pot_without_eligibility():
    players = [contributor("A", 20, folded=True), contributor("B", 100), contributor("C", 100)]
    assert build_side_pots(players) == [Pot(220, frozenset({"B", "C"}))]


def test_layer_above_an_all_in_goes_to_the_only_live_contributor():
    players = [contributor("A", 50), contributor("B", 200, folded=True), contributor("C", 300)]
    pots = build_side_pots(players)
    assert pots == [
        Pot(150, frozenset({"A", "C"})),
        Pot(400, frozenset({"C"})),
    ]


def test_three_distinct_levels():
    players = [
        contributor("A", 100),
        contributor("B", 250),
        contributor("C", 400),
        contributor("D", 400),
    ]
    pots = build_side_pots(players)
    assert [pot.amount for pot in pots] == [400, 450, 300]
    assert [pot.eligible_players for pot in pots] == [
        frozenset({"A", "B", "C", "D"}),
        frozenset({"B", "C", "D"}),
        frozenset({"C", "D"}),
    ]


def test_no_contributions_means_no_pots():
    assert build_side_pots([contributor("A", 0), contributor("B", 0)]) == []


@pytest.mark.parametrize(
    "totals,folded",
    [
        ((10, 20, 30, 40), ()),
        ((500, 500, 120, 75, 75), ("P2",)),
        ((1, 999, 1_000, 3), ("P0", "P3")),
        ((60, 60, 60, 10, 300), ("P4",)),
    ],
)
def test_pot_amounts_always_sum_to_contributions(totals, folded):
    players = [contributor(f"P{idx}", total, f"P{idx}" in folded) for idx, total in enumerate(totals)]
    pots = build_side_pots(players)
    assert sum(pot.amount for pot in pots) == total_contributions(players)
    for pot in pots:
        assert pot.amount > 0
        assert not pot.eligible_players & set(folded)
