"""Tests for the round state machine."""

import pytest
from decimal import Decimal

from conftest import cards_in_play, stacked_round
from twentyone.bankroll import InMemoryBankroll
from twentyone.exceptions import IllegalAction, InvalidBet, InvalidPhaseTransition, ShoeExhausted
from twentyone.game import Action, RoundPhase
from twentyone.hand import HandStatus
from twentyone.rules import RuleSet
from twentyone.settlement import Outcome

# Deal order for a single better: player, dealer up, player, dealer hole.


class TestBetting:
    """Tests for the AWAITING_BETS phase."""

    def test_initial_phase(self):
        round_ = stacked_round("")
        assert round_.phase == RoundPhase.AWAITING_BETS
        assert round_.current_hand is None
        assert round_.legal_actions() == frozenset()

    def test_place_bet(self):
        round_ = stacked_round("")
        hand = round_.place_bet("alice", 10)
        assert hand.bet == Decimal("10")
        assert hand.better_id == "alice"
        assert round_.bets == {"alice": Decimal("10")}
        assert round_.phase == RoundPhase.AWAITING_BETS

    @pytest.mark.parametrize("amount", [0, -5, None, "abc", "NaN", True])
    def test_invalid_bet(self, amount):
        round_ = stacked_round("")
        with pytest.raises(InvalidBet):
            round_.place_bet("alice", amount)
        assert round_.bets == {}

    def test_duplicate_bet(self):
        round_ = stacked_round("")
        round_.place_bet("alice", 10)
        with pytest.raises(InvalidBet):
            round_.place_bet("alice", 20)
        assert round_.bets == {"alice": Decimal("10")}

    def test_table_limits(self):
        round_ = stacked_round("", rules=RuleSet(min_bet=10, max_bet=100))
        with pytest.raises(InvalidBet):
            round_.place_bet("alice", 5)
        with pytest.raises(InvalidBet):
            round_.place_bet("alice", 500)
        round_.place_bet("alice", 100)

    def test_deal_without_bets(self):
        round_ = stacked_round("10S 9C 6H 8D")
        with pytest.raises(InvalidBet):
            round_.deal()
        assert round_.phase == RoundPhase.AWAITING_BETS
        assert round_.cards_drawn == 0

    def test_bet_after_deal(self):
        round_ = stacked_round("10S 9C 6H 8D")
        round_.place_bet("alice", 10)
        round_.deal()
        with pytest.raises(IllegalAction):
            round_.place_bet("bob", 10)


class TestDealing:
    """Tests for the initial deal."""

    def test_deal_order(self):
        round_ = stacked_round("10S 9C 6H 8D")
        hand = round_.place_bet("alice", 10)
        round_.deal()

        assert [str(c) for c in hand.cards] == ["10♠", "6♥"]
        assert [str(c) for c in round_.dealer_hand.cards] == ["9♣", "8♦"]
        assert round_.phase == RoundPhase.PLAYER_TURN
        assert round_.current_hand is hand
        assert round_.cards_drawn == 4

    def test_deal_order_multiple_betters(self):
        round_ = stacked_round("10S 10H 9C 9S 7S 8D")
        alice = round_.place_bet("alice", 10)
        bob = round_.place_bet("bob", 10)
        round_.deal()

        assert alice.value == 19
        assert bob.value == 17
        assert round_.dealer_hand.value == 17
        assert round_.better_ids == ["alice", "bob"]

    def test_hole_card_hidden(self):
        round_ = stacked_round("10S 9C 6H 8D")
        round_.place_bet("alice", 10)
        round_.deal()

        assert [str(c) for c in round_.dealer_visible_cards] == ["9♣"]
        snapshot = round_.snapshot()
        assert snapshot.hole_card_hidden
        assert snapshot.dealer_value == 9

    def test_no_insurance_offer_when_disabled(self):
        round_ = stacked_round("7S AC 7H 9D", rules=RuleSet(insurance_enabled=False))
        round_.place_bet("alice", 10)
        round_.deal()
        assert round_.phase == RoundPhase.PLAYER_TURN

    def test_player_natural_stands_automatically(self):
        round_ = stacked_round("AS 9C KH 8D")
        hand = round_.place_bet("alice", 10)
        round_.deal()

        assert round_.phase == RoundPhase.ROUND_COMPLETE
        assert hand.status == HandStatus.RESOLVED
        assert round_.results[0].outcome == Outcome.NATURAL_WIN
        assert round_.results[0].net == Decimal("15")

    def test_dealer_natural_with_ten_up_ends_play(self):
        round_ = stacked_round("10S KC 9H AD")
        round_.place_bet("alice", 10)
        round_.deal()

        assert round_.phase == RoundPhase.ROUND_COMPLETE
        assert round_.results[0].outcome == Outcome.LOSS
        assert len(round_.dealer_hand) == 2

    def test_no_peek_plays_on_against_dealer_natural(self):
        round_ = stacked_round("10S KC 9H AD", rules=RuleSet(dealer_peeks=False))
        round_.place_bet("alice", 10)
        round_.deal()

        assert round_.phase == RoundPhase.PLAYER_TURN
        round_.stand()
        assert round_.results[0].outcome == Outcome.LOSS


class TestPlayerActions:
    """Tests for hit, stand, double and surrender."""

    def test_stand_and_win(self):
        round_ = stacked_round("10S 10C 9H 7D")
        hand = round_.place_bet("alice", 10)
        round_.deal()
        round_.stand()

        assert round_.phase == RoundPhase.ROUND_COMPLETE
        assert hand.status == HandStatus.RESOLVED
        assert round_.results[0].outcome == Outcome.WIN

    def test_hit_to_21_is_not_natural_and_not_forced_to_stand(self):
        round_ = stacked_round("10S 9C 6H 8D 5C")
        hand = round_.place_bet("alice", 10)
        round_.deal()
        round_.hit()

        assert hand.hard_value == 21
        assert not hand.is_bust
        assert not hand.is_natural
        assert hand.status == HandStatus.ACTIVE
        assert round_.legal_actions() == {Action.HIT, Action.STAND}

    def test_hit_on_21_disallowed_by_rule(self):
        round_ = stacked_round("10S 9C 6H 8D 5C", rules=RuleSet(allow_hit_on_21=False))
        round_.place_bet("alice", 10)
        round_.deal()
        round_.hit()

        assert round_.legal_actions() == {Action.STAND}
        with pytest.raises(IllegalAction):
            round_.hit()

    def test_hit_bust_ends_turn(self):
        round_ = stacked_round("10S 9C 6H 8D KC")
        hand = round_.place_bet("alice", 10)
        round_.deal()
        round_.hit()

        assert hand.status == HandStatus.RESOLVED
        assert round_.results[0].outcome == Outcome.LOSS
        assert round_.phase == RoundPhase.ROUND_COMPLETE

    def test_opening_legal_actions(self):
        round_ = stacked_round("10S 9C 6H 8D")
        round_.place_bet("alice", 10)
        round_.deal()
        assert round_.legal_actions() == {
            Action.HIT,
            Action.STAND,
            Action.DOUBLE,
            Action.SURRENDER,
        }

    def test_double_down(self):
        round_ = stacked_round("5S 9C 6H 8D 10C")
        hand = round_.place_bet("alice", 10)
        round_.deal()
        round_.double_down()

        assert hand.is_doubled
        assert hand.bet == Decimal("20")
        assert len(hand) == 3
        assert round_.results[0].outcome == Outcome.WIN
        assert round_.results[0].net == Decimal("20")

    def test_double_down_bust(self):
        round_ = stacked_round("10S 9C 6H 8D KC")
        round_.place_bet("alice", 10)
        round_.deal()
        round_.double_down()

        assert round_.results[0].outcome == Outcome.LOSS
        assert round_.results[0].net == Decimal("-20")

    def test_no_double_after_hit(self):
        round_ = stacked_round("2S 9C 3H 8D 4C")
        round_.place_bet("alice", 10)
        round_.deal()
        round_.hit()

        assert Action.DOUBLE not in round_.legal_actions()
        with pytest.raises(IllegalAction):
            round_.double_down()

    def test_surrender(self):
        round_ = stacked_round("10S 9C 6H 10D")
        hand = round_.place_bet("alice", 10)
        round_.deal()
        round_.surrender()

        assert round_.results[0].outcome == Outcome.SURRENDERED
        assert round_.results[0].net == Decimal("-5")
        assert hand.status == HandStatus.RESOLVED

    def test_surrender_only_first_decision(self):
        round_ = stacked_round("2S 9C 3H 8D 4C")
        round_.place_bet("alice", 10)
        round_.deal()
        round_.hit()

        with pytest.raises(IllegalAction):
            round_.surrender()

    def test_surrender_disabled(self):
        round_ = stacked_round("10S 9C 6H 10D", rules=RuleSet(surrender_allowed=False))
        round_.place_bet("alice", 10)
        round_.deal()
        assert Action.SURRENDER not in round_.legal_actions()

    def test_illegal_action_leaves_state_unchanged(self):
        round_ = stacked_round("10S 9C 6H 8D")
        hand = round_.place_bet("alice", 10)
        round_.deal()

        with pytest.raises(IllegalAction):
            round_.split()

        assert round_.phase == RoundPhase.PLAYER_TURN
        assert hand.status == HandStatus.ACTIVE
        assert len(hand) == 2
        assert hand.decisions == 0
        assert round_.cards_drawn == 4

    def test_unknown_action(self):
        round_ = stacked_round("10S 9C 6H 8D")
        round_.place_bet("alice", 10)
        round_.deal()
        with pytest.raises(IllegalAction):
            round_.act("hit")

    def test_action_before_deal(self):
        round_ = stacked_round("10S 9C 6H 8D")
        round_.place_bet("alice", 10)
        with pytest.raises(IllegalAction):
            round_.hit()

    def test_out_of_turn(self):
        round_ = stacked_round("10S 10H 9C 9S 7S 8D")
        alice = round_.place_bet("alice", 10)
        bob = round_.place_bet("bob", 10)
        round_.deal()

        with pytest.raises(IllegalAction):
            round_.stand(better_id="bob")
        with pytest.raises(IllegalAction):
            round_.stand(hand_id=bob.hand_id)

        round_.stand(better_id="alice", hand_id=alice.hand_id)
        assert round_.current_hand is bob
        assert round_.legal_actions(alice) == frozenset()

        round_.stand(better_id="bob")
        outcomes = {r.better_id: r.outcome for r in round_.results}
        assert outcomes == {"alice": Outcome.WIN, "bob": Outcome.PUSH}


class TestDealerTurn:
    """Tests for dealer play."""

    def test_dealer_hard_16_draws_one(self):
        rules = RuleSet(dealer_hits_soft_17=False)
        round_ = stacked_round("10S 6C 9H 10D 5C", rules=rules)
        round_.place_bet("alice", 10)
        round_.deal()
        round_.stand()

        assert len(round_.dealer_hand) == 3
        assert round_.dealer_hand.value == 21
        assert not round_.dealer_hand.is_bust
        assert round_.dealer_hand.status == HandStatus.STOOD
        assert round_.results[0].outcome == Outcome.LOSS

    def test_dealer_hits_soft_17(self):
        round_ = stacked_round(
            "10S AC 9H 6D 2C",
            rules=RuleSet(dealer_hits_soft_17=True, insurance_enabled=False),
        )
        round_.place_bet("alice", 10)
        round_.deal()
        round_.stand()

        assert round_.dealer_hand.value == 19
        assert round_.results[0].outcome == Outcome.PUSH

    def test_dealer_stands_soft_17(self):
        round_ = stacked_round(
            "10S AC 9H 6D 2C",
            rules=RuleSet(dealer_hits_soft_17=False, insurance_enabled=False),
        )
        round_.place_bet("alice", 10)
        round_.deal()
        round_.stand()

        assert round_.dealer_hand.value == 17
        assert len(round_.dealer_hand) == 2
        assert round_.results[0].outcome == Outcome.WIN

    def test_dealer_bust(self):
        round_ = stacked_round("10S 6C 2H 10D KC")
        round_.place_bet("alice", 10)
        round_.deal()
        round_.stand()

        assert round_.dealer_hand.status == HandStatus.BUSTED
        assert round_.results[0].outcome == Outcome.WIN

    def test_dealer_skips_draw_when_all_players_out(self):
        round_ = stacked_round("10S 6C 6H 10D 5C")
        round_.place_bet("alice", 10)
        round_.deal()
        round_.surrender()

        assert round_.hole_card_revealed
        assert len(round_.dealer_hand) == 2
        assert round_.shoe.remaining() == 1

    def test_dealer_draws_when_skip_rule_disabled(self):
        rules = RuleSet(dealer_skips_draw_if_all_players_resolved_nonwin=False)
        round_ = stacked_round("10S 6C 6H 10D 5C", rules=rules)
        round_.place_bet("alice", 10)
        round_.deal()
        round_.surrender()

        assert len(round_.dealer_hand) == 3
        assert round_.results[0].outcome == Outcome.SURRENDERED


class TestShoeExhausted:
    """An empty shoe aborts the round with no settlement."""

    def test_during_deal(self):
        round_ = stacked_round("10S 9C 6H")
        round_.place_bet("alice", 10)
        with pytest.raises(ShoeExhausted):
            round_.deal()

        assert round_.phase == RoundPhase.ABORTED
        assert round_.results == ()
        assert cards_in_play(round_) == round_.cards_drawn == 3

    def test_during_player_turn(self):
        round_ = stacked_round("10S 9C 6H 8D")
        round_.place_bet("alice", 10)
        round_.deal()
        with pytest.raises(ShoeExhausted):
            round_.hit()

        assert round_.phase == RoundPhase.ABORTED
        assert round_.results == ()

    def test_during_dealer_turn(self):
        bankroll = InMemoryBankroll()
        round_ = stacked_round("10S 6C 9H 10D", bankroll=bankroll)
        round_.place_bet("alice", 10)
        round_.deal()
        with pytest.raises(ShoeExhausted):
            round_.stand()

        assert round_.phase == RoundPhase.ABORTED
        assert round_.results == ()
        assert bankroll.ledger == []

    def test_during_split_keeps_cards(self):
        round_ = stacked_round("8S 10C 8H 7D 3C")
        round_.place_bet("alice", 10)
        round_.deal()
        with pytest.raises(ShoeExhausted):
            round_.split()

        assert round_.phase == RoundPhase.ABORTED
        assert len(round_.hands) == 2
        assert cards_in_play(round_) == round_.cards_drawn == 5


class TestAbort:
    """Tests for abandoning a round."""

    def test_abort_keeps_cards(self):
        round_ = stacked_round("10S 9C 6H 8D 5C")
        hand = round_.place_bet("alice", 10)
        round_.deal()
        round_.abort("better left")

        assert round_.phase == RoundPhase.ABORTED
        assert round_.abort_reason == "better left"
        assert len(hand) == 2
        assert round_.shoe.remaining() == 1
        assert round_.results == ()

    def test_no_actions_after_abort(self):
        round_ = stacked_round("10S 9C 6H 8D 5C")
        round_.place_bet("alice", 10)
        round_.deal()
        round_.abort()

        with pytest.raises(IllegalAction):
            round_.hit()
        with pytest.raises(IllegalAction):
            round_.abort()

    def test_cannot_abort_completed_round(self):
        round_ = stacked_round("10S 10C 9H 7D")
        round_.place_bet("alice", 10)
        round_.deal()
        round_.stand()
        with pytest.raises(IllegalAction):
            round_.abort()


class TestSettlement:
    """Tests for round settlement and the bankroll collaborator."""

    def test_bankroll_receives_deltas(self, bankroll):
        round_ = stacked_round("10S 10H 9C 9S 7S 8D", bankroll=bankroll)
        round_.place_bet("alice", 10)
        round_.place_bet("bob", 20)
        round_.deal()
        round_.stand()
        round_.stand()

        assert bankroll.balance("alice") == Decimal("1010")
        assert bankroll.balance("bob") == Decimal("1000")
        assert bankroll.ledger == [("alice", Decimal("10")), ("bob", Decimal("0"))]
        assert round_.net_by_better() == {"alice": Decimal("10"), "bob": Decimal("0")}

    def test_every_hand_settled_once(self):
        round_ = stacked_round("10S 10H 9C 9S 7S 8D")
        round_.place_bet("alice", 10)
        round_.place_bet("bob", 10)
        round_.deal()
        round_.stand()
        round_.stand()

        assert sorted(r.hand_id for r in round_.results) == sorted(h.hand_id for h in round_.hands)
        assert all(h.status == HandStatus.RESOLVED for h in round_.hands)

    def test_snapshot_after_completion(self):
        round_ = stacked_round("10S 10C 9H 7D")
        round_.place_bet("alice", 10)
        round_.deal()
        round_.stand()

        snapshot = round_.snapshot()
        assert snapshot.phase == RoundPhase.ROUND_COMPLETE
        assert not snapshot.hole_card_hidden
        assert len(snapshot.dealer_cards) == 2
        assert snapshot.current_hand is None
        assert snapshot.legal_actions == frozenset()
        assert snapshot.results == round_.results

    def test_invalid_trigger_is_phase_error(self):
        round_ = stacked_round("")
        with pytest.raises(InvalidPhaseTransition):
            round_._fire("complete")
        assert round_.phase == RoundPhase.AWAITING_BETS
