from conftest import counter

from trivia.game import rounds
from trivia.game.episodes import Episode
from trivia.game.models import Clue


def test_start_deals_the_first_round(game):
    game.join("a", "b")
    game.start("a")

    assert game.pub.round == "jeopardy"
    assert game.pub.ep_num == "1234"
    assert sorted(game.pub.board) == ["1_1", "1_2", "2_1"]
    assert game.pub.scores == {"a": 0, "b": 0}
    state = game.emitted.last("room:state")
    assert state["board"]["1_1"] == {"value": 200, "category": "SCIENCE"}
    assert "playCategoryReveal" in game.emitted.names()
    assert counter(game.store, "newGames") == 1


def test_start_without_episode_source_fails(game):
    game.join("a")
    game.session.episodes = None
    assert not game.session.start("a", {})
    assert game.pub.round == "start"


def test_start_options(game):
    game.join("a")
    game.start("a", answerTimeout=5, finalTimeout="abc", makeMeHost=True)

    assert game.state.answer_timeout_ms == 5000
    assert game.state.final_timeout_ms == 30000
    assert game.pub.host == "a"
    assert game.pub.picker == "a"


def test_round_order_cycles(game):
    game.join("a")
    game.start("a")
    seen = [game.pub.round]
    for _ in range(4):
        rounds.advance_round(game.session)
        seen.append(game.pub.round)

    assert seen == ["jeopardy", "double", "final", "end", "jeopardy"]
    assert sorted(game.pub.board) == ["1_1", "1_2", "2_1"]


def test_final_round_setup(game):
    game.join("a", "b")
    game.start("a")
    rounds.advance_round(game.session)
    rounds.advance_round(game.session)

    assert game.q.current_q == "1_1"
    assert game.q.current_value == 0
    assert game.q.waiting_for_wager == {"a": True, "b": True}
    assert game.q.wager_timer.remaining(game.clock()) == 30000
    assert game.session._outbox[-1] == ("playCorrectAnswerSting", None)


def test_double_round_picker_is_lowest_connected_score(game):
    game.join("a", "b", "c")
    game.start("a")
    game.pub.scores.update({"a": 1000, "b": 200, "c": -500})
    game.session.disconnect("c")

    rounds.advance_round(game.session)

    assert game.pub.round == "double"
    assert game.pub.picker == "b"


def test_double_round_picker_ties_go_to_roster_order(game):
    game.join("a", "b")
    game.start("a")
    rounds.advance_round(game.session)
    assert game.pub.picker == "a"


def test_host_always_picks(game):
    game.join("h", "a")
    game.start("h", makeMeHost=True)
    game.pub.scores.update({"h": 1000, "a": 0})

    rounds.advance_round(game.session)

    assert game.pub.picker == "h"


def test_empty_rounds_are_skipped(make_game):
    episode = Episode(
        ep_num="Custom",
        jeopardy=[Clue(200, "A", "q1", "a1", False, 1, 1)],
        final=[Clue(0, "B", "q2", "a2", False, 1, 1)],
    )
    game = make_game(episode=episode)
    game.join("a")
    game.start("a")

    rounds.advance_round(game.session)

    assert game.pub.round == "final"


def test_pick_rules(game):
    game.join("a", "b")
    game.start("a")

    assert not game.session.pick_question("a", "9_9")
    assert not game.session.pick_question("a", None)
    assert game.session.pick_question("a", "1_1")
    # A clue is already in play
    assert not game.session.pick_question("a", "1_2")


def test_only_the_picker_may_pick_while_connected(game):
    game.join("a", "b")
    game.start("a")
    game.pub.picker = "a"

    assert not game.session.pick_question("b", "1_1")
    game.session.disconnect("a")
    assert game.session.pick_question("b", "1_1")


def test_only_the_host_may_pick(game):
    game.join("h", "a")
    game.start("h", makeMeHost=True)

    assert not game.session.pick_question("a", "1_1")
    assert game.session.pick_question("h", "1_1")


def test_clearing_last_clue_advances_round(make_game):
    episode = Episode(
        ep_num="Custom",
        jeopardy=[Clue(200, "A", "q1", "a1", False, 1, 1)],
        double=[Clue(400, "B", "q2", "a2", False, 1, 1)],
    )
    game = make_game(episode=episode)
    game.join("a", "b")
    game.start("a")
    game.open_clue("a", "1_1")
    game.session.buzz("a")
    game.session.submit_answer("a", "1_1", "a1")
    game.session.submit_answer("b", "1_1", "")

    game.session.judge("b", "1_1", "a", True)

    assert game.pub.round == "double"
    assert game.pub.board["1_1"].value == 400
    # a leads, so b picks first in the double round
    assert game.pub.picker == "b"


def test_last_final_clue_ends_the_game(make_game):
    episode = Episode(ep_num="Custom", final=[Clue(0, "B", "q2", "a2", False, 1, 1)])
    game = make_game(episode=episode)
    game.join("a")
    game.start("a")
    game.session.submit_wager("a", 0)
    game.finish_reading()
    game.expire_answers()
    assert game.q.current_judge_answer == "a"

    game.session.judge("a", "1_1", "a", None)

    assert game.pub.round == "end"
    assert game.pub.board == {}
    assert game.store.lists["jpd:results"] == ['[[null, 0]]']


def test_next_question_resets_per_question_state(game):
    game.join("a", "b")
    game.start("a")
    game.open_clue("a", "1_1")
    game.session.buzz("a")
    game.expire_answers()
    assert game.q.current_judge_answer == "a"
    game.session.judge("b", "1_1", "a", False)

    assert game.q.current_q == ""
    assert game.q.buzzes == {}
    assert game.q.judges == {}
    assert game.q.current_judge_answer_index is None
    assert not game.q.answer_timer.active
    assert game.state.answers == {}
    assert game.emitted.names()[-1] == "playMakeSelectionPrompt"
