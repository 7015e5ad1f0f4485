from deckloader.scheduler import Scheduler, DeckStats, format_interval
from deckloader.card_state import CardState
from deckloader.review_log import ReviewLog
from deckloader.quality import Quality
from deckloader.state import State

from datetime import date, timedelta
from copy import deepcopy
import json
import re
import pytest

TODAY = date(2024, 3, 10)


class TestSM2:
    def test_new_card_state(self):
        card_state = CardState(card_id="1600000000001", due_date=TODAY)

        assert card_state.ease_factor == 2.5
        assert card_state.interval == 0
        assert card_state.repetition == 0
        assert card_state.review_count == 0
        assert card_state.last_review is None
        assert card_state.due_date == TODAY
        assert card_state.state == State.New

    def test_default_due_date_is_today(self):
        assert CardState(card_id="1").due_date == date.today()

    def test_good_trajectory(self):
        scheduler = Scheduler()
        card_state = scheduler.new_card_state("1", TODAY)

        review_date = TODAY
        intervals = []
        eases = []
        for _ in range(3):
            card_state, _ = scheduler.review_card(card_state, Quality.Good, review_date)
            intervals.append(card_state.interval)
            eases.append(card_state.ease_factor)
            review_date = card_state.due_date

        # the third interval multiplies the second by the ease computed in the third review
        assert eases == [2.36, 2.22, 2.08]
        assert intervals == [1, 6, 12]
        assert card_state.repetition == 3
        assert card_state.review_count == 3
        assert card_state.due_date == TODAY + timedelta(days=1 + 6 + 12)
        assert card_state.last_review == TODAY + timedelta(days=7)

    @pytest.mark.parametrize(
        "quality, expected_ease",
        [(0, 1.7), (1, 1.96), (2, 2.18), (3, 2.36), (4, 2.5), (5, 2.6)],
    )
    def test_ease_formula(self, quality, expected_ease):
        scheduler = Scheduler()
        card_state = CardState(card_id="1", due_date=TODAY)

        card_state, _ = scheduler.review_card(card_state, quality, TODAY)

        assert card_state.ease_factor == expected_ease

    def test_ease_lower_bound(self):
        scheduler = Scheduler()
        card_state = CardState(card_id="1", ease_factor=1.4, due_date=TODAY)

        for _ in range(3):
            card_state, _ = scheduler.review_card(card_state, Quality.Again, TODAY)

        assert card_state.ease_factor == 1.3

    def test_interval_rounds_half_up(self):
        scheduler = Scheduler()
        card_state = CardState(
            card_id="1", ease_factor=2.4, interval=5, repetition=2, due_date=TODAY
        )

        card_state, _ = scheduler.review_card(card_state, Quality.Easy, TODAY)

        # 5 * 2.5 = 12.5
        assert card_state.ease_factor == 2.5
        assert card_state.interval == 13

    @pytest.mark.parametrize("quality", [0, 1, 2])
    def test_failure_resets(self, quality):
        scheduler = Scheduler()
        card_state = CardState(
            card_id="1",
            ease_factor=2.7,
            interval=120,
            repetition=8,
            due_date=TODAY,
            review_count=8,
        )

        card_state, review_log = scheduler.review_card(card_state, quality, TODAY)

        assert card_state.repetition == 0
        assert card_state.interval == 0
        assert card_state.due_date == TODAY
        assert card_state.last_review == TODAY
        assert card_state.review_count == 9
        assert review_log.interval == 0

    def test_relearning_after_failure(self):
        scheduler = Scheduler()
        card_state = CardState(
            card_id="1", interval=30, repetition=4, due_date=TODAY, review_count=4
        )

        card_state, _ = scheduler.review_card(card_state, Quality.Again, TODAY)
        card_state, _ = scheduler.review_card(card_state, Quality.Good, TODAY)

        assert card_state.repetition == 1
        assert card_state.interval == 1

    def test_same_review_same_result(self):
        scheduler = Scheduler()
        card_state = CardState(
            card_id="1", ease_factor=2.1, interval=6, repetition=2, due_date=TODAY
        )
        original = deepcopy(card_state)

        first, _ = scheduler.review_card(card_state, Quality.Good, TODAY)
        second, _ = scheduler.review_card(card_state, Quality.Good, TODAY)

        assert first == second
        # the reviewed state is not modified
        assert card_state == original

        third, _ = scheduler.review_card(first, Quality.Good, TODAY)
        assert third.review_count == first.review_count + 1

    @pytest.mark.parametrize("quality", [-1, 6, 2.5, "3", None, True])
    def test_quality_validation(self, quality):
        scheduler = Scheduler()
        card_state = CardState(card_id="1", due_date=TODAY)

        with pytest.raises(ValueError):
            scheduler.review_card(card_state, quality, TODAY)

    def test_review_log(self):
        scheduler = Scheduler()
        card_state = CardState(card_id="1600000000001", due_date=TODAY)

        card_state, review_log = scheduler.review_card(card_state, Quality.Easy, TODAY)

        assert review_log == ReviewLog(
            card_id="1600000000001",
            quality=5,
            review_date=TODAY,
            interval=1,
            ease_factor=2.6,
        )

    def test_states(self):
        assert CardState(card_id="1", review_count=0, interval=40).state == State.New
        assert CardState(card_id="1", review_count=2, interval=20).state == State.Learning
        assert CardState(card_id="1", review_count=9, interval=21).state == State.Mature

    def test_preview_intervals(self):
        scheduler = Scheduler()
        card_state = CardState(
            card_id="1", ease_factor=2.5, interval=10, repetition=3, due_date=TODAY
        )

        preview = scheduler.preview_intervals(card_state, TODAY)

        assert preview == {
            Quality.Again: 0,
            Quality.Hard: 0,
            Quality.Good: 24,
            Quality.Easy: 26,
        }
        assert card_state.review_count == 0


class TestDueCards:
    def test_get_due_cards(self):
        scheduler = Scheduler()
        card_states = [
            CardState(card_id="future", due_date=TODAY + timedelta(days=1)),
            CardState(card_id="today-a", due_date=TODAY),
            CardState(card_id="old", due_date=TODAY - timedelta(days=30)),
            CardState(card_id="today-b", due_date=TODAY),
            CardState(card_id="yesterday", due_date=TODAY - timedelta(days=1)),
        ]

        due = scheduler.get_due_cards(card_states, TODAY)

        assert [card_state.card_id for card_state in due] == [
            "old",
            "yesterday",
            "today-a",
            "today-b",
        ]
        assert all(card_state.due_date <= TODAY for card_state in due)

    def test_get_due_cards_from_mapping(self):
        scheduler = Scheduler()
        card_states = {
            "1": CardState(card_id="1", due_date=TODAY),
            "2": CardState(card_id="2", due_date=TODAY + timedelta(days=3)),
        }

        assert [c.card_id for c in scheduler.get_due_cards(card_states, TODAY)] == ["1"]
        assert scheduler.get_due_cards({}, TODAY) == []

    def test_get_stats(self):
        scheduler = Scheduler()
        card_states = [
            CardState(card_id="new", due_date=TODAY),
            CardState(
                card_id="learning",
                interval=5,
                review_count=3,
                due_date=TODAY - timedelta(days=1),
            ),
            CardState(
                card_id="mature",
                interval=30,
                review_count=10,
                due_date=TODAY + timedelta(days=4),
            ),
            CardState(
                card_id="lapsed",
                interval=0,
                review_count=12,
                due_date=TODAY - timedelta(days=2),
            ),
        ]

        stats = scheduler.get_stats(card_states, TODAY)

        assert stats == DeckStats(
            total=4, new=1, learning=2, mature=1, due=3, overdue=2
        )
        assert stats.to_dict()["overdue"] == 2

    def test_custom_mature_interval(self):
        scheduler = Scheduler(mature_interval=7)
        card_state = CardState(card_id="1", interval=10, review_count=3, due_date=TODAY)

        assert scheduler.get_stats([card_state], TODAY).mature == 1

    def test_state_of_uses_mature_interval(self):
        card_state = CardState(card_id="1", interval=10, review_count=3, due_date=TODAY)

        # the property keeps the default threshold of 21 days
        assert card_state.state == State.Learning
        assert Scheduler().state_of(card_state) == State.Learning
        assert Scheduler(mature_interval=7).state_of(card_state) == State.Mature
        assert Scheduler(mature_interval=7).state_of(CardState(card_id="2")) == State.New

        for mature_interval in (1, 7, 10, 11, 21, 60):
            scheduler = Scheduler(mature_interval=mature_interval)
            stats = scheduler.get_stats([card_state], TODAY)
            assert (stats.mature == 1) == (
                scheduler.state_of(card_state) == State.Mature
            )


class TestScheduler:
    def test_format_interval(self):
        assert format_interval(0) == "<1m"
        assert format_interval(1) == "1d"
        assert format_interval(6) == "6d"
        assert format_interval(10) == "1w"
        assert format_interval(11) == "2w"
        assert format_interval(45) == "2mo"
        assert format_interval(365) == "1.0y"
        assert format_interval(550) == "1.5y"

    def test_reschedule_card(self):
        scheduler = Scheduler()
        card_state = scheduler.new_card_state("1", TODAY)

        review_logs = []
        review_date = TODAY
        for quality in (Quality.Good, Quality.Good, Quality.Again, Quality.Easy):
            card_state, review_log = scheduler.review_card(card_state, quality, review_date)
            review_logs.append(review_log)
            review_date = card_state.due_date

        rescheduled = scheduler.reschedule_card(
            scheduler.new_card_state("1", TODAY), review_logs[2:] + review_logs[:2]
        )

        assert rescheduled == card_state

    def test_reschedule_card_wrong_review_logs(self):
        scheduler = Scheduler()
        card_state = CardState(card_id="1", due_date=TODAY)
        _, review_log = scheduler.review_card(card_state, Quality.Good, TODAY)
        review_log.card_id = "2"

        EXPECTED_ERROR_MESSAGE = "ReviewLog card_id 2 does not match CardState card_id 1"
        with pytest.raises(ValueError, match=re.escape(EXPECTED_ERROR_MESSAGE)):
            scheduler.reschedule_card(card_state, [review_log])

    def test_scheduler_parameter_validation(self):
        with pytest.raises(ValueError):
            Scheduler(minimum_ease=0)
        with pytest.raises(ValueError):
            Scheduler(initial_ease=1.0)
        with pytest.raises(ValueError):
            Scheduler(mature_interval=0)

    def test_custom_initial_ease(self):
        scheduler = Scheduler(initial_ease=2.0)

        card_state = scheduler.new_card_state("1", TODAY)

        assert card_state.ease_factor == 2.0

    def test_CardState_serialize(self):
        scheduler = Scheduler()
        card_state = CardState(card_id="1600000000001", due_date=TODAY)

        # the date objects are not JSON serializable on their own
        with pytest.raises(TypeError):
            json.dumps(card_state.__dict__)

        assert CardState.from_dict(card_state.to_dict()) == card_state
        assert CardState.from_json(card_state.to_json()) == card_state

        card_state, _ = scheduler.review_card(card_state, Quality.Good, TODAY)
        card_state_dict = card_state.to_dict()
        assert card_state_dict["last_review"] == "2024-03-10"
        assert card_state_dict["due_date"] == "2024-03-11"
        assert CardState.from_dict(card_state_dict) == card_state

    def test_ReviewLog_serialize(self):
        scheduler = Scheduler()
        card_state = CardState(card_id="1", due_date=TODAY)

        _, review_log = scheduler.review_card(card_state, Quality.Hard, TODAY)

        assert ReviewLog.from_dict(review_log.to_dict()) == review_log
        assert ReviewLog.from_json(review_log.to_json()) == review_log
        assert review_log.to_dict()["quality"] == 2

    def test_Scheduler_serialize(self):
        scheduler = Scheduler(initial_ease=2.3, minimum_ease=1.5, mature_interval=30)

        assert Scheduler.from_dict(scheduler.to_dict()) == scheduler
        assert Scheduler.from_json(scheduler.to_json()) == scheduler
        assert Scheduler.from_json(scheduler.to_json(indent=2)) == scheduler

    def test_class_repr(self):
        card_state = CardState(card_id="1", due_date=TODAY)

        assert str(card_state) == repr(card_state)

        scheduler = Scheduler()

        assert str(scheduler) == repr(scheduler)

        card_state, review_log = scheduler.review_card(card_state, Quality.Good, TODAY)

        assert str(review_log) == repr(review_log)
