from progressengine.scoring import is_streak_milestone, milestone_multiplier, points_for_streak


def test_first_five_answers() -> None:
    assert [points_for_streak(streak) for streak in range(1, 6)] == [10, 12, 15, 19, 37]


def test_cap_engages_before_ten() -> None:
    assert points_for_streak(9) == 50
    assert points_for_streak(10) == 100
    assert points_for_streak(11) == 50


def test_higher_milestones_stack_on_cap() -> None:
    assert points_for_streak(20) == 125
    assert points_for_streak(50) == 150


def test_non_positive_streak_scores_as_first_answer() -> None:
    assert points_for_streak(0) == 10
    assert points_for_streak(-3) == 10


def test_milestones() -> None:
    assert [streak for streak in range(1, 60) if is_streak_milestone(streak)] == [5, 10, 20, 50]
    assert milestone_multiplier(7) == 1.0
    assert milestone_multiplier(20) == 2.5
