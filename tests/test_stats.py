"""Unit tests for the statistics aggregator."""

import pytest
from datetime import datetime, timedelta

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from pomotrack.data.models import Project, Session, Task
from pomotrack.services.clock import datetime_to_ms
from pomotrack.services.stats_service import (
    NO_PROJECT, StatsOptions, compute_stats, daily_progress, render_summary,
)

# Wednesday afternoon
NOW = datetime(2024, 6, 12, 15, 0)


def clock_at(moment: datetime):
    return lambda: datetime_to_ms(moment)


def sess(completed_at: datetime, minutes: int = 25, interrupted: bool = False,
         task_id=None) -> Session:
    return Session(
        task_id=task_id,
        duration_minutes=minutes,
        started_at=completed_at - timedelta(minutes=minutes),
        completed_at=completed_at,
        interrupted=interrupted,
    )


def days_ago(n: int, hour: int = 10) -> datetime:
    return (NOW - timedelta(days=n)).replace(hour=hour, minute=30)


def stats_for(sessions, tasks=(), projects=(), now=NOW, **options):
    return compute_stats(list(sessions), list(tasks), list(projects),
                         StatsOptions(**options), clock=clock_at(now))


class TestTotals:
    def test_empty_history(self):
        s = stats_for([])
        assert s.total_pomodoros == 0
        assert s.total_interrupted == 0
        assert s.total_minutes == 0
        assert s.completion_rate == 100
        assert s.current_streak == 0
        assert s.longest_streak == 0
        assert s.estimate_accuracy == 100
        assert s.avg_pomodoro_length == 0
        assert s.avg_pomodoro_length_week == 0
        assert s.by_project == ()
        assert len(s.this_week) == 7
        assert all(d.completed == 0 for d in s.this_week)
        assert s.insights.most_productive_day is None
        assert s.insights.most_productive_hour is None
        assert sum(s.insights.by_hour) == 0

    def test_interrupted_excluded_from_totals(self):
        s = stats_for([
            sess(days_ago(0)),
            sess(days_ago(0, hour=11)),
            sess(days_ago(0, hour=12), interrupted=True),
        ])
        assert s.total_pomodoros == 2
        assert s.total_interrupted == 1
        assert s.total_minutes == 50
        assert s.completion_rate == 67

    def test_actual_minutes_are_summed(self):
        s = stats_for([
            sess(days_ago(1), minutes=60),
            sess(days_ago(1, hour=13), minutes=90),
            sess(days_ago(1, hour=16), minutes=45),
        ])
        assert s.total_minutes == 195
        assert s.avg_pomodoro_length == 65

    def test_average_rounds_half_up(self):
        s = stats_for([sess(days_ago(10), minutes=90), sess(days_ago(0), minutes=25)])
        assert s.avg_pomodoro_length == 58
        assert s.avg_pomodoro_length_week == 25


class TestDays:
    def test_today_and_week(self):
        s = stats_for([
            sess(days_ago(0)),
            sess(days_ago(0, hour=11), interrupted=True),
            sess(days_ago(2), minutes=40),
            sess(days_ago(9)),
        ])
        assert s.today.date == NOW.date()
        assert s.today.completed == 1
        assert s.today.interrupted == 1
        assert s.today.total_minutes == 25
        assert [d.date for d in s.this_week] == [
            (NOW - timedelta(days=n)).date() for n in range(6, -1, -1)
        ]
        assert s.this_week[4].completed == 1
        assert s.this_week[4].total_minutes == 40
        assert sum(d.completed for d in s.this_week) == 2

    def test_day_is_taken_from_completion(self):
        late = datetime(2024, 6, 11, 0, 15)  # Tuesday, started Monday 23:50
        s = stats_for([sess(late)])
        assert s.this_week[-2].date == late.date()
        assert s.this_week[-2].completed == 1
        assert s.insights.by_day_of_week[0] == 1
        assert s.insights.most_productive_hour == 23


class TestStreaks:
    def test_streak_includes_today(self):
        s = stats_for([sess(days_ago(n)) for n in range(3)])
        assert s.current_streak == 3

    def test_streak_survives_until_today_is_over(self):
        s = stats_for([sess(days_ago(1)), sess(days_ago(2))])
        assert s.current_streak == 2

    def test_gap_breaks_streak(self):
        s = stats_for([sess(days_ago(2)), sess(days_ago(3))])
        assert s.current_streak == 0
        assert s.longest_streak == 2

    def test_interrupted_days_do_not_count(self):
        s = stats_for([sess(days_ago(0), interrupted=True), sess(days_ago(1))])
        assert s.current_streak == 1

    def test_longest_streak(self):
        history = [sess(days_ago(n)) for n in range(20, 25)]
        history += [sess(days_ago(0)), sess(days_ago(1))]
        s = stats_for(history)
        assert s.longest_streak == 5
        assert s.current_streak == 2

    def test_weekend_exclusion_bridges_weekend(self):
        monday = datetime(2024, 6, 10, 18, 0)
        history = [sess(monday - timedelta(days=n)) for n in range(8)]  # Mon..Mon

        plain = stats_for(history, now=monday)
        assert plain.current_streak == 8
        assert plain.longest_streak == 8

        weekdays = stats_for(history, now=monday, exclude_weekends_from_streak=True)
        assert weekdays.current_streak == 6
        assert weekdays.longest_streak == 6

    def test_full_week_on_sunday(self):
        sunday = datetime(2024, 6, 9, 18, 0)
        history = [sess(sunday - timedelta(days=n)) for n in range(7)]  # Mon..Sun
        assert stats_for(history, now=sunday).current_streak == 7
        assert stats_for(history, now=sunday,
                         exclude_weekends_from_streak=True).current_streak == 5

    def test_weekend_today_requires_friday(self):
        saturday = datetime(2024, 6, 8, 12, 0)
        history = [sess(datetime(2024, 6, 6, 10, 0)), sess(datetime(2024, 6, 5, 10, 0))]
        s = stats_for(history, now=saturday, exclude_weekends_from_streak=True)
        assert s.current_streak == 0
        assert s.longest_streak == 2

    def test_missing_weekday_still_breaks(self):
        wednesday = datetime(2024, 6, 12, 18, 0)
        history = [sess(wednesday), sess(datetime(2024, 6, 10, 10, 0))]
        s = stats_for(history, now=wednesday, exclude_weekends_from_streak=True)
        assert s.current_streak == 1


class TestProjectsAndTasks:
    @pytest.fixture
    def catalog(self):
        projects = [Project(id=1, name="Thesis", color="#ff0000"),
                    Project(id=2, name="Side", color="#00ff00")]
        tasks = [
            Task(id=10, title="Write intro", project_id=2),
            Task(id=11, title="Survey", project_id=1),
            Task(id=12, title="Orphan", project_id=999),
        ]
        return projects, tasks

    def test_rollup_order_and_no_project(self, catalog):
        projects, tasks = catalog
        s = stats_for([
            sess(days_ago(0), task_id=10),
            sess(days_ago(1), minutes=50, task_id=10),
            sess(days_ago(1, hour=14), task_id=11),
            sess(days_ago(2), task_id=None),
            sess(days_ago(2, hour=14), task_id=12),
            sess(days_ago(3), task_id=11, interrupted=True),
        ], tasks, projects)

        names = [p.project_name for p in s.by_project]
        assert names == ["Thesis", "Side", NO_PROJECT]
        thesis, side, none = s.by_project
        assert (thesis.pomodoros, thesis.total_minutes) == (1, 25)
        assert (side.pomodoros, side.total_minutes) == (2, 75)
        assert side.color == "#00ff00"
        assert (none.project_id, none.pomodoros) == (None, 2)

    def test_projects_without_sessions_omitted(self, catalog):
        projects, tasks = catalog
        s = stats_for([sess(days_ago(0), task_id=11)], tasks, projects)
        assert [p.project_name for p in s.by_project] == ["Thesis"]

    def test_estimate_accuracy(self):
        tasks = [
            Task(id=1, title="a", completed=True, estimated_pomodoros=4, actual_pomodoros=5),
            Task(id=2, title="b", completed=False, estimated_pomodoros=1, actual_pomodoros=9),
        ]
        s = stats_for([], tasks)
        assert s.estimate_accuracy == 80
        assert s.tasks_completed == 1

    def test_estimate_accuracy_without_actuals(self):
        tasks = [Task(id=1, title="a", completed=True, estimated_pomodoros=3, actual_pomodoros=0)]
        assert stats_for([], tasks).estimate_accuracy == 100


class TestInsights:
    def test_tie_goes_to_earlier_bucket(self):
        monday = datetime(2024, 6, 10, 14, 25)
        tuesday = datetime(2024, 6, 11, 9, 25)
        s = stats_for([sess(monday), sess(tuesday)])
        assert s.insights.most_productive_day == "Monday"
        assert s.insights.peak_day_count == 1
        assert s.insights.most_productive_hour == 9

    def test_histograms(self):
        s = stats_for([
            sess(datetime(2024, 6, 11, 9, 25)),
            sess(datetime(2024, 6, 11, 9, 55)),
            sess(datetime(2024, 6, 12, 14, 25)),
            sess(datetime(2024, 6, 12, 14, 55), interrupted=True),
        ])
        ins = s.insights
        assert len(ins.by_day_of_week) == 7
        assert len(ins.by_hour) == 24
        assert ins.by_day_of_week[1] == 2
        assert ins.by_day_of_week[2] == 1
        assert ins.most_productive_day == "Tuesday"
        assert ins.peak_hour_count == 2


class TestDailyProgress:
    def test_partial(self):
        p = daily_progress(4, 8)
        assert p.percentage == 50.0
        assert not p.is_complete

    def test_capped(self):
        p = daily_progress(10, 8)
        assert p.percentage == 100.0
        assert p.is_complete

    def test_summary_text(self):
        projects = [Project(id=1, name="Thesis")]
        tasks = [Task(id=1, title="t", project_id=1)]
        s = stats_for([sess(days_ago(0), task_id=1),
                       sess(days_ago(0, hour=12), interrupted=True)], tasks, projects)
        text = render_summary(s, goal=8)
        assert "Completion rate: 50%" in text
        assert "Daily goal: 1/8" in text
        assert "Thesis: 1 (25m)" in text
