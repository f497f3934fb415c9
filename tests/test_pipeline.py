"""
Unit tests for the pipeline: per-repository build and parallel comparison.
"""
import threading
import unittest
from datetime import datetime, timedelta, timezone

from ingest.errors import FetchCancelledError, RepositoryNotFoundError, StatsNotReadyError
from normalize.models import FetchResult, ContributorSummary, RepoEntry, WeekBucket, WeeklyCommitRecord
from pipeline import ComparisonRunner, build_repo_series, compare_repositories
from series.colors import COLORS

START = datetime(2019, 6, 2, tzinfo=timezone.utc)


def _records(first_weeks, length=4):
    out = []
    for i, first in enumerate(first_weeks):
        weeks = tuple(WeekBucket(START + timedelta(weeks=w), 1 if w >= first else 0) for w in range(length))
        out.append(WeeklyCommitRecord(f'c{i}', weeks))
    return out


class MockStatsClient:
    def __init__(self, weekly=None, contributors=None, total=None, errors=None):
        self.weekly = weekly or {}
        self.contributors = contributors or {}
        self.total = total or {}
        self.errors = errors or {}

    def fetch_weekly_stats(self, repo, on_retry=None, cancel_event=None):
        if repo in self.errors:
            raise self.errors[repo]
        return self.weekly.get(repo, [])

    def fetch_all_contributors(self, repo):
        return self.contributors.get(repo, FetchResult.failed('status 500'))

    def fetch_true_total(self, repo):
        return self.total.get(repo, FetchResult.failed('status 500'))


class TestBuildRepoSeries(unittest.TestCase):
    def test_reconciles_to_true_total(self):
        client = MockStatsClient(
            weekly={'a/a': _records([0, 0, 1, 3])},
            total={'a/a': FetchResult.definite(8)},
        )
        result = build_repo_series(client, 'a/a', color='#fff')
        self.assertEqual(result.total_contributors, 8)
        self.assertEqual(result.data[-1].cumulative_contributors, 8)
        self.assertEqual(result.color, '#fff')
        self.assertTrue(result.visible)

    def test_rescale_method(self):
        client = MockStatsClient(weekly={'a/a': _records([0, 1])}, total={'a/a': FetchResult.definite(4)})
        result = build_repo_series(client, 'a/a', method='rescale')
        self.assertEqual([p.cumulative_contributors for p in result.data], [2, 4, 4, 4])

    def test_none_method_keeps_capped_series(self):
        client = MockStatsClient(weekly={'a/a': _records([0, 1])}, total={'a/a': FetchResult.definite(40)})
        result = build_repo_series(client, 'a/a', method='none')
        self.assertEqual([p.cumulative_contributors for p in result.data], [1, 2, 2, 2])
        self.assertEqual(result.total_contributors, 40)

    def test_total_falls_back_when_unknown(self):
        listed = FetchResult.partial([ContributorSummary(f'u{i}', 1) for i in range(5)], 'rate limited')
        client = MockStatsClient(weekly={'a/a': _records([0, 1, 2])}, contributors={'a/a': listed})
        result = build_repo_series(client, 'a/a')
        self.assertEqual(result.total_contributors, 5)
        # no true total, so the capped weekly series is left as is
        self.assertEqual([p.cumulative_contributors for p in result.data], [1, 2, 3, 3])

        capped_only = MockStatsClient(weekly={'a/a': _records([0, 1, 2])})
        self.assertEqual(build_repo_series(capped_only, 'a/a').total_contributors, 3)

    def test_weekly_errors_propagate(self):
        client = MockStatsClient(errors={'a/a': RepositoryNotFoundError('a/a')})
        with self.assertRaises(RepositoryNotFoundError):
            build_repo_series(client, 'a/a')

    def test_unknown_method(self):
        with self.assertRaises(ValueError):
            build_repo_series(MockStatsClient(), 'a/a', method='guess')

    def test_result_discarded_after_cancellation(self):
        event = threading.Event()

        class CancellingClient(MockStatsClient):
            def fetch_weekly_stats(self, repo, on_retry=None, cancel_event=None):
                cancel_event.set()
                return _records([0])

        self.assertIsNone(build_repo_series(CancellingClient(), 'a/a', cancel_event=event))


class TestComparisonRunner(unittest.TestCase):
    def test_one_failure_does_not_abort_others(self):
        client = MockStatsClient(
            weekly={'good/repo': _records([0, 1])},
            errors={'bad/repo': StatsNotReadyError('bad/repo', 8), 'gone/repo': FetchCancelledError('gone/repo')},
        )
        comparison = compare_repositories(client, ['bad/repo', 'good/repo', 'gone/repo'])
        self.assertEqual([s.repo for s in comparison.series], ['good/repo'])
        self.assertIn('bad/repo', comparison.errors)
        self.assertIn('still computing', comparison.errors['bad/repo'])
        self.assertNotIn('gone/repo', comparison.errors)

    def test_sorted_output_with_insertion_order_colors(self):
        client = MockStatsClient(weekly={'b/b': _records([0]), 'a/a': _records([1])})
        comparison = ComparisonRunner(client).run(['b/b', 'a/a', 'b/b'])
        self.assertEqual([s.repo for s in comparison.series], ['a/a', 'b/b'])
        self.assertEqual(comparison.series[0].color, COLORS[1])
        self.assertEqual(comparison.series[1].color, COLORS[0])

    def test_empty_run_and_cancel_unknown(self):
        runner = ComparisonRunner(MockStatsClient())
        comparison = runner.run([])
        self.assertEqual(comparison.series, [])
        self.assertEqual(comparison.errors, {})
        self.assertFalse(runner.cancel('x/y'))

    def test_cancelling_one_repo_leaves_others_running(self):
        started = threading.Event()

        class BlockingClient(MockStatsClient):
            def fetch_weekly_stats(self, repo, on_retry=None, cancel_event=None):
                if repo == 'a/a':
                    started.set()
                    if not cancel_event.wait(5):
                        raise AssertionError('cancel event never set')
                    raise FetchCancelledError(repo)
                return _records([0, 1])

        runner = ComparisonRunner(BlockingClient(), max_workers=2)

        def cancel_when_started():
            started.wait(5)
            runner.cancel('a/a')

        canceller = threading.Thread(target=cancel_when_started)
        canceller.start()
        comparison = runner.run(['a/a', 'b/b'])
        canceller.join(5)

        self.assertEqual([s.repo for s in comparison.series], ['b/b'])
        self.assertEqual(comparison.series[0].data[-1].cumulative_contributors, 2)
        self.assertNotIn('a/a', comparison.errors)
        self.assertFalse(runner._cancel_events['b/b'].is_set())

    def test_hidden_entries_are_built_but_not_visible(self):
        client = MockStatsClient(weekly={'a/a': _records([0]), 'b/b': _records([0])})
        comparison = ComparisonRunner(client).run([RepoEntry('a/a', visible=False), 'b/b', RepoEntry('b/b', visible=False)])
        self.assertEqual([(s.repo, s.visible) for s in comparison.series], [('a/a', False), ('b/b', True)])

    def test_progress_callback_is_tagged_with_repo(self):
        seen = []

        class RetryingClient(MockStatsClient):
            def fetch_weekly_stats(self, repo, on_retry=None, cancel_event=None):
                on_retry(1)
                return _records([0])

        ComparisonRunner(RetryingClient(), on_retry=lambda repo, attempt: seen.append((repo, attempt))).run(['a/a'])
        self.assertEqual(seen, [('a/a', 1)])


if __name__ == '__main__':
    unittest.main()
