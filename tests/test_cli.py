import json
from argparse import Namespace
from datetime import datetime, timezone
from pathlib import Path

import pytest

import cli
from normalize.models import ChartSettings, Comparison, ContributorDataPoint, RepoContributorSeries, RepoEntry
from pipeline import ComparisonRunner


def _comparison(repos):
    point = ContributorDataPoint(datetime(2023, 1, 1, tzinfo=timezone.utc), 7)
    return Comparison(
        series=[RepoContributorSeries(e.repo, [point], 7, '#FF6B9D', visible=e.visible) for e in repos], errors={}
    )


@pytest.fixture
def fake_run(monkeypatch):
    calls = {}

    def run(self, repos):
        calls['entries'] = list(repos)
        calls['repos'] = [e.repo for e in repos]
        calls['method'] = self.method
        calls['client'] = self.client
        return _comparison(calls['entries'])

    monkeypatch.setattr(ComparisonRunner, 'run', run)
    return calls


def test_main_writes_json_report(tmp_path, fake_run):
    out = tmp_path / 'report.json'
    code = cli.main(['facebook/react', '--output', 'json', '--out-file', str(out), '--reconcile', 'rescale'])
    assert code == 0
    parsed = json.loads(Path(out).read_text(encoding='utf-8'))
    assert parsed['series'][0]['repo'] == 'facebook/react'
    assert fake_run['method'] == 'rescale'


def test_main_merges_hash_and_skips_invalid(capsys, fake_run):
    code = cli.main(['not a repo', '--hash', '#vercel%2Fnext.js&timeline', '--max-retries', '2', '--retry-delay', '0.5'])
    assert code == 0
    assert fake_run['repos'] == ['vercel/next.js']
    assert fake_run['client'].max_attempts == 2
    assert fake_run['client'].retry_delay == 0.5
    out = capsys.readouterr().out
    assert 'Skipping invalid repository name' in out
    assert 'Day 0' in out


def test_main_prints_share_snippets(capsys, fake_run):
    cli.main(['a/b', '--share', '--xkcd'])
    out = capsys.readouterr().out
    assert 'Share link: https://contributor-history.dev/#a%2Fb&xkcd' in out
    assert '[![Contributor History]' in out


def test_main_without_repos_errors(fake_run):
    with pytest.raises(SystemExit):
        cli.main(['--timeline'])


def test_main_returns_one_when_nothing_built(monkeypatch):
    monkeypatch.setattr(ComparisonRunner, 'run', lambda self, repos: Comparison(series=[], errors={'a/b': 'boom'}))
    assert cli.main(['a/b']) == 1


def test_resolve_token_prefers_flag(monkeypatch):
    monkeypatch.setenv('GITHUB_TOKEN', 'from-env')
    assert cli._resolve_token(Namespace(token='from-flag')) == 'from-flag'
    assert cli._resolve_token(Namespace(token='')) == 'from-env'
    monkeypatch.delenv('GITHUB_TOKEN')
    assert cli._resolve_token(Namespace(token='')) == ''


def test_collect_repos_dedupes():
    args = Namespace(repos=['a/b', 'a/b'], hash='#a%2Fb&c%2Fd&xkcd', timeline=False, xkcd=False, hide=['c/d'])
    repos, settings = cli._collect_repos(args)
    assert repos == [RepoEntry('a/b'), RepoEntry('c/d', visible=False)]
    assert settings == ChartSettings(timeline_mode=False, xkcd_style=True)


def test_main_hides_repo_from_report(capsys, fake_run):
    code = cli.main(['a/b', 'c/d', '--hide', 'c/d'])
    assert code == 0
    assert fake_run['entries'] == [RepoEntry('a/b'), RepoEntry('c/d', visible=False)]
    out = capsys.readouterr().out
    assert 'a/b: 7 contributors' in out
    assert 'c/d' not in out


def test_hidden_repo_flagged_in_json(tmp_path, fake_run):
    out = tmp_path / 'report.json'
    cli.main(['a/b', 'c/d', '--hide', 'c/d', '--output', 'json', '--out-file', str(out)])
    parsed = json.loads(Path(out).read_text(encoding='utf-8'))
    visibility = {s['repo']: s['visible'] for s in parsed['series']}
    assert visibility == {'a/b': True, 'c/d': False}
