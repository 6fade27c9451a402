"""Tests for the run.py command line."""

import os
from unittest.mock import patch

import pytest

import run
from config.options import SOURCE_FIELD


def _parse(*argv):
    return run.build_parser().parse_args(list(argv))


def test_info_accepts_spaces_and_commas():
    args = _parse("-b", "en", "list-pages", "--info", "url,wikidotInfo.title", "wikidotInfo.rating")
    options = run.build_options(args)
    assert options.info == ("url", "wikidotInfo.title", "wikidotInfo.rating")


def test_list_pages_options_are_inferred():
    args = _parse("-b", "fr", "list-pages", "-T", "scp", "euclide", "-t", "keter", "--source-contains", "foo")
    options = run.build_options(args)

    assert options.all_tags == ("scp", "euclide")
    assert options.one_of_tags == ("keter",)
    assert SOURCE_FIELD in options.info


def test_branch_and_site_are_exclusive():
    with pytest.raises(SystemExit):
        _parse("-b", "fr", "-s", "http://x.wikidot.com/", "list-pages")


def test_overrides_take_precedence_over_env():
    with patch.dict(os.environ, {"WIKIDOT_SITE": "http://env.wikidot.com/", "THREADS": "2"}, clear=True):
        orchestrator = run.ListPagesOrchestrator(env_file="/nonexistent/.env")
    args = _parse("--branch", "EN", "--threads", "16", "-o", "out.yaml", "--format", "yaml", "list-files", "listing",
                  "--no-headless")

    run.apply_overrides(orchestrator, args)

    assert orchestrator.site == "http://scp-wiki.wikidot.com/"
    assert orchestrator.threads == 16
    assert orchestrator.output_path == "out.yaml"
    assert orchestrator.headless is False


def test_version_exits(capsys):
    with pytest.raises(SystemExit) as exit_info:
        run.main(["--version"])
    assert exit_info.value.code == 0
    assert "crom-page-harvester" in capsys.readouterr().out


def test_invalid_options_exit_with_error(tmp_path):
    env = {"WIKIDOT_SITE": "http://s.wikidot.com/"}
    with patch.dict(os.environ, env, clear=True), pytest.raises(SystemExit) as exit_info:
        run.main(["--env", str(tmp_path / "none.env"), "list-pages", "--source-contains-one"])
    assert exit_info.value.code == 1
