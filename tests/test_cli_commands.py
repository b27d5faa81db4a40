"""
Unit tests for semantic recall CLI command dispatch and execution.

Tests command parsing and end-to-end runs against a service wired with
in-process fakes.
"""

import json
from argparse import Namespace
from unittest.mock import Mock, patch

import pytest

from semantic_recall.cli.main import dispatch_commands, run
from semantic_recall.cli.parsers import build_parser

from conftest import FakeSearchBackend, make_candidates


def _json_out(capsys):
    return json.loads(capsys.readouterr().out)


@pytest.mark.cli
class TestCommandParsing:
    """Test CLI argument parsing functionality."""

    def test_build_parser_structure(self):
        parser = build_parser()
        assert "Semantic recall" in parser.description
        with pytest.raises(SystemExit):
            parser.parse_args(["--help"])

    def test_embed_args(self):
        args = build_parser().parse_args(["embed", "--text", "a", "--text", "b", "--provider", "mistral", "--timeout", "3"])
        assert args.cmd == "embed"
        assert args.text == ["a", "b"]
        assert args.provider == "mistral"
        assert args.timeout == 3.0
        assert args.preview == 8

    def test_search_args(self):
        args = build_parser().parse_args([
            "search", "--user", "u1", "--q", "limits", "--k", "3",
            "--min-similarity", "0.5", "--tag", "calculus", "--importance", "0.4", "--context", "light", "--timeout", "1.5",
        ])
        assert args.user == "u1"
        assert args.q == "limits"
        assert args.k == 3
        assert args.min_similarity == 0.5
        assert args.tag == ["calculus"]
        assert args.importance == 0.4
        assert args.context == "light"
        assert args.name is None
        assert args.timeout == 1.5

    def test_search_requires_user_and_query(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["search", "--q", "x"])


@pytest.mark.cli
class TestRun:
    """Test run() end to end with an injected service."""

    def test_no_command(self):
        with patch("builtins.print"):
            assert run([]) == 2

    def test_embed(self, service, capsys):
        assert run(["embed", "--text", "hello", "--preview", "3"], service=service) == 0
        out = _json_out(capsys)
        assert out["status"] == "ok"
        assert out["provider"] == "p1"
        assert out["degraded"] is False
        assert len(out["embeddings"]) == 1
        assert len(out["embeddings"][0]) == 3

    def test_embed_blank_text(self, service, capsys):
        assert run(["embed", "--text", "   "], service=service) == 2
        assert _json_out(capsys)["status"] == "error"

    def test_embed_degraded(self, service, providers, capsys):
        for p in providers.values():
            p.fail = True
        assert run(["embed", "--text", "hello"], service=service) == 0
        out = _json_out(capsys)
        assert out["degraded"] is True
        assert out["provider"] == "fallback"

    def test_search(self, service_factory, capsys):
        backend = FakeSearchBackend(make_candidates([0.9, 0.8, 0.7]))
        svc = service_factory(backend=backend)
        assert run(["search", "--user", "u1", "--q", "limits", "--context", "light"], service=svc) == 0

        out = _json_out(capsys)
        assert [m["id"] for m in out["memories"]] == ["m0", "m1"]
        assert out["stats"]["total_found"] == 3
        assert out["stats"]["provider"] == "p1"

    def test_search_without_backend(self, service, capsys):
        assert run(["search", "--user", "u1", "--q", "limits"], service=service) == 2
        assert "search backend" in _json_out(capsys)["error"]

    def test_probe_all(self, service, capsys):
        assert run(["probe"], service=service) == 0
        out = _json_out(capsys)
        assert set(out["providers"]) == {"p1", "p2", "p3"}
        assert out["providers"]["p1"]["healthy"] is True

    def test_probe_unknown(self, service, capsys):
        assert run(["probe", "--provider", "nope"], service=service) == 2

    def test_usage_json_and_csv(self, service, capsys):
        run(["embed", "--text", "x"], service=service)
        capsys.readouterr()

        assert run(["usage"], service=service) == 0
        out = _json_out(capsys)
        assert out["total"]["requests"] == 1

        assert run(["usage", "--csv"], service=service) == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines[0] == "Date,Provider,Requests,Tokens,Cost,Status"
        assert len(lines) == 4

    def test_providers(self, service, capsys):
        assert run(["providers"], service=service) == 0
        assert [p["name"] for p in _json_out(capsys)["providers"]] == ["p1", "p2", "p3"]

    def test_unexpected_error_exit_code(self, capsys):
        svc = Mock()
        svc.provider_info.side_effect = RuntimeError("boom")
        assert run(["providers"], service=svc) == 3
        assert "RuntimeError" in _json_out(capsys)["error"]
        svc.close.assert_not_called()

    @patch("semantic_recall.cli.main.build_service")
    def test_built_service_is_closed(self, mock_build, capsys):
        svc = Mock()
        svc.provider_info.return_value = []
        mock_build.return_value = svc
        assert run(["providers"]) == 0
        svc.close.assert_called_once()

    def test_unknown_command(self, service, capsys):
        assert dispatch_commands(Namespace(cmd="bogus"), service) == 2
        assert "Unknown command" in _json_out(capsys)["error"]
