# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""In-process CLI tests: classify a saved page, check-seller with a mocked transport."""

from __future__ import annotations

import json
import logging

import httpx
import lxml.html
import pytest
import structlog

from listingtrust import cli
from listingtrust.seller_cache import SellerLocaleEntry
from tests._listing_helpers import PLAIN_TITLE, SUSPICIOUS_TITLE, TRUSTED_TITLE, listing_html, page_html


@pytest.fixture(autouse=True)
def _reset_logging():
    root = logging.getLogger()
    old_handlers = root.handlers[:]
    old_level = root.level
    yield
    root.handlers = old_handlers
    root.setLevel(old_level)
    structlog.reset_defaults()


@pytest.fixture
def page_file(tmp_path):
    path = tmp_path / "search.html"
    path.write_text(
        page_html(
            listing_html("B0SUSPECT1", SUSPICIOUS_TITLE),
            listing_html("B0TRUSTED1", TRUSTED_TITLE),
            listing_html("B0PLAIN001", PLAIN_TITLE),
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def brands_file(tmp_path):
    path = tmp_path / "trusted.json"
    path.write_text(json.dumps({"brands": {"electronics": {"list": ["Anker"]}}}), encoding="utf-8")
    return path


def _run(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as exc_info:
        cli.main(argv)
    return exc_info.value.code


class TestClassify:
    def test_json_output(self, page_file, brands_file, capsys):
        code = _run(["classify", str(page_file), "--trusted-brands", str(brands_file), "--json"])
        assert code == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["stats"] == {"total": 3, "hidden": 1, "warned": 0, "trusted": 1}
        assert payload["mode"] == "filtered"
        assert {"asin": "B0SUSPECT1", "outcome": "hidden"} in payload["listings"]

    def test_text_summary(self, page_file, capsys):
        assert _run(["classify", str(page_file)]) == 0
        out = capsys.readouterr().out
        assert "Listings: 3" in out
        assert "Hidden:  1" in out

    def test_level_zero(self, page_file, capsys):
        assert _run(["classify", str(page_file), "--level", "0", "--json"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["stats"]["hidden"] == 0
        assert all(item["outcome"] == "none" for item in payload["listings"])

    def test_output_file_with_mode(self, page_file, brands_file, tmp_path, capsys):
        out = tmp_path / "out" / "annotated.html"
        code = _run(
            [
                "classify",
                str(page_file),
                "--trusted-brands",
                str(brands_file),
                "--mode",
                "trustedOnly",
                "-o",
                str(out),
            ]
        )
        assert code == 0
        assert "Visible trusted: 1" in capsys.readouterr().out
        doc = lxml.html.fromstring(out.read_bytes())
        plain = doc.xpath('//*[@data-asin="B0PLAIN001"]')[0]
        assert "lt-trusted-hidden" in plain.classes

    def test_seller_cache_file_used(self, tmp_path, capsys):
        page = tmp_path / "seller.html"
        page.write_text(
            page_html(listing_html("B0SELLER01", PLAIN_TITLE, seller_href="/sp?seller=CNSELLER1")),
            encoding="utf-8",
        )
        cache = tmp_path / "sellers.json"
        entry = SellerLocaleEntry(key="CNSELLER1", is_domestic=False, address_label="China", resolved_at=4e9)
        cache.write_text(json.dumps({"CNSELLER1": entry.to_dict()}), encoding="utf-8")

        assert _run(["classify", str(page), "--cache", str(cache), "--json"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["stats"]["warned"] == 1

    def test_missing_page(self, tmp_path, capsys):
        assert _run(["classify", str(tmp_path / "nope.html")]) == 1
        assert "no such file" in capsys.readouterr().err

    def test_bad_config_exits_1(self, page_file, tmp_path, capsys):
        bad = tmp_path / "bad.json"
        bad.write_text("{", encoding="utf-8")
        assert _run(["classify", str(page_file), "--patterns", str(bad)]) == 1
        assert "Error:" in capsys.readouterr().err

    def test_invalid_level_rejected(self, page_file):
        assert _run(["classify", str(page_file), "--level", "7"]) == 2


class TestCheckSeller:
    def test_official_sentinel(self, capsys):
        assert _run(["check-seller", "amazon-official"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["isDomestic"] is True
        assert payload["addressLabel"] == "Amazon.co.jp"

    def test_resolves_and_writes_cache(self, tmp_path, monkeypatch, capsys):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<p>住所: 福岡県福岡市</p>")

        real_client = httpx.AsyncClient

        def client_factory(**kwargs):
            return real_client(transport=httpx.MockTransport(handler), **kwargs)

        monkeypatch.setattr(cli.httpx, "AsyncClient", client_factory)
        cache = tmp_path / "sellers.json"

        assert _run(["check-seller", "/sp?seller=FUKUOKA1", "--cache", str(cache)]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload == {"isDomestic": True, "addressLabel": "福岡", "fromCache": False}
        assert json.loads(cache.read_text(encoding="utf-8"))["FUKUOKA1"]["isDomestic"] is True

        assert _run(["check-seller", "/sp?seller=FUKUOKA1", "--cache", str(cache)]) == 0
        assert json.loads(capsys.readouterr().out)["fromCache"] is True

    def test_http_error_exit_code(self, monkeypatch, capsys):
        real_client = httpx.AsyncClient

        def client_factory(**kwargs):
            return real_client(transport=httpx.MockTransport(lambda r: httpx.Response(404)), **kwargs)

        monkeypatch.setattr(cli.httpx, "AsyncClient", client_factory)
        assert _run(["check-seller", "/sp?seller=GONE1"]) == 1
        assert json.loads(capsys.readouterr().out)["error"] == "HTTP 404"
