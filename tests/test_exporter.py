"""Tests for exporting the run report."""

import csv
import json

import pandas as pd
import pytest

from cookbook_mirror.exporter import DataExporter


SUMMARY = {
    "cookbooks_found": 2,
    "succeeded": 1,
    "failed": 1,
    "dry_run": True,
    "simulated_pushes": ["git push origin master"],
    "results": [
        {
            "cookbook": "apache",
            "local_url": "ssh://gerrit/apache",
            "source_url": "https://example.com/apache.git",
            "success": True,
            "dry_run": True,
            "failed_step": None,
            "error": None,
            "merged_sections": ['access "refs/heads/*"'],
            "skipped_sections": [],
            "committed": True,
        },
        {
            "cookbook": "nginx",
            "local_url": "",
            "source_url": "https://example.com/nginx.git",
            "success": False,
            "dry_run": True,
            "failed_step": "clone-local",
            "error": "Command 'git clone' failed with exit code 128",
            "merged_sections": [],
            "skipped_sections": [],
            "committed": False,
        },
    ],
}


class ExportConfig:
    def __init__(self, export_dir, formats):
        self.export_dir = str(export_dir)
        self.export_formats = formats


@pytest.fixture
def exporter(tmp_path):
    return DataExporter(ExportConfig(tmp_path / "exports", ["csv", "json"]))


def test_csv_export(exporter):
    path = exporter.export_to_csv(SUMMARY)
    with open(path, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert [row["Cookbook"] for row in rows] == ["apache", "nginx"]
    assert rows[0]["Merged Sections"] == 'access "refs/heads/*"'
    assert rows[1]["Failed Step"] == "clone-local"
    assert rows[0]["Failed Step"] == ""


def test_json_export_keeps_full_summary(exporter):
    path = exporter.export_to_json(SUMMARY)
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    assert data["succeeded"] == 1
    assert data["results"][1]["error"].startswith("Command 'git clone'")
    assert "export_timestamp" in data


def test_excel_export_has_status_sheet(exporter):
    pytest.importorskip("openpyxl")
    path = exporter.export_to_excel(SUMMARY)
    sheets = pd.read_excel(path, sheet_name=None)
    assert list(sheets["Cookbooks"]["Cookbook"]) == ["apache", "nginx"]
    status = dict(zip(sheets["Status Summary"]["Status"], sheets["Status Summary"]["Cookbook Count"]))
    assert status == {"Succeeded": 1, "Failed": 1}


def test_export_uses_configured_formats_and_skips_unknown(exporter):
    paths = exporter.export(SUMMARY)
    assert [p.rsplit(".", 1)[1] for p in paths] == ["csv", "json"]
    assert exporter.export(SUMMARY, formats=["xml"]) == []
