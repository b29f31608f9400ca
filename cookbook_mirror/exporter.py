"""
Run report exporter for various output formats.
"""

import logging
import csv
import json
from datetime import datetime
from pathlib import Path
from typing import Dict, List
import pandas as pd


RESULT_COLUMNS = {
    "cookbook": "Cookbook",
    "success": "Success",
    "dry_run": "Dry Run",
    "failed_step": "Failed Step",
    "error": "Error",
    "committed": "Committed",
    "merged_sections": "Merged Sections",
    "skipped_sections": "Skipped Sections",
    "local_url": "Local URL",
    "source_url": "Source URL",
}


class DataExporter:
    """Handles exporting mirror run results to various formats."""

    def __init__(self, config):
        """Initialize the data exporter."""
        self.config = config
        self.logger = logging.getLogger(__name__)
        self.export_dir = Path(getattr(config, "export_dir", "exports"))
        self.export_dir.mkdir(parents=True, exist_ok=True)

    def _filepath(self, extension: str) -> Path:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return self.export_dir / f"cookbook_mirror_{timestamp}.{extension}"

    @staticmethod
    def _rows(summary: Dict) -> List[Dict]:
        rows = []
        for result in summary.get("results", []):
            row = {}
            for key, title in RESULT_COLUMNS.items():
                value = result.get(key)
                if isinstance(value, list):
                    value = ", ".join(value)
                row[title] = "" if value is None else value
            rows.append(row)
        return rows

    def export_to_csv(self, summary: Dict) -> str:
        """Export per-cookbook results to CSV format."""
        filepath = self._filepath("csv")
        rows = self._rows(summary)

        self.logger.info(f"Exporting {len(rows)} cookbook results to CSV: {filepath}")

        with open(filepath, 'w', newline='', encoding='utf-8') as csvfile:
            writer = csv.DictWriter(csvfile, fieldnames=list(RESULT_COLUMNS.values()))
            writer.writeheader()
            writer.writerows(rows)

        self.logger.info(f"CSV export completed: {len(rows)} records written")
        return str(filepath)

    def export_to_json(self, summary: Dict) -> str:
        """Export the full run summary to JSON format."""
        filepath = self._filepath("json")

        self.logger.info(f"Exporting run summary to JSON: {filepath}")

        export_data = {
            "export_timestamp": datetime.now().isoformat(),
            **summary,
        }

        with open(filepath, 'w', encoding='utf-8') as jsonfile:
            json.dump(export_data, jsonfile, indent=2, ensure_ascii=False)

        return str(filepath)

    def export_to_excel(self, summary: Dict) -> str:
        """Export results to Excel with a results sheet and a status summary sheet."""
        filepath = self._filepath("xlsx")
        rows = self._rows(summary)

        self.logger.info(f"Exporting {len(rows)} cookbook results to Excel: {filepath}")

        with pd.ExcelWriter(filepath, engine='openpyxl') as writer:
            df_results = pd.DataFrame(rows, columns=list(RESULT_COLUMNS.values()))
            df_results.to_excel(writer, sheet_name='Cookbooks', index=False)

            status = df_results['Success'].map({True: 'Succeeded', False: 'Failed'})
            df_status = status.value_counts().reset_index()
            df_status.columns = ['Status', 'Cookbook Count']
            df_status.to_excel(writer, sheet_name='Status Summary', index=False)

        self.logger.info("Excel export completed with multiple sheets")
        return str(filepath)

    def export(self, summary: Dict, formats: List[str] = None) -> List[str]:
        """Export the summary in every requested format and return the written paths."""
        formats = formats or getattr(self.config, "export_formats", ["csv", "json"])
        exporters = {
            "csv": self.export_to_csv,
            "json": self.export_to_json,
            "excel": self.export_to_excel,
        }

        paths = []
        for export_format in formats:
            exporter = exporters.get(export_format)
            if exporter is None:
                self.logger.warning(f"Unknown export format '{export_format}', skipping")
                continue
            paths.append(exporter(summary))
        return paths
