"""
test_file_utils.py

Tests for the JSON/CSV exports and the username list loader.
"""

import csv
import json
import os
import tempfile
import unittest

from file_utils import load_usernames, save_bulk_csv, save_rating_json


class TestExports(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.reports = os.path.join(self.tmp.name, "reports")

    def tearDown(self):
        self.tmp.cleanup()

    def test_save_rating_json(self):
        response = {"cached": False, "last_updated": None, "data": {"username": "octocat", "developer_impact_score": 61}}

        path = save_rating_json(response, reports_dir=self.reports)

        self.assertTrue(os.path.basename(path).startswith("octocat_rating_"))
        with open(path, encoding="utf-8") as f:
            self.assertEqual(json.load(f), response)

    def test_save_bulk_csv(self):
        rows = [
            {"username": "octocat", "developer_impact_score": 61, "error": None},
            {"username": "ghost", "developer_impact_score": None, "error": "Not found (404)"},
        ]

        path = save_bulk_csv(rows, reports_dir=self.reports)

        with open(path, newline="", encoding="utf-8") as f:
            loaded = list(csv.DictReader(f))
        self.assertEqual([r["username"] for r in loaded], ["octocat", "ghost"])
        self.assertEqual(loaded[1]["error"], "Not found (404)")

    def test_save_bulk_csv_empty(self):
        path = save_bulk_csv([], reports_dir=self.reports)
        self.assertEqual(os.path.getsize(path), 0)


class TestLoadUsernames(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.tmp.cleanup()

    def _write(self, name, text):
        path = os.path.join(self.tmp.name, name)
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
        return path

    def test_txt_skips_blank_lines(self):
        path = self._write("users.txt", "octocat\n\n  torvalds  \nhttps://github.com/gvanrossum\n")
        self.assertEqual(
            load_usernames(path),
            ["octocat", "torvalds", "https://github.com/gvanrossum"],
        )

    def test_csv_github_header(self):
        path = self._write("candidates.csv", "Name,GitHub Profile\nAda,octocat\nLinus,\nGuido,gvanrossum\n")
        self.assertEqual(load_usernames(path), ["octocat", "gvanrossum"])

    def test_csv_column_found_by_value(self):
        path = self._write("people.csv", "name,link\nAda,https://github.com/octocat\n")
        self.assertEqual(load_usernames(path), ["https://github.com/octocat"])

    def test_csv_without_github_column(self):
        path = self._write("people.csv", "name,email\nAda,ada@example.com\n")
        self.assertEqual(load_usernames(path), [])

    def test_missing_file(self):
        self.assertEqual(load_usernames(os.path.join(self.tmp.name, "nope.txt")), [])


if __name__ == "__main__":
    unittest.main()
