# file_utils.py
#
# Purpose:
# Saving ratings to disk and loading username lists:
#   1) JSON for a single rating response (easy for code/tools to read later)
#   2) CSV for bulk results (easy to open in Excel/Sheets)
#   3) username lists from .txt (one per line) or .csv (a "GitHub" column)

import csv
import json
import logging
import os
from datetime import datetime

logger = logging.getLogger(__name__)

REPORTS_DIR = "reports"        # Folder to store all outputs


def ensure_reports_dir(reports_dir=REPORTS_DIR):
    """Create the reports folder if it doesn't exist."""
    os.makedirs(reports_dir, exist_ok=True)


def _timestamp():
    """
    Timestamp for filenames, e.g. 20260228_014512.
    Exports never overwrite previous runs.
    """
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def save_rating_json(response, reports_dir=REPORTS_DIR):
    """
    Save one orchestrator response as JSON.
    Returns the saved file path.
    """
    ensure_reports_dir(reports_dir)

    username = response.get("data", {}).get("username") or "unknown"
    path = os.path.join(reports_dir, f"{username}_rating_{_timestamp()}.json")

    with open(path, "w", encoding="utf-8") as f:
        json.dump(response, f, indent=2)

    return path


def save_bulk_csv(rows, reports_dir=REPORTS_DIR, prefix="bulk"):
    """
    Save bulk rating rows (list of dicts with identical keys) as CSV.
    Returns the saved file path. No rows still produces an empty file.
    """
    ensure_reports_dir(reports_dir)
    path = os.path.join(reports_dir, f"{prefix}_ratings_{_timestamp()}.csv")

    # newline="" prevents extra blank lines on Windows
    with open(path, "w", newline="", encoding="utf-8") as f:
        if not rows:
            return path
        writer = csv.DictWriter(f, fieldnames=list(rows[0].keys()))
        writer.writeheader()
        for row in rows:
            writer.writerow(row)

    return path


def _find_github_column(fieldnames, first_row):
    """
    Pick the column holding GitHub usernames/URLs:
      1) a header containing "github" (case-insensitive)
      2) otherwise the first column whose first value contains "github.com/"
    """
    for name in fieldnames:
        if "github" in (name or "").lower():
            return name
    for name in fieldnames:
        if "github.com/" in str(first_row.get(name, "")):
            return name
    return None


def load_usernames(path="usernames.txt"):
    """
    Load usernames (or profile URLs) from a file.

    .txt: one entry per line, blank lines skipped
    .csv: the GitHub column (see _find_github_column), empty cells skipped

    Returns [] if the file is missing or no GitHub column can be found.
    """
    if not os.path.exists(path):
        logger.error("File not found: %s", path)
        return []

    if path.lower().endswith(".csv"):
        with open(path, "r", newline="", encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        if not rows:
            return []

        column = _find_github_column(list(rows[0].keys()), rows[0])
        if column is None:
            logger.error("Could not identify a GitHub column in %s", path)
            return []
        return [str(r.get(column) or "").strip() for r in rows if str(r.get(column) or "").strip()]

    usernames = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            u = line.strip()
            if u != "":
                usernames.append(u)
    return usernames
