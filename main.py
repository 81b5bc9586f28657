# main.py
#
# What this file is:
# The command-line (terminal) front end. A simple menu over the rating
# orchestrator that prints results to the console.
#
# Big picture flow (Option 1):
#   username -> RatingOrchestrator (cache or GitHub + AI + score) -> print -> optional JSON export
#
# Notes on style:
# - Printing lives here; the modules it calls only log.
# - Input is validated (empty usernames) before anything is fetched.

import logging
import os
import sys

from errors import RatingError
from file_utils import load_usernames, save_bulk_csv, save_rating_json
from rating_service import build_default_orchestrator, error_response

logger = logging.getLogger("devrate.cli")


def _setup_logging(level=None):
    """Configure the root logger once, with timestamps and logger names."""
    level = level or os.getenv("LOG_LEVEL", "INFO")
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s  %(levelname)-8s  %(name)s - %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )
    # requests' connection pool is chatty at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def print_menu():
    print("\nDevRate - Developer Impact Score")
    print("----------------------------")
    print("1. Rate a GitHub username")
    print("2. Rate usernames from file (.txt or .csv)")
    print("3. Show my search history")
    print("4. Delete a stored profile")
    print("q. Quit")


def print_rating(response):
    """Print one orchestrator response in a readable format."""
    data = response["data"]
    source = "cache" if response["cached"] else "fresh"

    print("\nRATING")
    print("----------------------------")
    print(f"{'username':20} : {data['username']} ({data.get('name') or '-'})")
    print(f"{'score':20} : {data['developer_impact_score']} / 100")
    print(f"{'tier':20} : {data['tier']}")
    print(f"{'source':20} : {source}, last updated {response.get('last_updated')}")

    print("\nBREAKDOWN")
    print("----------------------------")
    for k, v in data["score_breakdown"].items():
        print(f"{k:20} : {v}")

    print("\nMETRICS")
    print("----------------------------")
    keys = [
        "followers",
        "public_repos",
        "total_commits",
        "total_stars",
        "merged_prs",
        "pr_acceptance_rate",
        "issues_closed",
        "language_breadth",
    ]
    for k in keys:
        print(f"{k:20} : {data.get(k)}")

    ai = data["ai_analysis"]
    print("\nAI ANALYSIS")
    print("----------------------------")
    print(f"{'persona':20} : {ai['persona']}")
    print(f"{'summary':20} : {ai['summary']}")
    if ai.get("job_fit_score") is not None:
        print(f"{'job fit':20} : {ai['job_fit_score']} - {ai.get('match_reason') or ''}")


def print_error(exc):
    err = error_response(exc)
    print(f"Error ({err['error']}): {err['message']}")
    if err["retry_after"] is not None:
        print(f"Try again in about {err['retry_after']} seconds.")


def rate_one(orchestrator, user_id):
    username = input("Enter GitHub username: ").strip()
    if username == "":
        print("Error: username cannot be empty.")
        return

    job_description = input("Job description (optional, single line): ").strip() or None

    try:
        response = orchestrator.get_or_calculate_rating(username, user_id, job_description)
    except ValueError as e:
        print(f"Error: {e}")
        return
    except RatingError as e:
        logger.error("Rating %s failed: %s", username, e)
        print_error(e)
        return

    print_rating(response)

    if input("\nSave as JSON? (y/N): ").strip().lower() == "y":
        print("Saved:", save_rating_json(response))


def rate_file(orchestrator, user_id):
    path = input("File path [usernames.txt]: ").strip() or "usernames.txt"
    entries = load_usernames(path)
    if not entries:
        print("No usernames found. Use one username per line, or a CSV with a GitHub column.")
        return

    job_description = input("Job description (optional, single line): ").strip() or None
    rows = orchestrator.rate_bulk(entries, user_id, job_description)

    print(f"\nRated {len(rows)} entries")
    print("----------------------------")
    for row in rows:
        if row["error"]:
            print(f"- {row['input']}: ERROR {row['error']}")
        else:
            print(f"- {row['username']}: {row['developer_impact_score']} ({row['tier']})")

    print("\nCSV:", save_bulk_csv(rows))


def show_history(orchestrator, user_id):
    if not user_id:
        print("Set a user id first (restart and enter one at the prompt).")
        return

    try:
        history = orchestrator.store.get_search_history(user_id)
    except RatingError as e:
        print_error(e)
        return

    if not history:
        print("No searches recorded yet.")
        return

    print("\nSEARCH HISTORY")
    print("----------------------------")
    for h in history:
        score = h["total_score"] if h["total_score"] is not None else "-"
        print(f"{h['searched_at']} | {h['searched_profile']:20} | score={score} | {h['persona'] or ''}")


def delete_profile(orchestrator):
    username = input("GitHub username to delete: ").strip()
    if username == "":
        print("Username is required.")
        return
    try:
        deleted = orchestrator.store.delete_profile(username)
    except RatingError as e:
        print_error(e)
        return

    if deleted:
        print(f"Deleted stored data for {username}.")
    else:
        print("Profile not found.")


def main():
    """
    Sentinel-controlled menu loop: keep going until the user enters "q".
    """
    _setup_logging()
    orchestrator = build_default_orchestrator()
    user_id = input("Your user id (optional, enables search history): ").strip() or None

    choice = ""
    while choice != "q":
        print_menu()
        choice = input("Choice: ").strip().lower()

        if choice == "1":
            rate_one(orchestrator, user_id)
        elif choice == "2":
            rate_file(orchestrator, user_id)
        elif choice == "3":
            show_history(orchestrator, user_id)
        elif choice == "4":
            delete_profile(orchestrator)
        elif choice == "q":
            print("Goodbye!")
        else:
            print("Invalid option. Try again.")


if __name__ == "__main__":
    main()
