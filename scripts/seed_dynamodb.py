"""Create the onboarding DynamoDB tables and seed sample reference data.

Usage:
    python scripts/seed_dynamodb.py --endpoint-url http://localhost:4566
"""

from __future__ import annotations

import argparse
from datetime import datetime, timezone
from typing import Any

import boto3

TABLE_DEFINITIONS: list[dict[str, Any]] = [
    {"name": "triguard-onboarding-submissions"},
    {"name": "triguard-email-addresses"},
    {"name": "triguard-tasks"},
    {"name": "triguard-task-assignments"},
    {"name": "triguard-directory"},
]

SAMPLE_TEAMS: list[dict[str, Any]] = [
    {"id": "team-north", "name": "North Metro", "description": "Residential storm response"},
    {"id": "team-south", "name": "South Metro", "description": "Retail and insurance claims"},
]

SAMPLE_MANAGERS: list[dict[str, Any]] = [
    {
        "id": "mgr-001", "first_name": "Dana", "last_name": "Whitfield",
        "email": "dana.whitfield@triguardroofing.com", "team_id": "team-north",
    },
    {
        "id": "mgr-002", "first_name": "Luis", "last_name": "Ortega",
        "email": "luis.ortega@triguardroofing.com", "team_id": "team-south",
    },
]

SAMPLE_RECRUITERS: list[dict[str, Any]] = [
    {
        "id": "rec-001", "first_name": "Priya", "last_name": "Nair",
        "email": "priya.nair@triguardroofing.com",
    },
]

SAMPLE_TASKS: list[dict[str, Any]] = [
    {
        "id": "task-safety", "title": "Complete ladder safety briefing",
        "description": "Watch the ladder and harness safety video before your first job.",
        "manager_id": "mgr-001", "team_id": "team-north",
    },
    {
        "id": "task-ride-along", "title": "Schedule a ride-along",
        "description": "Pick a day this week to shadow a senior Roof Pro.",
        "manager_id": "mgr-001", "team_id": "team-north",
    },
]


def create_tables(ddb: Any, suffix: str = "") -> None:
    """Create all onboarding tables. Skips if table already exists."""
    client = ddb.meta.client
    existing = client.list_tables().get("TableNames", [])

    for defn in TABLE_DEFINITIONS:
        table_name = f"{defn['name']}{suffix}"
        if table_name in existing:
            print(f"  Table {table_name} already exists, skipping")
            continue
        client.create_table(
            TableName=table_name,
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "PK", "AttributeType": "S"},
                {"AttributeName": "SK", "AttributeType": "S"},
            ],
            BillingMode="PAY_PER_REQUEST",
        )
        print(f"  Created table {table_name}")


def seed_directory(ddb: Any, suffix: str = "") -> None:
    """Seed sample teams, managers and recruiters."""
    tbl = ddb.Table(f"triguard-directory{suffix}")
    with tbl.batch_writer() as batch:
        for team in SAMPLE_TEAMS:
            batch.put_item(Item={"PK": "TEAM", "SK": team["id"], "is_active": True, **team})
        for manager in SAMPLE_MANAGERS:
            batch.put_item(Item={"PK": "MANAGER", "SK": manager["id"], "is_active": True, **manager})
        for recruiter in SAMPLE_RECRUITERS:
            batch.put_item(Item={"PK": "RECRUITER", "SK": recruiter["id"], "is_active": True, **recruiter})
    print(
        f"  Seeded {len(SAMPLE_TEAMS)} teams, {len(SAMPLE_MANAGERS)} managers, "
        f"{len(SAMPLE_RECRUITERS)} recruiters"
    )


def seed_tasks(ddb: Any, suffix: str = "") -> None:
    """Seed starter tasks for the sample managers."""
    tbl = ddb.Table(f"triguard-tasks{suffix}")
    created_at = datetime.now(timezone.utc).isoformat()
    with tbl.batch_writer() as batch:
        for task in SAMPLE_TASKS:
            batch.put_item(Item={
                "PK": f"MANAGER#{task['manager_id']}#TEAM#{task['team_id']}",
                "SK": f"TASK#{task['id']}",
                "is_active": True,
                "created_at": created_at,
                **task,
            })
    print(f"  Seeded {len(SAMPLE_TASKS)} tasks")


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed DynamoDB tables for TriGuard onboarding")
    parser.add_argument("--endpoint-url", default=None, help="DynamoDB endpoint (e.g. http://localhost:4566)")
    parser.add_argument("--table-suffix", default="", help="Table name suffix (e.g. -dev)")
    parser.add_argument("--region", default="us-east-1", help="AWS region")
    parser.add_argument("--skip-samples", action="store_true", help="Create tables only")
    args = parser.parse_args()

    kwargs: dict[str, Any] = {"region_name": args.region}
    if args.endpoint_url:
        kwargs["endpoint_url"] = args.endpoint_url

    ddb = boto3.resource("dynamodb", **kwargs)

    print("Creating tables...")
    create_tables(ddb, suffix=args.table_suffix)

    if not args.skip_samples:
        print("Seeding data...")
        seed_directory(ddb, suffix=args.table_suffix)
        seed_tasks(ddb, suffix=args.table_suffix)

    print("Done!")


if __name__ == "__main__":
    main()
