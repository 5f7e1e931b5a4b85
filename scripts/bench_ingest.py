#!/usr/bin/env python3
"""Ingest pytest-benchmark JSON results into DuckDB.

Usage:
    uv run pytest tests/bench --benchmark-only --benchmark-json bench/raw/cpython-3.12.json
    uv run scripts/bench_ingest.py [--db bench/rulestub_bench.duckdb] [--notes "baseline"]

Reads every JSON file from bench/raw/ (one file per interpreter, the file
stem names the variant) and inserts the results into DuckDB. Each invocation
creates a new bench_runs entry with the current commit SHA.
"""

from __future__ import annotations

import json
import platform
import subprocess
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import click
import duckdb

DB_DEFAULT = "bench/rulestub_bench.duckdb"
RAW_DIR = Path("bench/raw")

# Benchmark names follow test_bench_{scenario}_{phase}[param].
KNOWN_PHASES = frozenset({"register", "synthesize", "dispatch"})

SCHEMA = """
CREATE TABLE IF NOT EXISTS bench_runs (
    id          INTEGER PRIMARY KEY,
    commit_sha  VARCHAR NOT NULL,
    timestamp   TIMESTAMP NOT NULL,
    machine     VARCHAR,
    python      VARCHAR,
    notes       VARCHAR
);

CREATE TABLE IF NOT EXISTS bench_results (
    run_id      INTEGER NOT NULL REFERENCES bench_runs(id),
    variant     VARCHAR NOT NULL,
    scenario    VARCHAR NOT NULL,
    phase       VARCHAR NOT NULL,
    mean_ns     DOUBLE NOT NULL,
    stddev_ns   DOUBLE,
    min_ns      DOUBLE,
    max_ns      DOUBLE,
    iterations  BIGINT,
    PRIMARY KEY (run_id, variant, scenario, phase)
);
"""


def get_commit_sha() -> str:
    result = subprocess.run(
        ["git", "rev-parse", "--short", "HEAD"],
        capture_output=True,
        text=True,
        check=False,
    )
    return result.stdout.strip() if result.returncode == 0 else "unknown"


def create_run(con: duckdb.DuckDBPyConnection, notes: str | None) -> int:
    """Create a new benchmark run entry, return its ID."""
    con.execute(SCHEMA)

    max_id = con.execute("SELECT COALESCE(MAX(id), 0) FROM bench_runs").fetchone()[0]
    run_id = max_id + 1

    con.execute(
        "INSERT INTO bench_runs (id, commit_sha, timestamp, machine, python, notes) "
        "VALUES (?, ?, ?, ?, ?, ?)",
        [
            run_id,
            get_commit_sha(),
            datetime.now(UTC),
            f"{platform.node()}/{platform.machine()}",
            platform.python_version(),
            notes,
        ],
    )
    return run_id


def split_name(name: str) -> tuple[str, str]:
    """Split a benchmark name into (scenario, phase).

    ``test_bench_rule_count_last_match_dispatch[100]`` becomes
    ``("rule_count_last_match[100]", "dispatch")``.
    """
    base, bracket, param = name.partition("[")
    clean = base.removeprefix("test_bench_")
    scenario, _, phase = clean.rpartition("_")
    if phase not in KNOWN_PHASES or not scenario:
        scenario, phase = clean, "dispatch"
    if bracket:
        scenario = f"{scenario}[{param}"
    return scenario, phase


def parse_pytest_benchmark_json(data: dict[str, Any], variant: str) -> list[dict[str, Any]]:
    """Parse pytest-benchmark JSON output into normalized results."""
    results = []
    to_ns = 1_000_000_000  # pytest-benchmark reports seconds
    for bench in data.get("benchmarks", []):
        scenario, phase = split_name(bench.get("name", ""))
        stats = bench.get("stats", {})
        results.append({
            "variant": variant,
            "scenario": scenario,
            "phase": phase,
            "mean_ns": stats.get("mean", 0) * to_ns,
            "stddev_ns": (stats.get("stddev") or 0) * to_ns,
            "min_ns": stats.get("min", 0) * to_ns,
            "max_ns": stats.get("max", 0) * to_ns,
            "iterations": stats.get("iterations"),
        })
    return results


@click.command()
@click.option("--db", default=DB_DEFAULT, help="DuckDB database path")
@click.option("--notes", default=None, help="Notes for this benchmark run")
@click.option("--raw-dir", default=str(RAW_DIR), help="Directory with raw JSON files")
def main(db: str, notes: str | None, raw_dir: str) -> None:
    """Ingest benchmark results into DuckDB."""
    raw_path = Path(raw_dir)

    if not raw_path.exists():
        click.echo(f"Raw directory {raw_path} does not exist", err=True)
        sys.exit(1)

    json_files = sorted(raw_path.glob("*.json"))
    if not json_files:
        click.echo(f"No JSON files found in {raw_path}", err=True)
        sys.exit(1)

    con = duckdb.connect(db)
    run_id = create_run(con, notes)
    total = 0

    for json_file in json_files:
        variant = json_file.stem
        rows = parse_pytest_benchmark_json(json.loads(json_file.read_text()), variant)

        for row in rows:
            con.execute(
                """INSERT INTO bench_results
                   (run_id, variant, scenario, phase, mean_ns, stddev_ns, min_ns, max_ns, iterations)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                [
                    run_id,
                    row["variant"],
                    row["scenario"],
                    row["phase"],
                    row["mean_ns"],
                    row["stddev_ns"],
                    row["min_ns"],
                    row["max_ns"],
                    row["iterations"],
                ],
            )
            total += 1

        click.echo(f"  Ingested {len(rows)} results from {json_file.name} ({variant})")

    con.close()
    click.echo(f"\nRun #{run_id}: {total} results ingested into {db}")


if __name__ == "__main__":
    main()
