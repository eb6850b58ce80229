#!/usr/bin/env python3
"""
Diagnostic script to inspect analysis jobs in the durable store.
Shows the latest jobs, or one job in full when an id is given.

Run from backend directory:
  python scripts/check_job.py
  python scripts/check_job.py job_1767225600000_k3j9x0abc
"""

import asyncio
import json
import sys
from pathlib import Path

# Ensure backend root is on path
backend_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(backend_root))

from sqlalchemy import text
from adsuggest.database import engine


async def show_job(job_id: str):
    async with engine.begin() as conn:
        result = await conn.execute(
            text("SELECT id, status, error, result, created_at, updated_at FROM analysis_jobs WHERE id = :id"),
            {"id": job_id},
        )
        row = result.fetchone()
    if not row:
        print(f"No job {job_id}")
        return
    print(f"id={row[0]}, status={row[1]}, created={row[4]}, updated={row[5]}")
    if row[2]:
        print(f"error: {row[2]}")
    if row[3]:
        result = row[3] if isinstance(row[3], dict) else json.loads(row[3])
        print(json.dumps(result.get("stats", {}), indent=2))
        print(f"opportunities: {len(result.get('searchTermAnalysis', {}).get('opportunities', []))}")
        print(f"waste terms: {len(result.get('searchTermAnalysis', {}).get('wasteTerms', []))}")


async def list_jobs():
    async with engine.begin() as conn:
        counts = await conn.execute(text("SELECT status, COUNT(*) FROM analysis_jobs GROUP BY status"))
        print("=== ANALYSIS_JOBS BY STATUS ===")
        for r in counts.fetchall():
            print(f"  {r[0]}: {r[1]}")

        latest = await conn.execute(text("""
            SELECT id, status, error, created_at, updated_at
            FROM analysis_jobs
            ORDER BY created_at DESC
            LIMIT 20
        """))
        rows = latest.fetchall()
        print("\n=== LATEST 20 ===")
        if rows:
            for r in rows:
                print(f"  {r[0]} status={r[1]} created={r[3]} updated={r[4]}" + (f" error={r[2]}" if r[2] else ""))
        else:
            print("  (no jobs)")


async def main():
    if len(sys.argv) > 1:
        await show_job(sys.argv[1])
    else:
        await list_jobs()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
