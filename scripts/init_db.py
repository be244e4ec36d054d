#!/usr/bin/env python3
"""
Database initialization script for vault-search.

Creates the pgvector extension and the passage table that the retriever
reads from. Populating the table is left to the indexing pipeline.

Usage:
    python scripts/init_db.py [DIMENSIONS]
"""

import sys

import psycopg

from vaultsearch.config import settings
from vaultsearch.db import db
from vaultsearch.index.pgvector import PgVectorIndex


def init_database(dimensions=None):
    """Initialize the passage table schema."""
    print("=" * 60)
    print("vault-search - Database Initialization")
    print("=" * 60)

    print("\nConnecting to database...")
    print(f"  Host: {settings.db_host}")
    print(f"  Port: {settings.db_port}")
    print(f"  Database: {settings.db_name}")
    print(f"  User: {settings.db_user}")
    print(f"  Table: {settings.passages_table}")

    index = PgVectorIndex(table=settings.passages_table, connection_factory=db.get_connection)
    try:
        index.ensure_schema(dimensions=dimensions)

        with db.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT extversion FROM pg_extension WHERE extname = 'vector'")
                result = cur.fetchone()
                if result:
                    print(f"  ✓ pgvector extension: v{result['extversion']}")
                else:
                    print("  ✗ pgvector extension not found")

        print("\n" + "=" * 60)
        print("✓ Database initialization completed successfully!")
        print("=" * 60)
    except psycopg.OperationalError as e:
        print(f"\n✗ Connection failed: {e}")
        print("\nTroubleshooting:")
        print("  1. Check if PostgreSQL container is running: docker compose ps db")
        print("  2. Verify environment variables are set correctly")
        print(f"  3. Ensure database '{settings.db_name}' exists")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    init_database(int(sys.argv[1]) if len(sys.argv) > 1 else None)
