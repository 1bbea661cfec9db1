#!/usr/bin/env python3
"""
Clinical CDS - Database Table Creation Script
Creates the key-value storage table used by the database backend
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import create_engine
from clinical_cds.models import Base
from clinical_cds.config import settings


def create_all_tables():
    """Create all database tables"""
    print("="*60)
    print("Clinical CDS - Database Table Creation")
    print("="*60)

    db_url = settings.database_url
    print(f"\nConnecting to database...")
    print(f"URL: {db_url.split('@')[1] if '@' in db_url else db_url}")

    try:
        engine = create_engine(db_url, echo=settings.database_echo)

        print("\nCreating all tables...")
        Base.metadata.create_all(engine)

        print("\n" + "="*60)
        print("✓ All tables created successfully!")
        print("="*60)

        print("\nTables created:")
        for table in Base.metadata.sorted_tables:
            print(f"  - {table.name}")

        return 0

    except Exception as e:
        print(f"\n✗ Error creating tables: {e}")
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(create_all_tables())
