# =============================================================================
# scripts/setup_cloud_tables.py
# Print the Supabase SQL for the report/profile tables and the PDF bucket
# =============================================================================
"""
Run this script to get the SQL for:
1. The service_reports, pm_reports and technicians document tables
2. Row-level-security policies for anonymous sessions
3. The storage bucket that receives submitted PDFs

Usage:
    python scripts/setup_cloud_tables.py > setup.sql
    python scripts/setup_cloud_tables.py --bucket my-bucket

Paste the output into the Supabase SQL editor. Anonymous sign-in must also be
enabled under Authentication > Providers.
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from cage_core.config import DEFAULT_REPORTS_BUCKET
from cage_core.forms import list_form_types
from cage_core.services.technician_service import TECHNICIANS_COLLECTION

TABLE_TEMPLATE = """
-- {table}
CREATE TABLE IF NOT EXISTS public.{table} (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    "timestamp" timestamptz NOT NULL DEFAULT now(),
    data jsonb NOT NULL DEFAULT '{{}}'::jsonb
);
CREATE INDEX IF NOT EXISTS {table}_tech_id_idx ON public.{table} ((data->>'techId'));
ALTER TABLE public.{table} ENABLE ROW LEVEL SECURITY;
DROP POLICY IF EXISTS "{table} authenticated access" ON public.{table};
CREATE POLICY "{table} authenticated access" ON public.{table}
    FOR ALL TO authenticated USING (true) WITH CHECK (true);
"""

BUCKET_TEMPLATE = """
-- Storage bucket for submitted PDFs
INSERT INTO storage.buckets (id, name, public)
VALUES ('{bucket}', '{bucket}', false)
ON CONFLICT (id) DO NOTHING;
DROP POLICY IF EXISTS "{bucket} authenticated upload" ON storage.objects;
CREATE POLICY "{bucket} authenticated upload" ON storage.objects
    FOR ALL TO authenticated
    USING (bucket_id = '{bucket}') WITH CHECK (bucket_id = '{bucket}');
"""


def build_sql(bucket: str) -> str:
    tables = [form_type.cloud_collection for form_type in list_form_types()]
    tables.append(TECHNICIANS_COLLECTION)

    parts = ["-- Cage Service Sheets cloud schema"]
    parts.extend(TABLE_TEMPLATE.format(table=table) for table in tables)
    parts.append(BUCKET_TEMPLATE.format(bucket=bucket))
    return "\n".join(parts)


def main():
    parser = argparse.ArgumentParser(description="Print the Supabase schema SQL")
    parser.add_argument("--bucket", default=DEFAULT_REPORTS_BUCKET, help="Storage bucket name")
    args = parser.parse_args()
    print(build_sql(args.bucket))


if __name__ == "__main__":
    main()
