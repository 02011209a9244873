#!/usr/bin/env python3
"""Apply migration 001: job relay tables (chat_jobs, global_webhooks, lead_processing_jobs)."""
import asyncio
import asyncpg
import os

MIGRATION = """
CREATE TABLE IF NOT EXISTS chat_jobs (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id UUID NOT NULL,
    conversation_id UUID,
    webhook_type TEXT NOT NULL DEFAULT 'chat',
    payload JSONB NOT NULL DEFAULT '{}',
    status TEXT NOT NULL DEFAULT 'pending'
        CHECK (status IN ('pending', 'processing', 'completed', 'failed')),
    result JSONB,
    error TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    completed_at TIMESTAMPTZ
);

CREATE INDEX IF NOT EXISTS idx_chat_jobs_user ON chat_jobs(user_id);
CREATE INDEX IF NOT EXISTS idx_chat_jobs_conversation ON chat_jobs(conversation_id, created_at DESC);
CREATE INDEX IF NOT EXISTS idx_chat_jobs_status ON chat_jobs(status);

CREATE TABLE IF NOT EXISTS global_webhooks (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    name TEXT NOT NULL,
    url TEXT NOT NULL DEFAULT '',
    type TEXT NOT NULL CHECK (type IN ('chat', 'file_upload', 'google_drive')),
    enabled BOOLEAN NOT NULL DEFAULT true,
    timeout INTEGER NOT NULL DEFAULT 120000,
    retry_attempts INTEGER NOT NULL DEFAULT 0,
    headers JSONB NOT NULL DEFAULT '{}',
    last_tested TIMESTAMPTZ,
    last_used TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_global_webhooks_type ON global_webhooks(type) WHERE enabled;

CREATE TABLE IF NOT EXISTS lead_processing_jobs (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    event_id UUID NOT NULL,
    stage TEXT NOT NULL
        CHECK (stage IN ('validate', 'check_salesforce', 'enrich', 'sync')),
    status TEXT NOT NULL DEFAULT 'pending'
        CHECK (status IN ('pending', 'processing', 'completed', 'failed')),
    total_leads INTEGER NOT NULL DEFAULT 0,
    processed_leads INTEGER NOT NULL DEFAULT 0,
    failed_leads INTEGER NOT NULL DEFAULT 0,
    error_message TEXT,
    started_at TIMESTAMPTZ,
    completed_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_lead_jobs_event_stage
    ON lead_processing_jobs(event_id, stage, created_at DESC);
"""

TABLES = ("chat_jobs", "global_webhooks", "lead_processing_jobs")


async def main():
    conn = await asyncpg.connect(os.environ["DATABASE_URL"], statement_cache_size=0)
    try:
        await conn.execute(MIGRATION)
        print("Migration 001 applied: job relay tables created")

        # Verify
        for table in TABLES:
            count = await conn.fetchval(
                "SELECT COUNT(*) FROM information_schema.columns WHERE table_name = $1",
                table,
            )
            print(f"{table}: {count} columns")
    finally:
        await conn.close()

if __name__ == "__main__":
    asyncio.run(main())
