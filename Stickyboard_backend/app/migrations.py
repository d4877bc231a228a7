from datetime import datetime, timezone
from sqlalchemy import text


async def ensure_migrations_table(conn):
    await conn.execute(text(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            name TEXT PRIMARY KEY,
            applied_at TEXT DEFAULT (datetime('now'))
        )
        """
    ))


async def has_migration(conn, name: str) -> bool:
    result = await conn.execute(text("SELECT 1 FROM schema_migrations WHERE name = :name"), {"name": name})
    return result.first() is not None


async def mark_migration(conn, name: str):
    await conn.execute(text("INSERT INTO schema_migrations(name, applied_at) VALUES (:name, :applied_at)"), {
        "name": name,
        "applied_at": datetime.now(timezone.utc).isoformat()
    })


async def index_exists(conn, table: str, index: str) -> bool:
    result = await conn.execute(text(f"PRAGMA index_list({table})"))
    for row in result.mappings():
        if row.get("name") == index:
            return True
    return False


async def add_snapshot_index_to_sticky_notes(conn):
    # init 快照按 created_at 倒序、id 升序读取
    if await index_exists(conn, "sticky_notes", "ix_sticky_notes_snapshot"):
        return
    await conn.execute(text(
        "CREATE INDEX ix_sticky_notes_snapshot ON sticky_notes (created_at DESC, id ASC)"
    ))


async def add_author_index_to_sticky_notes(conn):
    if await index_exists(conn, "sticky_notes", "ix_sticky_notes_author"):
        return
    await conn.execute(text("CREATE INDEX ix_sticky_notes_author ON sticky_notes (author)"))


MIGRATIONS = [
    ("202410_add_snapshot_index_to_sticky_notes", add_snapshot_index_to_sticky_notes),
    ("202410_add_author_index_to_sticky_notes", add_author_index_to_sticky_notes),
]


async def run_migrations(conn):
    await ensure_migrations_table(conn)
    for name, handler in MIGRATIONS:
        if await has_migration(conn, name):
            continue
        await handler(conn)
        await mark_migration(conn, name)
