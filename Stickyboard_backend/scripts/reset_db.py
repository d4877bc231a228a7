import asyncio
import sys
from pathlib import Path


async def recreate_db(db_path: Path):
    # Remove existing SQLite file
    if db_path.exists():
        db_path.unlink()

    # Ensure backend root on import path
    backend_root = Path(__file__).resolve().parents[1]
    if str(backend_root) not in sys.path:
        sys.path.insert(0, str(backend_root))

    from app.store import NoteStore  # type: ignore

    store = NoteStore.from_path(str(db_path))
    try:
        await store.create_tables()
    finally:
        await store.dispose()


if __name__ == '__main__':
    target = Path(sys.argv[1]) if len(sys.argv) > 1 else Path('stickyboard.db')
    asyncio.run(recreate_db(target))
    print(f'Database recreated at {target}.')
