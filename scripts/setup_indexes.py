import sys
import os
import asyncio

# Add parent directory to path to import database
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import INDEX_SPECS, ensure_indexes
from logging_config import setup_logging, get_logger

logger = get_logger("setup_indexes")


async def create_indexes():
    print("🚀 Starting Index Creation...")
    await ensure_indexes()

    for collection_name, specs in INDEX_SPECS.items():
        print(f"\n📦 {collection_name}:")
        for keys, options in specs:
            fields = ", ".join(f"{field} {'ASC' if direction == 1 else 'DESC'}" for field, direction in keys)
            flags = " ".join(flag.upper() for flag in ("unique",) if options.get(flag))
            if options.get("partialFilterExpression"):
                flags = f"{flags} PARTIAL".strip()
            print(f"✅ ({fields}) {flags}".rstrip())

    print("\n✨ All indexes created successfully!")


if __name__ == "__main__":
    setup_logging()
    # Ensure event loop for async driver
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    loop.run_until_complete(create_indexes())
