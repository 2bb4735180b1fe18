"""Small helpers shared across the package."""

import uuid


def generate_id() -> str:
    """Random record id (UUID4, drawn from the OS CSPRNG)."""
    return str(uuid.uuid4())


def format_size(num_bytes: int) -> str:
    """Human-readable size using whole units: 1536 -> '1 KB'."""
    if num_bytes >= 1024 * 1024 * 1024:
        return f"{num_bytes // (1024 * 1024 * 1024)} GB"
    if num_bytes >= 1024 * 1024:
        return f"{num_bytes // (1024 * 1024)} MB"
    if num_bytes >= 1024:
        return f"{num_bytes // 1024} KB"
    return f"{num_bytes} bytes"
