def with_details(message: str, **details: str | None) -> str:
    """Append `[key=value, ...]` for each detail that is set."""
    parts = [f"{key}={value}" for key, value in details.items() if value]
    return f"{message} [{', '.join(parts)}]" if parts else message
