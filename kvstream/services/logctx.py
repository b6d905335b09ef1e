def ctx_prefix(*, key: str, page: int | None = None) -> str:
    base = f"key={key}"
    return f"{base} page={page}" if page is not None else base
