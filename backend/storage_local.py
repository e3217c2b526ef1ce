# backend/storage_local.py
from pathlib import Path
from uuid import uuid4


class LocalStorage:
    def __init__(self, root: Path, url_prefix: str = ""):
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")

    def put(self, key: str, data: bytes) -> None:
        p = self.root / key
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)

    def get_path(self, key: str) -> Path:
        return self.root / key

    def upload(self, handle: str) -> str:
        """Upload collaborator for the crop pipeline: copy the file in, return its URL."""
        src = Path(handle)
        key = f"{uuid4()}_{src.name}"
        self.put(key, src.read_bytes())
        return f"{self.url_prefix}/{key}"
