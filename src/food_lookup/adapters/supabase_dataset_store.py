"""Supabase Storage implementation of the remote dataset store."""

import asyncio
import json
from dataclasses import dataclass

from supabase import Client

from food_lookup.services.curated import RemoteDatasetStore


@dataclass
class SupabaseDatasetStore(RemoteDatasetStore):
    """Reads the published dataset blobs from a Supabase Storage bucket."""

    client: Client
    bucket: str
    dataset_path: str
    version_path: str

    async def fetch_version(self) -> dict[str, object]:
        """Return the version descriptor."""
        return await asyncio.to_thread(self._download_json, self.version_path)

    async def fetch_dataset(self) -> dict[str, object]:
        """Return the full dataset payload."""
        return await asyncio.to_thread(self._download_json, self.dataset_path)

    def _download_json(self, path: str) -> dict[str, object]:
        content = self.client.storage.from_(self.bucket).download(path)
        payload = json.loads(content)
        if not isinstance(payload, dict):
            raise RuntimeError(f"Unexpected payload in {self.bucket}/{path}")
        return payload
