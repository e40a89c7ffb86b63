"""
In-memory stand-in for SupabaseGateway used across the test suite
"""
import itertools
from typing import Any, Callable, Dict, Iterable, List, Optional
from unittest.mock import AsyncMock, Mock

from app.core.exceptions import GatewayError, StorageError


class FakeGateway:
    """Implements the gateway surface over plain lists and dicts"""

    def __init__(self):
        self.candidates: List[Dict[str, Any]] = []
        self.uploads: List[Dict[str, Any]] = []
        self.blobs: Dict[str, bytes] = {}
        self.positions: List[Dict[str, Any]] = []
        self.match_rows: Dict[str, List[Dict[str, Any]]] = {}
        self.profiles: List[Dict[str, Any]] = []
        self.auth_users: Dict[str, Dict[str, Any]] = {}
        self.passwords: Dict[str, str] = {}
        self.signed_buckets = {"resumes", "resume"}

        self.failing_pages: set = set()
        self.failing_blob_names: set = set()
        self.fail_hash_lookup = False
        self.fail_profile_lookup = False
        self.fail_password_update = False
        self.blob_upload_failures = 0
        self.insert_upload_failures = 0

        self.page_requests: List[int] = []
        self.upload_patches: List[Dict[str, Any]] = []
        self.candidate_patches: List[Dict[str, Any]] = []
        self.profile_patches: List[Dict[str, Any]] = []
        self.rpc_calls: List[Dict[str, Any]] = []
        self.projection_requests: List[List[str]] = []
        self.subscriptions: List[Dict[str, Any]] = []
        self.removed_blobs: List[str] = []
        self._ids = itertools.count(1)

    # Candidates

    async def fetch_candidate_page(self, page: int, page_size: int) -> List[Dict[str, Any]]:
        self.page_requests.append(page)
        if page in self.failing_pages:
            raise GatewayError("network down", operation="fetch_candidate_page", table="candidates")
        start = page * page_size
        return [dict(r) for r in self.candidates[start:start + page_size]]

    async def fetch_candidate(self, candidate_id: str) -> Optional[Dict[str, Any]]:
        for row in self.candidates:
            if row.get("id") == candidate_id:
                return dict(row)
        return None

    async def update_candidate(self, candidate_id: str, patch: Dict[str, Any]) -> None:
        self.candidate_patches.append({"id": candidate_id, **patch})

    async def fetch_candidate_projections(self, ids: Iterable[str]) -> List[Dict[str, Any]]:
        ids = list(ids)
        self.projection_requests.append(ids)
        return [dict(r) for r in self.candidates if r.get("id") in ids]

    # Uploads

    async def find_upload_by_hash(self, file_hash: str) -> Optional[Dict[str, Any]]:
        if self.fail_hash_lookup:
            raise GatewayError("lookup failed", operation="find_upload_by_hash", table="resume_uploads")
        for row in self.uploads:
            if row.get("file_hash") == file_hash:
                return {"id": row["id"]}
        return None

    async def insert_upload(self, row: Dict[str, Any]) -> Dict[str, Any]:
        if self.insert_upload_failures:
            self.insert_upload_failures -= 1
            raise GatewayError("insert failed", operation="insert_upload", table="resume_uploads")
        stored = {"id": f"up-{next(self._ids)}", **row}
        self.uploads.insert(0, stored)
        return stored

    async def update_upload(self, upload_id: str, patch: Dict[str, Any]) -> None:
        self.upload_patches.append({"id": upload_id, **patch})

    async def list_uploads(self, user_id: Optional[str] = None, limit: Optional[int] = None,
                           columns: str = "*") -> List[Dict[str, Any]]:
        rows = [r for r in self.uploads if user_id is None or r.get("user_id") == user_id]
        return rows[:limit] if limit else rows

    # Storage

    async def upload_blob(self, bucket: str, path: str, data: bytes, content_type: Optional[str] = None) -> None:
        if any(path.endswith(name) for name in self.failing_blob_names):
            raise StorageError("storage unavailable", bucket=bucket, path=path)
        if self.blob_upload_failures:
            self.blob_upload_failures -= 1
            raise StorageError("storage unavailable", bucket=bucket, path=path)
        self.blobs[f"{bucket}/{path}"] = data

    async def remove_blob(self, bucket: str, paths: List[str]) -> None:
        for path in paths:
            self.blobs.pop(f"{bucket}/{path}", None)
            self.removed_blobs.append(f"{bucket}/{path}")

    async def create_signed_url(self, bucket: str, path: str, expires_in: int) -> Optional[str]:
        if bucket not in self.signed_buckets:
            raise StorageError("object not found", bucket=bucket, path=path)
        return f"https://signed.example.com/{bucket}/{path}?expires={expires_in}"

    # Positions

    async def list_positions(self) -> List[Dict[str, Any]]:
        return sorted(self.positions, key=lambda p: p.get("updated_at") or "", reverse=True)

    async def get_position(self, position_id: Any) -> Optional[Dict[str, Any]]:
        for row in self.positions:
            if str(row.get("id")) == str(position_id):
                return dict(row)
        return None

    async def insert_position(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        row = {"id": f"pos-{next(self._ids)}", **payload}
        self.positions.append(row)
        return row

    async def update_position(self, position_id: Any, payload: Dict[str, Any]) -> None:
        for row in self.positions:
            if str(row.get("id")) == str(position_id):
                row.update(payload)

    async def match_candidates_for_position(self, position_id: Any, limit: int, offset: int) -> List[Dict[str, Any]]:
        self.rpc_calls.append({"p_position_id": position_id, "p_limit": limit, "p_offset": offset})
        rows = self.match_rows.get(str(position_id), [])
        return rows[offset:offset + limit]

    # Profiles and auth

    async def list_profiles(self) -> List[Dict[str, Any]]:
        return [dict(p) for p in self.profiles]

    async def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        for row in self.profiles:
            if row.get("user_id") == user_id:
                return dict(row)
        return None

    async def find_profile_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        if self.fail_profile_lookup:
            raise GatewayError("profiles lookup failed", operation="find_profile_by_email", table="profiles")
        for row in self.profiles:
            if row.get("email") == email:
                return {"user_id": row["user_id"]}
        return None

    async def update_profile(self, user_id: str, patch: Dict[str, Any]) -> None:
        self.profile_patches.append({"user_id": user_id, **patch})
        for row in self.profiles:
            if row.get("user_id") == user_id:
                row.update(patch)

    async def get_auth_user(self, access_token: str) -> Optional[Dict[str, Any]]:
        return self.auth_users.get(access_token)

    async def admin_update_password(self, user_id: str, password: str) -> None:
        if self.fail_password_update:
            raise GatewayError("auth admin failed", operation="admin_update_password")
        self.passwords[user_id] = password

    # Realtime

    async def subscribe(self, table: str, callback: Callable, event: str = "*", filter: Optional[str] = None):
        channel = Mock()
        channel.unsubscribe = AsyncMock()
        self.subscriptions.append({"table": table, "callback": callback, "channel": channel})
        return channel
