"""
Supabase gateway: table queries, RPC, blob storage, auth admin and realtime
"""
from typing import Any, Callable, Dict, Iterable, List, Optional

from supabase import AsyncClient, acreate_client

from app.config import Settings
from app.core.exceptions import ConfigurationError, GatewayError, StorageError
from app.utils.logger import get_logger

logger = get_logger(__name__)

CANDIDATES = "candidates"
RESUME_UPLOADS = "resume_uploads"
POSITIONS = "positions"
PROFILES = "profiles"

CANDIDATE_LIST_COLUMNS = """
  *,
  candidate_educations (school, degree, major, school_tags),
  candidate_work_experiences (company, role, department, start_date, end_date, description),
  candidate_projects (project_name, role, description),
  candidate_tags (
    tags (id, tag_name, category)
  )
"""

CANDIDATE_DETAIL_COLUMNS = """
  *,
  candidate_educations (*),
  candidate_work_experiences (*),
  candidate_projects (*),
  candidate_tags (tags (id, tag_name, category)),
  resume_uploads (id, filename, oss_raw_path, status, error_reason, updated_at, uploader_email, uploader_name, created_at)
"""

CANDIDATE_PROJECTION_COLUMNS = """
  id,
  name,
  degree_level,
  work_years,
  location,
  updated_at,
  candidate_work_experiences (company, role)
"""

PROFILE_COLUMNS = "user_id,email,display_name,role,approval_status,created_at,updated_at"


class SupabaseGateway:
    """
    Typed facade over the Supabase async client.

    Every call either returns plain rows (dicts) or raises GatewayError /
    StorageError naming the operation that failed. Callers never see
    postgrest, storage or auth exceptions directly.
    """

    def __init__(self, client: AsyncClient):
        self.client = client

    async def _execute(self, operation: str, table: Optional[str], query) -> List[Dict[str, Any]]:
        try:
            response = await query.execute()
        except Exception as e:
            logger.error(
                "gateway_query_failed",
                operation=operation,
                table=table,
                error=str(e),
                error_type=type(e).__name__
            )
            raise GatewayError(
                message=f"{operation} failed: {e}",
                operation=operation,
                table=table
            )
        data = getattr(response, "data", None)
        if data is None:
            return []
        if isinstance(data, dict):
            return [data]
        return list(data)

    # Candidates

    async def fetch_candidate_page(self, page: int, page_size: int) -> List[Dict[str, Any]]:
        start = page * page_size
        end = start + page_size - 1
        query = (
            self.client.table(CANDIDATES)
            .select(CANDIDATE_LIST_COLUMNS)
            .order("updated_at", desc=True)
            .range(start, end)
        )
        return await self._execute("fetch_candidate_page", CANDIDATES, query)

    async def fetch_candidate(self, candidate_id: str) -> Optional[Dict[str, Any]]:
        query = (
            self.client.table(CANDIDATES)
            .select(CANDIDATE_DETAIL_COLUMNS)
            .eq("id", candidate_id)
            .limit(1)
        )
        rows = await self._execute("fetch_candidate", CANDIDATES, query)
        return rows[0] if rows else None

    async def update_candidate(self, candidate_id: str, patch: Dict[str, Any]) -> None:
        query = self.client.table(CANDIDATES).update(patch).eq("id", candidate_id)
        await self._execute("update_candidate", CANDIDATES, query)

    async def fetch_candidate_projections(self, ids: Iterable[str]) -> List[Dict[str, Any]]:
        ids = [i for i in ids if i]
        if not ids:
            return []
        query = self.client.table(CANDIDATES).select(CANDIDATE_PROJECTION_COLUMNS).in_("id", ids)
        return await self._execute("fetch_candidate_projections", CANDIDATES, query)

    # Uploads

    async def find_upload_by_hash(self, file_hash: str) -> Optional[Dict[str, Any]]:
        query = self.client.table(RESUME_UPLOADS).select("id").eq("file_hash", file_hash).limit(1)
        rows = await self._execute("find_upload_by_hash", RESUME_UPLOADS, query)
        return rows[0] if rows else None

    async def insert_upload(self, row: Dict[str, Any]) -> Dict[str, Any]:
        query = self.client.table(RESUME_UPLOADS).insert(row)
        rows = await self._execute("insert_upload", RESUME_UPLOADS, query)
        return rows[0] if rows else row

    async def update_upload(self, upload_id: str, patch: Dict[str, Any]) -> None:
        query = self.client.table(RESUME_UPLOADS).update(patch).eq("id", upload_id)
        await self._execute("update_upload", RESUME_UPLOADS, query)

    async def list_uploads(
        self,
        user_id: Optional[str] = None,
        limit: Optional[int] = None,
        columns: str = "*"
    ) -> List[Dict[str, Any]]:
        query = self.client.table(RESUME_UPLOADS).select(columns)
        if user_id:
            query = query.eq("user_id", user_id)
        query = query.order("created_at", desc=True)
        if limit:
            query = query.limit(limit)
        return await self._execute("list_uploads", RESUME_UPLOADS, query)

    # Storage

    async def upload_blob(self, bucket: str, path: str, data: bytes, content_type: Optional[str] = None) -> None:
        options = {"content-type": content_type} if content_type else None
        try:
            if options:
                await self.client.storage.from_(bucket).upload(path, data, options)
            else:
                await self.client.storage.from_(bucket).upload(path, data)
        except Exception as e:
            logger.error("storage_upload_failed", bucket=bucket, path=path, error=str(e))
            raise StorageError(f"Upload to {bucket} failed: {e}", bucket=bucket, path=path)

    async def remove_blob(self, bucket: str, paths: List[str]) -> None:
        try:
            await self.client.storage.from_(bucket).remove(paths)
        except Exception as e:
            logger.error("storage_remove_failed", bucket=bucket, paths=paths, error=str(e))
            raise StorageError(f"Removal from {bucket} failed: {e}", bucket=bucket)

    async def create_signed_url(self, bucket: str, path: str, expires_in: int) -> Optional[str]:
        try:
            result = await self.client.storage.from_(bucket).create_signed_url(path, expires_in)
        except Exception as e:
            raise StorageError(f"Signing {path} in {bucket} failed: {e}", bucket=bucket, path=path)
        if not result:
            return None
        return result.get("signedURL") or result.get("signedUrl")

    # Positions

    async def list_positions(self) -> List[Dict[str, Any]]:
        query = self.client.table(POSITIONS).select("*").order("updated_at", desc=True)
        return await self._execute("list_positions", POSITIONS, query)

    async def get_position(self, position_id: Any) -> Optional[Dict[str, Any]]:
        query = self.client.table(POSITIONS).select("*").eq("id", position_id).limit(1)
        rows = await self._execute("get_position", POSITIONS, query)
        return rows[0] if rows else None

    async def insert_position(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        rows = await self._execute("insert_position", POSITIONS, self.client.table(POSITIONS).insert(payload))
        return rows[0] if rows else payload

    async def update_position(self, position_id: Any, payload: Dict[str, Any]) -> None:
        query = self.client.table(POSITIONS).update(payload).eq("id", position_id)
        await self._execute("update_position", POSITIONS, query)

    async def match_candidates_for_position(self, position_id: Any, limit: int, offset: int) -> List[Dict[str, Any]]:
        query = self.client.rpc(
            "match_candidates_for_position",
            {"p_position_id": position_id, "p_limit": limit, "p_offset": offset}
        )
        return await self._execute("match_candidates_for_position", None, query)

    # Profiles and auth

    async def list_profiles(self) -> List[Dict[str, Any]]:
        query = self.client.table(PROFILES).select(PROFILE_COLUMNS).order("created_at", desc=True)
        return await self._execute("list_profiles", PROFILES, query)

    async def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        query = self.client.table(PROFILES).select(PROFILE_COLUMNS).eq("user_id", user_id).limit(1)
        rows = await self._execute("get_profile", PROFILES, query)
        return rows[0] if rows else None

    async def find_profile_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        query = self.client.table(PROFILES).select("user_id").eq("email", email).limit(1)
        rows = await self._execute("find_profile_by_email", PROFILES, query)
        return rows[0] if rows else None

    async def update_profile(self, user_id: str, patch: Dict[str, Any]) -> None:
        query = self.client.table(PROFILES).update(patch).eq("user_id", user_id)
        await self._execute("update_profile", PROFILES, query)

    async def get_auth_user(self, access_token: str) -> Optional[Dict[str, Any]]:
        """Resolve an access token to {id, email}, or None when it is not valid"""
        try:
            response = await self.client.auth.get_user(access_token)
        except Exception as e:
            logger.warning("auth_user_lookup_failed", error=str(e), error_type=type(e).__name__)
            return None
        user = getattr(response, "user", None) if response else None
        if user is None:
            return None
        return {"id": str(user.id), "email": user.email}

    async def admin_update_password(self, user_id: str, password: str) -> None:
        try:
            await self.client.auth.admin.update_user_by_id(user_id, {"password": password})
        except Exception as e:
            logger.error("admin_password_update_failed", target_user_id=user_id, error=str(e))
            raise GatewayError(f"Password update failed: {e}", operation="admin_update_password")

    # Realtime

    async def subscribe(
        self,
        table: str,
        callback: Callable[[Dict[str, Any]], Any],
        event: str = "*",
        filter: Optional[str] = None
    ):
        """Subscribe to postgres changes on a table; returns the channel for unsubscribe"""
        name = f"{table}_changes" if not filter else f"{table}_{filter}"
        channel = self.client.channel(name)
        channel.on_postgres_changes(event, callback=callback, table=table, schema="public", filter=filter)
        try:
            await channel.subscribe()
        except Exception as e:
            raise GatewayError(f"Realtime subscribe failed: {e}", operation="subscribe", table=table)
        logger.info("realtime_subscribed", table=table, channel=name)
        return channel


async def create_gateway(config: Settings) -> SupabaseGateway:
    """Build the gateway from settings; the service-role key is mandatory"""
    config.require_service_credentials()
    try:
        client = await acreate_client(config.SUPABASE_URL, config.SUPABASE_SERVICE_ROLE_KEY)
    except Exception as e:
        raise ConfigurationError("SUPABASE_URL", details={"error": str(e)})
    logger.info("gateway_created", supabase_url=config.SUPABASE_URL)
    return SupabaseGateway(client)
