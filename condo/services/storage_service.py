import logging
import uuid
from supabase import create_client, Client
from fastapi import UploadFile, HTTPException
from condo.core.config import settings

logger = logging.getLogger(__name__)

class StorageService:
    def __init__(self):
        if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
            logger.warning("Supabase credentials not set; assembly documents cannot be stored.")
            self.client = None
        else:
            self.client: Client = create_client(
                settings.SUPABASE_URL,
                settings.SUPABASE_SERVICE_ROLE_KEY
            )
        self.bucket_name = settings.SUPABASE_BUCKET_NAME

    async def upload_assembly_file(self, file: UploadFile, condominium_id: int, assembly_id: int) -> str:
        """
        Uploads an assembly document.
        Returns the storage path (key), which is what gets persisted.
        """
        if not self.client:
            raise HTTPException(status_code=500, detail="Storage service not configured.")

        file_ext = file.filename.rsplit(".", 1)[-1] if "." in (file.filename or "") else "bin"
        file_path = f"condo_{condominium_id}/assembly_{assembly_id}/{uuid.uuid4()}.{file_ext}"
        file_content = await file.read()

        try:
            # The supabase storage client is synchronous
            self.client.storage.from_(self.bucket_name).upload(
                file_path,
                file_content,
                {"content-type": file.content_type or "application/octet-stream"}
            )
            await file.seek(0)
            return file_path
        except Exception as e:
            logger.error("Storage upload error for %s: %s", file_path, e)
            raise HTTPException(status_code=500, detail="Failed to upload file to storage.")

    def get_signed_url(self, file_path: str, expiry_seconds: int = 3600) -> str:
        if not self.client:
            return ""
        try:
            return self.client.storage.from_(self.bucket_name).create_signed_url(
                file_path, expiry_seconds
            )["signedURL"]
        except Exception as e:
            logger.warning("Storage URL error for %s: %s", file_path, e)
            return ""

    def delete_file(self, file_path: str):
        if not self.client:
            return
        try:
            self.client.storage.from_(self.bucket_name).remove([file_path])
        except Exception as e:
            logger.warning("Storage delete error for %s: %s", file_path, e)

storage_service = StorageService()

def get_storage() -> StorageService:
    return storage_service
