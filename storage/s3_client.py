"""
S3 attachment storage backend.
"""
import boto3
from botocore.exceptions import ClientError, BotoCoreError
from typing import Optional
from io import BytesIO

from core.logger import logger


class S3Storage:
    """Stores attachments as objects in a single S3 bucket; the reference is the object key."""

    def __init__(
        self,
        bucket_name: str,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        region_name: str = "us-east-1",
        endpoint_url: Optional[str] = None,  # For S3-compatible services (MinIO, etc.)
        auto_create_bucket: bool = True,
        client=None
    ):
        """
        Initialize S3 storage.

        Args:
            bucket_name: Bucket holding every attachment
            aws_access_key_id: AWS access key (or from env)
            aws_secret_access_key: AWS secret key (or from env)
            region_name: AWS region
            endpoint_url: Custom endpoint URL (for MinIO, etc.)
            auto_create_bucket: Create the bucket if it doesn't exist
            client: Pre-built boto3 client (tests pass a stub)
        """
        self.bucket_name = bucket_name
        self.region_name = region_name
        self.auto_create_bucket = auto_create_bucket

        if client is None:
            client_kwargs = {
                "region_name": region_name
            }
            if aws_access_key_id:
                client_kwargs["aws_access_key_id"] = aws_access_key_id
            if aws_secret_access_key:
                client_kwargs["aws_secret_access_key"] = aws_secret_access_key
            if endpoint_url:
                client_kwargs["endpoint_url"] = endpoint_url
            client = boto3.client("s3", **client_kwargs)
        self.s3_client = client

        self._ensure_bucket_exists()
        logger.info(f"S3 storage initialized (bucket: {bucket_name})")

    def _ensure_bucket_exists(self):
        """Ensure bucket exists, create if it doesn't."""
        try:
            self.s3_client.head_bucket(Bucket=self.bucket_name)
            logger.debug(f"Bucket {self.bucket_name} exists")
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code not in ("404", "NoSuchBucket") or not self.auto_create_bucket:
                logger.error(f"Error checking bucket {self.bucket_name}: {e}")
                raise
            try:
                if self.region_name == "us-east-1":
                    self.s3_client.create_bucket(Bucket=self.bucket_name)
                else:
                    self.s3_client.create_bucket(
                        Bucket=self.bucket_name,
                        CreateBucketConfiguration={"LocationConstraint": self.region_name}
                    )
                logger.info(f"Created bucket: {self.bucket_name}")
            except ClientError as create_error:
                logger.error(f"Failed to create bucket {self.bucket_name}: {create_error}")
                raise

    def save(self, folder: str, filename: str, content: bytes, content_type: Optional[str] = None) -> str:
        """
        Upload attachment bytes to S3.

        Args:
            folder: Key prefix (e.g. complaint_attachments)
            filename: Stored file name
            content: File bytes
            content_type: MIME type

        Returns:
            Attachment reference (the object key)
        """
        key = f"{folder}/{filename}"
        extra_args = {}
        if content_type:
            extra_args["ContentType"] = content_type
        try:
            self.s3_client.upload_fileobj(BytesIO(content), self.bucket_name, key, ExtraArgs=extra_args)
            logger.info(f"Uploaded attachment to S3: s3://{self.bucket_name}/{key}")
            return key
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to upload attachment to S3: {e}")
            raise

    def delete(self, ref: str) -> bool:
        """Delete an attachment object."""
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=ref)
            logger.info(f"Deleted attachment from S3: {self.bucket_name}/{ref}")
            return True
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to delete attachment from S3: {e}")
            raise

    def exists(self, ref: str) -> bool:
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=ref)
            return True
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("404", "NoSuchKey"):
                return False
            raise

    def url(self, ref: str, expires_in: int = 3600) -> Optional[str]:
        """
        Presigned HTTPS URL for an attachment reference.
        Returns None if the reference is empty or signing fails.
        """
        if not ref or not ref.strip():
            return None
        try:
            return self.s3_client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket_name, "Key": ref.strip()},
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to generate presigned URL: {e}")
            return None
