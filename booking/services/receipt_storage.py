"""
receipt_storage.py
------------------
Stores payment receipts for cash bookings through Django's default storage
(local MEDIA_ROOT in development, any configured storage backend in production).

Only the stored path is returned and kept on the booking; links for viewing
are produced by the storage backend on demand.
"""

import logging
import os

from django.core.files.storage import default_storage
from django.db import DatabaseError
from django.utils import timezone

from ..exceptions import BookingValidationError, TransientError
from .slot_utils import booking_setting

logger = logging.getLogger(__name__)


class ReceiptStorage:
    def __init__(self, storage=None, clock=None):
        self.storage = storage or default_storage
        self.clock = clock or timezone.now

    def validate_file(self, uploaded_file) -> None:
        if uploaded_file is None:
            raise BookingValidationError("No file provided.")
        max_bytes = booking_setting("RECEIPT_MAX_BYTES")
        if uploaded_file.size > max_bytes:
            raise BookingValidationError(f"File size exceeds {max_bytes // (1024 * 1024)}MB limit.")
        content_type = getattr(uploaded_file, "content_type", None)
        if content_type not in booking_setting("RECEIPT_CONTENT_TYPES"):
            raise BookingValidationError("File type not allowed. Please upload JPG, PNG, or PDF.")

    def upload_receipt(self, booking_id, uploaded_file) -> str:
        self.validate_file(uploaded_file)
        ext = os.path.splitext(uploaded_file.name or "")[1].lower() or ".bin"
        stamp = int(self.clock().timestamp() * 1000)
        name = f"receipts/{booking_id}/{stamp}{ext}"
        try:
            path = self.storage.save(name, uploaded_file)
        except (OSError, DatabaseError) as exc:
            logger.exception("Receipt upload failed for booking %s", booking_id)
            raise TransientError("Receipt upload failed, please try again.") from exc
        logger.info("Receipt for booking %s stored at %s", booking_id, path)
        return path
