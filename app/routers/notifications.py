from fastapi import APIRouter, HTTPException, status

from app.logging_config import get_logger
from app.schemas.notification import WorkerNotificationRequest, WorkerNotificationResponse
from app.services.whatsapp_service import WhatsAppService

logger = get_logger("notifications_api")

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post("/send-whatsapp", response_model=WorkerNotificationResponse)
def send_worker_notification(request: WorkerNotificationRequest):
    """Tell a worker that a client is interested in their service."""
    missing = request.missing_fields()
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Missing required fields: {', '.join(missing)}",
        )

    result = WhatsAppService().send_worker_notification(request.phoneNumber, request.workerName, request.category)
    if not result.ok:
        logger.error(
            f"Worker notification failed: {result.error}",
            extra={"context": {"error_code": result.error_code, "category": request.category}},
        )
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"WhatsApp send failed: {result.error}")

    return WorkerNotificationResponse(success=True, messageId=result.value)
