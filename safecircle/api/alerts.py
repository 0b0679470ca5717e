"""Journey alert endpoints."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from safecircle.api.responses import err_response, error_response, success_response
from safecircle.core.deps import get_current_user, get_sms_transport
from safecircle.core.result import Err, ErrorCode
from safecircle.db.session import get_db
from safecircle.models.user import User
from safecircle.schemas.alerts import AlertRequest, DispatchReportOut, MessageLogOut
from safecircle.services.alert_dispatcher import dispatch_alert
from safecircle.services.message_log_service import get_journey_for_user, list_journey_logs
from safecircle.services.sms_transport import SmsTransport

router = APIRouter(prefix="/journeys", tags=["alerts"])


@router.post("/{journey_id}/alerts")
async def send_alert(
    journey_id: int,
    data: AlertRequest,
    db: Session = Depends(get_db),
    transport: SmsTransport = Depends(get_sms_transport),
    current_user: User = Depends(get_current_user),
):
    """Text every eligible circle member about this journey.

    Partial delivery is still a 200 with ``success`` false and the failed
    recipients listed. If nothing went out the response is a 502.
    """
    result = await dispatch_alert(
        db,
        transport,
        user_id=current_user.id,
        journey_id=journey_id,
        emergency_id=data.emergency_id,
        message_type=data.message_type,
    )
    if isinstance(result, Err):
        return err_response(result)
    report = result.value
    body = DispatchReportOut.model_validate(report).model_dump(mode="json")
    if report.sent_count == 0:
        return error_response(ErrorCode.SMS_FAILED, report.message, data=body)
    return success_response(report.message, body, success=report.success)


@router.get("/{journey_id}/message-logs")
def get_message_logs(
    journey_id: int,
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Delivery records for one of the current user's journeys, newest first."""
    if get_journey_for_user(db, journey_id, current_user.id) is None:
        return error_response(ErrorCode.JOURNEY_NOT_FOUND, "Journey not found")
    logs = list_journey_logs(db, journey_id, limit)
    return success_response(
        "Message logs fetched",
        [MessageLogOut.model_validate(log).model_dump(mode="json") for log in logs],
    )
