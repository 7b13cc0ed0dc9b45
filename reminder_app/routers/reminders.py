"""Reminder router: create, read, snooze, dismiss and snooze suggestions."""
import logging
from fastapi import APIRouter, Depends, HTTPException, status, Query
from typing import Optional

from reminder_app.dependencies import get_reminder_controller, get_snooze_estimator
from reminder_app.errors import (
    InvalidTransitionError,
    ReminderConflictError,
    ReminderError,
    ReminderNotFoundError,
    ReminderValidationError,
)
from reminder_app.middleware.auth import get_current_user, verify_user_access, CurrentUser
from reminder_app.schemas.reminder import (
    ReminderCreate,
    ReminderListResponse,
    ReminderResponse,
    SnoozeRequest,
    SnoozeSuggestionResponse,
)
from reminder_app.services.reminder_controller import ReminderController
from reminder_app.services.snooze_estimator import SmartSnoozeEstimator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Reminders"])  # main.py adds the /api prefix

ERROR_STATUS = {
    ReminderValidationError: status.HTTP_400_BAD_REQUEST,
    ReminderNotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    ReminderConflictError: status.HTTP_409_CONFLICT,
}


def to_http_error(error: ReminderError, action: str) -> HTTPException:
    """Known errors keep their message; anything else becomes a generic 500."""
    for error_type, status_code in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return HTTPException(
                status_code=status_code,
                detail={"code": error.code, "message": error.message},
            )
    logger.error(f"Unhandled reminder error while trying to {action}: {error.code} {error.message}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action} reminder",
    )


@router.post("/{user_id}/reminders", response_model=ReminderResponse, status_code=status.HTTP_201_CREATED)
async def create_reminder(
    user_id: str,
    reminder_data: ReminderCreate,
    current_user: CurrentUser = Depends(get_current_user),
    controller: ReminderController = Depends(get_reminder_controller),
):
    """Create a reminder and schedule its delivery."""
    verify_user_access(user_id, current_user)
    try:
        return await controller.create(
            user_id=user_id,
            message=reminder_data.message,
            remind_at=reminder_data.remind_at,
            tone=reminder_data.tone,
            notification_method=reminder_data.notification_method,
        )
    except ReminderError as e:
        raise to_http_error(e, "create")
    except Exception:
        logger.exception(f"Failed to create reminder for user {user_id}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create reminder")


@router.get("/{user_id}/reminders", response_model=ReminderListResponse)
async def list_reminders(
    user_id: str,
    status_filter: Optional[str] = Query(None, alias="status", description="pending, snoozed, sent, failed, dismissed"),
    current_user: CurrentUser = Depends(get_current_user),
    controller: ReminderController = Depends(get_reminder_controller),
):
    """List the user's reminders, soonest first."""
    verify_user_access(user_id, current_user)
    try:
        reminders = controller.list(user_id, status_filter)
    except ReminderError as e:
        raise to_http_error(e, "list")
    return {"reminders": reminders, "total": len(reminders)}


@router.get("/{user_id}/reminders/{reminder_id}", response_model=ReminderResponse)
async def get_reminder(
    user_id: str,
    reminder_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    controller: ReminderController = Depends(get_reminder_controller),
):
    verify_user_access(user_id, current_user)
    try:
        return controller.get(user_id, reminder_id)
    except ReminderError as e:
        raise to_http_error(e, "get")


@router.post("/{user_id}/reminders/{reminder_id}/snooze", response_model=ReminderResponse)
async def snooze_reminder(
    user_id: str,
    reminder_id: str,
    snooze_data: SnoozeRequest,
    current_user: CurrentUser = Depends(get_current_user),
    controller: ReminderController = Depends(get_reminder_controller),
):
    """Push the reminder back by the requested minutes."""
    verify_user_access(user_id, current_user)
    try:
        return await controller.snooze(
            user_id, reminder_id, snooze_data.minutes, snooze_data.is_smart_suggestion
        )
    except ReminderError as e:
        raise to_http_error(e, "snooze")
    except Exception:
        logger.exception(f"Failed to snooze reminder {reminder_id}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to snooze reminder")


@router.post("/{user_id}/reminders/{reminder_id}/dismiss", response_model=ReminderResponse)
async def dismiss_reminder(
    user_id: str,
    reminder_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    controller: ReminderController = Depends(get_reminder_controller),
):
    """Dismiss the reminder; repeating the call is harmless."""
    verify_user_access(user_id, current_user)
    try:
        return await controller.dismiss(user_id, reminder_id)
    except ReminderError as e:
        raise to_http_error(e, "dismiss")
    except Exception:
        logger.exception(f"Failed to dismiss reminder {reminder_id}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to dismiss reminder")


@router.get("/{user_id}/snooze/suggestion", response_model=SnoozeSuggestionResponse)
async def snooze_suggestion(
    user_id: str,
    reminder_id: Optional[str] = Query(None, description="Prefer this reminder's own snooze history"),
    current_user: CurrentUser = Depends(get_current_user),
    estimator: SmartSnoozeEstimator = Depends(get_snooze_estimator),
):
    """Suggested snooze duration; null when smart snooze is off for the user."""
    verify_user_access(user_id, current_user)
    suggestion = estimator.suggest(user_id, reminder_id)
    return {"suggestion": suggestion.to_dict() if suggestion else None}
