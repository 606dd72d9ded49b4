"""Error taxonomy for device selection and heart rate sessions."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class FailureReason(Enum):
    """Why a heart rate session ended in the failed state."""

    CONNECTION_ERROR = "connection_error"
    SERVICE_NOT_FOUND = "service_not_found"
    CHARACTERISTIC_NOT_FOUND = "characteristic_not_found"
    SUBSCRIPTION_REJECTED = "subscription_rejected"
    STACK_EXCEPTION = "stack_exception"


class HeartMonitorError(Exception):
    """Base class for all heart monitor errors.

    The message is the single status line shown to the operator.
    """

    reason: Optional[FailureReason] = None
    default_message = "Heart monitor error."

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)


class InvalidIndexError(HeartMonitorError):
    default_message = "Invalid index selected."


class DeviceConnectionError(HeartMonitorError):
    reason = FailureReason.CONNECTION_ERROR
    default_message = "Failed to connect to the device."


class ServiceNotFoundError(HeartMonitorError):
    reason = FailureReason.SERVICE_NOT_FOUND
    default_message = "Failed to find Heart Rate service."


class CharacteristicNotFoundError(HeartMonitorError):
    reason = FailureReason.CHARACTERISTIC_NOT_FOUND
    default_message = "Failed to find Heart Rate Measurement characteristic."


class SubscriptionRejectedError(HeartMonitorError):
    reason = FailureReason.SUBSCRIPTION_REJECTED
    default_message = "Failed to subscribe to Heart Rate Measurement notifications."


class StackError(HeartMonitorError):
    reason = FailureReason.STACK_EXCEPTION
    default_message = "Bluetooth stack error."

