"""
Input validation schemas using Pydantic v2
Validates organizer/system requests before they reach the state machine
"""

import logging
import math
from typing import Optional, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .types import ActorKind, EventStatus, ParticipantStatus

logger = logging.getLogger(__name__)

# ==================== VALIDATOR FUNCTIONS ====================


def _clean_identifier(v: str, field: str) -> str:
    v = InputSanitizer.sanitize_string(v, 64)
    if len(v) == 0:
        raise ValueError(f"{field} cannot be empty")
    if any(ch.isspace() for ch in v):
        raise ValueError(f"{field} cannot contain whitespace")
    return v


class ValidatedTransitionRequest(BaseModel):
    """Event status change request"""

    event_id: str = Field(..., min_length=1, max_length=64, description="Event ID")
    target_status: EventStatus = Field(..., description="Requested event status")
    actor: ActorKind = Field(..., description="'organizer' or 'system'")

    @field_validator("event_id")
    @classmethod
    def validate_event_id(cls, v: str) -> str:
        return _clean_identifier(v, "event_id")

    @field_validator("target_status", "actor", mode="before")
    @classmethod
    def normalize_literal(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    model_config = ConfigDict(extra="forbid")


class ValidatedParticipantStatus(BaseModel):
    """Manual organizer override of a participant's attendance status"""

    participant_id: str = Field(..., min_length=1, max_length=64)
    status: ParticipantStatus

    @field_validator("participant_id")
    @classmethod
    def validate_participant_id(cls, v: str) -> str:
        return _clean_identifier(v, "participant_id")

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v


class ValidatedResult(BaseModel):
    """Organizer scoring input: score and/or placement"""

    participant_id: str = Field(..., min_length=1, max_length=64)
    score: Optional[float] = Field(
        None, ge=-1_000_000, le=1_000_000, description="Numeric score, higher is better"
    )
    placement: Optional[int] = Field(
        None, gt=0, le=100_000, description="Assigned placement (1 = first)"
    )

    @field_validator("participant_id")
    @classmethod
    def validate_participant_id(cls, v: str) -> str:
        return _clean_identifier(v, "participant_id")

    @field_validator("score")
    @classmethod
    def validate_score(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not math.isfinite(v):
            raise ValueError("score must be a finite number")
        return v

    @field_validator("placement", mode="before")
    @classmethod
    def reject_bool_placement(cls, v):
        if isinstance(v, bool):
            raise ValueError("placement must be an integer")
        return v

    @model_validator(mode="after")
    def validate_has_result(self) -> Self:
        if self.score is None and self.placement is None:
            raise ValueError("score or placement is required")
        return self


class InputSanitizer:
    """Utility class for input sanitization"""

    @staticmethod
    def sanitize_string(value: str, max_length: int = 255) -> str:
        """Sanitize string input"""
        if not isinstance(value, str):
            return str(value)[:max_length]

        # Strip whitespace
        value = value.strip()

        # Limit length
        value = value[:max_length]

        # Remove null bytes
        value = value.replace("\0", "")

        return value

    @staticmethod
    def validate_transition_request(request: dict) -> ValidatedTransitionRequest:
        """
        Validate and sanitize a status change request

        Returns:
            ValidatedTransitionRequest: Validated request object

        Raises:
            ValueError: If validation fails
        """
        try:
            return ValidatedTransitionRequest(**request)
        except Exception as e:
            logger.warning(f"Transition request validation failed: {e}")
            raise ValueError(f"Invalid transition request: {str(e)}")

    @staticmethod
    def validate_participant_status(request: dict) -> ValidatedParticipantStatus:
        try:
            return ValidatedParticipantStatus(**request)
        except Exception as e:
            logger.warning(f"Participant status validation failed: {e}")
            raise ValueError(f"Invalid participant status: {str(e)}")

    @staticmethod
    def validate_result(request: dict) -> ValidatedResult:
        try:
            return ValidatedResult(**request)
        except Exception as e:
            logger.warning(f"Result validation failed: {e}")
            raise ValueError(f"Invalid result: {str(e)}")


# ==================== EXPORT ====================

__all__ = [
    "ValidatedTransitionRequest",
    "ValidatedParticipantStatus",
    "ValidatedResult",
    "InputSanitizer",
]
