"""
ScentMatch Backend — Auth Request/Response Schemas
====================================================

What:  API contract for /auth/signup, /auth/login, /auth/verify, /auth/me.

Why request fields are Optional:
    A missing field must produce the same `400 {"success": false, "error": ...}`
    as a blank one, with a message naming what is required. Declaring the
    fields optional lets AuthService own that check instead of FastAPI's
    generic 422 body.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from scentmatch.schemas.common import CamelModel


class SignupRequest(CamelModel):
    email: Optional[str] = Field(default=None, description="Contact email (stored only as a hash)")
    phone: Optional[str] = Field(default=None, description="Contact phone (stored only as a hash)")


class LoginRequest(CamelModel):
    email: Optional[str] = Field(default=None)


class VerifyRequest(CamelModel):
    user_id: Optional[str] = Field(default=None, description="Identifier returned by signup/login")
    code: Optional[str] = Field(default=None, description="6-digit login code")


class CodeIssuedResponse(CamelModel):
    """
    Returned by signup (201) and login (200).

    otp_code is only populated while EXPOSE_OTP_CODE is enabled, as a
    development stand-in for SMS/email delivery.
    """

    success: bool = Field(default=True)
    message: str
    user_id: uuid.UUID
    otp_code: Optional[str] = Field(default=None)


class CurrentUserResponse(CamelModel):
    success: bool = Field(default=True)
    user_id: uuid.UUID
    created_at: datetime
