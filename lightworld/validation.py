"""
Input validation shared by the recovery flow and the account commands.

Each check returns an error message suitable for display, or None when the
input is acceptable.
"""

import re
from typing import Dict, Optional


# local-part @ domain . tld, no whitespace anywhere. Match with fullmatch.
EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@.]+(\.[^\s@.]+)*\.[a-z]{2,}", re.IGNORECASE)

PHONE_PATTERN = re.compile(r"[+]?[(]?[0-9]{1,4}[)]?[-\s.]?[(]?[0-9]{1,4}[)]?[-\s.]?[0-9]{1,9}")

OTP_DIGIT_PATTERN = re.compile(r"[0-9]?")

GENDERS = ("male", "female", "other")

# The web registration form only asks for 6
REGISTER_MIN_PASSWORD_LENGTH = 6


def is_valid_email(email: str) -> bool:
    return bool(email) and EMAIL_PATTERN.fullmatch(email) is not None


def validate_email(email: str) -> Optional[str]:
    """Check an email address entered by the user"""
    if not email or not email.strip():
        return "Please enter your email address"
    if not is_valid_email(email):
        return "Please enter a valid email"
    return None


def is_otp_digit(value: str) -> bool:
    """True for an empty string or exactly one ASCII digit"""
    return OTP_DIGIT_PATTERN.fullmatch(value) is not None


def validate_password_pair(password: str, confirm: str, min_length: int) -> Optional[str]:
    """
    Check a new password and its confirmation.

    The match check runs before the length check, so a mismatch is always
    reported as a mismatch.
    """
    if not password or not confirm:
        return "Please fill in all fields"
    if password != confirm:
        return "Passwords do not match"
    if len(password) < min_length:
        return f"Password must be at least {min_length} characters"
    return None


def validate_phone(number: str, label: str = "phone number") -> Optional[str]:
    if number and not PHONE_PATTERN.fullmatch(number):
        return f"Please enter a valid {label}"
    return None


def validate_registration(user_data: Dict[str, str], confirm_password: str) -> Optional[str]:
    """Same checks, in the same order, as the web registration form"""
    required = ("firstName", "lastName", "email", "password", "whatsappNumber", "gender")
    if any(not user_data.get(key) for key in required):
        return "Please fill in all required fields"
    if user_data["password"] != confirm_password:
        return "Passwords do not match"
    if len(user_data["password"]) < REGISTER_MIN_PASSWORD_LENGTH:
        return f"Password must be at least {REGISTER_MIN_PASSWORD_LENGTH} characters"
    if not is_valid_email(user_data["email"]):
        return "Please enter a valid email"
    if user_data["gender"] not in GENDERS:
        return "Please select a gender"
    return (
        validate_phone(user_data["whatsappNumber"], "WhatsApp number")
        or validate_phone(user_data.get("phoneNumber", ""))
    )


def validate_profile(profile_data: Dict[str, str]) -> Optional[str]:
    if not all(profile_data.get(key) for key in ("firstName", "lastName", "whatsappNumber")):
        return "Please fill in all required fields"
    return (
        validate_phone(profile_data["whatsappNumber"], "WhatsApp number")
        or validate_phone(profile_data.get("phoneNumber", ""))
    )
