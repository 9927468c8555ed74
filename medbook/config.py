"""Configuration for the appointment scheduling backend.

All tunables centralized here - override through environment variables or a
.env file without touching code.
"""
import os

from dotenv import load_dotenv

load_dotenv()

# Storage
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///medbook.db")

# Slot generation
SLOT_DURATION_MINUTES = int(os.getenv("SLOT_DURATION_MINUTES", "30"))
# "start_point": slot excluded only when its start falls inside a booking
# "interval": slot excluded on any overlap with a booking
OVERLAP_POLICY = os.getenv("OVERLAP_POLICY", "start_point")

# Login throttling
MAX_LOGIN_ATTEMPTS = int(os.getenv("MAX_LOGIN_ATTEMPTS", "5"))
LOCKOUT_WINDOW_SECONDS = float(os.getenv("LOCKOUT_WINDOW_SECONDS", "60"))
LOGIN_THROTTLE_BACKEND = os.getenv("LOGIN_THROTTLE_BACKEND", "memory")  # memory | database

# Identity provider
IDENTITY_BACKEND = os.getenv("IDENTITY_BACKEND", "local")  # local | http
AUTH_API_URL = os.getenv("AUTH_API_URL", "http://localhost:54321")
AUTH_API_KEY = os.getenv("AUTH_API_KEY", "")

# HTTP transport
HTTP_TIMEOUT_SECONDS = int(os.getenv("HTTP_TIMEOUT_SECONDS", "15"))
HTTP_MAX_RETRIES = int(os.getenv("HTTP_MAX_RETRIES", "3"))

# Sessions and password resets
SESSION_TTL_SECONDS = int(os.getenv("SESSION_TTL_SECONDS", "3600"))
PASSWORD_RESET_TTL_SECONDS = int(os.getenv("PASSWORD_RESET_TTL_SECONDS", "3600"))

# Password policy
PASSWORD_MIN_LENGTH = 12
PASSWORD_SPECIAL_CHARACTERS = '!@#$%^&*(),.?":{}|<>'

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
