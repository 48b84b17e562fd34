# File location: nssf/config/settings.py
# Environment-driven settings for the NSSF slice selection service

import os

from .ports import get_port

# MongoDB configuration from environment
MONGODB_URI = os.environ.get("MONGODB_URI", "mongodb://localhost:27017")
MONGODB_DATABASE = os.environ.get("MONGODB_DATABASE", "nssf")
MONGODB_ENABLED = os.environ.get("MONGODB_ENABLED", "false").lower() == "true"
MONGODB_TIMEOUT_MS = int(os.environ.get("MONGODB_TIMEOUT_MS", "5000"))

# NRF
NRF_URL = os.environ.get("NRF_URL", f"http://127.0.0.1:{get_port('nrf')}")
NRF_REGISTRATION_ENABLED = os.environ.get("NRF_REGISTRATION_ENABLED", "false").lower() == "true"
NRF_REQUEST_TIMEOUT = float(os.environ.get("NRF_REQUEST_TIMEOUT", "5.0"))
NRF_TOKEN_EXPIRY_MARGIN = int(os.environ.get("NRF_TOKEN_EXPIRY_MARGIN", "30"))  # seconds

# Selection behaviour
# Roaming indication applied to registration and UE configuration update
# requests whose serving PLMN differs from the home PLMN
NSSF_ROAMING_INDICATION = os.environ.get("NSSF_ROAMING_INDICATION", "HOME_ROUTED_ROAMING")
NSSF_SEED_DEFAULTS = os.environ.get("NSSF_SEED_DEFAULTS", "true").lower() == "true"

# Nnssf_NSSAIAvailability
NSSF_NOTIFICATION_TIMEOUT = float(os.environ.get("NSSF_NOTIFICATION_TIMEOUT", "5.0"))
