"""HTTP boundary for sqlanalyzer (FastAPI)."""

from sqlanalyzer.api.app import create_app
from sqlanalyzer.api.deps import require_analyst
from sqlanalyzer.api.settings import ApiSettings, get_api_settings

__all__ = ["ApiSettings", "create_app", "get_api_settings", "require_analyst"]
