import os
from dataclasses import dataclass

from dotenv import load_dotenv


BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
load_dotenv(dotenv_path=os.path.join(BACKEND_DIR, ".env"))


@dataclass(frozen=True)
class Settings:
    database_url: str = os.getenv("EDULINK_DATABASE_URL", f"sqlite:///{os.path.join(BACKEND_DIR, 'edulink.db')}")
    log_level: str = os.getenv("EDULINK_LOG_LEVEL", "INFO")
    seed_demo: bool = os.getenv("EDULINK_SEED_DEMO", "false").lower() == "true"
    total_school_days: int = int(os.getenv("EDULINK_TOTAL_SCHOOL_DAYS", "120"))
    total_cocu_days: int = int(os.getenv("EDULINK_TOTAL_COCU_DAYS", "12"))
    high_risk_below: float = float(os.getenv("EDULINK_HIGH_RISK_BELOW", "50"))
    low_risk_below: float = float(os.getenv("EDULINK_LOW_RISK_BELOW", "80"))


settings = Settings()
