import os
from pydantic import BaseModel
from dotenv import load_dotenv

load_dotenv()


class LoyaltySettings(BaseModel):
    # Balance cap applied by the ledger
    max_points: int = int(os.getenv("LOYALTY_MAX_POINTS", "10000"))

    name_max_length: int = int(os.getenv("LOYALTY_NAME_MAX_LENGTH", "255"))
    description_max_length: int = int(os.getenv("LOYALTY_DESCRIPTION_MAX_LENGTH", "500"))

    # Lookahead for plans about to end
    expiring_soon_days: int = int(os.getenv("LOYALTY_EXPIRING_SOON_DAYS", "7"))

    high_points_threshold: int = int(os.getenv("LOYALTY_HIGH_POINTS_THRESHOLD", "1000"))
    low_points_threshold: int = int(os.getenv("LOYALTY_LOW_POINTS_THRESHOLD", "100"))


settings = LoyaltySettings()
