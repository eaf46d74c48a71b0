from pydantic import BaseModel
import os

class Settings(BaseModel):
    api_title: str = os.getenv("API_TITLE", "Truck Route Facts API")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    # How many action instructions are echoed back in the debug payload
    debug_sample_limit: int = int(os.getenv("DEBUG_SAMPLE_LIMIT", "5"))

settings = Settings()
