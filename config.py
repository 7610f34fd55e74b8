import os
from dotenv import load_dotenv

# Load .env file
load_dotenv()

class Config:
    # --- MongoDB Settings ---
    MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017/")
    DB_NAME = os.getenv("DB_NAME", "bizhub") # Can be overridden in .env

    # --- Environment ---
    ENV = os.getenv("ENV", "development") # "development", "testing" or "production"
    FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

    # --- Security Settings ---
    # In production, ALWAYS set this in .env. Never use the fallback.
    SECRET_KEY = os.getenv("SECRET_KEY")
    if ENV == "production" and not SECRET_KEY:
        raise ValueError("SECRET_KEY environment variable is mandatory in production!")
    elif not SECRET_KEY:
        SECRET_KEY = "dev_secret_key_change_in_prod"
    ALGORITHM = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 7)) # 7 Days

    # --- Startup ---
    # Index creation on boot; scripts/setup_indexes.py does the same on demand
    CREATE_INDEXES_ON_STARTUP = os.getenv("CREATE_INDEXES_ON_STARTUP", "true").lower() == "true"

config = Config()
