import os
from dotenv import load_dotenv

load_dotenv(override=False)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./meal_planner.db")

# LLM Selection Configuration
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "ollama").lower() # Options: ollama, openrouter, openai
LLM_API_KEY = os.getenv("LLM_API_KEY") or os.getenv("OPENROUTER_API_KEY")
LLM_MODEL = os.getenv("LLM_MODEL") # Optional override
OLLAMA_URL = os.getenv("OLLAMA_URL", "http://localhost:11434")
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "120"))

PLAN_TEMPERATURE = float(os.getenv("PLAN_TEMPERATURE", "0.7"))
ANALYZER_TEMPERATURE = float(os.getenv("ANALYZER_TEMPERATURE", "0.2"))

# Ingredients currently cheap at the market, fed into plan generation
CHEAP_INGREDIENTS = [
    item.strip()
    for item in os.getenv("CHEAP_INGREDIENTS", "キャベツ,もやし,鶏むね肉,卵,豆腐").split(",")
    if item.strip()
]

LANGFUSE_PUBLIC_KEY = os.getenv("LANGFUSE_PUBLIC_KEY")
LANGFUSE_SECRET_KEY = os.getenv("LANGFUSE_SECRET_KEY")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
