import os
from pathlib import Path
from dotenv import load_dotenv

_BACKEND_ROOT = Path(__file__).resolve().parents[1]
_BACKEND_ENV_PATH = _BACKEND_ROOT / ".env"
load_dotenv(dotenv_path=_BACKEND_ENV_PATH, override=True)

OPENAI_API_KEY = str(os.getenv("OPENAI_API_KEY") or "").strip()
INTERVIEW_MODEL = str(os.getenv("INTERVIEW_MODEL") or "gpt-4o-mini").strip()
REPORT_MODEL = str(os.getenv("REPORT_MODEL") or "gpt-4o-mini").strip()
TRANSCRIBE_MODEL = str(os.getenv("TRANSCRIBE_MODEL") or "whisper-1").strip()
TTS_MODEL = str(os.getenv("TTS_MODEL") or "tts-1").strip()
TTS_VOICE = str(os.getenv("TTS_VOICE") or "alloy").strip()

# must exceed inference + synthesis latency with margin
TURN_TIMEOUT_SEC = max(1.0, float(os.getenv("TURN_TIMEOUT_SEC", "12")))
LLM_TIMEOUT_SEC = max(1.0, float(os.getenv("LLM_TIMEOUT_SEC", "10")))
CONTEXT_CHAR_LIMIT = max(0, int(os.getenv("CONTEXT_CHAR_LIMIT", "2000")))
CAPTURE_MAX_SEC = max(1.0, float(os.getenv("CAPTURE_MAX_SEC", "15")))
QA_MODE = os.getenv("QA_MODE", "false").lower() == "true"
