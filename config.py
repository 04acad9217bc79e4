import os

# 기본 디렉토리 설정
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# 경로 설정
LOG_FILE = os.path.join(BASE_DIR, "launch.log")

# 서버 설정 (호스트 레이어)
DEFAULT_HOST = os.getenv("HOST", "127.0.0.1")
DEFAULT_PORT = int(os.getenv("PORT", "8000"))
SESSION_TTL = int(os.getenv("SESSION_TTL", "3600"))

# 백엔드 REST API 설정
BACKEND_BASE_URL = os.getenv("BACKEND_BASE_URL", "http://localhost:5001")
BACKEND_TOKEN = os.getenv("BACKEND_TOKEN", "")
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "10"))

# 타이머 설정
TIMER_TICK_SECONDS = float(os.getenv("TIMER_TICK_SECONDS", "1"))
TIMER_WARNING_SECONDS = 600   # 10분 미만이면 warning
TIMER_DANGER_SECONDS = 300    # 5분 미만이면 danger

# 제출 후 결과 화면 이동 지연 (초)
REDIRECT_DELAY_SECONDS = 1.5
