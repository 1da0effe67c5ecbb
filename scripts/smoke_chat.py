# scripts/smoke_chat.py
# בדיקת עשן לעוזר הצ'אט מול Gemini (דורש GOOGLE_API_KEY)
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dotenv import load_dotenv  # noqa: E402

from services import ai_client, chat_assistant  # noqa: E402

load_dotenv()

if not ai_client.is_configured():
    raise SystemExit("GOOGLE_API_KEY not set")

question = " ".join(sys.argv[1:]) or "אילו פרויקטים יש לכם בדאונטאון דובאי?"
messages = chat_assistant.normalize_messages([{"role": "user", "content": question}])

print(ai_client.info())
for chunk in chat_assistant.stream_reply(messages):
    print(chunk, end="", flush=True)
print()
