# services/ai_client.py
"""
Google Gemini (REST) client – generate / chat / streaming chat.
"""
import json
import logging
import os
import time
from typing import Any, Dict, Iterator, List, Optional

import requests

LOGGER = logging.getLogger(__name__)

# ===== תצורה =====
GEMINI_URL = os.environ.get("GEMINI_URL", "https://generativelanguage.googleapis.com/v1beta")
DEFAULT_MODEL = os.environ.get("AI_MODEL", "gemini-2.5-flash")
DEFAULT_TIMEOUT = int(os.getenv("AI_TIMEOUT", "60"))
RETRIES = int(os.getenv("AI_RETRIES", "2"))  # ניסיונות חוזרים על שגיאות רשת / 5xx
BACKOFF = float(os.getenv("AI_BACKOFF", "0.6"))


class AIError(RuntimeError):
    """The model call failed after retries."""


class AINotConfigured(AIError):
    """GOOGLE_API_KEY is missing."""


class AIResponseError(AIError):
    """The model answered, but not with what we asked for (e.g. bad JSON)."""


def api_key() -> str:
    return (os.environ.get("GOOGLE_API_KEY") or "").strip()


def is_configured() -> bool:
    return bool(api_key())


def _retryable(status: int) -> bool:
    return status == 429 or status >= 500


def _endpoint(model: str, action: str) -> str:
    return f"{GEMINI_URL.rstrip('/')}/models/{model}:{action}"


def _headers() -> Dict[str, str]:
    key = api_key()
    if not key:
        raise AINotConfigured("AI not configured")
    return {"Content-Type": "application/json", "x-goog-api-key": key}


# ===== כלי רשת =====
def _request(model: str, payload: dict, timeout: Optional[int] = None) -> dict:
    """
    בקשת generateContent עם ניסיונות חוזרים בסיסיים.
    """
    headers = _headers()
    url = _endpoint(model, "generateContent")
    to = timeout or DEFAULT_TIMEOUT
    last_err: Optional[Exception] = None

    for attempt in range(RETRIES + 1):
        try:
            resp = requests.post(url, json=payload, headers=headers, timeout=to)
        except requests.RequestException as e:
            last_err = AIError(f"Gemini request error: {e}")
        else:
            if resp.status_code == 200:
                # גוף לא תקין ב-200 לא ינוסה שוב
                try:
                    return resp.json()
                except ValueError as e:
                    LOGGER.error("gemini returned invalid JSON: %s", e)
                    raise AIResponseError(f"Gemini returned invalid JSON: {e}") from e
            detail = resp.text[:300]
            last_err = AIError(f"Gemini HTTP error {resp.status_code}: {detail}")
            if not _retryable(resp.status_code):
                break

        # אם נכשל – ננסה שוב עם backoff קטן
        if attempt < RETRIES:
            time.sleep(BACKOFF * (attempt + 1))

    LOGGER.error("gemini call failed: %s", last_err)
    raise last_err if last_err else AIError("Unknown network error")


def _generation_config(temperature: Optional[float], json_mode: bool) -> dict:
    config: Dict[str, Any] = {"thinkingConfig": {"thinkingBudget": 0}}
    if temperature is not None:
        config["temperature"] = temperature
    if json_mode:
        config["responseMimeType"] = "application/json"
    return config


def _to_contents(messages: List[Dict[str, str]]) -> List[dict]:
    contents = []
    for m in messages:
        role = "model" if m.get("role") == "assistant" else "user"
        contents.append({"role": role, "parts": [{"text": m.get("content") or ""}]})
    return contents


def _text_of(data: dict) -> str:
    for cand in data.get("candidates") or []:
        parts = (cand.get("content") or {}).get("parts") or []
        text = "".join(p.get("text", "") for p in parts if not p.get("thought"))
        if text:
            return text
    return ""


def clean_json_response(text: str) -> str:
    """Strip ```json fences the model sometimes adds."""
    cleaned = (text or "").strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


# ===== API עיקריים =====
def generate(prompt: str, model: str = None, temperature: float = None,
             json_mode: bool = False, system: str = None, timeout: int = None) -> str:
    """
    הנחיה בודדת – מחזיר את הטקסט של המודל.
    """
    payload: Dict[str, Any] = {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "generationConfig": _generation_config(temperature, json_mode),
    }
    if system:
        payload["systemInstruction"] = {"parts": [{"text": system}]}
    data = _request(model or DEFAULT_MODEL, payload, timeout=timeout)
    return _text_of(data)


def generate_json(prompt: str, model: str = None, temperature: float = None, timeout: int = None) -> Any:
    text = generate(prompt, model=model, temperature=temperature, json_mode=True, timeout=timeout)
    try:
        return json.loads(clean_json_response(text))
    except json.JSONDecodeError as e:
        raise AIResponseError(f"model did not return valid JSON: {e}") from e


def chat(system: str, messages: List[Dict[str, str]], model: str = None,
         temperature: float = None, timeout: int = None) -> str:
    """
    שיחת צ'אט – messages בפורמט [{role: user|assistant, content}].
    """
    payload = {
        "systemInstruction": {"parts": [{"text": system}]},
        "contents": _to_contents(messages),
        "generationConfig": _generation_config(temperature, False),
    }
    return _text_of(_request(model or DEFAULT_MODEL, payload, timeout=timeout))


def stream_chat(system: str, messages: List[Dict[str, str]], model: str = None,
                temperature: float = None, timeout: int = None) -> Iterator[str]:
    """
    streamGenerateContent (SSE) – מחזיר גנרטור של קטעי טקסט.
    שגיאה לפני שהזרם התחיל נזרקת כ-AIError.
    """
    headers = _headers()
    payload = {
        "systemInstruction": {"parts": [{"text": system}]},
        "contents": _to_contents(messages),
        "generationConfig": _generation_config(temperature, False),
    }
    url = _endpoint(model or DEFAULT_MODEL, "streamGenerateContent")
    try:
        resp = requests.post(url, params={"alt": "sse"}, json=payload, headers=headers,
                             timeout=timeout or DEFAULT_TIMEOUT, stream=True)
    except requests.RequestException as e:
        raise AIError(f"Gemini request error: {e}") from e
    if resp.status_code != 200:
        detail = resp.text[:300]
        resp.close()
        raise AIError(f"Gemini HTTP error {resp.status_code}: {detail}")
    return _iter_sse_text(resp)


def _iter_sse_text(resp) -> Iterator[str]:
    try:
        for raw in resp.iter_lines(decode_unicode=True):
            if not raw or not raw.startswith("data:"):
                continue
            chunk = raw[5:].strip()
            if not chunk or chunk == "[DONE]":
                continue
            try:
                data = json.loads(chunk)
            except json.JSONDecodeError:
                LOGGER.warning("skipping malformed SSE chunk")
                continue
            text = _text_of(data)
            if text:
                yield text
    except requests.RequestException as e:
        raise AIError(f"Gemini stream error: {e}") from e
    finally:
        resp.close()


# ===== עזרי דיבוג =====
def info() -> dict:
    """
    מידע בסיסי על ברירות־מחדל – לעזור בדיבוג.
    """
    return {
        "GEMINI_URL": GEMINI_URL,
        "DEFAULT_MODEL": DEFAULT_MODEL,
        "DEFAULT_TIMEOUT": DEFAULT_TIMEOUT,
        "RETRIES": RETRIES,
        "BACKOFF": BACKOFF,
        "CONFIGURED": is_configured(),
    }
