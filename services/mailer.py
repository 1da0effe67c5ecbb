# -*- coding: utf-8 -*-
"""
התראת מייל על ליד חדש – נשלח ברקע, מרוץ בין 465 ל-587 (המהיר מנצח).
"""

import logging
import os
import smtplib
import ssl
import threading
import time
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Mapping, Optional

LOGGER = logging.getLogger(__name__)

SMTP_HOST = os.environ.get("SMTP_HOST", "smtp.gmail.com")
WATCHDOG_SECONDS = 10


def _credentials():
    return os.environ.get("EMAIL_ADDRESS"), os.environ.get("EMAIL_PASSWORD")


def is_configured() -> bool:
    address, password = _credentials()
    return bool(address and password)


def build_lead_message(lead: Mapping[str, Any]) -> MIMEMultipart:
    address, _ = _credentials()
    msg = MIMEMultipart()
    msg["From"] = address
    msg["To"] = os.environ.get("LEAD_NOTIFY_TO") or address
    msg["Subject"] = f"ליד חדש: {lead.get('name') or ''}".strip()
    if lead.get("email"):
        msg["Reply-To"] = lead["email"]

    lines = [
        f"Name: {lead.get('name') or ''}",
        f"Phone: {lead.get('phone') or ''}",
        f"Email: {lead.get('email') or ''}",
    ]
    for key in ("investmentGoal", "budgetRange", "timeline", "experience", "source", "interestedProjectId"):
        if lead.get(key):
            lines.append(f"{key}: {lead[key]}")
    if lead.get("score") is not None:
        lines.append(f"Score: {lead['score']} ({lead.get('temperature') or ''})")
    if lead.get("message"):
        lines.append("Message:")
        lines.append(str(lead["message"]))
    msg.attach(MIMEText("\n".join(lines), "plain", "utf-8"))
    return msg


def _send_race(msg: MIMEMultipart, done: Optional[threading.Event] = None) -> None:
    address, password = _credentials()
    stop = done or threading.Event()
    # רק ערוץ אחד שולח; אם השליחה שלו נכשלה השני עדיין יכול
    send_lock = threading.Lock()
    ctx = ssl.create_default_context()
    ctx.minimum_version = ssl.TLSVersion.TLSv1_2

    def via_465():
        try:
            t0 = time.perf_counter()
            with smtplib.SMTP_SSL(SMTP_HOST, 465, context=ctx, timeout=5, local_hostname="localhost") as s:
                if stop.is_set():
                    return
                s.ehlo("localhost")
                s.login(address, password)
                with send_lock:
                    if stop.is_set():
                        return
                    s.send_message(msg)
                    stop.set()
                LOGGER.info("MAIL OK via 465 in %dms", int((time.perf_counter() - t0) * 1000))
        except (smtplib.SMTPException, OSError) as e:
            LOGGER.warning("SMTP 465 failed: %r", e)

    def via_587():
        try:
            t0 = time.perf_counter()
            with smtplib.SMTP(SMTP_HOST, 587, timeout=6, local_hostname="localhost") as s:
                if stop.is_set():
                    return
                s.ehlo("localhost")
                s.starttls(context=ctx)
                s.ehlo("localhost")
                s.login(address, password)
                with send_lock:
                    if stop.is_set():
                        return
                    s.send_message(msg)
                    stop.set()
                LOGGER.info("MAIL OK via 587 in %dms", int((time.perf_counter() - t0) * 1000))
        except (smtplib.SMTPException, OSError) as e:
            LOGGER.warning("SMTP 587 failed: %r", e)

    threading.Thread(target=via_465, daemon=True).start()
    threading.Thread(target=via_587, daemon=True).start()

    # Watchdog: אם אף ערוץ לא הצליח תוך 10 שניות – ללוג
    def watchdog():
        if not stop.wait(WATCHDOG_SECONDS):
            LOGGER.error("lead notification: both SMTP channels failed or timed out")
    threading.Thread(target=watchdog, daemon=True).start()


def notify_new_lead(lead: Mapping[str, Any]) -> bool:
    """Queue the notification in the background. False when e-mail is not configured."""
    if not is_configured():
        LOGGER.debug("lead notification skipped, EMAIL_ADDRESS/EMAIL_PASSWORD not set")
        return False
    msg = build_lead_message(lead)
    threading.Thread(target=_send_race, args=(msg,), daemon=True).start()
    return True
