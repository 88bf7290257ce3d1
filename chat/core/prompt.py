"""Fixed prompt text used when nothing else is configured."""

SYSTEM_PROMPT = "אתה צ'אטבוט עוזר, ענה בקצרה וברורה."

# Returned to the caller when the model answers with empty content.
FALLBACK_REPLY = "לא הצלחתי לנסח תשובה."
