from __future__ import annotations

import json
import re
import time
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

# e-mail addresses and runs of four or more digits (card, phone, account)
_PII = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}|\d{4,}")

# identify the step rather than carry user data
_TRUSTED_FIELDS = frozenset({"action", "keyword", "namespace", "locator"})

LOG_FILE = "log.jsonl"


def mask_pii(value: str) -> str:
    """Replace e-mail addresses and long digit runs with ``***``."""
    return _PII.sub("***", value)


def _scrub(record: Dict[str, Any], redact: Iterable[str]) -> Dict[str, Any]:
    hidden = set(redact)
    clean: Dict[str, Any] = {}
    for name, value in record.items():
        if name in hidden:
            clean[name] = "***"
        elif name not in _TRUSTED_FIELDS and isinstance(value, str):
            clean[name] = mask_pii(value)
        else:
            clean[name] = value
    return clean


def log_action(
    run_dir: Optional[Path],
    action: str,
    keyword: Optional[str],
    duration: float,
    result: str,
    *,
    namespace: Optional[str] = None,
    locator: Optional[str] = None,
    redact: Optional[Iterable[str]] = None,
    **extra: Any,
) -> None:
    """Append one engine action to ``run_dir/log.jsonl``.

    ``duration`` is in milliseconds and ``result`` is ``"ok"`` or
    ``"error"``.  Fields named in ``redact`` are written as ``***``; other
    free-text fields have PII masked.  Does nothing without a ``run_dir``.
    """

    if run_dir is None:
        return
    record: Dict[str, Any] = {
        "ts": round(time.time(), 3),
        "action": action,
        "keyword": keyword,
        "namespace": namespace,
        "locator": locator,
        "duration": duration,
        "result": result,
    }
    record = {k: v for k, v in record.items() if v is not None}
    record.update(extra)

    target = Path(run_dir)
    target.mkdir(parents=True, exist_ok=True)
    with (target / LOG_FILE).open("a", encoding="utf-8") as fh:
        fh.write(json.dumps(_scrub(record, redact or ())) + "\n")


__all__ = ["LOG_FILE", "log_action", "mask_pii"]
