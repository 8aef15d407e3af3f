# ===============================================================
# logging_setup.py
# ===============================================================
import logging
import re
import sys
from typing import Optional

import sentry_sdk

# ------------------------------------------------
# 🔒 Secret Filter to hide tokens / API keys
# ------------------------------------------------
class SecretFilter(logging.Filter):
    BEARER_PATTERN = re.compile(r"(Bearer|Basic)\s+[A-Za-z0-9._~+/=-]{8,}", re.IGNORECASE)
    KEY_PATTERN = re.compile(
        r"(?:secret|token|key|password|api)[^\s=:'\"]*['\"]?[:=]\s*['\"]?([\w.-]+)['\"]?",
        re.IGNORECASE
    )

    def _mask(self, value: str) -> str:
        value = self.BEARER_PATTERN.sub(r"\1 [SECRET]", value)
        return self.KEY_PATTERN.sub("[REDACTED]", value)

    def filter(self, record):
        record.msg = self._mask(str(record.msg))
        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._mask(str(v)) for k, v in record.args.items()}
            else:
                record.args = tuple(self._mask(str(a)) for a in record.args)
        return True


FORMATTER = logging.Formatter(
    "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    "%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger("DelipuCash")

_configured = False


def configure_logging(level: str = "INFO", sentry_dsn: Optional[str] = None, environment: str = "production"):
    """
    Route every logger through one stdout handler with secrets masked.
    Safe to call more than once.
    """
    global _configured

    numeric_level = getattr(logging, (level or "INFO").upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(numeric_level)

    if not _configured:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(FORMATTER)
        handler.addFilter(SecretFilter())
        root.addHandler(handler)

        # Ensure uvicorn/gunicorn logs flow through this formatter
        for noisy in ("uvicorn", "uvicorn.error", "uvicorn.access",
                      "gunicorn", "gunicorn.error", "gunicorn.access"):
            logging.getLogger(noisy).handlers = []
            logging.getLogger(noisy).propagate = True

        # httpx logs full request URLs at INFO
        logging.getLogger("httpx").setLevel(logging.WARNING)

        _configured = True

    # ------------------------------------------------
    # Optional: Initialize Sentry
    # ------------------------------------------------
    if sentry_dsn:
        sentry_sdk.init(
            dsn=sentry_dsn,
            traces_sample_rate=1.0,
            environment=environment,
        )

    logger.info("✅ Secure logger initialized (tokens masked from output).")
    return logger
