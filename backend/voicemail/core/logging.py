import logging, os, json, sys

REQUEST_KEYS = ["trace_id", "method", "path", "status", "duration_ms"]
DOMAIN_KEYS = ["component", "action", "email_id", "count", "provider", "error_type"]


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base = {
            "time": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        # Merge any extra attributes we care about
        for k in REQUEST_KEYS + DOMAIN_KEYS:
            if hasattr(record, k):
                base[k] = getattr(record, k)
        if record.exc_info and record.exc_info[0] is not None:
            base["exc"] = f"{record.exc_info[0].__name__}: {record.exc_info[1]}"
        return json.dumps(base, ensure_ascii=False, default=str)


def init_logging():
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)
    root.setLevel(level)
    logging.getLogger("uvicorn.access").propagate = False
    logging.getLogger("uvicorn.error").propagate = False
    logging.getLogger("httpx").setLevel(logging.WARNING)
