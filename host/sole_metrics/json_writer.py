import json, threading, time

from .session import SessionReport


class JSONLinesWriter:
    def __init__(self, path: str):
        self.path = path
        self.lock = threading.Lock()
        open(self.path, "a").close()

    def append(self, obj: dict):
        line = json.dumps(obj, separators=(",", ":"))
        with self.lock:
            with open(self.path, "a", buffering=1) as f:
                f.write(line + "\n")


def write_report(writer: JSONLinesWriter, report: SessionReport) -> int:
    """
    One `session_sample` line per sample, then one `session_summary` line.
    Returns the number of lines written.
    """
    for s in report.samples:
        writer.append({"event": "session_sample", "side": report.side,
                       "t": s.timestamp, "values": list(s.values)})
    writer.append({"event": "session_summary", "timestamp": time.time(), **report.to_json()})
    return len(report.samples) + 1
