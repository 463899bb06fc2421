"""In-process counters and latency histograms.

No external dependencies. Safe for a single-process FastAPI deployment.
"""

from typing import Dict, Any, Optional, Tuple, List
import threading


_LOCK = threading.Lock()

# (name, sorted label pairs) -> value
_COUNTERS: Dict[Tuple[str, Tuple[Tuple[str, str], ...]], int] = {}

# name -> {"bins": [...], "series": {labels -> {"counts": [...], "sum_ms": float}}}
_DEFAULT_BINS: List[int] = [25, 50, 100, 200, 500, 1000, 3000, 5000, 15000]
_HISTOGRAMS: Dict[str, Dict[str, Any]] = {}


def _labels_key(labels: Optional[Dict[str, str]]) -> Tuple[Tuple[str, str], ...]:
    if not labels:
        return tuple()
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def inc_counter(metric: str, labels: Optional[Dict[str, str]] = None, amount: int = 1) -> None:
    key = (metric, _labels_key(labels))
    with _LOCK:
        _COUNTERS[key] = _COUNTERS.get(key, 0) + amount


def get_counter(metric: str, labels: Optional[Dict[str, str]] = None) -> int:
    with _LOCK:
        return _COUNTERS.get((metric, _labels_key(labels)), 0)


def record_timing(metric: str, value_ms: Optional[float], labels: Optional[Dict[str, str]] = None) -> None:
    if value_ms is None:
        return
    lk = _labels_key(labels)
    with _LOCK:
        hist = _HISTOGRAMS.setdefault(metric, {"bins": list(_DEFAULT_BINS), "series": {}})
        bins: List[int] = hist["bins"]
        entry = hist["series"].get(lk)
        if entry is None:
            entry = {"counts": [0] * (len(bins) + 1), "sum_ms": 0.0}
            hist["series"][lk] = entry
        idx = next((i for i, b in enumerate(bins) if value_ms <= b), len(bins))
        entry["counts"][idx] += 1
        entry["sum_ms"] += float(value_ms)


def record_price_source(source: str) -> None:
    inc_counter("price_quotes_total", {"source": source})


def record_tier_outcome(tier: str, outcome: str) -> None:
    inc_counter("tier_attempts_total", {"tier": tier, "outcome": outcome})


def get_metrics_snapshot() -> Dict[str, Any]:
    with _LOCK:
        counters = [
            {"name": name, "labels": dict(labels_tuple), "value": value}
            for (name, labels_tuple), value in _COUNTERS.items()
        ]
        histograms = [
            {
                "name": name,
                "labels": dict(labels_tuple),
                "bins_ms": list(h["bins"]),
                "counts": list(entry["counts"]),
                "sum_ms": entry["sum_ms"],
            }
            for name, h in _HISTOGRAMS.items()
            for labels_tuple, entry in h["series"].items()
        ]
    return {"counters": counters, "histograms": histograms}


def reset_metrics() -> None:
    with _LOCK:
        _COUNTERS.clear()
        _HISTOGRAMS.clear()
