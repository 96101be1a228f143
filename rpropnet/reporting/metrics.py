"""Progress observers attached to the training loop."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Mapping, Sequence


class LifesignPrinter:
    """Print training progress.

    ``minimal`` prints one line per repetition, ``full`` additionally prints
    the minimum reached threshold every ``lifesign_step`` steps.
    """

    def __init__(
        self,
        level: str = "minimal",
        *,
        hidden: Sequence[int] = (),
        threshold: float | None = None,
        repetitions: int = 1,
    ) -> None:
        if level not in {"minimal", "full"}:
            raise ValueError("LifesignPrinter level must be 'minimal' or 'full'")
        self.level = level
        self.hidden = list(hidden)
        self.threshold = threshold
        self.repetitions = repetitions

    def on_step(self, step: int, metrics: Mapping[str, float]) -> None:
        if self.level != "full":
            return
        print(f"{step:>10}\tmin thresh: {metrics.get('min.reached.threshold', float('nan')):.6g}")

    def on_repetition(self, index: int, metrics: Mapping[str, float]) -> None:
        width = len(str(self.repetitions))
        hidden = ", ".join(str(h) for h in self.hidden) or "0"
        header = (
            f"hidden: {hidden}    thresh: {self.threshold}    "
            f"rep: {index + 1:>{width}}/{self.repetitions}    steps: "
        )
        if metrics.get("converged"):
            line = f"{int(metrics['steps']):>7}\terror: {metrics['error']:.5f}"
            if "aic" in metrics:
                line += f"\taic: {metrics['aic']:.5f}\tbic: {metrics['bic']:.5f}"
        else:
            line = f"stepmax\tmin thresh: {metrics['min.reached.threshold']:.6g}"
        print(header + line)


class JsonlSink:
    """Append-only JSONL writer for progress records."""

    def __init__(self, path: str | Path, *, seed: int | None = None) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.seed = seed
        self._repetition = 0

    def _write(self, kind: str, counter: int, metrics: Mapping[str, float]) -> None:
        record = {"kind": kind, "repetition": self._repetition + 1, "seed": self.seed}
        record["step" if kind == "step" else "index"] = int(counter)
        record.update({k: float(v) for k, v in metrics.items() if isinstance(v, (int, float))})
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record) + "\n")

    def on_step(self, step: int, metrics: Mapping[str, float]) -> None:
        self._write("step", step, metrics)

    def on_repetition(self, index: int, metrics: Mapping[str, float]) -> None:
        self._write("repetition", index + 1, metrics)
        self._repetition = index + 1


class CsvSink:
    """Write per-repetition outcomes to CSV with a stable schema."""

    FIELDS = ("repetition", "converged", "steps", "error", "reached.threshold", "aic", "bic")

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")

    def on_repetition(self, index: int, metrics: Mapping[str, float]) -> None:
        row = {"repetition": index + 1}
        row.update({k: float(v) for k, v in metrics.items() if k in self.FIELDS})
        with self.path.open("a", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=list(self.FIELDS))
            if handle.tell() == 0:
                writer.writeheader()
            writer.writerow(row)


__all__ = ["CsvSink", "JsonlSink", "LifesignPrinter"]
