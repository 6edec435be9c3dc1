"""Benchmark split_message on long synthetic replies.

Run:
    uv run python scripts/benchmark_message_splitter.py
"""

from __future__ import annotations

import statistics
import time

from replysplit.config import SplitOptions
from replysplit.message_splitter import split_message

SIZES = [100, 1_000, 10_000]  # paragraphs per reply
RUNS = 5
OPTIONS = SplitOptions(max_lines=20, max_paragraphs=4)


def build_reply(paragraphs: int) -> str:
    blocks: list[str] = []
    for i in range(paragraphs):
        if i % 10 == 0:
            blocks.append(f"```python\ndef step_{i}():\n\n    return {i}\n```")
        elif i % 3 == 0:
            blocks.append("\n".join(f"- item {i}.{j}" for j in range(5)))
        else:
            blocks.append(f"Paragraph {i} explains one more detail of the answer.")
    return "\n\n".join(blocks)


def bench(text: str) -> tuple[float, int]:
    measurements: list[float] = []
    messages = 0
    for _ in range(RUNS):
        started = time.perf_counter()
        messages = len(split_message(text, OPTIONS))
        measurements.append(time.perf_counter() - started)
    return statistics.median(measurements), messages


def main() -> None:
    print("Benchmark: split_message on mixed paragraphs/lists/fences")
    print(f"runs per case: {RUNS}")
    print(f"limits: max_lines={OPTIONS.max_lines} max_paragraphs={OPTIONS.max_paragraphs}")

    for n in SIZES:
        text = build_reply(n)
        median, messages = bench(text)
        print(
            f"  paragraphs={n:6d} chars={len(text):8d} "
            f"messages={messages:5d} median={median * 1000:9.3f}ms"
        )


if __name__ == "__main__":
    main()
