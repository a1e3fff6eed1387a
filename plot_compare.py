import re
import argparse
import matplotlib.pyplot as plt
import numpy as np
from pathlib import Path


def parse_log(log_path: Path):
    episodes = []
    avg_returns = []

    pattern = re.compile(r"episode=(\d+).*avg_return=(-?[0-9.]+)")

    with open(log_path, "r", encoding="utf-8") as f:
        for line in f:
            if "episode_stats" not in line:
                continue
            m = pattern.search(line)
            if m:
                episodes.append(int(m.group(1)))
                avg_returns.append(float(m.group(2)))

    return np.array(episodes, dtype=np.int64), np.array(avg_returns, dtype=np.float64)


def smooth_xy(x, y, window: int):
    if window <= 1:
        return x, y
    if len(y) < window:
        return x, y
    y_s = np.convolve(y, np.ones(window) / window, mode="valid")
    x_s = x[window - 1 :]
    return x_s, y_s


def main():
    parser = argparse.ArgumentParser(description="Compare moving-average return curves from training logs")
    parser.add_argument("logs", nargs="+", help="Training log files (stdout captured from a run)")
    parser.add_argument("--labels", nargs="*", default=None, help="Legend labels, one per log")
    parser.add_argument("--output", default="compare_avg_return.png", help="Output image path")
    parser.add_argument("--smooth", type=int, default=0, help="Moving average window (0/1 = off)")
    args = parser.parse_args()

    if args.labels and len(args.labels) != len(args.logs):
        parser.error("--labels must have one entry per log")
    labels = args.labels or [Path(p).stem for p in args.logs]

    plt.figure(figsize=(9, 5))
    for log, label in zip(args.logs, labels):
        path = Path(log)
        if not path.exists():
            raise FileNotFoundError(f"Log not found: {path}")
        x, y = parse_log(path)
        if len(x) == 0:
            raise RuntimeError(f"No episode_stats found in log: {path}")
        x, y = smooth_xy(x, y, args.smooth)
        plt.plot(x, y, linewidth=2, label=label)

    plt.xlabel("Episode")
    plt.ylabel("Average return (window)")
    plt.title("Average return comparison")
    plt.grid(True)
    plt.legend()
    plt.tight_layout()

    out = Path(args.output)
    out.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(out, dpi=300)
    print(f"Saved: {out.resolve()}")


if __name__ == "__main__":
    main()
