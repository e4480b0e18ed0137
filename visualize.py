# visualize.py
import os
import matplotlib.pyplot as plt


def _ensure_parent(outpath):
    parent = os.path.dirname(outpath)
    if parent:
        os.makedirs(parent, exist_ok=True)


def plot_miss_rate_sweep(summaries, outpath):
    _ensure_parent(outpath)
    labels = [s["label"] for s in summaries]
    miss_rates = [s["miss_rate"] for s in summaries]
    plt.figure(figsize=(max(4, len(labels) * 1.2), 4))
    plt.bar(range(len(labels)), miss_rates)
    plt.xticks(range(len(labels)), labels, rotation=30, ha="right")
    plt.title("Miss Rate by Cache Geometry")
    plt.ylabel("Miss rate")
    plt.ylim(0, 1)
    plt.grid(True, axis="y")
    plt.tight_layout()
    plt.savefig(outpath)
    plt.close()

def plot_hit_miss_rate(hit_rate, outpath):
    _ensure_parent(outpath)
    plt.figure(figsize=(4,4))
    labels = ['Hit', 'Miss']
    sizes = [hit_rate, 1.0 - hit_rate]
    plt.pie(sizes, labels=labels, autopct='%1.1f%%')
    plt.title("Cache Hit/Miss Rate")
    plt.tight_layout()
    plt.savefig(outpath)
    plt.close()
