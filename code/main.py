import os
import time
import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from sklearn.preprocessing import StandardScaler
from sklearn.decomposition import PCA
from pam import PartitionAroundMedoids

sns.set_style("whitegrid")

SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
OUTPUT_DIR = os.path.join(SCRIPT_DIR, 'results')
K_VALUES   = [2, 3, 5, 8]
METRICS    = ['euclidean', 'manhattan']

def load_datasets():
    datasets = {}
    for name in ['D1_Processed.csv', 'D2_Processed.csv', 'D3_Processed.csv']:
        path = os.path.join(SCRIPT_DIR, name)
        if os.path.exists(path):
            df = pd.read_csv(path)
            datasets[name.replace('.csv', '')] = df
            print(f"Loaded {name}: {df.shape[0]} rows x {df.shape[1]} cols")
        else:
            print(f"Not found: {name}")
    return datasets


def preprocess(df):
    numeric = df.select_dtypes(include=[np.number]).fillna(df.mean(numeric_only=True))
    return StandardScaler().fit_transform(numeric.values)


def run_experiments(X, dataset_name):
    """PAM is deterministic, so one fit per (metric, k) is enough."""
    print(f"\n{'='*60}\n{dataset_name}  |  shape: {X.shape}\n{'='*60}")
    results = {metric: {} for metric in METRICS}

    for metric in METRICS:
        for k in K_VALUES:
            if k > len(X):
                print(f"  {metric:<10} k={k}: skipped, only {len(X)} observations")
                continue
            model = PartitionAroundMedoids(k=k, metric=metric)
            t0 = time.time()
            model.fit(X)
            elapsed = time.time() - t0
            results[metric][k] = {'model': model, 'cost': model.inertia_,
                                  'swaps': model.n_iter_, 'time': elapsed}
            print(f"  {metric:<10} k={k}: cost={model.inertia_:.2f}  swaps={model.n_iter_}  "
                  f"build={model.build_time_:.3f}s  swap={model.swap_time_:.3f}s")

    return results

def plot_clusters(X, results, dataset_name):
    if X.shape[1] > 2:
        pca = PCA(n_components=2)
        X2 = pca.fit_transform(X)
        var = pca.explained_variance_ratio_.sum()
        xlabel, ylabel = f"PC1 ({var*100:.1f}% var)", "PC2"
    else:
        X2 = X
        xlabel, ylabel = "Feature 1", "Feature 2"

    for metric in METRICS:
        fig, axes = plt.subplots(2, 2, figsize=(14, 12))
        for ax, k in zip(axes.flatten(), K_VALUES):
            if k not in results[metric]:
                ax.axis('off')
                continue
            model = results[metric][k]['model']
            # medoids are observations, so they project like any other point
            ax.scatter(X2[:, 0], X2[:, 1], c=model.labels_, cmap='tab10',
                       alpha=0.5, s=20, linewidths=0)
            m2 = X2[model.medoid_indices_]
            ax.scatter(m2[:, 0], m2[:, 1], c='red', marker='X',
                       s=200, edgecolors='black', linewidths=1.5, zorder=5)
            ax.set_title(f"k={k}   cost={results[metric][k]['cost']:.1f}", fontweight='bold')
            ax.set_xlabel(xlabel)
            ax.set_ylabel(ylabel)

        plt.suptitle(f"PAM Medoids ({metric}) — {dataset_name}", fontsize=14, fontweight='bold')
        plt.tight_layout()
        plt.savefig(os.path.join(OUTPUT_DIR, f"{dataset_name}_{metric}_clusters.png"), dpi=150, bbox_inches='tight')
        plt.close()


def plot_convergence(results, dataset_name):
    fig, axes = plt.subplots(1, len(METRICS), figsize=(6 * len(METRICS), 5))

    for ax, metric in zip(np.atleast_1d(axes), METRICS):
        for k, r in results[metric].items():
            y = r['model'].cost_history_
            ax.plot(range(len(y)), y, marker='o', linewidth=2, label=f"k={k}")
        ax.set_title(f"Total dissimilarity per swap ({metric})", fontweight='bold')
        ax.set_xlabel("Swap (0 = after BUILD)")
        ax.set_ylabel("Total dissimilarity")
        ax.grid(True, alpha=0.3)
        ax.legend()

    plt.suptitle(f"SWAP Convergence — {dataset_name}", fontsize=14, fontweight='bold')
    plt.tight_layout()
    plt.savefig(os.path.join(OUTPUT_DIR, f"{dataset_name}_convergence.png"), dpi=150, bbox_inches='tight')
    plt.close()

def save_report(all_results):
    lines = [
        "=" * 70,
        "PARTITIONING AROUND MEDOIDS — ANALYSIS REPORT",
        "=" * 70,
        "",
        "BUILD",
        "-" * 70,
        "  First medoid   : object with the minimum sum of dissimilarities",
        "  Next medoids   : nonselected object with the largest gain",
        "                   sum_j max(D_j - d(j,i), 0)",
        "  Time complexity: O(k*n^2)",
        "",
        "SWAP",
        "-" * 70,
        "  Candidates: every (medoid, nonselected object) pair             O(k*(n-k))",
        "  Cost      : nearest / second nearest medoid bookkeeping         O(n) per pair",
        "  Stopping  : no exchange lowers the total dissimilarity",
        "  Total     : O(k*n^2 + T*k*(n-k)*n)  where T = applied swaps",
        "",
        "",
        "RESULTS",
        "=" * 70,
    ]

    for dataset_name, results in all_results.items():
        lines += [
            "",
            f"Dataset: {dataset_name}",
            "-" * 70,
            f"{'Metric':<12} {'k':<6} {'Cost':<16} {'Swaps':<8} {'Time (s)':<10}",
            "-" * 70,
        ]
        for metric in METRICS:
            for k, r in results[metric].items():
                lines.append(f"{metric:<12} {k:<6} {r['cost']:<16.2f} {r['swaps']:<8} {r['time']:<10.3f}")
        lines.append("")

    report = "\n".join(lines)
    path = os.path.join(OUTPUT_DIR, 'analysis_report.txt')
    with open(path, 'w', encoding='utf-8') as f:
        f.write(report)
    print("\n" + report)

def main():
    os.makedirs(OUTPUT_DIR, exist_ok=True)
    print(f"Output directory: {OUTPUT_DIR}")

    datasets = load_datasets()
    if not datasets:
        print(f"No datasets found. Place CSV files in: {SCRIPT_DIR}")
        return

    all_results = {}
    for name, df in datasets.items():
        X = preprocess(df)
        results = run_experiments(X, name)
        all_results[name] = results

        plot_clusters(X, results, name)
        plot_convergence(results, name)
        print(f"Plots saved for {name}")

    save_report(all_results)
    print(f"\nDone. All outputs in: {OUTPUT_DIR}")


if __name__ == "__main__":
    main()
