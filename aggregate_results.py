#!/usr/bin/env python3
"""
Benchmark Results Aggregation Script

Collates the per-model `<model>_benchmark.csv` files written by the GPU
benchmark into a single comparison table, ranks the models by throughput and
optionally charts throughput and GPU utilization over the run.
"""

import argparse
from datetime import datetime
from pathlib import Path
from typing import Dict

import numpy as np
import pandas as pd
import matplotlib
matplotlib.use('Agg')  # Use non-interactive backend
import matplotlib.pyplot as plt
import seaborn as sns

from gpu_benchmark.results import CSV_COLUMNS

CSV_SUFFIX = "_benchmark.csv"


class BenchmarkAggregator:
    """Aggregate and compare per-model benchmark CSV files"""

    def __init__(self, results_dir: str):
        self.results_dir = Path(results_dir)
        self.samples: Dict[str, pd.DataFrame] = {}

    def load_results(self) -> Dict[str, pd.DataFrame]:
        """Load every per-model CSV in the results directory"""
        print("📊 Loading benchmark results...")

        for csv_path in sorted(self.results_dir.glob(f"*{CSV_SUFFIX}")):
            model = csv_path.name[:-len(CSV_SUFFIX)]
            try:
                df = pd.read_csv(csv_path)
            except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
                print(f"❌ Error loading {csv_path}: {e}")
                continue

            missing = [c for c in CSV_COLUMNS if c not in df.columns]
            if missing:
                print(f"⚠️ Skipping {csv_path}: missing columns {missing}")
                continue

            self.samples[model] = df
            print(f"✅ Loaded {model} ({len(df)} samples)")

        return self.samples

    def combined_samples(self) -> pd.DataFrame:
        """All samples in one frame, tagged with model and cycle index"""
        frames = []
        for model, df in self.samples.items():
            frame = df.copy()
            frame.insert(0, "Model", model)
            frame.insert(1, "Cycle", np.arange(1, len(frame) + 1))
            frames.append(frame)
        if not frames:
            return pd.DataFrame(columns=["Model", "Cycle"] + CSV_COLUMNS)
        return pd.concat(frames, ignore_index=True)

    def extract_metrics(self) -> pd.DataFrame:
        """One row of summary metrics per model"""
        print("📈 Extracting performance metrics...")

        metrics_data = []
        for model, df in self.samples.items():
            if df.empty:
                metrics_data.append({
                    'Model': model,
                    'Status': 'No Samples',
                    'Samples': 0,
                    'Total Inferences': 0,
                    'Final Throughput (inferences/sec)': 0.0,
                    'Peak Throughput (inferences/sec)': 0.0,
                    'Avg GPU Memory (MB)': 0.0,
                    'Peak GPU Memory (MB)': 0,
                    'Avg GPU Utilization (%)': 0.0,
                    'Avg Temperature (C)': 0.0,
                    'Max Temperature (C)': 0,
                })
                continue

            throughput = df['Throughput (inferences/sec)'].astype(float)
            metrics_data.append({
                'Model': model,
                'Status': 'Success',
                'Samples': len(df),
                'Total Inferences': int(df['Inference Count'].iloc[-1]),
                'Final Throughput (inferences/sec)': round(float(throughput.iloc[-1]), 2),
                'Peak Throughput (inferences/sec)': round(float(throughput.max()), 2),
                'Avg GPU Memory (MB)': round(float(np.mean(df['GPU Memory (MB)'])), 2),
                'Peak GPU Memory (MB)': int(df['GPU Memory (MB)'].max()),
                'Avg GPU Utilization (%)': round(float(np.mean(df['GPU Utilization (%)'])), 2),
                'Avg Temperature (C)': round(float(np.mean(df['Temperature (C)'])), 2),
                'Max Temperature (C)': int(df['Temperature (C)'].max()),
            })

        return pd.DataFrame(metrics_data)

    def create_rankings(self, df: pd.DataFrame) -> pd.DataFrame:
        """Rank models by final throughput (1 = best)"""
        if df.empty:
            return pd.DataFrame()

        successful_df = df[df['Status'] == 'Success'].copy()
        if len(successful_df) == 0:
            print("⚠️ No successful benchmark results to rank")
            return pd.DataFrame()

        successful_df['Throughput Rank'] = successful_df['Final Throughput (inferences/sec)'].rank(
            method='min', ascending=False
        )
        return successful_df.sort_values('Throughput Rank')

    def generate_summary_report(self, df: pd.DataFrame, rankings: pd.DataFrame) -> str:
        """Generate a text comparison report"""
        report = []
        report.append("=" * 60)
        report.append("GPU INFERENCE BENCHMARK COMPARISON")
        report.append("=" * 60)
        report.append(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        report.append("")

        if len(rankings) > 0:
            winner = rankings.iloc[0]
            report.append(f"Highest Throughput: {winner['Model']} "
                          f"({winner['Final Throughput (inferences/sec)']} inferences/sec)")
            report.append("")

        for _, row in df.iterrows():
            report.append(f"{row['Model']}")
            report.append(f"   Status: {row['Status']}")
            report.append(f"   Samples: {row['Samples']}")
            report.append(f"   Total Inferences: {row['Total Inferences']}")
            report.append(f"   Final Throughput: {row['Final Throughput (inferences/sec)']} inferences/sec")
            report.append(f"   Avg GPU Utilization: {row['Avg GPU Utilization (%)']}%")
            report.append(f"   Avg GPU Memory: {row['Avg GPU Memory (MB)']} MB "
                          f"(peak {row['Peak GPU Memory (MB)']} MB)")
            report.append(f"   Avg Temperature: {row['Avg Temperature (C)']}C "
                          f"(max {row['Max Temperature (C)']}C)")
            report.append("")

        report.append("=" * 60)
        return "\n".join(report)

    def create_visualizations(self, combined: pd.DataFrame, output_dir: Path) -> Path:
        """Chart throughput and GPU utilization per cycle for every model"""
        print("📊 Creating performance visualizations...")

        sns.set_palette("husl")
        fig, axes = plt.subplots(1, 2, figsize=(15, 6))
        fig.suptitle('GPU Inference Benchmark', fontsize=16, fontweight='bold')

        sns.lineplot(data=combined, x='Cycle', y='Throughput (inferences/sec)',
                     hue='Model', marker='o', ax=axes[0])
        axes[0].set_title('Throughput', fontweight='bold')

        sns.lineplot(data=combined, x='Cycle', y='GPU Utilization (%)',
                     hue='Model', marker='o', ax=axes[1])
        axes[1].set_title('GPU Utilization', fontweight='bold')
        axes[1].set_ylim(0, 100)

        plt.tight_layout()
        output_dir.mkdir(parents=True, exist_ok=True)
        chart_path = output_dir / "benchmark_comparison.png"
        plt.savefig(chart_path, dpi=150, bbox_inches='tight')
        plt.close(fig)

        print(f"📊 Visualizations saved to: {chart_path}")
        return chart_path

    def save_results(self, df: pd.DataFrame, combined: pd.DataFrame, report: str, output_dir: Path):
        """Save comparison table, combined samples and text report"""
        output_dir.mkdir(parents=True, exist_ok=True)

        comparison_path = output_dir / "model_comparison.csv"
        df.to_csv(comparison_path, index=False)
        print(f"📄 Comparison saved to: {comparison_path}")

        samples_path = output_dir / "all_samples.csv"
        combined.to_csv(samples_path, index=False)
        print(f"📄 Combined samples saved to: {samples_path}")

        report_path = output_dir / "comparison_report.txt"
        with open(report_path, 'w') as f:
            f.write(report)
        print(f"📝 Report saved to: {report_path}")


def main():
    """Main aggregation execution"""
    parser = argparse.ArgumentParser(description="Aggregate GPU benchmark CSV files")
    parser.add_argument("--results-dir", default=".",
                        help="Directory containing <model>_benchmark.csv files")
    parser.add_argument("--output-dir", default=None,
                        help="Directory to save aggregated results (default: results dir)")
    parser.add_argument("--create-charts", action="store_true",
                        help="Create performance visualization charts")

    args = parser.parse_args()
    output_dir = Path(args.output_dir or args.results_dir)

    aggregator = BenchmarkAggregator(args.results_dir)
    if not aggregator.load_results():
        print("❌ No benchmark results found!")
        return 1

    metrics_df = aggregator.extract_metrics()
    print("\n📊 Metrics Summary:")
    print(metrics_df.to_string(index=False))

    rankings_df = aggregator.create_rankings(metrics_df)
    report = aggregator.generate_summary_report(metrics_df, rankings_df)
    print("\n" + report)

    combined = aggregator.combined_samples()
    aggregator.save_results(metrics_df, combined, report, output_dir)

    if args.create_charts and not combined.empty:
        aggregator.create_visualizations(combined, output_dir)

    print("\n✅ Benchmark aggregation completed!")
    return 0


if __name__ == "__main__":
    exit(main())
