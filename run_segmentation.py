#!/usr/bin/env python3
"""
Bank Customer Segmentation - Main Runner
========================================

Command-line interface for the segmentation pipeline.

Usage:
    python run_segmentation.py --task elbow --data data/bank_transactions.csv
    python run_segmentation.py --task segment --data data/bank_transactions.csv --n-clusters 5
    python run_segmentation.py --task generate --output data

Examples:
    # Inspect the elbow curve before choosing k
    python run_segmentation.py --task elbow --data data/bank_transactions.csv --k-max 12

    # Segment with 5 clusters and a fixed seed
    python run_segmentation.py --task segment --data data/bank_transactions.csv \\
        --n-clusters 5 --seed 7
"""

import argparse
import sys
from pathlib import Path

from loguru import logger

from bank_segmentation import DataLoader, SegmentationPipeline, load_config
from bank_segmentation.common.config import merge_config
from bank_segmentation.common.sample_data import generate_transactions
from bank_segmentation.exceptions import SegmentationError


def setup_logging(log_level: str = "INFO"):
    """Configure logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>"
    )


def apply_overrides(args, config: dict) -> dict:
    """Fold command-line flags into the configuration."""
    clustering = {}
    if args.n_clusters is not None:
        clustering['n_clusters'] = args.n_clusters
    if args.k_max is not None:
        clustering['k_max'] = args.k_max
    if args.seed is not None:
        clustering['random_state'] = args.seed

    overrides = {'clustering': clustering}
    if args.output:
        overrides['output'] = {'dir': args.output}
    return merge_config(config, overrides)


def run_segmentation(args, config):
    """Run the full segmentation pipeline and write its outputs."""
    logger.info("Starting Customer Segmentation Pipeline")

    pipeline = SegmentationPipeline(config)
    results = pipeline.run_from_file(args.data)
    paths = pipeline.write_report(results)

    metrics = results['metrics']
    logger.info(f"Segmentation complete. {metrics['n_clusters']} clusters identified.")
    logger.info(f"Between/total SS: {metrics['between_total_ratio']:.3f}")
    logger.info(f"Results saved to {config['output']['dir']}: {sorted(paths)}")
    return results


def run_elbow(args, config):
    """Compute and save the elbow curve only."""
    logger.info("Starting Elbow Estimation")

    transactions = DataLoader(config).load_transactions(args.data)
    curve, suggested = SegmentationPipeline(config).elbow(transactions)

    output_dir = Path(config['output']['dir'])
    output_dir.mkdir(parents=True, exist_ok=True)
    curve.to_csv(output_dir / 'elbow_curve.csv', index=False)

    for _, row in curve.iterrows():
        logger.info(f"k={int(row['k']):>2}  within SS={row['within_ss']:.2f}")
    logger.info(f"Suggested elbow: k={suggested} (confirm before running --task segment)")
    return curve


def run_generate(args, config):
    """Write a synthetic transaction file in the source layout."""
    output_dir = Path(config['output']['dir'])
    output_dir.mkdir(parents=True, exist_ok=True)

    seed = config['clustering']['random_state']
    df = generate_transactions(
        n_customers=args.n_customers,
        n_transactions=args.n_transactions,
        seed=seed if seed is not None else 42
    )
    path = output_dir / 'sample_bank_transactions.csv'
    df.to_csv(path, index=False)

    logger.info(f"Saved {len(df)} transactions for {df['CustomerID'].nunique()} customers to {path}")
    return path


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Bank Customer Segmentation',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument(
        '--task',
        choices=['segment', 'elbow', 'generate'],
        required=True,
        help='Task to run'
    )

    parser.add_argument(
        '--data',
        type=str,
        help='Path to input transaction file'
    )

    parser.add_argument(
        '--config',
        type=str,
        default='config/settings.yaml',
        help='Path to configuration file'
    )

    parser.add_argument(
        '--output',
        type=str,
        default=None,
        help='Output directory for results (overrides config)'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        default=None,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (overrides config)'
    )

    # Clustering options
    parser.add_argument(
        '--n-clusters',
        type=int,
        default=None,
        help='Number of clusters (elbow suggestion if not specified)'
    )

    parser.add_argument(
        '--k-max',
        type=int,
        default=None,
        help='Largest k on the elbow curve'
    )

    parser.add_argument(
        '--seed',
        type=int,
        default=None,
        help='Random seed for sampling and initialization'
    )

    # Sample data options
    parser.add_argument(
        '--n-customers',
        type=int,
        default=1000,
        help='Customers to generate'
    )

    parser.add_argument(
        '--n-transactions',
        type=int,
        default=10000,
        help='Transactions to generate'
    )

    args = parser.parse_args()

    config = apply_overrides(args, load_config(args.config))
    setup_logging(args.log_level or config['logging']['level'])

    if args.task in ('segment', 'elbow') and not args.data:
        parser.error(f"--data required for {args.task} task")

    try:
        if args.task == 'segment':
            run_segmentation(args, config)
        elif args.task == 'elbow':
            run_elbow(args, config)
        elif args.task == 'generate':
            run_generate(args, config)
    except SegmentationError as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == '__main__':
    main()
